"""Graphing algorithms module.

This module contains implementations of:
- Interval-union arithmetic for every supported operator
- Expression trees, the prefix-functional parser and the relation compiler
- The adaptive, interruptible subdivision renderer
- Domain ↔ pixel axis mappings
"""

from implicit_grapher.algorithms.compiler import compile_relation
from implicit_grapher.algorithms.expression import (
    CompiledRelation,
    Constant,
    Expression,
    ExpressionNode,
    NamedConstant,
    OperatorNode,
    RelationKind,
    Variable,
    fold_constants,
    parse_relation_kind,
)
from implicit_grapher.algorithms.interval_ops import (
    EMPTY,
    FULL,
    INTERVAL_OPS,
    IntervalUnion,
    apply,
)
from implicit_grapher.algorithms.parser import (
    ParseError,
    ParseErrorKind,
    parse_expression,
    tokenize,
)
from implicit_grapher.algorithms.renderer import (
    AdaptiveRenderer,
    RenderConfig,
    RenderStats,
    RenderStatus,
    RenderTask,
    get_render_config,
)
from implicit_grapher.algorithms.view import AxisMapping, ViewWindow

__all__ = [
    # Interval arithmetic
    "EMPTY",
    "FULL",
    "INTERVAL_OPS",
    "IntervalUnion",
    "apply",
    # Expressions
    "CompiledRelation",
    "Constant",
    "Expression",
    "ExpressionNode",
    "NamedConstant",
    "OperatorNode",
    "RelationKind",
    "Variable",
    "fold_constants",
    "parse_relation_kind",
    # Parsing and compilation
    "ParseError",
    "ParseErrorKind",
    "compile_relation",
    "parse_expression",
    "tokenize",
    # Rendering
    "AdaptiveRenderer",
    "RenderConfig",
    "RenderStats",
    "RenderStatus",
    "RenderTask",
    "get_render_config",
    # Views
    "AxisMapping",
    "ViewWindow",
]
