"""Implicit Grapher: reliable plotting of implicit relations with interval arithmetic."""

__version__ = "0.1.0"

from implicit_grapher.algorithms.compiler import compile_relation
from implicit_grapher.algorithms.expression import Expression, RelationKind
from implicit_grapher.algorithms.parser import ParseError, parse_expression
from implicit_grapher.algorithms.renderer import AdaptiveRenderer, RenderConfig
from implicit_grapher.algorithms.view import ViewWindow

__all__ = [
    "__version__",
    "AdaptiveRenderer",
    "Expression",
    "ParseError",
    "RelationKind",
    "RenderConfig",
    "ViewWindow",
    "compile_relation",
    "parse_expression",
]
