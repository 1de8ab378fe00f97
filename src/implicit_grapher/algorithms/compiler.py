"""Relation compiler: source text or expression tree to interval predicate."""

from __future__ import annotations

from collections.abc import Mapping

from implicit_grapher.algorithms.expression import (
    CompiledRelation,
    Expression,
    ExpressionNode,
    RelationKind,
)
from implicit_grapher.algorithms.parser import parse_expression


def compile_relation(
    source: str | Expression | ExpressionNode,
    kind: RelationKind | str = RelationKind.EQUATION,
    *,
    variables: Mapping[str, float] | None = None,
    strict: bool = False,
    fold: bool = False,
) -> CompiledRelation:
    """
    Compile a relation into a renderer predicate ``(x1, x2, y1, y2) -> bool``.

    Text sources are parsed first, so malformed input is rejected before any
    compilation happens.

    Args:
        source: Prefix-functional text, an Expression, or a bare root node.
        kind: Equation (f = 0) or inequality (f <= 0).
        variables: Values for free (non-axis) variables.
        strict: Reject unknown operators while parsing.
        fold: Constant-fold the tree before compiling.

    Returns:
        CompiledRelation predicate.

    Raises:
        ParseError: If a text source is malformed.
        TypeError: If ``source`` is of an unsupported type.

    Example:
        >>> parabola = compile_relation("ADD(SQ(x&),MUL(-1&,y&))")
        >>> parabola(2.9, 3.1, 8.9, 9.1)
        True
        >>> parabola(2.9, 3.1, -0.1, 0.1)
        False
    """
    if isinstance(source, str):
        expression = parse_expression(source, strict=strict)
    elif isinstance(source, Expression):
        expression = source
    elif isinstance(source, ExpressionNode):
        expression = Expression(source)
    else:
        raise TypeError(
            f"Cannot compile {type(source).__name__}; "
            "expected str, Expression or ExpressionNode"
        )

    if fold:
        expression = expression.fold_constants()

    return expression.compile(kind, variables=variables)


__all__ = ["compile_relation"]
