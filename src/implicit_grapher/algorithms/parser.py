"""Parser for the prefix-functional relation syntax.

Syntax example::

    ADD(SQ(x&),MUL(-1&,y&))      # x² - y, i.e. the parabola y = x²

Operators are written as ``NAME(arg,arg,...)``. Leaves are the tokens between
delimiters; a trailing ``&`` marks a leaf for substitution (named constant,
axis variable, number or free variable, in that resolution order) and is
stripped before lookup. Whitespace is ignored.

Parsing is a single left-to-right pass over a token stream with an operand
stack: operator tokens push an open-call marker, leaves push nodes, and each
closing parenthesis collapses everything above the nearest marker into an
operator node.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from implicit_grapher.algorithms.expression import (
    Constant,
    Expression,
    ExpressionNode,
    NamedConstant,
    OperatorNode,
    Variable,
)
from implicit_grapher.data.operators import (
    AXIS_VARIABLES,
    Operator,
    find_constant,
    find_operator,
)

logger = logging.getLogger(__name__)

LEAF_MARKER = "&"


class ParseErrorKind(Enum):
    """Categories of rejected relation sources."""

    UNBALANCED_PARENTHESES = "unbalanced_parentheses"
    MALFORMED = "malformed"
    ARITY = "arity"
    UNSUPPORTED_OPERATOR = "unsupported_operator"


class ParseError(ValueError):
    """Relation source could not be turned into a complete expression tree."""

    def __init__(
        self, kind: ParseErrorKind, message: str, position: int | None = None
    ) -> None:
        if position is not None:
            message = f"{message} (at char {position})"
        super().__init__(message)
        self.kind = kind
        self.position = position


class TokenType(Enum):
    OPERATOR = "operator"
    CLOSE = "close"
    LEAF = "leaf"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token of the relation syntax."""

    type: TokenType
    value: str
    position: int


@dataclass(frozen=True, slots=True)
class _OpenCall:
    operator: Operator
    name: str
    position: int


def parentheses_balanced(text: str) -> bool:
    """Check that nesting never goes negative and ends at depth zero."""
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth < 0:
            return False
    return depth == 0


def tokenize(text: str) -> Iterator[Token]:
    """Split a relation source into operator, leaf and close tokens.

    Raises:
        ParseError: UNBALANCED_PARENTHESES before any token is produced, or
            MALFORMED for empty operator names and empty operands.
    """
    if not parentheses_balanced(text):
        raise ParseError(
            ParseErrorKind.UNBALANCED_PARENTHESES,
            f"Unbalanced parentheses in '{text}'",
        )

    buffer: list[str] = []
    start = 0
    previous: str | None = None  # Last delimiter seen

    for i, char in enumerate(text):
        if char.isspace():
            continue

        if char not in "(),":
            if not buffer:
                start = i
            buffer.append(char)
            continue

        word = "".join(buffer)
        buffer.clear()

        if char == "(":
            if not word:
                raise ParseError(
                    ParseErrorKind.MALFORMED, "Missing operator name", position=i
                )
            yield Token(TokenType.OPERATOR, word, start)
        elif word:
            if previous == ")":
                raise ParseError(
                    ParseErrorKind.MALFORMED,
                    f"Unexpected '{word}' after ')'",
                    position=start,
                )
            yield Token(TokenType.LEAF, word, start)
        elif previous in (",", "(") and not (char == ")" and previous == "("):
            raise ParseError(ParseErrorKind.MALFORMED, "Empty operand", position=i)
        elif previous is None:
            raise ParseError(
                ParseErrorKind.MALFORMED, f"Unexpected '{char}'", position=i
            )

        if char == ")":
            yield Token(TokenType.CLOSE, char, i)
        previous = char

    if buffer:
        if previous == ")":
            raise ParseError(
                ParseErrorKind.MALFORMED,
                f"Unexpected '{''.join(buffer)}' after ')'",
                position=start,
            )
        yield Token(TokenType.LEAF, "".join(buffer), start)
    elif previous == ",":
        raise ParseError(
            ParseErrorKind.MALFORMED, "Trailing ','", position=text.rindex(",")
        )


def resolve_leaf(token: str, position: int | None = None) -> ExpressionNode:
    """Turn a leaf token into a node.

    Resolution order: named constant > axis variable > number > free variable.
    """
    name = token[:-1] if token.endswith(LEAF_MARKER) else token
    if not name or LEAF_MARKER in name:
        raise ParseError(
            ParseErrorKind.MALFORMED, f"Invalid leaf '{token}'", position=position
        )

    constant = find_constant(name)
    if constant is not None:
        return NamedConstant(*constant)

    if name in AXIS_VARIABLES:
        return Variable(name)

    try:
        return Constant(float(name))
    except ValueError:
        pass

    if not name.isidentifier():
        raise ParseError(
            ParseErrorKind.MALFORMED, f"Invalid leaf '{token}'", position=position
        )
    return Variable(name)


def parse_expression(text: str, *, strict: bool = False) -> Expression:
    """
    Parse a prefix-functional relation source into an Expression.

    Args:
        text: Source such as ``"ADD(SQ(x&),MUL(-1&,y&))"``.
        strict: Reject unknown operator names instead of mapping them to NULL.

    Returns:
        Complete Expression (never a partial tree).

    Raises:
        ParseError: With kind UNBALANCED_PARENTHESES, MALFORMED, ARITY or
            (strict only) UNSUPPORTED_OPERATOR.

    Example:
        >>> expr = parse_expression("ADD(SQ(x&),MUL(-1&,y&))")
        >>> expr.evaluate(x=3, y=9)
        0.0
    """
    stack: list[ExpressionNode | _OpenCall] = []

    for token in tokenize(text):
        if token.type is TokenType.OPERATOR:
            operator = find_operator(token.value)
            if operator is Operator.NULL:
                if strict:
                    raise ParseError(
                        ParseErrorKind.UNSUPPORTED_OPERATOR,
                        f"Unsupported operator '{token.value}'",
                        position=token.position,
                    )
                logger.warning(
                    "Unsupported operator '%s' at char %d treated as NULL",
                    token.value,
                    token.position,
                )
            stack.append(_OpenCall(operator, token.value, token.position))

        elif token.type is TokenType.LEAF:
            stack.append(resolve_leaf(token.value, token.position))

        else:
            index = len(stack) - 1
            while index >= 0 and not isinstance(stack[index], _OpenCall):
                index -= 1
            if index < 0:
                raise ParseError(
                    ParseErrorKind.MALFORMED,
                    "Closing parenthesis without an operator",
                    position=token.position,
                )

            call = stack[index]
            operands = stack[index + 1 :]
            try:
                node = OperatorNode(call.operator, tuple(operands))
            except ValueError as e:
                raise ParseError(
                    ParseErrorKind.ARITY,
                    f"{call.name}: {e}",
                    position=call.position,
                ) from e

            del stack[index:]
            stack.append(node)

    if len(stack) != 1 or isinstance(stack[0], _OpenCall):
        raise ParseError(
            ParseErrorKind.MALFORMED,
            f"Expected exactly one complete expression, found {len(stack)}",
        )

    return Expression(stack[0])


__all__ = [
    "LEAF_MARKER",
    "ParseError",
    "ParseErrorKind",
    "Token",
    "TokenType",
    "parentheses_balanced",
    "parse_expression",
    "resolve_leaf",
    "tokenize",
]
