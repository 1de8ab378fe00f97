"""
Operator Definitions - Single Source of Truth

This module defines every operator the relation syntax recognizes, together
with its arity and its pointwise (scalar) semantics. The interval semantics of
each operator live in ``implicit_grapher.algorithms.interval_ops``.

References:
    - Moore, Kearfott & Cloud: "Introduction to Interval Analysis" (2009)
    - Tupper: "Reliable Two-Dimensional Graphing Methods for Mathematical
      Formulae with Two Free Variables" (SIGGRAPH 2001)
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum


class Operator(Enum):
    """Operators of the prefix-functional relation syntax."""

    NULL = "NULL"  # Sentinel for unrecognized operator names
    ADD = "ADD"
    MUL = "MUL"
    SUB = "SUB"
    DIV = "DIV"
    NEG = "NEG"
    SQ = "SQ"
    ABS = "ABS"
    SGN = "SGN"
    SQRT = "SQRT"
    EXP = "EXP"
    POW = "POW"
    SIN = "SIN"
    COS = "COS"
    TAN = "TAN"
    CSC = "CSC"
    SEC = "SEC"
    COT = "COT"


VARIADIC: int = -1
"""Marker for operators accepting any number (>= 1) of operands."""


@dataclass(frozen=True, slots=True)
class OperatorSpec:
    """Specification for a single operator."""

    operator: Operator
    arity: int  # Fixed operand count, or VARIADIC
    function: Callable[[Sequence[float]], float]
    description: str
    associative: bool = False
    commutative: bool = False

    @property
    def variadic(self) -> bool:
        """Whether the operator accepts an unbounded operand list."""
        return self.arity == VARIADIC

    def accepts(self, count: int) -> bool:
        """Check whether ``count`` operands satisfy this operator's arity."""
        if self.variadic:
            return count >= 1
        return count == self.arity


# =============================================================================
# SCALAR SEMANTICS
# =============================================================================
# Domain errors (division by zero, sqrt of a negative, overflow) evaluate to
# NaN or a signed infinity instead of raising, matching IEEE 754 float
# arithmetic as closely as Python's math module allows.


def _add(args: Sequence[float]) -> float:
    return math.fsum(args)


def _mul(args: Sequence[float]) -> float:
    return math.prod(args)


def _div(args: Sequence[float]) -> float:
    numerator, denominator = args
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator


def _sgn(args: Sequence[float]) -> float:
    value = args[0]
    if math.isnan(value):
        return math.nan
    return float((value > 0) - (value < 0))


def _sqrt(args: Sequence[float]) -> float:
    value = args[0]
    return math.sqrt(value) if value >= 0 else math.nan


def _exp(args: Sequence[float]) -> float:
    try:
        return math.exp(args[0])
    except OverflowError:
        return math.inf


def _pow(args: Sequence[float]) -> float:
    base, exponent = args
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf
    except (ValueError, ZeroDivisionError):
        # 0 ** negative or negative ** fractional
        if base == 0:
            return math.inf
        return math.nan


def _reciprocal(value: float) -> float:
    return _div((1.0, value))


def _tan(args: Sequence[float]) -> float:
    try:
        return math.tan(args[0])
    except ValueError:
        return math.nan


def _trig(function: Callable[[float], float]) -> Callable[[Sequence[float]], float]:
    def evaluate(args: Sequence[float]) -> float:
        try:
            return function(args[0])
        except ValueError:
            # math raises on infinite arguments
            return math.nan

    return evaluate


_OPERATOR_SPECS: dict[Operator, OperatorSpec] = {
    Operator.NULL: OperatorSpec(
        operator=Operator.NULL,
        arity=VARIADIC,
        function=lambda args: math.nan,
        description="Unsupported operator (always undefined)",
    ),
    Operator.ADD: OperatorSpec(
        operator=Operator.ADD,
        arity=VARIADIC,
        function=_add,
        description="Sum of all operands",
        associative=True,
        commutative=True,
    ),
    Operator.MUL: OperatorSpec(
        operator=Operator.MUL,
        arity=VARIADIC,
        function=_mul,
        description="Product of all operands",
        associative=True,
        commutative=True,
    ),
    Operator.SUB: OperatorSpec(
        operator=Operator.SUB,
        arity=2,
        function=lambda args: args[0] - args[1],
        description="Difference a - b",
    ),
    Operator.DIV: OperatorSpec(
        operator=Operator.DIV,
        arity=2,
        function=_div,
        description="Quotient a / b",
    ),
    Operator.NEG: OperatorSpec(
        operator=Operator.NEG,
        arity=1,
        function=lambda args: -args[0],
        description="Negation -a",
    ),
    Operator.SQ: OperatorSpec(
        operator=Operator.SQ,
        arity=1,
        function=lambda args: args[0] * args[0],
        description="Square a²",
    ),
    Operator.ABS: OperatorSpec(
        operator=Operator.ABS,
        arity=1,
        function=lambda args: abs(args[0]),
        description="Absolute value |a|",
    ),
    Operator.SGN: OperatorSpec(
        operator=Operator.SGN,
        arity=1,
        function=_sgn,
        description="Sign of a (-1, 0 or 1)",
    ),
    Operator.SQRT: OperatorSpec(
        operator=Operator.SQRT,
        arity=1,
        function=_sqrt,
        description="Principal square root √a",
    ),
    Operator.EXP: OperatorSpec(
        operator=Operator.EXP,
        arity=1,
        function=_exp,
        description="Natural exponential eᵃ",
    ),
    Operator.POW: OperatorSpec(
        operator=Operator.POW,
        arity=2,
        function=_pow,
        description="Power aᵇ",
    ),
    Operator.SIN: OperatorSpec(
        operator=Operator.SIN,
        arity=1,
        function=_trig(math.sin),
        description="Sine",
    ),
    Operator.COS: OperatorSpec(
        operator=Operator.COS,
        arity=1,
        function=_trig(math.cos),
        description="Cosine",
    ),
    Operator.TAN: OperatorSpec(
        operator=Operator.TAN,
        arity=1,
        function=_tan,
        description="Tangent",
    ),
    Operator.CSC: OperatorSpec(
        operator=Operator.CSC,
        arity=1,
        function=lambda args: _reciprocal(_trig(math.sin)(args)),
        description="Cosecant 1/sin(a)",
    ),
    Operator.SEC: OperatorSpec(
        operator=Operator.SEC,
        arity=1,
        function=lambda args: _reciprocal(_trig(math.cos)(args)),
        description="Secant 1/cos(a)",
    ),
    Operator.COT: OperatorSpec(
        operator=Operator.COT,
        arity=1,
        function=lambda args: _reciprocal(_tan(args)),
        description="Cotangent 1/tan(a)",
    ),
}


# =============================================================================
# NAMED CONSTANTS AND AXES
# =============================================================================

NAMED_CONSTANTS: dict[str, float] = {
    "PI": math.pi,
    "E": math.e,
}
"""Canonical names of mathematical constants (resolved before axis lookup)."""

_CONSTANT_ALIASES: dict[str, str] = {
    "pi": "PI",
    "π": "PI",
    "e": "E",
}

AXIS_VARIABLES: tuple[str, str] = ("x", "y")
"""Reserved names for the horizontal and vertical coordinate."""


# =============================================================================
# PUBLIC API
# =============================================================================


def get_spec(op: Operator | str) -> OperatorSpec:
    """
    Get the full specification for an operator.

    Args:
        op: Operator (enum or name like 'ADD', 'sin')

    Returns:
        OperatorSpec with arity and scalar semantics

    Raises:
        ValueError: If the name is not a known operator

    Example:
        >>> get_spec("pow").arity
        2
    """
    if isinstance(op, str):
        op = parse_operator(op)
    return _OPERATOR_SPECS[op]


def find_operator(name: str) -> Operator:
    """
    Resolve an operator name, degrading unknown names to ``Operator.NULL``.

    Args:
        name: Operator token as written in the relation source

    Returns:
        The matching Operator, or Operator.NULL if unrecognized

    Example:
        >>> find_operator("COS")
        <Operator.COS: 'COS'>
        >>> find_operator("FOO")
        <Operator.NULL: 'NULL'>
    """
    try:
        return parse_operator(name)
    except ValueError:
        return Operator.NULL


def is_supported(name: str) -> bool:
    """Check whether ``name`` is a recognized (non-sentinel) operator."""
    return find_operator(name) is not Operator.NULL


def find_constant(name: str) -> tuple[str, float] | None:
    """
    Resolve a leaf name to a named constant.

    Args:
        name: Leaf token without its '&' marker

    Returns:
        (canonical_name, value), or None if ``name`` is not a named constant

    Example:
        >>> find_constant("π")
        ('PI', 3.141592653589793)
    """
    canonical = _CONSTANT_ALIASES.get(name, name)
    if canonical in NAMED_CONSTANTS:
        return canonical, NAMED_CONSTANTS[canonical]
    return None


def list_operators() -> list[Operator]:
    """
    List all operators usable in relation sources.

    Returns:
        Operators in declaration order, excluding the NULL sentinel
    """
    return [op for op in Operator if op is not Operator.NULL]


def parse_operator(name: str) -> Operator:
    """Parse an operator name (case-insensitive) into an Operator enum."""
    normalized = name.strip().upper()

    for op in Operator:
        if op is not Operator.NULL and op.value == normalized:
            return op

    valid = [op.value for op in list_operators()]
    raise ValueError(f"Unknown operator: '{name}'. Valid: {valid}")


__all__ = [
    "AXIS_VARIABLES",
    "NAMED_CONSTANTS",
    "Operator",
    "OperatorSpec",
    "VARIADIC",
    "find_constant",
    "find_operator",
    "get_spec",
    "is_supported",
    "list_operators",
    "parse_operator",
]
