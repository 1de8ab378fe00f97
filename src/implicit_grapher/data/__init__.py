"""Data module for the operator table and named constants."""

from implicit_grapher.data.operators import (
    AXIS_VARIABLES,
    NAMED_CONSTANTS,
    VARIADIC,
    Operator,
    OperatorSpec,
    find_constant,
    find_operator,
    get_spec,
    is_supported,
    list_operators,
    parse_operator,
)

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
