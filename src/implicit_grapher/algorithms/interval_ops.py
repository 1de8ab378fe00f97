"""Conservative interval arithmetic over unions of closed intervals.

Every operator maps one or two interval-unions to an interval-union that is a
superset of the true pointwise image. Unions are flat tuples of paired bounds
``(lo0, hi0, lo1, hi1, ...)``; pairs may overlap and are not sorted.

Soundness Rules:
- Operators never raise; undefined pieces are dropped from the output
- An empty union means "undefined / no constraint" to callers
- Transcendental bounds are widened outward by one ulp so that rounding in
  the math library can never exclude a representable result
- NaN bounds produced by ∞ - ∞ or 0 × ∞ widen to the corresponding infinity

References:
- Moore, Kearfott & Cloud: "Introduction to Interval Analysis" (2009), Ch. 2-5
- Hickey, Ju & Van Emden: "Interval Arithmetic: From Principles to
  Implementation" (J. ACM, 2001)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Sequence

from implicit_grapher.data.operators import Operator

IntervalUnion = tuple[float, ...]
"""Flat paired-bounds sequence (lo0, hi0, lo1, hi1, ...)."""

EMPTY: IntervalUnion = ()
"""The empty union (operator undefined over the whole input)."""

FULL: IntervalUnion = (-math.inf, math.inf)
"""The unconstrained union."""

MAX_PAIRS: int = 64
"""Unions longer than this collapse to their hull to bound Cartesian growth."""

TWO_PI = 2.0 * math.pi
HALF_PI = 0.5 * math.pi


# =============================================================================
# CONSTRUCTION AND QUERIES
# =============================================================================


def interval(lo: float, hi: float) -> IntervalUnion:
    """Create a single-pair union, validating ``lo <= hi``."""
    if math.isnan(lo) or math.isnan(hi) or lo > hi:
        raise ValueError(f"Invalid interval bounds: [{lo}, {hi}]")
    return (float(lo), float(hi))


def point(value: float) -> IntervalUnion:
    """Create a degenerate union holding exactly ``value``.

    NaN has no interval representation and yields the empty union.
    """
    if math.isnan(value):
        return EMPTY
    return (float(value), float(value))


def pairs(union: IntervalUnion) -> Iterator[tuple[float, float]]:
    """Iterate the ``(lo, hi)`` pairs of a union."""
    return zip(union[0::2], union[1::2], strict=True)


def contains(union: IntervalUnion, value: float) -> bool:
    """Check whether ``value`` lies in any pair of the union."""
    return any(lo <= value <= hi for lo, hi in pairs(union))


def touches_zero(union: IntervalUnion) -> bool:
    """True if some pair straddles or touches zero (``lo <= 0 <= hi``)."""
    return any(lo <= 0.0 <= hi for lo, hi in pairs(union))


def has_nonpositive(union: IntervalUnion) -> bool:
    """True if some pair admits a value ``<= 0``."""
    return any(lo <= 0.0 for lo, _ in pairs(union))


def hull(union: IntervalUnion) -> IntervalUnion:
    """Smallest single interval enclosing every pair (empty stays empty)."""
    if not union:
        return EMPTY
    return (min(union[0::2]), max(union[1::2]))


# =============================================================================
# INTERNAL HELPERS
# =============================================================================


def _emit(out: list[float], lo: float, hi: float) -> None:
    """Append a pair, widening NaN bounds to the matching infinity."""
    if math.isnan(lo):
        lo = -math.inf
    if math.isnan(hi):
        hi = math.inf
    if lo > hi:
        lo, hi = hi, lo
    out.append(lo)
    out.append(hi)


def _emit_widened(out: list[float], lo: float, hi: float) -> None:
    """Append a pair widened outward by one ulp."""
    _emit(out, math.nextafter(lo, -math.inf), math.nextafter(hi, math.inf))


def _finish(out: list[float]) -> IntervalUnion:
    if len(out) > 2 * MAX_PAIRS:
        return hull(tuple(out))
    return tuple(out)


def _widen(union: IntervalUnion) -> IntervalUnion:
    out: list[float] = []
    for lo, hi in pairs(union):
        _emit_widened(out, lo, hi)
    return tuple(out)


def _times(a: float, b: float) -> float:
    """Product with the interval convention 0 × ∞ = 0."""
    if a == 0.0 or b == 0.0:
        return 0.0
    return a * b


def _safe_exp(value: float) -> float:
    try:
        return math.exp(value)
    except OverflowError:
        return math.inf


def _pow_nonneg(base: float, exponent: float) -> float:
    """``base ** exponent`` for ``base >= 0`` with limit values at 0."""
    if base == 0.0:
        if exponent > 0:
            return 0.0
        return math.inf if exponent < 0 else 1.0
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf


def _pow_int(base: float, exponent: int) -> float:
    """``base ** exponent`` for a positive integer exponent."""
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.copysign(math.inf, base) if exponent % 2 else math.inf


def _next_at_or_after(lo: float, phase: float, period: float) -> float:
    """Smallest ``phase + k * period`` that is ``>= lo``."""
    return phase + period * math.ceil((lo - phase) / period)


# =============================================================================
# ARITHMETIC
# =============================================================================


def add(a: IntervalUnion, b: IntervalUnion) -> IntervalUnion:
    """Sum over the Cartesian product of pairs (exact per pair)."""
    out: list[float] = []
    for a_lo, a_hi in pairs(a):
        for b_lo, b_hi in pairs(b):
            _emit(out, a_lo + b_lo, a_hi + b_hi)
    return _finish(out)


def neg(a: IntervalUnion) -> IntervalUnion:
    """Negation: each pair reflects to ``[-hi, -lo]``."""
    out: list[float] = []
    for lo, hi in pairs(a):
        _emit(out, -hi, -lo)
    return tuple(out)


def sub(a: IntervalUnion, b: IntervalUnion) -> IntervalUnion:
    """Difference ``a - b`` as ``add(a, neg(b))``."""
    return add(a, neg(b))


def mul(a: IntervalUnion, b: IntervalUnion) -> IntervalUnion:
    """Product over the Cartesian product of pairs.

    Multiplication is monotonic on each sign quadrant, so the extremes of a
    pair product are among its four corner products.
    """
    out: list[float] = []
    for a_lo, a_hi in pairs(a):
        for b_lo, b_hi in pairs(b):
            corners = (
                _times(a_lo, b_lo),
                _times(a_lo, b_hi),
                _times(a_hi, b_lo),
                _times(a_hi, b_hi),
            )
            _emit(out, min(corners), max(corners))
    return _finish(out)


def reciprocal(a: IntervalUnion) -> IntervalUnion:
    """Reciprocal ``1 / a`` with asymptote splitting.

    - ``[0, 0]`` has no sound inverse and contributes nothing
    - Zero strictly inside splits to ``(-∞, 1/lo] ∪ [1/hi, +∞)``
    - Zero on one endpoint gives the single matching half-line
    - Zero-free pairs invert and reorder
    """
    out: list[float] = []
    for lo, hi in pairs(a):
        if lo == 0.0 and hi == 0.0:
            continue
        if lo < 0.0 < hi:
            _emit(out, -math.inf, 1.0 / lo)
            _emit(out, 1.0 / hi, math.inf)
        elif lo == 0.0:
            _emit(out, 1.0 / hi, math.inf)
        elif hi == 0.0:
            _emit(out, -math.inf, 1.0 / lo)
        else:
            d1 = 1.0 / hi
            d2 = 1.0 / lo
            _emit(out, min(d1, d2), max(d1, d2))
    return tuple(out)


def _quotient(x: float, y: float) -> float:
    """``x / y`` for ``y != 0``, taking ∞ / ∞ as 0 (another corner bounds it)."""
    if math.isinf(x) and math.isinf(y):
        return 0.0
    return x / y


def _divide_by_half(
    out: list[float], a_lo: float, a_hi: float, d: float
) -> None:
    """Divide by the half-open divisor range between ``d`` and zero."""
    if a_lo < 0.0 < a_hi:
        _emit(out, -math.inf, math.inf)
    elif (a_lo >= 0.0) == (d > 0.0):
        _emit(out, _quotient(a_lo if d > 0.0 else a_hi, d), math.inf)
    else:
        _emit(out, -math.inf, _quotient(a_hi if d > 0.0 else a_lo, d))


def div(a: IntervalUnion, b: IntervalUnion) -> IntervalUnion:
    """Quotient ``a / b`` (extended division).

    - Zero-free divisors: min/max of the four corner quotients
    - ``[0, 0]`` divisors contribute nothing; a ``[0, 0]`` dividend gives 0
    - Divisors touching zero are split into their signed halves, each giving
      a half-line (or everything, if the dividend straddles zero)
    """
    out: list[float] = []
    for b_lo, b_hi in pairs(b):
        if b_lo == 0.0 and b_hi == 0.0:
            continue
        for a_lo, a_hi in pairs(a):
            if a_lo == 0.0 and a_hi == 0.0:
                _emit(out, 0.0, 0.0)
            elif b_lo > 0.0 or b_hi < 0.0:
                corners = (
                    _quotient(a_lo, b_lo),
                    _quotient(a_lo, b_hi),
                    _quotient(a_hi, b_lo),
                    _quotient(a_hi, b_hi),
                )
                _emit(out, min(corners), max(corners))
            else:
                if b_lo < 0.0:
                    _divide_by_half(out, a_lo, a_hi, b_lo)
                if b_hi > 0.0:
                    _divide_by_half(out, a_lo, a_hi, b_hi)
    return _finish(out)


def square(a: IntervalUnion) -> IntervalUnion:
    """Square; pairs straddling zero have lower bound 0."""
    out: list[float] = []
    for lo, hi in pairs(a):
        m_lo, m_hi = abs(lo), abs(hi)
        if lo <= 0.0 <= hi:
            m = max(m_lo, m_hi)
            _emit(out, 0.0, m * m)
        else:
            small, large = min(m_lo, m_hi), max(m_lo, m_hi)
            _emit(out, small * small, large * large)
    return tuple(out)


def absolute(a: IntervalUnion) -> IntervalUnion:
    """Absolute value; pairs straddling zero have lower bound 0."""
    out: list[float] = []
    for lo, hi in pairs(a):
        m_lo, m_hi = abs(lo), abs(hi)
        if lo <= 0.0 <= hi:
            _emit(out, 0.0, max(m_lo, m_hi))
        else:
            _emit(out, min(m_lo, m_hi), max(m_lo, m_hi))
    return tuple(out)


def sign(a: IntervalUnion) -> IntervalUnion:
    """Sign as a union of the degenerate pairs {-1}, {0}, {1} that can occur."""
    out: list[float] = []
    for lo, hi in pairs(a):
        if lo < 0.0:
            _emit(out, -1.0, -1.0)
        if lo <= 0.0 <= hi:
            _emit(out, 0.0, 0.0)
        if hi > 0.0:
            _emit(out, 1.0, 1.0)
    return tuple(out)


def sqrt(a: IntervalUnion) -> IntervalUnion:
    """Square root over the non-negative part of each pair."""
    out: list[float] = []
    for lo, hi in pairs(a):
        if hi < 0.0:
            continue
        _emit(out, math.sqrt(max(lo, 0.0)), math.sqrt(hi))
    return tuple(out)


def exp(a: IntervalUnion) -> IntervalUnion:
    """Natural exponential (monotone, saturating to +∞)."""
    out: list[float] = []
    for lo, hi in pairs(a):
        _emit_widened(out, _safe_exp(lo), _safe_exp(hi))
    return tuple(out)


def _integer_power(a: IntervalUnion, n: int) -> IntervalUnion:
    if n == 0:
        return tuple(v for _ in pairs(a) for v in (1.0, 1.0))
    if n < 0:
        return _widen(reciprocal(_integer_power(a, -n)))

    out: list[float] = []
    for lo, hi in pairs(a):
        if n % 2:
            _emit_widened(out, _pow_int(lo, n), _pow_int(hi, n))
        elif lo <= 0.0 <= hi:
            top = _pow_int(max(abs(lo), abs(hi)), n)
            _emit(out, 0.0, math.nextafter(top, math.inf))
        else:
            small, large = sorted((abs(lo), abs(hi)))
            _emit_widened(out, _pow_int(small, n), _pow_int(large, n))
    return tuple(out)


def _real_power(
    out: list[float], a_lo: float, a_hi: float, b_lo: float, b_hi: float
) -> None:
    """Power with a non-degenerate (or non-integer) exponent pair.

    For ``x > 0``, ``log(x ** y) = y * log(x)`` is bilinear in ``(y, log x)``,
    so the four corners bound the whole rectangle.
    """
    if a_hi >= 0.0:
        x_lo = max(a_lo, 0.0)
        corners = [_pow_nonneg(x, y) for x in (x_lo, a_hi) for y in (b_lo, b_hi)]
        _emit_widened(out, min(corners), max(corners))

    # Negative bases are only defined at integer exponents: bound by magnitude
    spans_integer = not (math.isfinite(b_lo) and math.isfinite(b_hi)) or (
        math.ceil(b_lo) <= b_hi
    )
    if a_lo < 0.0 and spans_integer:
        m_lo = max(-a_hi, 0.0)
        m_hi = -a_lo
        corners = [_pow_nonneg(m, y) for m in (m_lo, m_hi) for y in (b_lo, b_hi)]
        magnitude = max(corners)
        _emit_widened(out, -magnitude, magnitude)


def power(a: IntervalUnion, b: IntervalUnion) -> IntervalUnion:
    """Power ``a ** b``.

    Degenerate integer exponents follow exact integer-power rules over the
    whole base; other exponents are evaluated on the non-negative base part.
    """
    out: list[float] = []
    for b_lo, b_hi in pairs(b):
        if b_lo == b_hi and math.isfinite(b_lo) and float(b_lo).is_integer():
            out.extend(_integer_power(a, int(b_lo)))
            continue
        for a_lo, a_hi in pairs(a):
            _real_power(out, a_lo, a_hi, b_lo, b_hi)
    return _finish(out)


# =============================================================================
# TRIGONOMETRY
# =============================================================================


def _periodic(
    a: IntervalUnion,
    function: Callable[[float], float],
    peak_phase: float,
    trough_phase: float,
) -> IntervalUnion:
    """Shared bound logic for sine-like functions with period 2π."""
    out: list[float] = []
    for lo, hi in pairs(a):
        if not (math.isfinite(lo) and math.isfinite(hi)) or hi - lo >= TWO_PI:
            _emit(out, -1.0, 1.0)
            continue

        f_lo, f_hi = function(lo), function(hi)
        low, high = min(f_lo, f_hi), max(f_lo, f_hi)

        if _next_at_or_after(lo, trough_phase, TWO_PI) <= hi:
            low = -1.0
        if _next_at_or_after(lo, peak_phase, TWO_PI) <= hi:
            high = 1.0

        low = max(math.nextafter(low, -math.inf), -1.0)
        high = min(math.nextafter(high, math.inf), 1.0)
        _emit(out, low, high)
    return tuple(out)


def sin(a: IntervalUnion) -> IntervalUnion:
    """Sine; peaks at π/2 + 2πk, troughs at 3π/2 + 2πk."""
    return _periodic(a, math.sin, HALF_PI, 3.0 * HALF_PI)


def cos(a: IntervalUnion) -> IntervalUnion:
    """Cosine; peaks at 2πk, troughs at π + 2πk."""
    return _periodic(a, math.cos, 0.0, math.pi)


def tan(a: IntervalUnion) -> IntervalUnion:
    """Tangent with asymptote splitting at π/2 + πk."""
    out: list[float] = []
    for lo, hi in pairs(a):
        if not (math.isfinite(lo) and math.isfinite(hi)) or hi - lo >= math.pi:
            _emit(out, -math.inf, math.inf)
            continue

        t_lo, t_hi = math.tan(lo), math.tan(hi)
        if _next_at_or_after(lo, HALF_PI, math.pi) <= hi:
            _emit(out, math.nextafter(t_lo, -math.inf), math.inf)
            _emit(out, -math.inf, math.nextafter(t_hi, math.inf))
        else:
            _emit_widened(out, min(t_lo, t_hi), max(t_lo, t_hi))
    return tuple(out)


def csc(a: IntervalUnion) -> IntervalUnion:
    """Cosecant; the reciprocal splits wherever sine reaches zero."""
    return reciprocal(sin(a))


def sec(a: IntervalUnion) -> IntervalUnion:
    """Secant; the reciprocal splits wherever cosine reaches zero."""
    return reciprocal(cos(a))


def cot(a: IntervalUnion) -> IntervalUnion:
    """Cotangent; the reciprocal of tangent's (possibly split) range."""
    return reciprocal(tan(a))


def null(*_args: IntervalUnion) -> IntervalUnion:
    """Unsupported-operator sentinel: always undefined."""
    return EMPTY


# =============================================================================
# OPERATOR DISPATCH
# =============================================================================


def _fold(function: Callable[[IntervalUnion, IntervalUnion], IntervalUnion]):
    def apply_all(args: Sequence[IntervalUnion]) -> IntervalUnion:
        result = args[0]
        for arg in args[1:]:
            result = function(result, arg)
        return result

    return apply_all


def _unary(function: Callable[[IntervalUnion], IntervalUnion]):
    return lambda args: function(args[0])


def _binary(function: Callable[[IntervalUnion, IntervalUnion], IntervalUnion]):
    return lambda args: function(args[0], args[1])


INTERVAL_OPS: dict[Operator, Callable[[Sequence[IntervalUnion]], IntervalUnion]] = {
    Operator.NULL: lambda args: null(*args),
    Operator.ADD: _fold(add),
    Operator.MUL: _fold(mul),
    Operator.SUB: _binary(sub),
    Operator.DIV: _binary(div),
    Operator.NEG: _unary(neg),
    Operator.SQ: _unary(square),
    Operator.ABS: _unary(absolute),
    Operator.SGN: _unary(sign),
    Operator.SQRT: _unary(sqrt),
    Operator.EXP: _unary(exp),
    Operator.POW: _binary(power),
    Operator.SIN: _unary(sin),
    Operator.COS: _unary(cos),
    Operator.TAN: _unary(tan),
    Operator.CSC: _unary(csc),
    Operator.SEC: _unary(sec),
    Operator.COT: _unary(cot),
}


def apply(op: Operator, args: Sequence[IntervalUnion]) -> IntervalUnion:
    """Apply an operator's interval semantics to its operand unions.

    Example:
        >>> apply(Operator.ADD, [(1.0, 2.0), (10.0, 20.0), (0.5, 0.5)])
        (11.5, 22.5)
    """
    return INTERVAL_OPS[op](args)


__all__ = [
    "EMPTY",
    "FULL",
    "INTERVAL_OPS",
    "IntervalUnion",
    "MAX_PAIRS",
    "absolute",
    "add",
    "apply",
    "contains",
    "cos",
    "cot",
    "csc",
    "div",
    "exp",
    "has_nonpositive",
    "hull",
    "interval",
    "mul",
    "neg",
    "null",
    "pairs",
    "point",
    "power",
    "reciprocal",
    "sec",
    "sign",
    "sin",
    "sqrt",
    "square",
    "sub",
    "tan",
    "touches_zero",
]
