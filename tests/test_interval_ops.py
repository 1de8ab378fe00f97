"""Tests for interval-union arithmetic.

Soundness is checked by sampling: for random input unions, every pointwise
result of the scalar operator must lie inside the interval result.
"""

import math

import numpy as np
import pytest

from implicit_grapher.algorithms import interval_ops as iv
from implicit_grapher.algorithms.interval_ops import (
    EMPTY,
    FULL,
    MAX_PAIRS,
    apply,
    contains,
    has_nonpositive,
    hull,
    interval,
    pairs,
    point,
    touches_zero,
)
from implicit_grapher.data.operators import Operator, get_spec

SEED = 42
TRIALS = 200
SAMPLES = 25


def random_union(rng: np.random.Generator, low: float, high: float) -> tuple:
    """One or two random pairs within [low, high]."""
    out: list[float] = []
    for _ in range(int(rng.integers(1, 3))):
        a, b = sorted(rng.uniform(low, high, size=2))
        out.extend((float(a), float(b)))
    return tuple(out)


def sample_union(rng: np.random.Generator, union: tuple) -> list[float]:
    """Endpoints plus uniform samples from every pair."""
    values: list[float] = []
    for lo, hi in pairs(union):
        values.extend((lo, hi))
        values.extend(float(v) for v in rng.uniform(lo, hi, size=SAMPLES))
    return values


def assert_sound_unary(op: Operator, low: float, high: float) -> None:
    rng = np.random.default_rng(SEED)
    function = get_spec(op).function
    for _ in range(TRIALS):
        a = random_union(rng, low, high)
        result = apply(op, [a])
        for x in sample_union(rng, a):
            value = function([x])
            if math.isnan(value):
                continue
            assert contains(result, value), f"{op.value}({x}) = {value} not in {result}"


def assert_sound_binary(
    op: Operator, a_range: tuple[float, float], b_range: tuple[float, float]
) -> None:
    rng = np.random.default_rng(SEED)
    function = get_spec(op).function
    for _ in range(TRIALS // 2):
        a = random_union(rng, *a_range)
        b = random_union(rng, *b_range)
        result = apply(op, [a, b])
        xs = sample_union(rng, a)[:12]
        ys = sample_union(rng, b)[:12]
        for x in xs:
            for y in ys:
                value = function([x, y])
                if math.isnan(value):
                    continue
                assert contains(result, value), (
                    f"{op.value}({x}, {y}) = {value} not in {result}"
                )


class TestConstruction:
    """Tests for union construction and queries."""

    def test_interval_validates(self) -> None:
        """interval() should reject reversed or NaN bounds."""
        assert interval(1, 2) == (1.0, 2.0)
        with pytest.raises(ValueError, match="Invalid interval bounds"):
            interval(2, 1)
        with pytest.raises(ValueError):
            interval(math.nan, 1)

    def test_point(self) -> None:
        assert point(3) == (3.0, 3.0)
        assert point(math.nan) == EMPTY

    def test_pairs(self) -> None:
        assert list(pairs((1.0, 2.0, 5.0, 6.0))) == [(1.0, 2.0), (5.0, 6.0)]
        assert list(pairs(EMPTY)) == []

    def test_touches_zero(self) -> None:
        assert touches_zero((-1.0, 1.0))
        assert touches_zero((0.0, 0.0))
        assert touches_zero((1.0, 2.0, -3.0, 0.0))
        assert not touches_zero((0.5, 1.0))
        assert not touches_zero(EMPTY)

    def test_has_nonpositive(self) -> None:
        assert has_nonpositive((-5.0, -1.0))
        assert has_nonpositive((0.0, 3.0))
        assert not has_nonpositive((0.1, 3.0))
        assert not has_nonpositive(EMPTY)

    def test_hull(self) -> None:
        assert hull((3.0, 4.0, -1.0, 0.0)) == (-1.0, 4.0)
        assert hull(EMPTY) == EMPTY


class TestArithmetic:
    """Tests for exact results of arithmetic operators."""

    def test_add(self) -> None:
        assert iv.add((1.0, 2.0), (10.0, 20.0)) == (11.0, 22.0)

    def test_add_cartesian_product(self) -> None:
        """Each pair of a combines with each pair of b."""
        result = iv.add((0.0, 1.0, 10.0, 11.0), (0.0, 0.0, 100.0, 100.0))
        assert len(result) == 8
        assert set(pairs(result)) == {(0.0, 1.0), (100.0, 101.0), (10.0, 11.0), (110.0, 111.0)}

    def test_add_empty(self) -> None:
        """Empty operands propagate."""
        assert iv.add(EMPTY, (1.0, 2.0)) == EMPTY

    def test_add_infinities_widen(self) -> None:
        """inf + -inf bounds widen instead of becoming NaN."""
        assert iv.add((-math.inf, 0.0), (math.inf, math.inf)) == FULL

    def test_sub(self) -> None:
        assert iv.sub((1.0, 2.0), (0.5, 1.0)) == (0.0, 1.5)

    def test_neg(self) -> None:
        assert iv.neg((1.0, 3.0, -2.0, -1.0)) == (-3.0, -1.0, 1.0, 2.0)

    def test_mul_corners(self) -> None:
        assert iv.mul((-2.0, 3.0), (4.0, 5.0)) == (-10.0, 15.0)
        assert iv.mul((-2.0, -1.0), (-3.0, 4.0)) == (-8.0, 6.0)

    def test_mul_zero_times_infinity(self) -> None:
        """0 × ∞ is taken as 0."""
        assert iv.mul((0.0, 0.0), FULL) == (0.0, 0.0)

    def test_square_straddling(self) -> None:
        assert iv.square((-3.0, 2.0)) == (0.0, 9.0)
        assert iv.square((-3.0, -2.0)) == (4.0, 9.0)

    def test_absolute(self) -> None:
        assert iv.absolute((-3.0, 2.0)) == (0.0, 3.0)
        assert iv.absolute((-3.0, -2.0)) == (2.0, 3.0)

    def test_sign(self) -> None:
        assert iv.sign((-1.0, 1.0)) == (-1.0, -1.0, 0.0, 0.0, 1.0, 1.0)
        assert iv.sign((2.0, 3.0)) == (1.0, 1.0)
        assert iv.sign((0.0, 0.0)) == (0.0, 0.0)

    def test_sqrt_clips_negative_part(self) -> None:
        assert iv.sqrt((-4.0, 9.0)) == (0.0, 3.0)
        assert iv.sqrt((-4.0, -1.0)) == EMPTY

    def test_exp_saturates(self) -> None:
        result = iv.exp((0.0, 1000.0))
        assert result[0] <= 1.0
        assert result[1] == math.inf

    def test_max_pairs_collapses_to_hull(self) -> None:
        """Unions with too many pairs collapse to a single hull."""
        a = tuple(v for k in range(10) for v in (float(k), k + 0.5))
        b = tuple(v for k in range(10) for v in (100.0 * k, 100.0 * k))
        assert 10 * 10 > MAX_PAIRS
        assert iv.add(a, b) == (0.0, 909.5)


class TestReciprocalAndDivision:
    """Tests for asymptote handling of reciprocal and division."""

    def test_reciprocal_zero_free(self) -> None:
        assert iv.reciprocal((2.0, 4.0)) == (0.25, 0.5)
        assert iv.reciprocal((-4.0, -2.0)) == (-0.5, -0.25)

    def test_reciprocal_zero_inside_splits(self) -> None:
        result = iv.reciprocal((-2.0, 4.0))
        assert list(pairs(result)) == [(-math.inf, -0.5), (0.25, math.inf)]

    def test_reciprocal_zero_endpoint(self) -> None:
        """Zero on one endpoint gives a single half-line."""
        assert iv.reciprocal((0.0, 4.0)) == (0.25, math.inf)
        assert iv.reciprocal((-2.0, 0.0)) == (-math.inf, -0.5)

    def test_reciprocal_of_zero_is_empty(self) -> None:
        assert iv.reciprocal((0.0, 0.0)) == EMPTY

    def test_div_zero_free(self) -> None:
        assert iv.div((1.0, 2.0), (4.0, 8.0)) == (0.125, 0.5)

    def test_div_by_straddling_divisor(self) -> None:
        result = iv.div((1.0, 2.0), (-1.0, 2.0))
        assert list(pairs(result)) == [(-math.inf, -1.0), (0.5, math.inf)]

    def test_div_straddling_both(self) -> None:
        """A dividend straddling zero over a divisor touching zero is unconstrained."""
        assert hull(iv.div((-1.0, 1.0), (0.0, 1.0))) == FULL

    def test_div_zero_dividend(self) -> None:
        assert iv.div((0.0, 0.0), (-1.0, 1.0)) == (0.0, 0.0)

    def test_div_by_zero_is_empty(self) -> None:
        assert iv.div((1.0, 2.0), (0.0, 0.0)) == EMPTY


class TestPower:
    """Tests for power."""

    def test_integer_odd_exponent_monotone(self) -> None:
        result = iv.power((-2.0, 3.0), (3.0, 3.0))
        assert contains(result, -8.0)
        assert contains(result, 27.0)
        assert result[0] >= -8.0 - 1e-12
        assert result[1] <= 27.0 + 1e-12

    def test_integer_even_exponent_straddling(self) -> None:
        result = iv.power((-2.0, 3.0), (2.0, 2.0))
        assert result[0] == 0.0
        assert result[1] == pytest.approx(9.0)

    def test_zero_exponent(self) -> None:
        assert iv.power((-2.0, 3.0), (0.0, 0.0)) == (1.0, 1.0)

    def test_negative_integer_exponent(self) -> None:
        result = iv.power((2.0, 4.0), (-1.0, -1.0))
        assert result[0] == pytest.approx(0.25)
        assert result[1] == pytest.approx(0.5)

    def test_fractional_exponent_clips_negative_base(self) -> None:
        result = iv.power((-4.0, 9.0), (0.5, 0.5))
        assert hull(result)[0] >= 0.0 - 1e-12
        assert contains(result, 3.0)


class TestTrigonometry:
    """Tests for periodic operators."""

    def test_sin_wide_interval_is_full_range(self) -> None:
        assert iv.sin((0.0, 7.0)) == (-1.0, 1.0)

    def test_sin_peak_inside(self) -> None:
        lo, hi = iv.sin((1.0, 2.0))
        assert hi == 1.0
        assert lo <= math.sin(1.0)

    def test_cos_trough_inside(self) -> None:
        lo, hi = iv.cos((3.0, 3.5))
        assert lo == -1.0
        assert hi >= math.cos(3.0)

    def test_sin_monotone_piece(self) -> None:
        lo, hi = iv.sin((0.1, 0.2))
        assert lo <= math.sin(0.1) < math.sin(0.2) <= hi
        assert hi - lo < 0.11

    def test_trig_of_infinite_interval(self) -> None:
        assert iv.cos(FULL) == (-1.0, 1.0)
        assert iv.tan(FULL) == FULL

    def test_tan_asymptote_splits(self) -> None:
        result = iv.tan((1.0, 2.0))
        assert len(result) == 4
        (lo1, hi1), (lo2, hi2) = pairs(result)
        assert hi1 == math.inf and lo1 <= math.tan(1.0)
        assert lo2 == -math.inf and hi2 >= math.tan(2.0)

    def test_tan_without_asymptote(self) -> None:
        lo, hi = iv.tan((-0.5, 0.5))
        assert lo <= math.tan(-0.5) and hi >= math.tan(0.5)

    def test_csc_excludes_small_values(self) -> None:
        """|csc| >= 1, so csc over (0.5, 1) stays above 1."""
        lo, hi = iv.csc((0.5, 1.0))
        assert lo >= 1.0 - 1e-12
        assert hi >= 1 / math.sin(0.5)

    def test_cot_across_zero_splits(self) -> None:
        result = iv.cot((-0.5, 0.5))
        assert hull(result) == FULL
        assert not contains(result, 0.0)


class TestNullAndDispatch:
    """Tests for the operator dispatch table."""

    def test_every_operator_dispatches(self) -> None:
        for op in Operator:
            assert op in iv.INTERVAL_OPS

    def test_null_is_empty(self) -> None:
        assert apply(Operator.NULL, [(1.0, 2.0)]) == EMPTY
        assert iv.null() == EMPTY

    def test_variadic_fold(self) -> None:
        assert apply(Operator.ADD, [(1.0, 2.0), (10.0, 20.0), (0.5, 0.5)]) == (11.5, 22.5)
        assert apply(Operator.MUL, [(2.0, 2.0), (3.0, 3.0), (-1.0, 1.0)]) == (-6.0, 6.0)

    def test_single_operand_variadic(self) -> None:
        assert apply(Operator.ADD, [(1.0, 2.0)]) == (1.0, 2.0)


class TestSoundness:
    """Random-sampling soundness checks for every operator."""

    @pytest.mark.parametrize(
        ("op", "low", "high"),
        [
            (Operator.NEG, -10.0, 10.0),
            (Operator.SQ, -10.0, 10.0),
            (Operator.ABS, -10.0, 10.0),
            (Operator.SGN, -2.0, 2.0),
            (Operator.SQRT, -5.0, 20.0),
            (Operator.EXP, -20.0, 20.0),
            (Operator.SIN, -20.0, 20.0),
            (Operator.COS, -20.0, 20.0),
            (Operator.TAN, -6.0, 6.0),
            (Operator.CSC, -6.0, 6.0),
            (Operator.SEC, -6.0, 6.0),
            (Operator.COT, -6.0, 6.0),
        ],
    )
    def test_unary(self, op: Operator, low: float, high: float) -> None:
        """Every sampled scalar result lies in the interval result."""
        assert_sound_unary(op, low, high)

    @pytest.mark.parametrize(
        ("op", "a_range", "b_range"),
        [
            (Operator.ADD, (-10.0, 10.0), (-10.0, 10.0)),
            (Operator.SUB, (-10.0, 10.0), (-10.0, 10.0)),
            (Operator.MUL, (-10.0, 10.0), (-10.0, 10.0)),
            (Operator.DIV, (-10.0, 10.0), (-10.0, 10.0)),
            (Operator.DIV, (1.0, 10.0), (0.5, 4.0)),
            (Operator.POW, (0.0, 4.0), (-3.0, 3.0)),
            (Operator.POW, (-4.0, 4.0), (-3.0, 3.0)),
        ],
    )
    def test_binary(
        self, op: Operator, a_range: tuple[float, float], b_range: tuple[float, float]
    ) -> None:
        """Every sampled scalar result lies in the interval result."""
        assert_sound_binary(op, a_range, b_range)

    @pytest.mark.parametrize("exponent", [-3.0, -2.0, -1.0, 0.0, 1.0, 2.0, 3.0, 4.0])
    def test_integer_power(self, exponent: float) -> None:
        """Degenerate integer exponents are sound over signed bases."""
        rng = np.random.default_rng(SEED)
        function = get_spec(Operator.POW).function
        for _ in range(TRIALS):
            a = random_union(rng, -5.0, 5.0)
            result = iv.power(a, point(exponent))
            for x in sample_union(rng, a):
                value = function([x, exponent])
                if math.isnan(value):
                    continue
                assert contains(result, value), f"{x}^{exponent} = {value} not in {result}"
