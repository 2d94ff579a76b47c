import math

import pytest
from hypothesis import given
from hypothesis import strategies as st

from celtcore.complexops import (
    TWID_MAX,
    FixedComplex,
    c_add,
    c_fixdiv,
    c_mul,
    c_mul4,
    c_mul_by_scalar,
    c_mulc,
    c_sub,
    twiddle,
)
from celtcore.fixedpoint import shr

samples = st.integers(min_value=-(1 << 28), max_value=(1 << 28))
complexes = st.builds(FixedComplex, samples, samples)


def test_twiddle_at_zero_is_unit():
    assert twiddle(0.0) == FixedComplex(TWID_MAX, 0)


def test_twiddle_at_quarter_turn():
    assert twiddle(math.pi / 2) == FixedComplex(0, TWID_MAX)


@given(st.floats(min_value=-10.0, max_value=10.0))
def test_twiddle_within_q15_range(phase):
    w = twiddle(phase)
    assert -TWID_MAX <= w.r <= TWID_MAX
    assert -TWID_MAX <= w.i <= TWID_MAX


@given(complexes, complexes)
def test_add_then_sub_round_trip(a, b):
    assert c_sub(c_add(a, b), b) == a


@given(complexes, complexes)
def test_operators_match_functions(a, b):
    assert a + b == c_add(a, b)
    assert a - b == c_sub(a, b)


@given(complexes)
def test_mul_by_unit_twiddle_is_near_identity(a):
    m = c_mul(a, twiddle(0.0))
    assert abs(m.r - a.r) <= abs(a.r) // 32768 + 1
    assert abs(m.i - a.i) <= abs(a.i) // 32768 + 1


@given(complexes, st.floats(min_value=-4.0, max_value=4.0))
def test_mulc_close_to_mul_by_conjugate(a, phase):
    w = twiddle(phase)
    conj = FixedComplex(w.r, -w.i)
    x = c_mulc(a, w)
    y = c_mul(a, conj)
    assert abs(x.r - y.r) <= 2
    assert abs(x.i - y.i) <= 2


@given(complexes, st.floats(min_value=-4.0, max_value=4.0))
def test_mul4_is_quarter_of_mul(a, phase):
    w = twiddle(phase)
    full = c_mul(a, w)
    quarter = c_mul4(a, w)
    assert quarter == FixedComplex(shr(full.r, 2), shr(full.i, 2))


def test_fixdiv_by_two_halves():
    assert c_fixdiv(FixedComplex(1000, -2000), 2) == FixedComplex(500, -1000)


def test_mul_by_half_scalar_halves():
    assert c_mul_by_scalar(FixedComplex(1000, -2000), 16384) == FixedComplex(500, -1000)


def test_fixdiv_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        c_fixdiv(FixedComplex(1, 1), 0)


@given(complexes, st.integers(min_value=2, max_value=64))
def test_fixdiv_shrinks_magnitude(a, div):
    d = c_fixdiv(a, div)
    assert abs(d.r) <= abs(a.r) // 2 + 1
    assert abs(d.i) <= abs(a.i) // 2 + 1