import pytest
from hypothesis import given, strategies as st

from celtcore.intmath import (
    ec_clampi,
    ec_ilog,
    ec_maxi,
    ec_mini,
    ec_signi,
    ec_signmask,
)

ints = st.integers(min_value=-(2**40), max_value=2**40)
u32 = st.integers(min_value=1, max_value=0xFFFFFFFF)


@given(ints, ints)
def test_maxi_matches_max(a, b):
    assert ec_maxi(a, b) == max(a, b)


@given(ints, ints)
def test_mini_matches_min(a, b):
    assert ec_mini(a, b) == min(a, b)


@given(ints)
def test_signi(a):
    s = ec_signi(a)
    assert s in (-1, 0, 1)
    assert s * abs(a) == a


@given(ints)
def test_signmask(a):
    m = ec_signmask(a)
    assert m == (-1 if a < 0 else 0)
    assert (a & m) == (a if a < 0 else 0)


@given(ints, ints, ints)
def test_clampi_within_bounds(a, b, c):
    r = ec_clampi(a, b, c)
    assert r >= a
    if a <= c:
        assert r <= c
        if a <= b <= c:
            assert r == b


def test_clampi_lower_bound_wins():
    assert ec_clampi(5, 0, 3) == 5
    assert ec_clampi(5, 9, 3) == 5


def test_ilog_of_zero_is_zero():
    assert ec_ilog(0) == 0


def test_ilog_full_width():
    assert ec_ilog(0xFFFFFFFF) == 32


@given(u32)
def test_ilog_brackets_value(v):
    n = ec_ilog(v)
    assert 2 ** (n - 1) <= v < 2**n


@given(st.integers(min_value=0, max_value=31))
def test_ilog_powers_of_two(k):
    assert ec_ilog(1 << k) == k + 1
    assert ec_ilog((1 << (k + 1)) - 1) == k + 1


@pytest.mark.parametrize("v", [-1, 0x100000000])
def test_ilog_rejects_out_of_range(v):
    with pytest.raises(ValueError):
        ec_ilog(v)