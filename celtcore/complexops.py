"""Fixed-point complex arithmetic used by the FFT stages.

Samples are 32-bit words and twiddle factors are 16-bit Q15 words. Every
product of a sample and a twiddle is a 16x32 multiplication followed by a
15-bit shift right.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .fixedpoint import add32, mult16_32_q15, shr, sub32

FRACBITS = 31
SAMP_MAX = 2147483647
SAMP_MIN = -SAMP_MAX
TWID_MAX = 32767
TRIG_UPSCALE = 1


@dataclass(frozen=True)
class FixedComplex:
    """A complex value with integer real and imaginary parts."""

    r: int
    i: int

    def __add__(self, other: FixedComplex) -> FixedComplex:
        return c_add(self, other)

    def __sub__(self, other: FixedComplex) -> FixedComplex:
        return c_sub(self, other)


def _s_mul(sample: int, twiddle: int) -> int:
    return mult16_32_q15(twiddle, sample)


def c_mul(a: FixedComplex, b: FixedComplex) -> FixedComplex:
    """Product of sample `a` and twiddle `b`."""
    return FixedComplex(
        sub32(_s_mul(a.r, b.r), _s_mul(a.i, b.i)),
        add32(_s_mul(a.r, b.i), _s_mul(a.i, b.r)),
    )


def c_mulc(a: FixedComplex, b: FixedComplex) -> FixedComplex:
    """Product of sample `a` and the complex conjugate of twiddle `b`."""
    return FixedComplex(
        add32(_s_mul(a.r, b.r), _s_mul(a.i, b.i)),
        sub32(_s_mul(a.i, b.r), _s_mul(a.r, b.i)),
    )


def c_mul4(a: FixedComplex, b: FixedComplex) -> FixedComplex:
    """Product of `a` and `b`, divided by four."""
    return FixedComplex(
        shr(sub32(_s_mul(a.r, b.r), _s_mul(a.i, b.i)), 2),
        shr(add32(_s_mul(a.r, b.i), _s_mul(a.i, b.r)), 2),
    )


def c_mul_by_scalar(c: FixedComplex, s: int) -> FixedComplex:
    """Multiply both parts of `c` by the Q15 scalar `s`."""
    return FixedComplex(_s_mul(c.r, s), _s_mul(c.i, s))


def c_fixdiv(c: FixedComplex, div: int) -> FixedComplex:
    """Divide both parts of `c` by `div` using a Q15 reciprocal."""
    if div == 0:
        raise ZeroDivisionError("complex division by zero")
    num = TWID_MAX - (div >> 1)
    q = abs(num) // abs(div)
    if (num < 0) != (div < 0):
        q = -q
    factor = q + 1
    return FixedComplex(_s_mul(c.r, factor), _s_mul(c.i, factor))


def c_add(a: FixedComplex, b: FixedComplex) -> FixedComplex:
    """Sum of two complex values."""
    return FixedComplex(add32(a.r, b.r), add32(a.i, b.i))


def c_sub(a: FixedComplex, b: FixedComplex) -> FixedComplex:
    """Difference of two complex values."""
    return FixedComplex(sub32(a.r, b.r), sub32(a.i, b.i))


def twiddle(phase: float) -> FixedComplex:
    """Q15 twiddle factor exp(j*phase)."""
    return FixedComplex(
        int(math.floor(0.5 + TWID_MAX * math.cos(phase))),
        int(math.floor(0.5 + TWID_MAX * math.sin(phase))),
    )