"""Fixed-point arithmetic primitives on 16-bit and 32-bit words.

Values are Python integers. Each operation applies the same casts and
truncations as two's-complement 16-bit ("word16") and 32-bit ("word32")
machine words, so results wrap exactly where a hardware word would.
"""

CELT_SIG_SCALE = 32768.0

Q15ONE = 32767
Q30ONE = 1073741823

SIG_SHIFT = 12

NORM_SCALING = 16384
NORM_SHIFT = 14

ENER_SCALING = 16384.0
ENER_SHIFT = 14

PGAIN_SCALING = 32768.0
PGAIN_SHIFT = 15

DB_SHIFT = 10

EPSILON = 1
VERY_SMALL = 0
VERY_LARGE32 = 2147483647
VERY_LARGE16 = 32767
Q15_ONE = 32767

BITS_PER_CHAR = 8
BYTES_PER_CHAR = 1
LOG2_BITS_PER_CHAR = 3


def _wrap16(x: int) -> int:
    return ((int(x) + 0x8000) & 0xFFFF) - 0x8000


def _wrap32(x: int) -> int:
    return ((int(x) + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    if b == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _check_q(q: int, low: int, high: int) -> None:
    if not low <= q <= high:
        raise ValueError(f"shift {q} outside supported range {low}..{high}")


def qconst16(x: float, bits: int) -> int:
    """Convert a real constant to a 16-bit value with `bits` fractional bits."""
    return _wrap16(int(0.5 + x * (1 << bits)))


def qconst32(x: float, bits: int) -> int:
    """Convert a real constant to a 32-bit value with `bits` fractional bits."""
    return _wrap32(int(0.5 + x * (1 << bits)))


def extract16(x: int) -> int:
    """Narrow a 32-bit value to 16 bits."""
    return _wrap16(x)


def extend32(x: int) -> int:
    """Widen a value to 32 bits."""
    return _wrap32(x)


def shr(a: int, shift: int) -> int:
    """Arithmetic shift right."""
    return a >> shift


def shl(a: int, shift: int) -> int:
    """Shift left of a 32-bit value."""
    return _wrap32(_wrap32(a) << shift)


def pshr(a: int, shift: int) -> int:
    """Arithmetic shift right with round-to-nearest."""
    return shr(a + ((1 << shift) >> 1), shift)


def vshr32(a: int, shift: int) -> int:
    """Shift right by `shift`, or left when `shift` is not positive."""
    return shr(a, shift) if shift > 0 else shl(a, -shift)


def saturate(x: int, a: int) -> int:
    """Clamp `x` to the range [-a, a]."""
    if x > a:
        return a
    if x < -a:
        return -a
    return x


def round16(x: int, a: int) -> int:
    """Shift right by `a` with rounding; the result is a 16-bit value."""
    return extract16(pshr(x, a))


def half32(x: int) -> int:
    """Divide a 32-bit value by two."""
    return shr(x, 1)


def add16(a: int, b: int) -> int:
    return _wrap16(_wrap16(a) + _wrap16(b))


def sub16(a: int, b: int) -> int:
    return _wrap16(a) - _wrap16(b)


def add32(a: int, b: int) -> int:
    return _wrap32(_wrap32(a) + _wrap32(b))


def sub32(a: int, b: int) -> int:
    return _wrap32(_wrap32(a) - _wrap32(b))


def mult16_16(a: int, b: int) -> int:
    """16x16 multiplication with a 32-bit result."""
    return _wrap16(a) * _wrap16(b)


def mult16_16_16(a: int, b: int) -> int:
    """16x16 multiplication where the result is expected to fit in 16 bits."""
    return _wrap16(a) * _wrap16(b)


def mult16_16su(a: int, b: int) -> int:
    """Multiply a signed 16-bit value by an unsigned 16-bit value."""
    return _wrap16(a) * (int(b) & 0xFFFF)


def mac16_16(c: int, a: int, b: int) -> int:
    """16x16 multiply-add."""
    return add32(c, mult16_16(a, b))


def mult16_32_q(a: int, b: int, q: int) -> int:
    """16x32 multiplication followed by a `q`-bit shift right."""
    if q == 15:
        return mult16_32_q15(a, b)
    if q == 16:
        return mult16_32_q16(a, b)
    _check_q(q, 1, 16)
    mask = (1 << q) - 1
    return add32(mult16_16(a, shr(b, q)), shr(mult16_16(a, b & mask), q))


def mult16_32_q15(a: int, b: int) -> int:
    """16x32 multiplication followed by a 15-bit shift right."""
    return add32(
        shl(mult16_16(a, shr(b, 16)), 1),
        shr(mult16_16su(a, b & 0xFFFF), 15),
    )


def mult16_32_q16(a: int, b: int) -> int:
    """16x32 multiplication followed by a 16-bit shift right."""
    return add32(
        mult16_16(a, shr(b, 16)),
        shr(mult16_16su(a, b & 0xFFFF), 16),
    )


def mult16_32_p15(a: int, b: int) -> int:
    """16x32 multiplication followed by a rounding 15-bit shift right."""
    return add32(mult16_16(a, shr(b, 15)), pshr(mult16_16(a, b & 0x7FFF), 15))


def mac16_32_q11(c: int, a: int, b: int) -> int:
    """16x32 multiply-add with an 11-bit shift right."""
    return add32(c, mult16_32_q(a, b, 11))


def mac16_32_q15(c: int, a: int, b: int) -> int:
    """16x32 multiply-add with a 15-bit shift right."""
    return add32(
        c,
        add32(mult16_16(a, shr(b, 15)), shr(mult16_16(a, b & 0x7FFF), 15)),
    )


def mult32_32_q31(a: int, b: int) -> int:
    """32x32 multiplication followed by a 31-bit shift right."""
    return add32(
        add32(
            shl(mult16_16(shr(a, 16), shr(b, 16)), 1),
            shr(mult16_16su(shr(a, 16), b & 0xFFFF), 15),
        ),
        shr(mult16_16su(shr(b, 16), a & 0xFFFF), 15),
    )


def mult32_32_q32(a: int, b: int) -> int:
    """32x32 multiplication followed by a 32-bit shift right."""
    return add32(
        add32(
            mult16_16(shr(a, 16), shr(b, 16)),
            shr(mult16_16su(shr(a, 16), b & 0xFFFF), 16),
        ),
        shr(mult16_16su(shr(b, 16), a & 0xFFFF), 16),
    )


def mult16_16_q(a: int, b: int, q: int) -> int:
    """16x16 multiplication followed by a `q`-bit shift right."""
    _check_q(q, 0, 31)
    return shr(mult16_16(a, b), q)


def mult16_16_p(a: int, b: int, q: int) -> int:
    """16x16 multiplication followed by a rounding `q`-bit shift right."""
    _check_q(q, 1, 31)
    return shr(add32(1 << (q - 1), mult16_16(a, b)), q)


def mac16_16_q(c: int, a: int, b: int, q: int) -> int:
    """16x16 multiply-add with a `q`-bit shift right of the product."""
    _check_q(q, 0, 31)
    return add32(c, shr(mult16_16(a, b), q))


def mac16_16_p13(c: int, a: int, b: int) -> int:
    """16x16 multiply-add with a rounding 13-bit shift right of the product."""
    return add32(c, shr(add32(4096, mult16_16(a, b)), 13))


def div32_16(a: int, b: int) -> int:
    """Divide a 32-bit value by a 16-bit value; the result is 16 bits."""
    return _wrap16(_cdiv(_wrap32(a), _wrap16(b)))


def pdiv32_16(a: int, b: int) -> int:
    """Divide a 32-bit value by a 16-bit value, rounding to nearest."""
    d = _wrap16(b)
    return _wrap16(_cdiv(_wrap32(a) + (d >> 1), d))


def div32(a: int, b: int) -> int:
    """Divide a 32-bit value by a 32-bit value."""
    return _wrap32(_cdiv(_wrap32(a), _wrap32(b)))


def pdiv32(a: int, b: int) -> int:
    """Divide a 32-bit value by a 32-bit value, rounding to nearest."""
    return _wrap32(_cdiv(_wrap32(a) + (_wrap16(b) >> 1), _wrap32(b)))


def scale_in(a: int) -> int:
    """Scale an input sample into the internal signal range."""
    return a


def scale_out(a: int) -> int:
    """Scale an internal signal value back to the output sample range."""
    return a