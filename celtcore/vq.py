"""Pyramid vector quantisation of normalised band shapes.

Band vectors are lists of Q14 integers (16384 is 1.0). A band is coded as
K signed unit pulses; the shape is then rebuilt as the pulse vector scaled
to unit norm. A spreading rotation is applied before the search and undone
after reconstruction.

The pulse vector itself is coded by caller-supplied callables:
``encode_pulses(iy, k)`` and ``decode_pulses(n, k)``, the latter returning
the n signed pulse counts.

The reciprocal, square root, cosine and arctangent helpers are computed in
floating point and rounded to the fixed-point formats the algorithm uses.
"""

from __future__ import annotations

import math
from collections.abc import Callable, MutableSequence, Sequence
from enum import IntEnum

from .fixedpoint import (
    EPSILON,
    Q15_ONE,
    Q15ONE,
    VERY_LARGE16,
    add16,
    add32,
    extend32,
    extract16,
    half32,
    mac16_16,
    mult16_16,
    mult16_16_p,
    mult16_16_q,
    mult16_32_q16,
    pshr,
    qconst16,
    shr,
    sub16,
    vshr32,
)


class Spread(IntEnum):
    """Amount of spreading rotation applied to a band."""

    NONE = 0
    LIGHT = 1
    NORMAL = 2
    AGGRESSIVE = 3


_SPREAD_FACTOR = {Spread.LIGHT: 15, Spread.NORMAL: 10, Spread.AGGRESSIVE: 5}
_TWO_OVER_PI_Q15 = qconst16(0.63662, 15)


def _ilog2(x: int) -> int:
    if x <= 0:
        raise ValueError(f"log2 of non-positive value {x}")
    return x.bit_length() - 1


def _rsqrt_norm(x: int) -> int:
    """1/sqrt of a Q16 value in [0.25, 1), in Q14."""
    return min(32767, int(round(16384.0 / math.sqrt(x / 65536.0))))


def _rcp(x: int) -> int:
    """Reciprocal of a Q15 value, in Q16."""
    if x <= 0:
        raise ValueError(f"reciprocal of non-positive value {x}")
    return min(0x7FFFFFFF, (1 << 31) // x)


def _div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _cos_norm(x: int) -> int:
    """cos(pi/2 * x) for a Q15 argument, in Q15."""
    value = math.cos(math.pi / 2 * (x / 32768.0))
    return max(-32767, min(32767, int(round(value * 32768))))


def _sqrt(x: int) -> int:
    return min(32767, int(round(math.sqrt(x))))


def _atan2p(y: int, x: int) -> int:
    """atan2 of non-negative arguments in Q14 radians."""
    return int(round(16384.0 * math.atan2(y, x)))


def _rotate(x: MutableSequence[int], off: int, length: int, stride: int,
            c: int, s: int) -> None:
    def step(p: int) -> None:
        x1 = x[p]
        x2 = x[p + stride]
        x[p + stride] = extract16(shr(mult16_16(c, x2) + mult16_16(s, x1), 15))
        x[p] = extract16(shr(mult16_16(c, x1) - mult16_16(s, x2), 15))

    for i in range(length - stride):
        step(off + i)
    for i in range(length - 2 * stride - 1, -1, -1):
        step(off + i)


def exp_rotation(x: MutableSequence[int], direction: int, stride: int,
                 k: int, spread: int) -> None:
    """Apply (direction > 0) or undo (direction < 0) the spreading rotation in place."""
    spread = Spread(spread)
    if stride <= 0:
        raise ValueError("stride must be positive")
    length = len(x)
    if 2 * k >= length or spread == Spread.NONE:
        return
    factor = _SPREAD_FACTOR[spread]

    gain = extract16(_div(mult16_16(Q15_ONE, length), length + factor * k))
    theta = half32(mult16_16_q(gain, gain, 15))
    c = _cos_norm(extend32(theta))
    s = _cos_norm(extend32(sub16(Q15ONE, theta)))

    stride2 = 0
    if length >= 8 * stride:
        # Rounded sqrt(length / stride).
        stride2 = 1
        while (stride2 * stride2 + stride2) * stride + (stride >> 2) < length:
            stride2 += 1
    block = length // stride
    for i in range(stride):
        off = i * block
        if direction < 0:
            if stride2:
                _rotate(x, off, block, stride2, s, c)
            _rotate(x, off, block, 1, c, s)
        else:
            _rotate(x, off, block, 1, c, -s)
            if stride2:
                _rotate(x, off, block, stride2, s, -c)


def _normalise_residual(iy: Sequence[int], ryy: int, gain: int) -> list[int]:
    k = _ilog2(ryy) >> 1
    t = vshr32(ryy, (k - 7) << 1)
    g = mult16_16_p(_rsqrt_norm(t), gain, 15)
    return [extract16(pshr(mult16_16(g, v), k + 1)) for v in iy]


def extract_collapse_mask(iy: Sequence[int], b: int) -> int:
    """Bit mask of the `b` equal blocks of `iy` that received any pulse."""
    if b <= 1:
        return 1
    n = len(iy)
    if b > n:
        raise ValueError(f"cannot split {n} coefficients into {b} blocks")
    n0 = n // b
    mask = 0
    for i in range(b):
        if any(iy[i * n0:(i + 1) * n0]):
            mask |= 1 << i
    return mask


def alg_quant(
    x: MutableSequence[int],
    k: int,
    spread: int,
    b: int,
    resynth: bool,
    encode_pulses: Callable[[list[int], int], object],
    gain: int,
) -> int:
    """Quantise band `x` with `k` pulses and code the pulse vector.

    With `resynth`, `x` is replaced by the decoded shape; otherwise it is
    left in the rotated domain. Returns the collapse mask.
    """
    n = len(x)
    if k <= 0:
        raise ValueError("alg_quant needs at least one pulse")
    if n == 0:
        raise ValueError("cannot quantise an empty band")
    if b <= 0:
        raise ValueError("block count must be positive")

    exp_rotation(x, 1, b, k, spread)

    signx = [0] * n
    iy = [0] * n
    y = [0] * n
    for j in range(n):
        if x[j] > 0:
            signx[j] = 1
        else:
            signx[j] = -1
            x[j] = extract16(-x[j])

    xy = 0
    yy = 0
    pulses_left = k

    # Pre-search by projecting on the pyramid.
    if k > (n >> 1):
        total = 0
        for v in x:
            total = add32(total, v)
        # Too small a vector: replace it by a single pulse at 0.
        if total <= k:
            x[0] = qconst16(1.0, 14)
            for j in range(1, n):
                x[j] = 0
            total = qconst16(1.0, 14)
        rcp = extract16(mult16_32_q16(k - 1, _rcp(total)))
        for j in range(n):
            # Rounding towards zero matters here.
            iy[j] = mult16_16_q(x[j], rcp, 15)
            y[j] = extract16(iy[j])
            yy = extract16(mac16_16(yy, y[j], y[j]))
            xy = mac16_16(xy, x[j], y[j])
            y[j] = extract16(y[j] * 2)
            pulses_left -= iy[j]

    # Should not happen, but on silence all pulses go in the first bin.
    if pulses_left > n + 3:
        tmp = extract16(pulses_left)
        yy = extract16(mac16_16(yy, tmp, tmp))
        yy = extract16(mac16_16(yy, tmp, y[0]))
        iy[0] += pulses_left
        pulses_left = 0

    for i in range(pulses_left):
        rshift = 1 + _ilog2(k - pulses_left + i + 1)
        best_id = 0
        best_num = -VERY_LARGE16
        best_den = 0
        yy = extract16(add32(yy, 1))
        for j in range(n):
            rxy = extract16(shr(add32(xy, extend32(x[j])), rshift))
            ryy = add16(yy, y[j])
            rxy = extract16(mult16_16_q(rxy, rxy, 15))
            # Compare rxy/ryy with best_num/best_den without dividing.
            if mult16_16(best_den, rxy) > mult16_16(ryy, best_num):
                best_den = ryy
                best_num = rxy
                best_id = j
        xy = add32(xy, extend32(x[best_id]))
        yy = add16(yy, y[best_id])
        y[best_id] = extract16(y[best_id] + 2)
        iy[best_id] += 1

    for j in range(n):
        x[j] = extract16(mult16_16(signx[j], x[j]))
        if signx[j] < 0:
            iy[j] = -iy[j]
    encode_pulses(iy, k)

    if resynth:
        x[:] = _normalise_residual(iy, yy, gain)
        exp_rotation(x, -1, b, k, spread)
    return extract_collapse_mask(iy, b)


def alg_unquant(
    n: int,
    k: int,
    spread: int,
    b: int,
    decode_pulses: Callable[[int, int], Sequence[int]],
    gain: int,
) -> tuple[list[int], int]:
    """Decode a band of `n` coefficients with `k` pulses.

    Returns the normalised shape and the collapse mask.
    """
    if k <= 0:
        raise ValueError("alg_unquant needs at least one pulse")
    iy = list(decode_pulses(n, k))
    if len(iy) != n:
        raise ValueError(f"decoded {len(iy)} pulse counts, expected {n}")
    ryy = 0
    for v in iy:
        ryy = mac16_16(ryy, v, v)
    x = _normalise_residual(iy, ryy, gain)
    exp_rotation(x, -1, b, k, spread)
    return x, extract_collapse_mask(iy, b)


def renormalise_vector(x: MutableSequence[int], gain: int) -> None:
    """Scale `x` in place to norm `gain` (Q15 gain, Q14 result)."""
    energy = EPSILON
    for v in x:
        energy = mac16_16(energy, v, v)
    k = _ilog2(energy) >> 1
    t = vshr32(energy, (k - 7) << 1)
    g = mult16_16_p(_rsqrt_norm(t), gain, 15)
    for i, v in enumerate(x):
        x[i] = extract16(pshr(mult16_16(g, v), k + 1))


def stereo_itheta(x: Sequence[int], y: Sequence[int], stereo: bool) -> int:
    """Angle between two channels in Q14 units of pi/2 (0..16384).

    With `stereo`, the angle is between mid (x+y) and side (x-y); otherwise
    between x and y themselves.
    """
    if len(x) != len(y):
        raise ValueError("channels must have the same length")
    e_mid = EPSILON
    e_side = EPSILON
    for xv, yv in zip(x, y):
        if stereo:
            m = add16(shr(xv, 1), shr(yv, 1))
            s = extract16(sub16(shr(xv, 1), shr(yv, 1)))
        else:
            m, s = xv, yv
        e_mid = mac16_16(e_mid, m, m)
        e_side = mac16_16(e_side, s, s)
    mid = _sqrt(e_mid)
    side = _sqrt(e_side)
    return mult16_16_q(_TWO_OVER_PI_Q15, _atan2p(side, mid), 15)