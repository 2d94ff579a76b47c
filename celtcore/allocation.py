"""Bit allocation across bands: splits a frame's bit budget between PVQ
pulses and fine energy, and codes the band-skip, intensity and dual-stereo
decisions.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from .pulses import BITRES, FINE_OFFSET, MAX_FINE_BITS, BandLayout

ALLOC_STEPS = 6

LOG2_FRAC_TABLE = (
    0,
    8, 13,
    16, 19, 21, 23,
    24, 26, 27, 28, 29, 30, 31, 32,
    32, 33, 34, 34, 35, 36, 36, 37, 37,
)


class _Coder(Protocol):
    """Entropy coder interface used by the allocator.

    An encoder needs the ``encode_*`` methods, a decoder the ``decode_*`` ones.
    """

    def encode_bit_logp(self, value: int, logp: int) -> None: ...

    def encode_uint(self, value: int, ft: int) -> None: ...

    def decode_bit_logp(self, logp: int) -> int: ...

    def decode_uint(self, ft: int) -> int: ...


@dataclass
class Allocation:
    """Result of a bit allocation.

    ``pulses`` holds the PVQ bits per band and ``ebits`` the fine-energy bits
    per channel, both indexed by band; ``balance`` is the surplus over the
    caps left for later rebalancing.
    """

    coded_bands: int
    pulses: list[int]
    ebits: list[int]
    fine_priority: list[int]
    balance: int
    intensity: int
    dual_stereo: int


def _cdiv(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("allocation over an empty band range")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _interp_bits2pulses(
    layout: BandLayout,
    start: int,
    end: int,
    skip_start: int,
    bits1: Sequence[int],
    bits2: Sequence[int],
    thresh: Sequence[int],
    cap: Sequence[int],
    total: int,
    skip_rsv: int,
    intensity: int,
    intensity_rsv: int,
    dual_stereo: int,
    dual_stereo_rsv: int,
    channels: int,
    lm: int,
    coder: _Coder,
    encode: bool,
    prev: int,
) -> Allocation:
    e_bands = layout.e_bands
    nb = layout.nb_e_bands
    alloc_floor = channels << BITRES
    stereo = 1 if channels > 1 else 0
    log_m = lm << BITRES

    bits = [0] * nb
    ebits = [0] * nb
    fine_priority = [0] * nb

    lo = 0
    hi = 1 << ALLOC_STEPS
    for _ in range(ALLOC_STEPS):
        mid = (lo + hi) >> 1
        psum = 0
        done = False
        for j in reversed(range(start, end)):
            tmp = bits1[j] + ((mid * bits2[j]) >> ALLOC_STEPS)
            if tmp >= thresh[j] or done:
                done = True
                psum += min(tmp, cap[j])
            elif tmp >= alloc_floor:
                psum += alloc_floor
        if psum > total:
            hi = mid
        else:
            lo = mid

    psum = 0
    done = False
    for j in reversed(range(start, end)):
        tmp = bits1[j] + ((lo * bits2[j]) >> ALLOC_STEPS)
        if tmp < thresh[j] and not done:
            tmp = alloc_floor if tmp >= alloc_floor else 0
        else:
            done = True
        tmp = min(tmp, cap[j])
        bits[j] = tmp
        psum += tmp

    # Decide which bands to skip, working backwards from the end.
    coded_bands = end
    while True:
        j = coded_bands - 1
        # Never skip the first band nor one boosted by dynamic allocation.
        if j <= skip_start:
            total += skip_rsv
            break
        span = e_bands[coded_bands] - e_bands[start]
        left = total - psum
        percoeff = _cdiv(left, span)
        left -= span * percoeff
        rem = max(left - (e_bands[j] - e_bands[start]), 0)
        band_width = e_bands[coded_bands] - e_bands[j]
        band_bits = bits[j] + percoeff * band_width + rem
        # Only code a skip decision above the threshold; below it the band
        # is skipped without signalling.
        if band_bits >= max(thresh[j], alloc_floor + (1 << BITRES)):
            if encode:
                factor = 7 if j < prev else 9
                if band_bits > ((factor * band_width << lm << BITRES) >> 4):
                    coder.encode_bit_logp(1, 1)
                    break
                coder.encode_bit_logp(0, 1)
            elif coder.decode_bit_logp(1):
                break
            psum += 1 << BITRES
            band_bits -= 1 << BITRES
        psum -= bits[j] + intensity_rsv
        if intensity_rsv > 0:
            intensity_rsv = LOG2_FRAC_TABLE[j - start]
        psum += intensity_rsv
        if band_bits >= alloc_floor:
            psum += alloc_floor
            bits[j] = alloc_floor
        else:
            bits[j] = 0
        coded_bands -= 1

    if intensity_rsv > 0:
        if encode:
            intensity = min(intensity, coded_bands)
            coder.encode_uint(intensity - start, coded_bands + 1 - start)
        else:
            intensity = start + coder.decode_uint(coded_bands + 1 - start)
    else:
        intensity = 0
    if intensity <= start:
        total += dual_stereo_rsv
        dual_stereo_rsv = 0
    if dual_stereo_rsv > 0:
        if encode:
            coder.encode_bit_logp(dual_stereo, 1)
        else:
            dual_stereo = coder.decode_bit_logp(1)
    else:
        dual_stereo = 0

    # Allocate the remaining bits.
    span = e_bands[coded_bands] - e_bands[start]
    left = total - psum
    percoeff = _cdiv(left, span)
    left -= span * percoeff
    for j in range(start, coded_bands):
        bits[j] += percoeff * layout.band_width(j)
    for j in range(start, coded_bands):
        tmp = min(left, layout.band_width(j))
        bits[j] += tmp
        left -= tmp

    balance = 0
    for j in range(start, coded_bands):
        n = layout.band_width(j) << lm
        bits[j] += balance
        if n > 1:
            excess = max(bits[j] - cap[j], 0)
            bits[j] -= excess
            # Compensate for the extra degree of freedom in stereo.
            extra = 1 if (channels == 2 and n > 2 and not dual_stereo
                          and j < intensity) else 0
            den = channels * n + extra
            nclogn = den * (layout.log_n[j] + log_m)
            offset = (nclogn >> 1) - den * FINE_OFFSET
            if n == 2:
                offset += (den << BITRES) >> 2
            if bits[j] + offset < (den * 2) << BITRES:
                offset += nclogn >> 2
            elif bits[j] + offset < (den * 3) << BITRES:
                offset += nclogn >> 3
            ebits[j] = max(
                0,
                _cdiv(bits[j] + offset + (den << (BITRES - 1)), den << BITRES),
            )
            if channels * ebits[j] > (bits[j] >> BITRES):
                ebits[j] = bits[j] >> stereo >> BITRES
            ebits[j] = min(ebits[j], MAX_FINE_BITS)
            fine_priority[j] = int(ebits[j] * (den << BITRES) >= bits[j] + offset)
            bits[j] -= (channels * ebits[j]) << BITRES
        else:
            # A single coefficient: all bits but the sign go to fine energy.
            excess = max(0, bits[j] - (channels << BITRES))
            bits[j] -= excess
            ebits[j] = 0
            fine_priority[j] = 1

        # Fine energy cannot profit from later rebalancing, so do it here.
        if excess > 0:
            extra_fine = min(excess >> (stereo + BITRES), MAX_FINE_BITS - ebits[j])
            ebits[j] += extra_fine
            extra_bits = (extra_fine * channels) << BITRES
            fine_priority[j] = int(extra_bits >= excess - balance)
            excess -= extra_bits
        balance = excess

    # Skipped bands spend all their bits on fine energy.
    for j in range(coded_bands, end):
        ebits[j] = bits[j] >> stereo >> BITRES
        bits[j] = 0
        fine_priority[j] = int(ebits[j] < 1)

    return Allocation(
        coded_bands=coded_bands,
        pulses=bits,
        ebits=ebits,
        fine_priority=fine_priority,
        balance=balance,
        intensity=intensity,
        dual_stereo=dual_stereo,
    )


def compute_allocation(
    layout: BandLayout,
    start: int,
    end: int,
    offsets: Sequence[int],
    cap: Sequence[int],
    alloc_trim: int,
    intensity: int,
    dual_stereo: int,
    total: int,
    channels: int,
    lm: int,
    coder: _Coder,
    encode: bool,
    prev: int,
) -> Allocation:
    """Split `total` eighth-bits between PVQ pulses and fine energy per band.

    When `encode` is true the skip, intensity and dual-stereo decisions are
    written to `coder`; otherwise they are read from it and the `intensity`
    and `dual_stereo` arguments are ignored.
    """
    nb = layout.nb_e_bands
    if not 0 <= start < end <= nb:
        raise ValueError(f"band range {start}..{end} invalid for {nb} bands")
    if channels not in (1, 2):
        raise ValueError(f"channels must be 1 or 2, not {channels}")
    if lm < 0:
        raise ValueError("lm must not be negative")
    if layout.nb_alloc_vectors == 0:
        raise ValueError("layout has no allocation vectors")
    if len(offsets) < end or len(cap) < end:
        raise ValueError("offsets and cap need an entry for every band in range")
    if channels == 2 and end - start >= len(LOG2_FRAC_TABLE):
        raise ValueError("too many bands for stereo allocation")

    total = max(total, 0)
    skip_start = start
    # Reserve a bit to signal the end of manually skipped bands.
    skip_rsv = 1 << BITRES if total >= 1 << BITRES else 0
    total -= skip_rsv
    intensity_rsv = 0
    dual_stereo_rsv = 0
    if channels == 2:
        intensity_rsv = LOG2_FRAC_TABLE[end - start]
        if intensity_rsv > total:
            intensity_rsv = 0
        else:
            total -= intensity_rsv
            dual_stereo_rsv = 1 << BITRES if total >= 1 << BITRES else 0
            total -= dual_stereo_rsv

    thresh = [0] * nb
    trim_offset = [0] * nb
    for j in range(start, end):
        width = layout.band_width(j)
        # Below this threshold no PVQ bits are ever allocated.
        thresh[j] = max(channels << BITRES, (3 * width << lm << BITRES) >> 4)
        # Tilt of the allocation curve.
        trim_offset[j] = (
            channels * width * (alloc_trim - 5 - lm) * (end - j - 1)
            << (lm + BITRES)
        ) >> 6
        if width << lm == 1:
            trim_offset[j] -= channels << BITRES

    vectors = layout.alloc_vectors
    n_vectors = layout.nb_alloc_vectors
    lo = 1
    hi = n_vectors - 1
    while True:
        done = False
        psum = 0
        mid = (lo + hi) >> 1
        for j in reversed(range(start, end)):
            width = layout.band_width(j)
            bitsj = (channels * width * vectors[mid][j] << lm) >> 2
            if bitsj > 0:
                bitsj = max(0, bitsj + trim_offset[j])
            bitsj += offsets[j]
            if bitsj >= thresh[j] or done:
                done = True
                psum += min(bitsj, cap[j])
            elif bitsj >= channels << BITRES:
                psum += channels << BITRES
        if psum > total:
            hi = mid - 1
        else:
            lo = mid + 1
        if lo > hi:
            break
    hi = lo
    lo -= 1

    bits1 = [0] * nb
    bits2 = [0] * nb
    for j in range(start, end):
        width = layout.band_width(j)
        bits1j = (channels * width * vectors[lo][j] << lm) >> 2
        if hi >= n_vectors:
            bits2j = cap[j]
        else:
            bits2j = (channels * width * vectors[hi][j] << lm) >> 2
        if bits1j > 0:
            bits1j = max(0, bits1j + trim_offset[j])
        if bits2j > 0:
            bits2j = max(0, bits2j + trim_offset[j])
        if lo > 0:
            bits1j += offsets[j]
        bits2j += offsets[j]
        if offsets[j] > 0:
            skip_start = j
        bits1[j] = bits1j
        bits2[j] = max(0, bits2j - bits1j)

    return _interp_bits2pulses(
        layout, start, end, skip_start, bits1, bits2, thresh, cap, total,
        skip_rsv, intensity, intensity_rsv, dual_stereo, dual_stereo_rsv,
        channels, lm, coder, encode, prev,
    )