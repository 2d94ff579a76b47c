"""Fine quantisation of band energies and conversion between log and linear
energy.

Energies follow the layout used by the coarse quantiser: log2 values in Q10,
one flat list per frame with channel ``c`` of band ``i`` at index
``i + c * nb_e_bands``. The fine stage refines each coarse value with
``fine_quant[i]`` extra bits. The finalising pass then spends whatever bits
are left, one per band and channel, in priority order.

The entropy coder is supplied by the caller. It only needs raw bit fields:
``encode_bits(value, bits)`` for the encoder and ``decode_bits(bits)`` for
the decoder.
"""

from __future__ import annotations

import math
from collections.abc import MutableSequence, Sequence
from typing import Protocol

from .fixedpoint import (
    DB_SHIFT,
    add16,
    extend32,
    extract16,
    pshr,
    qconst16,
    shl,
    sub16,
)
from .pulses import MAX_FINE_BITS, BandLayout

# Mean energy of each band in Q4 (6.4375 for the first band, and so on).
E_MEANS = (
    103, 100, 92, 85, 81,
    77, 72, 70, 78, 75,
    73, 71, 78, 74, 69,
    72, 70, 74, 76, 71,
    60, 60, 60, 60, 60,
)

_HALF = qconst16(0.5, DB_SHIFT)
_LOG_FLOOR = -qconst16(14.0, DB_SHIFT)
_EXP2_SATURATED = 0x7F000000
_LOG2_OF_ZERO = -32767


class _BitEncoder(Protocol):
    def encode_bits(self, value: int, bits: int) -> None: ...


class _BitDecoder(Protocol):
    def decode_bits(self, bits: int) -> int: ...


def _check(layout: BandLayout, start: int, end: int, channels: int,
           *arrays: Sequence[int]) -> int:
    nb = layout.nb_e_bands
    if channels not in (1, 2):
        raise ValueError(f"channels must be 1 or 2, not {channels}")
    if not 0 <= start <= end <= nb:
        raise ValueError(f"band range {start}..{end} invalid for {nb} bands")
    for array in arrays:
        if len(array) < channels * nb:
            raise ValueError("energy arrays need an entry per band and channel")
    return nb


def _check_bands(fine_quant: Sequence[int], end: int,
                 fine_priority: Sequence[int] | None = None) -> None:
    if len(fine_quant) < end:
        raise ValueError("fine_quant needs an entry for every band in range")
    if fine_priority is not None and len(fine_priority) < end:
        raise ValueError("fine_priority needs an entry for every band in range")


def _fine_offset(q2: int, bits: int) -> int:
    return extract16(sub16((shl(q2, DB_SHIFT) + _HALF) >> bits, _HALF))


def _final_offset(q2: int, bits: int) -> int:
    return extract16(((q2 << DB_SHIFT) - _HALF) >> (bits + 1))


def quant_fine_energy(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: MutableSequence[int],
    error: MutableSequence[int],
    fine_quant: Sequence[int],
    enc: _BitEncoder,
    channels: int,
) -> None:
    """Code `fine_quant[i]` refinement bits per band and channel.

    `old_e_bands` moves towards the true energy and `error` keeps the
    residual; both are updated in place.
    """
    nb = _check(layout, start, end, channels, old_e_bands, error)
    _check_bands(fine_quant, end)
    for i in range(start, end):
        bits = fine_quant[i]
        if bits <= 0:
            continue
        frac = 1 << bits
        for c in range(channels):
            idx = i + c * nb
            # No rounding here: the offset below restores the centre.
            q2 = (error[idx] + _HALF) >> (DB_SHIFT - bits)
            q2 = max(0, min(q2, frac - 1))
            enc.encode_bits(q2, bits)
            offset = _fine_offset(q2, bits)
            old_e_bands[idx] = add16(old_e_bands[idx], offset)
            error[idx] = extract16(error[idx] - offset)


def quant_energy_finalise(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: MutableSequence[int],
    error: Sequence[int],
    fine_quant: Sequence[int],
    fine_priority: Sequence[int],
    bits_left: int,
    enc: _BitEncoder,
    channels: int,
) -> int:
    """Spend the leftover bits, one per band and channel, priority 0 first.

    Returns the number of bits still unused.
    """
    nb = _check(layout, start, end, channels, old_e_bands, error)
    _check_bands(fine_quant, end, fine_priority)
    for prio in (0, 1):
        for i in range(start, end):
            if bits_left < channels:
                break
            if fine_quant[i] >= MAX_FINE_BITS or fine_priority[i] != prio:
                continue
            for c in range(channels):
                idx = i + c * nb
                q2 = 0 if error[idx] < 0 else 1
                enc.encode_bits(q2, 1)
                old_e_bands[idx] = add16(
                    old_e_bands[idx], _final_offset(q2, fine_quant[i])
                )
                bits_left -= 1
    return bits_left


def unquant_fine_energy(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: MutableSequence[int],
    fine_quant: Sequence[int],
    dec: _BitDecoder,
    channels: int,
) -> None:
    """Read the refinement bits and apply them to `old_e_bands` in place."""
    nb = _check(layout, start, end, channels, old_e_bands)
    _check_bands(fine_quant, end)
    for i in range(start, end):
        bits = fine_quant[i]
        if bits <= 0:
            continue
        for c in range(channels):
            idx = i + c * nb
            q2 = dec.decode_bits(bits)
            old_e_bands[idx] = add16(old_e_bands[idx], _fine_offset(q2, bits))


def unquant_energy_finalise(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: MutableSequence[int],
    fine_quant: Sequence[int],
    fine_priority: Sequence[int],
    bits_left: int,
    dec: _BitDecoder,
    channels: int,
) -> int:
    """Read the leftover bits written by `quant_energy_finalise`.

    Returns the number of bits still unused.
    """
    nb = _check(layout, start, end, channels, old_e_bands)
    _check_bands(fine_quant, end, fine_priority)
    for prio in (0, 1):
        for i in range(start, end):
            if bits_left < channels:
                break
            if fine_quant[i] >= MAX_FINE_BITS or fine_priority[i] != prio:
                continue
            for c in range(channels):
                idx = i + c * nb
                q2 = dec.decode_bits(1)
                old_e_bands[idx] = add16(
                    old_e_bands[idx], _final_offset(q2, fine_quant[i])
                )
                bits_left -= 1
    return bits_left


def _exp2(x: int) -> int:
    """2**(x / 1024) in Q16, saturating like the fixed-point exponent."""
    integer = x >> DB_SHIFT
    if integer > 14:
        return _EXP2_SATURATED
    if integer < -15:
        return 0
    return min(0x7FFFFFFF, int(round(2.0 ** (x / (1 << DB_SHIFT)) * 65536)))


def _log2(x: int) -> int:
    """log2 of a Q14 value, in Q10."""
    if x <= 0:
        return _LOG2_OF_ZERO
    return int(round(math.log2(x / 16384.0) * (1 << DB_SHIFT)))


def _check_means(end: int) -> None:
    if end > len(E_MEANS):
        raise ValueError(f"band means are only known for {len(E_MEANS)} bands")


def log2_amp(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: Sequence[int],
    channels: int,
) -> list[int]:
    """Linear band amplitudes (Q12) from log energies; zero outside the range."""
    nb = _check(layout, start, end, channels, old_e_bands)
    _check_means(end)
    e_bands = [0] * (channels * nb)
    for c in range(channels):
        for i in range(start, end):
            idx = i + c * nb
            lg = add16(old_e_bands[idx], E_MEANS[i] << 6)
            e_bands[idx] = extend32(pshr(_exp2(lg), 4))
    return e_bands


def amp2_log2(
    layout: BandLayout,
    eff_end: int,
    end: int,
    band_e: Sequence[int],
    channels: int,
) -> list[int]:
    """Log energies (Q10, mean removed) from linear band amplitudes (Q12).

    Bands from `eff_end` on get the floor value of -14.
    """
    nb = _check(layout, 0, end, channels, band_e)
    if not 0 <= eff_end <= end:
        raise ValueError(f"eff_end {eff_end} outside 0..{end}")
    _check_means(eff_end)
    band_log_e = [_LOG_FLOOR] * (channels * nb)
    for c in range(channels):
        for i in range(eff_end):
            idx = i + c * nb
            band_log_e[idx] = extract16(_log2(shl(band_e[idx], 2)) - (E_MEANS[i] << 6))
    return band_log_e