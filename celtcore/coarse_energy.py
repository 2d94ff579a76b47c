"""Coarse quantisation of band energies.

Band energies are log2 values in Q10 (``DB_SHIFT`` fractional bits), kept
per channel in one flat list: channel ``c`` of band ``i`` is at index
``i + c * nb_e_bands``. Each frame's energy is predicted from the previous
frame (inter) or from the lower bands alone (intra). The prediction residual
is coded with a Laplace-like model, or a cheaper code when bits run short.

The entropy coder is supplied by the caller. The calls it must answer are
listed in the ``_Encoder`` and ``_Decoder`` protocols below.
"""

from __future__ import annotations

from collections.abc import MutableSequence, Sequence
from typing import Any, Protocol

from .fixedpoint import (
    DB_SHIFT,
    add32,
    extract16,
    mult16_16,
    pshr,
    qconst16,
    qconst32,
    shl,
    sub16,
    sub32,
)
from .pulses import BandLayout

# Prediction coefficients 0.9, 0.8, 0.65 and 0.5 in Q15, one per frame size.
PRED_COEF = (29440, 26112, 21248, 16384)
BETA_COEF = (30147, 22282, 12124, 6554)
BETA_INTRA = 4915

SMALL_ENERGY_ICDF = (2, 1, 0)

# Parameters of the Laplace-like models for the coarse energy, per frame size
# (120, 240, 480 and 960 samples) and per prediction type (inter, intra).
# Each band has a pair: the probability of 0, then the decay rate, in Q8.
E_PROB_MODEL: tuple[tuple[tuple[int, ...], tuple[int, ...]], ...] = (
    (
        (
            72, 127, 65, 129, 66, 128, 65, 128, 64, 128, 62, 128, 64, 128,
            64, 128, 92, 78, 92, 79, 92, 78, 90, 79, 116, 41, 115, 40,
            114, 40, 132, 26, 132, 26, 145, 17, 161, 12, 176, 10, 177, 11,
        ),
        (
            24, 179, 48, 138, 54, 135, 54, 132, 53, 134, 56, 133, 55, 132,
            55, 132, 61, 114, 70, 96, 74, 88, 75, 88, 87, 74, 89, 66,
            91, 67, 100, 59, 108, 50, 120, 40, 122, 37, 97, 43, 78, 50,
        ),
    ),
    (
        (
            83, 78, 84, 81, 88, 75, 86, 74, 87, 71, 90, 73, 93, 74,
            93, 74, 109, 40, 114, 36, 117, 34, 117, 34, 143, 17, 145, 18,
            146, 19, 162, 12, 165, 10, 178, 7, 189, 6, 190, 8, 177, 9,
        ),
        (
            23, 178, 54, 115, 63, 102, 66, 98, 69, 99, 74, 89, 71, 91,
            73, 91, 78, 89, 86, 80, 92, 66, 93, 64, 102, 59, 103, 60,
            104, 60, 117, 52, 123, 44, 138, 35, 133, 31, 97, 38, 77, 45,
        ),
    ),
    (
        (
            61, 90, 93, 60, 105, 42, 107, 41, 110, 45, 116, 38, 113, 38,
            112, 38, 124, 26, 132, 27, 136, 19, 140, 20, 155, 14, 159, 16,
            158, 18, 170, 13, 177, 10, 187, 8, 192, 6, 175, 9, 159, 10,
        ),
        (
            21, 178, 59, 110, 71, 86, 75, 85, 84, 83, 91, 66, 88, 73,
            87, 72, 92, 75, 98, 72, 105, 58, 107, 54, 115, 52, 114, 55,
            112, 56, 129, 51, 132, 40, 150, 33, 140, 29, 98, 35, 77, 42,
        ),
    ),
    (
        (
            42, 121, 96, 66, 108, 43, 111, 40, 117, 44, 123, 32, 120, 36,
            119, 33, 127, 33, 134, 34, 139, 21, 147, 23, 152, 20, 158, 25,
            154, 26, 166, 21, 173, 16, 184, 13, 184, 10, 150, 13, 139, 15,
        ),
        (
            22, 178, 63, 114, 74, 82, 84, 83, 92, 82, 103, 62, 96, 72,
            96, 67, 101, 73, 107, 72, 113, 55, 118, 52, 125, 52, 118, 52,
            117, 55, 135, 49, 137, 39, 157, 32, 145, 29, 97, 33, 77, 40,
        ),
    ),
)

_MIN_OLD_E = -qconst16(9.0, DB_SHIFT)
_MIN_DECAY_BOUND = -qconst16(28.0, DB_SHIFT)
_MAX_DECAY = qconst16(16.0, DB_SHIFT)
_HALF_Q = qconst32(0.5, DB_SHIFT + 7)
_MIN_TMP = -qconst32(28.0, DB_SHIFT + 7)


class _Encoder(Protocol):
    """Entropy encoder used by the coarse energy quantiser.

    ``snapshot`` returns an independent copy of the whole encoder state,
    including the bytes already written, and ``restore`` returns to it.
    ``laplace_encode`` returns the value actually coded, which may be
    clamped by the model.
    """

    def tell(self) -> int: ...

    def tell_frac(self) -> int: ...

    def encode_bit_logp(self, value: int, logp: int) -> None: ...

    def encode_icdf(self, symbol: int, icdf: Sequence[int], ftb: int) -> None: ...

    def laplace_encode(self, value: int, fs: int, decay: int) -> int: ...

    def snapshot(self) -> Any: ...

    def restore(self, state: Any) -> None: ...


class _Decoder(Protocol):
    """Entropy decoder used by the coarse energy dequantiser."""

    storage: int

    def tell(self) -> int: ...

    def decode_bit_logp(self, logp: int) -> int: ...

    def decode_icdf(self, icdf: Sequence[int], ftb: int) -> int: ...

    def laplace_decode(self, fs: int, decay: int) -> int: ...


def _check_args(layout: BandLayout, start: int, end: int, channels: int,
                lm: int, *arrays: Sequence[int]) -> None:
    nb = layout.nb_e_bands
    if channels not in (1, 2):
        raise ValueError(f"channels must be 1 or 2, not {channels}")
    if not 0 <= lm < len(E_PROB_MODEL):
        raise ValueError(f"lm must be between 0 and {len(E_PROB_MODEL) - 1}")
    if not 0 <= start <= end <= nb:
        raise ValueError(f"band range {start}..{end} invalid for {nb} bands")
    for array in arrays:
        if len(array) < channels * nb:
            raise ValueError("energy arrays need an entry per band and channel")


def _predictor(intra: bool, lm: int) -> tuple[int, int]:
    if intra:
        return 0, BETA_INTRA
    return PRED_COEF[lm], BETA_COEF[lm]


def intra_decision(
    e_bands: Sequence[int],
    old_e_bands: Sequence[int],
    start: int,
    end: int,
    length: int,
    channels: int,
) -> bool:
    """Whether the energies moved far enough from the last frame to favour intra."""
    dist = 0
    for c in range(channels):
        for i in range(start, end):
            idx = i + c * length
            d = extract16(sub16(e_bands[idx], old_e_bands[idx]) >> 2)
            dist = add32(dist, mult16_16(d, d))
    return (dist >> (2 * DB_SHIFT - 4)) > 2 * channels * (end - start)


def _quant_coarse_energy_impl(
    layout: BandLayout,
    start: int,
    end: int,
    e_bands: Sequence[int],
    old_e_bands: MutableSequence[int],
    budget: int,
    tell: int,
    prob_model: Sequence[int],
    error: MutableSequence[int],
    enc: _Encoder,
    channels: int,
    lm: int,
    intra: bool,
    max_decay: int,
) -> int:
    nb = layout.nb_e_bands
    badness = 0
    prev = [0, 0]

    if tell + 3 <= budget:
        enc.encode_bit_logp(int(intra), 3)
    coef, beta = _predictor(intra, lm)

    for i in range(start, end):
        for c in range(channels):
            idx = i + c * nb
            x = e_bands[idx]
            old_e = max(_MIN_OLD_E, old_e_bands[idx])
            f = sub32(sub32(shl(x, 7), pshr(mult16_16(coef, old_e), 8)), prev[c])
            # Rounding to nearest is essential here.
            qi = (f + _HALF_Q) >> (DB_SHIFT + 7)
            decay_bound = extract16(
                max(_MIN_DECAY_BOUND, sub32(old_e_bands[idx], max_decay))
            )
            # Keep the energy from dropping too quickly.
            if qi < 0 and x < decay_bound:
                qi += sub16(decay_bound, x) >> DB_SHIFT
                qi = min(qi, 0)
            qi0 = qi
            # Without enough bits for everything, fall back to safe values.
            tell = enc.tell()
            bits_left = budget - tell - 3 * channels * (end - i)
            if i != start and bits_left < 30:
                if bits_left < 24:
                    qi = min(1, qi)
                if bits_left < 16:
                    qi = max(-1, qi)
            remaining = budget - tell
            if remaining >= 15:
                pi = 2 * min(i, 20)
                qi = enc.laplace_encode(
                    qi, prob_model[pi] << 7, prob_model[pi + 1] << 6
                )
            elif remaining >= 2:
                qi = max(-1, min(qi, 1))
                enc.encode_icdf(2 * qi ^ -int(qi < 0), SMALL_ENERGY_ICDF, 2)
            elif remaining >= 1:
                qi = min(0, qi)
                enc.encode_bit_logp(-qi, 1)
            else:
                qi = -1
            error[idx] = extract16(pshr(f, 7) - (qi << DB_SHIFT))
            badness += abs(qi0 - qi)
            q = shl(qi, DB_SHIFT)

            tmp = add32(add32(pshr(mult16_16(coef, old_e), 8), prev[c]), shl(q, 7))
            tmp = max(_MIN_TMP, tmp)
            old_e_bands[idx] = extract16(pshr(tmp, 7))
            prev[c] = sub32(add32(prev[c], shl(q, 7)), mult16_16(beta, pshr(q, 8)))
    return badness


def quant_coarse_energy(
    layout: BandLayout,
    start: int,
    end: int,
    eff_end: int,
    e_bands: Sequence[int],
    old_e_bands: MutableSequence[int],
    budget: int,
    error: MutableSequence[int],
    enc: _Encoder,
    channels: int,
    lm: int,
    nb_available_bytes: int,
    force_intra: bool,
    delayed_intra: bool,
    two_pass: bool,
) -> bool:
    """Code the coarse energies of bands ``start..end`` into `enc`.

    `old_e_bands` is updated in place to the quantised energies and `error`
    receives the residual left for fine quantisation. With `two_pass`, both
    intra and inter prediction are tried and the better one is kept.
    Returns the delayed-intra flag to pass in for the next frame.
    """
    _check_args(layout, start, end, channels, lm, e_bands, old_e_bands, error)
    if not 0 <= eff_end <= layout.nb_e_bands:
        raise ValueError(f"eff_end {eff_end} outside the band range")
    nb = layout.nb_e_bands

    intra = bool(force_intra) or (
        bool(delayed_intra) and nb_available_bytes > (end - start) * channels
    )
    next_delayed = intra_decision(e_bands, old_e_bands, start, eff_end, nb, channels)

    tell = enc.tell()
    if tell + 3 > budget:
        two_pass = False
        intra = False

    max_decay = min(_MAX_DECAY, shl(nb_available_bytes, DB_SHIFT - 3))

    start_state = enc.snapshot()
    size = channels * nb
    old_intra = list(old_e_bands[:size])
    error_intra = [0] * size

    badness1 = 0
    if two_pass or intra:
        badness1 = _quant_coarse_energy_impl(
            layout, start, end, e_bands, old_intra, budget, tell,
            E_PROB_MODEL[lm][1], error_intra, enc, channels, lm, True, max_decay,
        )

    if not intra:
        tell_intra = enc.tell_frac()
        intra_state = enc.snapshot()
        enc.restore(start_state)
        badness2 = _quant_coarse_energy_impl(
            layout, start, end, e_bands, old_e_bands, budget, tell,
            E_PROB_MODEL[lm][0], error, enc, channels, lm, False, max_decay,
        )
        if two_pass and (
            badness1 < badness2
            or (badness1 == badness2 and enc.tell_frac() > tell_intra)
        ):
            enc.restore(intra_state)
            old_e_bands[:size] = old_intra
            error[:size] = error_intra
    else:
        old_e_bands[:size] = old_intra
        error[:size] = error_intra
    return next_delayed


def unquant_coarse_energy(
    layout: BandLayout,
    start: int,
    end: int,
    old_e_bands: MutableSequence[int],
    intra: bool,
    dec: _Decoder,
    channels: int,
    lm: int,
) -> None:
    """Decode the coarse energies of bands ``start..end``, updating `old_e_bands`.

    The intra flag itself is read by the caller before this call.
    """
    _check_args(layout, start, end, channels, lm, old_e_bands)
    nb = layout.nb_e_bands
    prob_model = E_PROB_MODEL[lm][int(bool(intra))]
    coef, beta = _predictor(bool(intra), lm)
    prev = [0, 0]
    budget = dec.storage * 8

    for i in range(start, end):
        for c in range(channels):
            idx = i + c * nb
            remaining = budget - dec.tell()
            if remaining >= 15:
                pi = 2 * min(i, 20)
                qi = dec.laplace_decode(prob_model[pi] << 7, prob_model[pi + 1] << 6)
            elif remaining >= 2:
                qi = dec.decode_icdf(SMALL_ENERGY_ICDF, 2)
                qi = (qi >> 1) ^ -(qi & 1)
            elif remaining >= 1:
                qi = -dec.decode_bit_logp(1)
            else:
                qi = -1
            q = shl(qi, DB_SHIFT)

            old_e = max(_MIN_OLD_E, old_e_bands[idx])
            tmp = add32(add32(pshr(mult16_16(coef, old_e), 8), prev[c]), shl(q, 7))
            tmp = max(_MIN_TMP, tmp)
            old_e_bands[idx] = extract16(pshr(tmp, 7))
            prev[c] = sub32(add32(prev[c], shl(q, 7)), mult16_16(beta, pshr(q, 8)))