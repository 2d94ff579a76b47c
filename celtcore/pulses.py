"""Band layout and the pulses <-> bits mapping of the PVQ coder."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

MAX_PSEUDO = 40
LOG_MAX_PSEUDO = 6

MAX_PULSES = 128

MAX_FINE_BITS = 8

FINE_OFFSET = 21
QTHETA_OFFSET = 4
QTHETA_OFFSET_TWOPHASE = 16

BITOVERFLOW = 30000

# Bit counts are kept in 1/8 bit units.
BITRES = 3

_MAX_N = (32767, 32767, 32767, 1476, 283, 109, 60, 40,
          29, 24, 20, 18, 16, 14, 13)
_MAX_K = (32767, 32767, 32767, 32767, 1172, 238, 95, 53,
          36, 27, 22, 18, 16, 15, 13)


@dataclass
class PulseCache:
    """Precomputed bit costs per band size.

    ``index`` holds, for each (LM + 1, band) pair, the offset of that band's
    row in ``bits`` (or -1 when the band is empty). A row starts with the
    number K of entries that follow; entry k is the cost in 1/8 bits, minus
    one, of coding the k-th pseudo-pulse count. ``caps`` holds the maximum
    useful rate per (LM, channels, band).
    """

    index: Sequence[int]
    bits: Sequence[int]
    caps: Sequence[int] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.bits)


@dataclass
class BandLayout:
    """Band edges, per-band log sizes and allocation vectors of a mode."""

    e_bands: Sequence[int]
    log_n: Sequence[int]
    alloc_vectors: Sequence[Sequence[int]] = ()
    cache: PulseCache | None = None

    def __post_init__(self) -> None:
        if len(self.e_bands) < 2:
            raise ValueError("a layout needs at least one band")
        if any(b < a for a, b in zip(self.e_bands, self.e_bands[1:])):
            raise ValueError("band edges must not decrease")
        if len(self.log_n) != self.nb_e_bands:
            raise ValueError("log_n must have one entry per band")
        for vector in self.alloc_vectors:
            if len(vector) != self.nb_e_bands:
                raise ValueError("each allocation vector needs one entry per band")

    @property
    def nb_e_bands(self) -> int:
        return len(self.e_bands) - 1

    @property
    def nb_alloc_vectors(self) -> int:
        return len(self.alloc_vectors)

    def band_width(self, band: int) -> int:
        return self.e_bands[band + 1] - self.e_bands[band]


def get_pulses(i: int) -> int:
    """Actual pulse count for pseudo-pulse index `i`."""
    return i if i < 8 else (8 + (i & 7)) << ((i >> 3) - 1)


def fits_in32(n: int, k: int) -> bool:
    """Whether V(N, K) fits in an unsigned 32-bit integer."""
    if n >= 14:
        if k >= 14:
            return False
        return n <= _MAX_N[k]
    return k <= _MAX_K[n]


def _cache_row(layout: BandLayout, band: int, lm: int) -> Sequence[int]:
    cache = layout.cache
    if cache is None:
        raise ValueError("layout has no pulse cache")
    offset = cache.index[(lm + 1) * layout.nb_e_bands + band]
    if offset < 0:
        raise ValueError(f"band {band} at LM {lm} has no cache entry")
    return cache.bits[offset:]


def bits2pulses(layout: BandLayout, band: int, lm: int, bits: int) -> int:
    """Largest pseudo-pulse count whose cost best matches `bits` (1/8 bits)."""
    row = _cache_row(layout, band, lm)
    lo = 0
    hi = row[0]
    bits -= 1
    for _ in range(LOG_MAX_PSEUDO):
        mid = (lo + hi + 1) >> 1
        if row[mid] >= bits:
            hi = mid
        else:
            lo = mid
    low_cost = -1 if lo == 0 else row[lo]
    return lo if bits - low_cost <= row[hi] - bits else hi


def pulses2bits(layout: BandLayout, band: int, lm: int, pulses: int) -> int:
    """Cost in 1/8 bits of coding `pulses` pseudo-pulses in a band."""
    row = _cache_row(layout, band, lm)
    return 0 if pulses == 0 else row[pulses] + 1