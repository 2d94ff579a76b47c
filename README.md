# celtcore

Numeric building blocks of a low-delay transform audio codec, in pure Python
with no third-party dependencies. All values are plain Python integers. The
operations wrap and round the way 16-bit and 32-bit two's-complement words do.

## Modules

- `celtcore.fixedpoint`: 16/32-bit fixed-point primitives such as `add16`,
  `add32`, `mult16_16`, `mult16_32_q15`, `mult16_32_q`, `mult32_32_q31`,
  `mult16_16_q`, `mult16_16_p`, `pshr`, `vshr32`, `saturate`, `qconst16`,
  `qconst32`, `div32_16` and `pdiv32`. It also holds the format constants
  (`DB_SHIFT`, `Q15ONE`, `EPSILON`, ...). Division by zero raises
  `ZeroDivisionError`, and shift amounts out of range raise `ValueError`.
- `celtcore.intmath`: range-coder integer helpers `ec_maxi`, `ec_mini`,
  `ec_signi`, `ec_signmask`, `ec_clampi` and `ec_ilog`. `ec_ilog` rejects
  values that are not unsigned 32-bit.
- `celtcore.complexops`: the frozen dataclass `FixedComplex`, which supports
  `+` and `-`, together with `c_mul`, `c_mulc`, `c_mul4`, `c_mul_by_scalar`,
  `c_fixdiv`, `c_add`, `c_sub` and `twiddle(phase)` for Q15 twiddle factors.
- `celtcore.pulses`: `BandLayout` (band edges, `log_n`, allocation vectors
  and an optional `PulseCache`), plus `get_pulses`, `fits_in32`,
  `bits2pulses` and `pulses2bits`.
- `celtcore.allocation`: `compute_allocation`. It splits a bit budget, in
  1/8-bit units, between PVQ pulses and fine energy for each band. It codes
  or reads the band-skip, intensity and dual-stereo decisions, and returns
  an `Allocation`.
- `celtcore.coarse_energy`: `quant_coarse_energy`, `unquant_coarse_energy`
  and `intra_decision`. These give coarse band-energy quantisation with
  inter or intra prediction, and an optional two-pass choice between them.
- `celtcore.fine_energy`: `quant_fine_energy`, `quant_energy_finalise`,
  `unquant_fine_energy`, `unquant_energy_finalise`, `log2_amp` and
  `amp2_log2`.
- `celtcore.vq`: the algebraic pulse-vector quantiser. It provides
  `alg_quant`, `alg_unquant`, `exp_rotation` with the `Spread` levels,
  `extract_collapse_mask`, `renormalise_vector` and `stereo_itheta`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from celtcore.fixedpoint import qconst16, mult16_16_q, pshr
from celtcore.intmath import ec_ilog
from celtcore.pulses import get_pulses

half = qconst16(0.5, 15)             # 16384
print(mult16_16_q(half, half, 15))   # 8192
print(pshr(7, 1))                    # 4, rounds to nearest
print(ec_ilog(255))                  # 8
print([get_pulses(i) for i in range(10)])
```

## Bitstream access

The functions that read or write a bitstream do not come with an entropy
coder. They call methods on an object that you pass in:

- `compute_allocation` calls `encode_bit_logp` and `encode_uint` when
  encoding, and `decode_bit_logp` and `decode_uint` when decoding.
- `quant_coarse_energy` calls `tell`, `tell_frac`, `encode_bit_logp`,
  `encode_icdf`, `laplace_encode`, `snapshot` and `restore`.
- `unquant_coarse_energy` uses the `storage` attribute and calls `tell`,
  `decode_bit_logp`, `decode_icdf` and `laplace_decode`.
- The fine-energy functions call `encode_bits(value, bits)` and
  `decode_bits(bits)`.
- `alg_quant` and `alg_unquant` take the callables
  `encode_pulses(iy, k)` and `decode_pulses(n, k)`.

## What this package does not do

- It is not a complete codec. There is no encoder or decoder object, no
  range coder, no pulse-vector enumeration coder, no MDCT or FFT, and no
  command-line tool for coding audio files.
- It does not build modes. A `BandLayout` and its `PulseCache` (bit tables
  and caps) must be supplied by the caller; nothing here computes them.
- The exponent and logarithm in `log2_amp` and `amp2_log2` are computed in
  floating point and then rounded to the fixed-point formats. The same holds
  for the reciprocal, square root, cosine and arctangent in `celtcore.vq`.
  Results can therefore differ in the last bit from a pure integer
  implementation.