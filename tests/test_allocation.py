import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from celtcore.allocation import Allocation, compute_allocation
from celtcore.pulses import MAX_FINE_BITS, BandLayout

NB = 8


def make_layout():
    return BandLayout(
        e_bands=[0, 1, 2, 3, 4, 6, 8, 12, 16],
        log_n=[0, 0, 0, 0, 8, 8, 16, 16],
        alloc_vectors=[[v] * NB for v in (0, 10, 40, 90, 140)],
    )


class RecordingEncoder:
    def __init__(self):
        self.symbols = []

    def encode_bit_logp(self, value, logp):
        self.symbols.append(("bit", int(value), logp))

    def encode_uint(self, value, ft):
        if not 0 <= value < ft:
            raise AssertionError(f"uint {value} out of range {ft}")
        self.symbols.append(("uint", value, ft))


class ReplayDecoder:
    def __init__(self, symbols):
        self.symbols = list(symbols)

    def _next(self, kind, param):
        got_kind, value, got_param = self.symbols.pop(0)
        if got_kind != kind or got_param != param:
            raise AssertionError(f"expected {kind}/{param}, got {got_kind}/{got_param}")
        return value

    def decode_bit_logp(self, logp):
        return self._next("bit", logp)

    def decode_uint(self, ft):
        return self._next("uint", ft)


def allocate(total, channels=1, lm=0, start=0, end=NB, offsets=None,
             cap=None, alloc_trim=5, intensity=None, dual_stereo=0,
             prev=0, coder=None, encode=True):
    layout = make_layout()
    if coder is None:
        coder = RecordingEncoder()
    result = compute_allocation(
        layout, start, end,
        offsets if offsets is not None else [0] * NB,
        cap if cap is not None else [200] * NB,
        alloc_trim,
        intensity if intensity is not None else end,
        dual_stereo, total, channels, lm, coder, encode, prev,
    )
    return result, coder


def test_zero_budget_codes_only_first_band():
    result, coder = allocate(0)
    assert isinstance(result, Allocation)
    assert result.coded_bands == 1
    assert result.pulses == [0] * NB
    assert result.ebits == [0] * NB
    assert coder.symbols == []


def test_zero_budget_stereo_has_no_intensity():
    result, coder = allocate(0, channels=2)
    assert result.intensity == 0
    assert result.dual_stereo == 0
    assert coder.symbols == []


def test_negative_budget_is_treated_as_zero():
    negative, _ = allocate(-500)
    zero, _ = allocate(0)
    assert negative == zero


def test_large_budget_codes_every_band():
    cap = [200] * NB
    result, coder = allocate(100000, cap=cap)
    assert result.coded_bands == NB
    assert coder.symbols[0] == ("bit", 1, 1)
    layout = make_layout()
    for j in range(NB):
        if layout.band_width(j) > 1:
            assert result.pulses[j] <= cap[j]
        else:
            assert result.pulses[j] <= 8
        assert 0 <= result.ebits[j] <= MAX_FINE_BITS


def test_invalid_channels_rejected():
    with pytest.raises(ValueError):
        allocate(100, channels=3)


def test_invalid_band_range_rejected():
    with pytest.raises(ValueError):
        allocate(100, start=4, end=4)
    with pytest.raises(ValueError):
        allocate(100, end=NB + 1)


def test_layout_without_alloc_vectors_rejected():
    layout = BandLayout(e_bands=[0, 1, 2], log_n=[0, 0])
    with pytest.raises(ValueError):
        compute_allocation(layout, 0, 2, [0, 0], [200, 200], 5, 2, 0,
                           100, 1, 0, RecordingEncoder(), True, 0)


def test_short_offsets_rejected():
    with pytest.raises(ValueError):
        allocate(100, offsets=[0, 0])


@settings(max_examples=150, deadline=None)
@given(
    total=st.integers(min_value=0, max_value=3000),
    channels=st.sampled_from([1, 2]),
    lm=st.integers(min_value=0, max_value=3),
    alloc_trim=st.integers(min_value=0, max_value=10),
    prev=st.integers(min_value=0, max_value=NB),
    start=st.integers(min_value=0, max_value=3),
    dual_stereo=st.sampled_from([0, 1]),
)
def test_encode_decode_agree_and_invariants(total, channels, lm, alloc_trim,
                                            prev, start, dual_stereo):
    enc_result, encoder = allocate(
        total, channels=channels, lm=lm, alloc_trim=alloc_trim, prev=prev,
        start=start, intensity=NB, dual_stereo=dual_stereo,
    )
    decoder = ReplayDecoder(encoder.symbols)
    dec_result, _ = allocate(
        total, channels=channels, lm=lm, alloc_trim=alloc_trim, prev=prev,
        start=start, coder=decoder, encode=False,
    )
    assert dec_result == enc_result
    assert decoder.symbols == []

    assert start < enc_result.coded_bands <= NB
    assert all(p >= 0 for p in enc_result.pulses)
    assert all(0 <= e <= MAX_FINE_BITS for e in enc_result.ebits)
    assert all(f in (0, 1) for f in enc_result.fine_priority)
    assert enc_result.balance >= 0
    spent = (sum(enc_result.pulses)
             + 8 * channels * sum(enc_result.ebits)
             + enc_result.balance)
    assert spent <= total
    assert enc_result.intensity <= enc_result.coded_bands
    assert enc_result.dual_stereo in (0, 1)
    for j in range(enc_result.coded_bands, NB):
        assert enc_result.pulses[j] == 0