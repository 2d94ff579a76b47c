import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from celtcore.fine_energy import (
    amp2_log2,
    log2_amp,
    quant_energy_finalise,
    quant_fine_energy,
    unquant_energy_finalise,
    unquant_fine_energy,
)
from celtcore.fixedpoint import DB_SHIFT, qconst16
from celtcore.pulses import MAX_FINE_BITS, BandLayout


class BitWriter:
    def __init__(self):
        self.fields = []

    def encode_bits(self, value, bits):
        self.fields.append((value, bits))


class BitReader:
    def __init__(self, fields):
        self._fields = iter(fields)

    def decode_bits(self, bits):
        value, width = next(self._fields)
        if width != bits:
            raise AssertionError(f"expected a {width}-bit field, asked for {bits}")
        return value


def make_layout(nb=4):
    return BandLayout(e_bands=list(range(nb + 1)), log_n=[0] * nb)


def test_single_fine_bit_on_zero_error():
    layout = make_layout()
    old = [0, 0, 0, 0]
    error = [0, 0, 0, 0]
    writer = BitWriter()
    quant_fine_energy(layout, 0, 4, old, error, [1, 0, 0, 0], writer, 1)
    assert writer.fields == [(1, 1)]
    assert old == [256, 0, 0, 0]
    assert error == [-256, 0, 0, 0]


@settings(max_examples=60)
@given(st.data())
def test_fine_round_trip_and_error_bound(data):
    channels = data.draw(st.sampled_from([1, 2]))
    nb = 5
    layout = make_layout(nb)
    size = channels * nb
    old = data.draw(st.lists(st.integers(-9000, 9000), min_size=size, max_size=size))
    error = data.draw(st.lists(st.integers(-512, 511), min_size=size, max_size=size))
    fine = data.draw(st.lists(st.integers(0, MAX_FINE_BITS), min_size=nb, max_size=nb))
    enc_old = list(old)
    dec_old = list(old)
    writer = BitWriter()
    quant_fine_energy(layout, 0, nb, enc_old, error, fine, writer, channels)
    assert [w for _, w in writer.fields] == [
        fine[i] for i in range(nb) if fine[i] > 0 for _ in range(channels)
    ]
    for value, width in writer.fields:
        assert 0 <= value < (1 << width)
    for i in range(nb):
        if fine[i] > 0:
            for c in range(channels):
                assert abs(error[i + c * nb]) <= 512 >> fine[i]
    unquant_fine_energy(layout, 0, nb, dec_old, fine, BitReader(writer.fields), channels)
    assert dec_old == enc_old


def test_finalise_spends_priority_zero_first():
    layout = make_layout(3)
    old = [0, 0, 0]
    error = [100, -100, 100]
    writer = BitWriter()
    left = quant_energy_finalise(
        layout, 0, 3, old, error, [0, 0, 0], [1, 0, 1], 1, writer, 1
    )
    assert left == 0
    assert writer.fields == [(0, 1)]
    assert old[0] == 0 and old[2] == 0
    assert old[1] < 0


@settings(max_examples=40)
@given(st.data())
def test_finalise_round_trip(data):
    channels = data.draw(st.sampled_from([1, 2]))
    nb = 4
    layout = make_layout(nb)
    size = channels * nb
    old = data.draw(st.lists(st.integers(-5000, 5000), min_size=size, max_size=size))
    error = data.draw(st.lists(st.integers(-512, 511), min_size=size, max_size=size))
    fine = data.draw(st.lists(st.integers(0, MAX_FINE_BITS), min_size=nb, max_size=nb))
    prio = data.draw(st.lists(st.integers(0, 1), min_size=nb, max_size=nb))
    bits_left = data.draw(st.integers(0, 12))
    enc_old = list(old)
    dec_old = list(old)
    writer = BitWriter()
    left_enc = quant_energy_finalise(
        layout, 0, nb, enc_old, error, fine, prio, bits_left, writer, channels
    )
    assert left_enc == bits_left - len(writer.fields)
    assert left_enc >= 0
    left_dec = unquant_energy_finalise(
        layout, 0, nb, dec_old, fine, prio, bits_left, BitReader(writer.fields), channels
    )
    assert left_dec == left_enc
    assert dec_old == enc_old


def test_bad_channel_count_rejected():
    layout = make_layout()
    with pytest.raises(ValueError):
        quant_fine_energy(layout, 0, 4, [0] * 12, [0] * 12, [1] * 4, BitWriter(), 3)


def test_bad_band_range_rejected():
    layout = make_layout()
    with pytest.raises(ValueError):
        unquant_fine_energy(layout, 0, 5, [0] * 4, [1] * 5, BitReader([]), 1)


def test_log_linear_round_trip():
    layout = make_layout(4)
    old = [0, -1024, 2048, 512, 100, -3000, 700, 0]
    amps = log2_amp(layout, 0, 4, old, 2)
    back = amp2_log2(layout, 4, 4, amps, 2)
    for got, want in zip(back, old):
        assert abs(got - want) <= 2


def test_log2_amp_zero_outside_range():
    layout = make_layout(4)
    amps = log2_amp(layout, 1, 3, [500, 500, 500, 500], 1)
    assert amps[0] == 0 and amps[3] == 0
    assert amps[1] > 0 and amps[2] > 0


def test_amp2_log2_floor_after_eff_end():
    layout = make_layout(4)
    logs = amp2_log2(layout, 2, 4, [4096, 4096, 4096, 4096], 1)
    floor = -qconst16(14.0, DB_SHIFT)
    assert logs[2] == floor and logs[3] == floor
    assert logs[0] > floor


def test_log2_amp_more_bands_than_means_rejected():
    layout = make_layout(26)
    with pytest.raises(ValueError):
        log2_amp(layout, 0, 26, [0] * 26, 1)