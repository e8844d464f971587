from datetime import datetime

import pytest

from dcf77slot.decoder import DecoderTimings, SimpleDecoder, State
from dcf77slot.simulator import encode_to_dcf77, minute_samples
from dcf77slot.timeframe import Timeframe

ZERO_BIT = [True] * 10 + [False] * 90
ONE_BIT = [True] * 20 + [False] * 80


def feed(decoder, samples):
    """Submit samples, return the decoder state after every sample"""
    states = []
    for sample in samples:
        decoder.submit_sample(sample)
        states.append(decoder.state)
    return states


def test_initial_state():
    decoder = SimpleDecoder()
    assert decoder.state is State.WAITING_FOR_PHASE
    assert decoder.seconds == 0
    assert decoder.latest_bit is None
    assert not decoder.bit_complete
    assert not decoder.bit_faulty
    assert not decoder.end_of_cycle


def test_clean_zero_bit():
    decoder = SimpleDecoder()
    states = feed(decoder, [True] * 10 + [False] * 81)
    assert states[:20] == [State.PHASE_FOUND] * 20
    assert states[20] is State.BIT_RECEIVED
    assert states[21:90] == [State.IDLE] * 69
    assert states[90] is State.WAITING_FOR_PHASE
    assert decoder.latest_bit is False
    assert decoder.seconds == 1
    assert State.FAULTY_BIT not in states


def test_bit_complete_at_sample_20():
    decoder = SimpleDecoder()
    feed(decoder, [True] * 20)
    assert not decoder.bit_complete
    decoder.submit_sample(False)
    assert decoder.bit_complete
    assert decoder.latest_bit is True


def test_clean_one_bit():
    decoder = SimpleDecoder()
    states = feed(decoder, ONE_BIT)
    assert states[20] is State.BIT_RECEIVED
    assert states[90] is State.WAITING_FOR_PHASE
    assert decoder.latest_bit is True
    assert decoder.raw_data == 1


def test_one_bit_from_second_window():
    decoder = SimpleDecoder()
    feed(decoder, [True] + [False] * 9 + [True] * 10 + [False])
    assert decoder.bit_complete
    assert decoder.latest_bit is True


@pytest.mark.parametrize("highs", [1, 3, 4])
def test_window_threshold(highs):
    decoder = SimpleDecoder()
    feed(decoder, [True] * highs + [False] * (21 - highs))
    if highs > 3:
        assert decoder.bit_complete
        assert decoder.latest_bit is False
    else:
        assert decoder.bit_faulty


def test_ambiguous_bit_is_faulty():
    decoder = SimpleDecoder()
    feed(decoder, ZERO_BIT + ONE_BIT)
    assert decoder.seconds == 2
    assert decoder.raw_data == 0b10
    states = feed(decoder, [True] + [False] * 20)
    assert states[20] is State.FAULTY_BIT
    assert decoder.bit_faulty
    assert decoder.seconds == 0
    assert decoder.latest_bit is None


def test_noisy_settle_window_is_faulty():
    decoder = SimpleDecoder()
    feed(decoder, [True] * 10 + [False] * 20 + [True] * 10 + [False] * 51)
    assert decoder.bit_faulty
    assert decoder.seconds == 0


def test_few_spikes_in_settle_window_are_tolerated():
    decoder = SimpleDecoder()
    feed(decoder, [True] * 10 + [False] * 20 + [True] * 9 + [False] * 52)
    assert decoder.state is State.WAITING_FOR_PHASE
    assert decoder.seconds == 1


def test_faulty_bit_recovers_on_next_edge():
    decoder = SimpleDecoder()
    feed(decoder, [True] + [False] * 20)
    assert decoder.bit_faulty
    feed(decoder, [False] * 79 + ONE_BIT)
    assert decoder.seconds == 1
    assert decoder.latest_bit is True


def test_end_of_cycle_after_silence():
    decoder = SimpleDecoder()
    feed(decoder, ZERO_BIT)
    assert decoder.seconds == 1
    states = feed(decoder, [False] * 100)
    assert State.END_OF_CYCLE in states
    # counted from the last rising edge
    assert states.index(State.END_OF_CYCLE) + 100 == 181
    assert decoder.seconds == 0
    assert decoder.last_cycle_length == 1


def test_end_of_cycle_from_start():
    decoder = SimpleDecoder()
    states = feed(decoder, [False] * 200)
    assert states.count(State.END_OF_CYCLE) == 1
    assert states.index(State.END_OF_CYCLE) == 181
    assert states[182] is State.WAITING_FOR_PHASE
    assert decoder.seconds == 0
    assert decoder.last_cycle_length == 0


def test_regular_seconds_do_not_end_cycle():
    decoder = SimpleDecoder()
    states = feed(decoder, ZERO_BIT * 30 + ONE_BIT * 29)
    assert State.END_OF_CYCLE not in states
    assert State.FAULTY_BIT not in states
    assert decoder.seconds == 59


def test_full_minute():
    bits = encode_to_dcf77(datetime(2024, 6, 15, 12, 34), summer_time=True)
    decoder = SimpleDecoder()
    states = feed(decoder, minute_samples(bits))
    assert states.count(State.END_OF_CYCLE) == 1
    assert decoder.last_cycle_length == 59
    assert decoder.raw_data == bits
    frame = Timeframe(decoder.raw_data)
    assert frame.minutes() == 34
    assert frame.hours() == 12
    assert frame.date() == (2024, 6, 15, 6)


def test_register_kept_until_overwritten():
    first = encode_to_dcf77(datetime(2024, 6, 15, 12, 34), summer_time=True)
    second = encode_to_dcf77(datetime(2024, 6, 15, 12, 35), summer_time=True)
    decoder = SimpleDecoder()
    feed(decoder, minute_samples(first))
    frames = []
    for sample in minute_samples(second):
        decoder.submit_sample(sample)
        if decoder.end_of_cycle:
            frames.append(decoder.raw_data)
    assert frames == [second]


def test_missing_minute_mark_resyncs():
    decoder = SimpleDecoder()
    states = feed(decoder, ZERO_BIT * 60)
    assert decoder.seconds == 60
    assert State.FAULTY_BIT not in states
    states = feed(decoder, ZERO_BIT[:21])
    assert states[20] is State.FAULTY_BIT
    assert decoder.seconds == 0


def test_independent_instances():
    a = SimpleDecoder()
    b = SimpleDecoder()
    feed(a, ONE_BIT)
    assert a.seconds == 1
    assert b.seconds == 0
    assert b.raw_data == 0


def test_timings_for_sample_period():
    assert DecoderTimings.for_sample_period(10) == DecoderTimings()
    timings = DecoderTimings.for_sample_period(5)
    assert timings.window == 20
    assert timings.min_window_high == 6
    assert timings.bit_length == 180
    assert timings.minute_gap == 360
    with pytest.raises(ValueError):
        DecoderTimings.for_sample_period(0)


def test_minute_at_other_sample_period():
    timings = DecoderTimings.for_sample_period(20)
    bits = encode_to_dcf77(datetime(2025, 1, 1, 0, 0), summer_time=False)
    decoder = SimpleDecoder(timings)
    states = feed(decoder, minute_samples(bits, timings))
    assert states.count(State.END_OF_CYCLE) == 1
    assert decoder.raw_data == bits
