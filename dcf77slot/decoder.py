"""
Timeslot based DCF77 decoder

Feed one sample of the receiver output every 10 ms into
SimpleDecoder.submit_sample(), True for a high signal (reduced rf
amplitude), False for a low signal.

Each second starts with a high pulse:

LOW  is 0.1s  -> 0
HIGH is 0.2s  -> 1

The 59th second carries no pulse, the resulting gap of about 1.8s after
the last pulse marks the start of a new minute.
"""
from dataclasses import dataclass
from enum import Enum, unique

# a bit 60 only exists in a minute with leap second
MAX_BITS = 60


@unique
class State(Enum):
    WAITING_FOR_PHASE = 0
    PHASE_FOUND = 1
    BIT_RECEIVED = 2
    FAULTY_BIT = 3
    END_OF_CYCLE = 4
    IDLE = 5


@dataclass(frozen=True)
class DecoderTimings:
    """Thresholds in samples, defaults are for a sample period of 10 ms"""
    # samples per 100 ms window
    window: int = 10
    # a window decides the bit if it has more high samples than this
    min_window_high: int = 3
    # samples from the rising edge until the next rising edge may come
    bit_length: int = 90
    # the settle window is clean with fewer high samples than this
    max_settle_high: int = 10
    # samples after the last rising edge that mark the end of a minute
    minute_gap: int = 180

    @classmethod
    def for_sample_period(cls, period_ms):
        if period_ms <= 0:
            raise ValueError(f"sample period must be positive: {period_ms}")

        def scale(ms):
            return max(1, round(ms / period_ms))

        window = scale(100)
        return cls(
            window=window,
            min_window_high=max(1, round(window * 0.3)),
            bit_length=scale(900),
            max_settle_high=window,
            minute_gap=scale(1800),
        )


class SimpleDecoder:
    """
    State machine decoding the DCF77 bitstream into a register of 59 bits.

    The register is kept over the end of a cycle, only the position is
    reset. Read raw_data while end_of_cycle is True to get the complete
    minute.
    """

    def __init__(self, timings=None):
        self.timings = timings or DecoderTimings()
        # samples since the rising edge of the current bit
        self.sample_count = 0
        # high samples in the first 100 ms, a transmitted 0
        self.zero_bit_count = 0
        # high samples between 100 and 200 ms, a transmitted 1
        self.one_bit_count = 0
        # high samples after a bit was decoded
        self.non_idle_count = 0
        self.state = State.WAITING_FOR_PHASE
        self.data = 0
        self.data_pos = 0
        self.last_cycle_length = 0

    @property
    def raw_data(self):
        return self.data

    @property
    def bit_complete(self):
        return self.state is State.BIT_RECEIVED

    @property
    def bit_faulty(self):
        return self.state is State.FAULTY_BIT

    @property
    def end_of_cycle(self):
        return self.state is State.END_OF_CYCLE

    @property
    def latest_bit(self):
        """Value of the latest received bit, None if no bit is stored yet"""
        if self.data_pos == 0:
            return None
        return (self.data >> (self.data_pos - 1)) & 1 != 0

    @property
    def seconds(self):
        """Position in the bitstream, equals the second of the minute after an end of cycle"""
        return self.data_pos

    def submit_sample(self, is_high):
        t = self.timings
        if self.state in (State.WAITING_FOR_PHASE, State.FAULTY_BIT, State.END_OF_CYCLE):
            self.state = self._wait_for_phase(is_high)
        elif self.state is State.PHASE_FOUND:
            if self.sample_count < 2 * t.window:
                if is_high:
                    if self.sample_count < t.window:
                        self.zero_bit_count += 1
                    else:
                        self.one_bit_count += 1
            else:
                self.state = self._decide_bit()
        else:
            # BIT_RECEIVED or IDLE, wait for the rest of the second
            if is_high:
                self.non_idle_count += 1
            if self.sample_count >= t.bit_length:
                if self.non_idle_count < t.max_settle_high:
                    self.state = State.WAITING_FOR_PHASE
                else:
                    self.data_pos = 0
                    self.state = State.FAULTY_BIT
            else:
                self.state = State.IDLE
        self.sample_count += 1

    def _wait_for_phase(self, is_high):
        if is_high:
            # rising edge, this sample already counts for the first window
            self.zero_bit_count = 1
            self.one_bit_count = 0
            self.sample_count = 0
            self.non_idle_count = 0
            return State.PHASE_FOUND
        if self.sample_count > self.timings.minute_gap:
            self.last_cycle_length = self.data_pos
            self.data_pos = 0
            self.sample_count = 0
            return State.END_OF_CYCLE
        return State.WAITING_FOR_PHASE

    def _decide_bit(self):
        t = self.timings
        pos = self.data_pos
        if pos >= MAX_BITS:
            # no minute mark seen, the stream is out of sync
            self.data_pos = 0
            return State.FAULTY_BIT
        if self.one_bit_count > t.min_window_high:
            self.data |= 1 << pos
        elif self.zero_bit_count > t.min_window_high:
            self.data &= ~(1 << pos)
        else:
            self.data_pos = 0
            return State.FAULTY_BIT
        self.data_pos = pos + 1
        return State.BIT_RECEIVED
