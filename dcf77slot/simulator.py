"""
DCF77 Simulator

From https://www.heret.de/funkuhr/log_19990909.htm

Sekunde 0-14: sind nicht belegt und werden hier auch nicht angezeigt!
Sekunde   15: Reserveantenne                Sekunde 21-28: Minute mit Pruefbit
Sekunde   16: Wechsel von MEZ <> MESZ       Sekunde 29-35: Stunde mit Pruefbit
Sekunde   17: Sommerzeit                    Sekunde 36-41: Tag
Sekunde   18: Winterzeit                    Sekunde 42-44: Wochentag
Sekunde   19: Schaltsekunde                 Sekunde 45-49: Monat
Sekunde   20: Beginn des Zeitprotokolls     Sekunde 50-58: Jahr mit Pruefbit

Encodes datetimes into timeframes and replays them either as sample
waveform for the decoder or on a GPIO output pin.

LOW  is 0.1s
HIGH is 0.2s
"""
import argparse
import logging
import time
from datetime import datetime, timedelta, timezone

from .decoder import DecoderTimings
from .timeframe import CEST, CET, FRAME_BITS, Timeframe

logger = logging.getLogger(__name__)

PIN = 17


def int_to_bcd(number, digits):
    """BCD of a 2 digit number, truncated to the lower digits bits"""
    return ((number // 10 % 10) << 4 | number % 10) & ((1 << digits) - 1)


def parity(value):
    return bin(value).count("1") % 2


def _last_sunday(year, month):
    d = datetime(year, month, 31, 1, tzinfo=timezone.utc)
    return d - timedelta(days=(d.weekday() + 1) % 7)


def is_summer_time(dt):
    """
    CEST from the last Sunday in March to the last Sunday in October,
    both switches at 01:00 UTC. Naive datetimes are taken as host local time.
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        return bool(time.localtime(dt.timestamp()).tm_isdst)
    utc = dt.astimezone(timezone.utc)
    return _last_sunday(utc.year, 3) <= utc < _last_sunday(utc.year, 10)


def german_time(dt):
    """dt as CET or CEST, whichever is legal time in Germany at that instant"""
    return dt.astimezone(CEST if is_summer_time(dt) else CET)


def encode_to_dcf77(dt, summer_time=None, changeover=False, leap_second=False, call_bit=False):
    """
    Timeframe register announcing dt. The register is sent during the minute
    before dt, its minute mark (second 59 without pulse) ends at dt.
    """
    if summer_time is None:
        summer_time = is_summer_time(dt)
    bits = 0
    fields = [
        (15, 1, int(call_bit)),
        (16, 1, int(changeover)),
        (17, 1, int(summer_time)),
        (18, 1, int(not summer_time)),
        (19, 1, int(leap_second)),
        (20, 1, 1),
    ]

    minute = int_to_bcd(dt.minute, 7)
    fields += [(21, 7, minute), (28, 1, parity(minute))]
    hour = int_to_bcd(dt.hour, 6)
    fields += [(29, 6, hour), (35, 1, parity(hour))]

    day = int_to_bcd(dt.day, 6)
    # 1 Montag und 7 Sonntag
    dow = int_to_bcd(dt.isoweekday(), 3)
    month = int_to_bcd(dt.month, 5)
    year = int_to_bcd(dt.year % 100, 8)
    date_parity = parity(day) ^ parity(dow) ^ parity(month) ^ parity(year)
    fields += [(36, 6, day), (42, 3, dow), (45, 5, month), (50, 8, year), (58, 1, date_parity)]

    for start, length, value in fields:
        bits |= (value & ((1 << length) - 1)) << start
    return bits


def minute_samples(bits, timings=None):
    """
    Samples of one minute as seen on the receiver output, one pulse per
    second, no pulse in second 59.
    """
    timings = timings or DecoderTimings()
    second = timings.window * 10
    samples = []
    for n in range(FRAME_BITS):
        width = timings.window * (2 if (bits >> n) & 1 else 1)
        samples += [True] * width + [False] * (second - width)
    samples += [False] * second
    return samples


def _setup_output(pin):
    import RPi.GPIO as GPIO

    GPIO.setmode(GPIO.BCM)
    GPIO.setup(pin, GPIO.OUT)
    GPIO.output(pin, GPIO.HIGH)
    return GPIO


def emit(bits, pin=PIN, gpio=None, gap=True):
    """
    Emit one minute on the output pin, the pulse pulls the pin LOW.
    With gap=False the caller times the silence of second 59.
    """
    GPIO = gpio or _setup_output(pin)
    t = time.time()
    for index in range(FRAME_BITS):
        c = (bits >> index) & 1
        logger.debug(f"{index:02} {c} {(time.time() - t):4.1f}")
        t = time.time()
        GPIO.output(pin, GPIO.LOW)
        time.sleep(0.2 if c else 0.1)
        GPIO.output(pin, GPIO.HIGH)
        time.sleep(0.8 if c else 0.9)
    if gap:
        time.sleep(1)


def _utcnow():
    return datetime.now(timezone.utc)


def next_minute(dt):
    return dt.replace(second=0, microsecond=0) + timedelta(minutes=1)


def emit_continuous(pin=PIN, minutes=None, now=_utcnow, sleep=time.sleep):
    """
    Emit the German legal time, each minute starts on the wall clock minute
    and announces the following one.
    """
    GPIO = _setup_output(pin)
    start = next_minute(now())
    sent = 0
    while minutes is None or sent < minutes:
        delay = (start - now()).total_seconds()
        if delay < -1:
            logger.warning(f"late by {-delay:.1f}s, waiting for next minute")
            start = next_minute(now())
            continue
        if delay > 0:
            sleep(delay)
        announced = german_time(start + timedelta(minutes=1))
        changeover = is_summer_time(announced) != is_summer_time(announced + timedelta(hours=1))
        bits = encode_to_dcf77(announced, changeover=changeover)
        logger.info(f"{announced} {Timeframe(bits).to_bitstring()}")
        emit(bits, pin, GPIO, gap=False)
        start += timedelta(minutes=1)
        sent += 1


def main(argv=None):
    parser = argparse.ArgumentParser(description="DCF77 transmitter simulator on a GPIO pin")
    parser.add_argument("--pin", type=int, default=PIN, help="BCM output pin")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable DEBUG logging")
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    emit_continuous(args.pin)


if __name__ == "__main__":
    main()
