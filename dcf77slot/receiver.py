"""
DCF77 receiver

Samples the output pin of a DCF77 receiver module every 10 ms and feeds
the samples into the timeslot decoder. A complete minute is yielded as
Timeframe as soon as the minute mark is detected.
"""
import argparse
import logging
import time

from .config import PIN, ReceiverConfig, load_config
from .decoder import SimpleDecoder
from .timeframe import FRAME_BITS, Timeframe, ValidationError

logger = logging.getLogger(__name__)


def gpio_reader(pin=PIN):
    """Set up pin as input and return a function reading it"""
    import RPi.GPIO as GPIO

    GPIO.setmode(GPIO.BCM)
    GPIO.setup(pin, GPIO.IN)

    def getpin():
        return GPIO.input(pin)

    return getpin


def receive(read_pin, decoder=None, period=0.01, invert=False, clock=time.monotonic, sleep=time.sleep, max_samples=None):
    """
    Generator yielding a Timeframe for every complete minute.

    read_pin is called once per period, its result is inverted if the
    receiver module pulls the output low during a pulse.
    """
    decoder = decoder or SimpleDecoder()
    next_tick = clock()
    count = 0
    while max_samples is None or count < max_samples:
        sample = bool(read_pin()) ^ invert
        decoder.submit_sample(sample)
        count += 1

        if decoder.bit_complete:
            logger.debug(f"{decoder.seconds - 1:02} -> {int(decoder.latest_bit)}")
        elif decoder.bit_faulty:
            logger.info("faulty bit, waiting for next minute")
        elif decoder.end_of_cycle:
            length = decoder.last_cycle_length
            if length == FRAME_BITS:
                yield Timeframe(decoder.raw_data)
            elif length:
                logger.warning(f"incomplete minute with {length} bits")
            else:
                logger.info("sync")

        next_tick += period
        delay = next_tick - clock()
        if delay > 0:
            sleep(delay)
        elif delay < -period:
            # missed ticks, do not try to catch up
            logger.debug(f"sampling late by {-delay:.3f}s")
            next_tick = clock()


def format_frame(frame):
    try:
        return f"{frame.to_datetime():%a, %d.%m.%Y %H:%M %Z}"
    except ValidationError as e:
        return f"invalid frame {frame.to_bitstring()}: {e}"


def main(argv=None):
    parser = argparse.ArgumentParser(description="Decode DCF77 from a receiver on a GPIO pin")
    parser.add_argument("--config", "-c", help="Configuration file path")
    parser.add_argument("--pin", type=int, help="BCM input pin")
    parser.add_argument("--invert", action="store_true", help="Receiver pulls the output low during a pulse")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable DEBUG logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else ReceiverConfig()
    if args.pin is not None:
        config.pin = args.pin
    if args.invert:
        config.invert = True

    logger.info(f"RECEIVER on pin {config.pin}, period {config.sample_period_ms} ms")
    decoder = SimpleDecoder(config.timings)
    for frame in receive(gpio_reader(config.pin), decoder, config.period, config.invert):
        print(frame.to_bitstring())
        print(format_frame(frame))
        print(frame.decode())


if __name__ == "__main__":
    main()
