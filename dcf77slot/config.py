"""
Receiver configuration

Example file:

    [receiver]
    pin = 14
    invert = false
    sample_period_ms = 10

    [timings]
    # optional, overrides values derived from sample_period_ms
    min_window_high = 3
"""
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import toml

from .decoder import DecoderTimings
from .timeframe import DCF77Error

logger = logging.getLogger(__name__)

# Pin 36: 3V3
# Pin 38: GND
# Pin 34: GP28
PIN = 14
SAMPLE_PERIOD_MS = 10


class ConfigError(DCF77Error):
    pass


@dataclass
class ReceiverConfig:
    pin: int = PIN
    invert: bool = False
    sample_period_ms: int = SAMPLE_PERIOD_MS
    timings: DecoderTimings = field(default_factory=DecoderTimings)

    @property
    def period(self):
        return self.sample_period_ms / 1000


def config_from_dict(config):
    receiver = config.get("receiver", {})
    unknown = set(receiver) - {"pin", "invert", "sample_period_ms"}
    if unknown:
        raise ConfigError(f"unknown receiver settings: {', '.join(sorted(unknown))}")
    pin = _integer(receiver, "pin", PIN)
    period_ms = _integer(receiver, "sample_period_ms", SAMPLE_PERIOD_MS)
    invert = receiver.get("invert", False)
    if not isinstance(invert, bool):
        raise ConfigError(f"invert must be true or false, got {invert!r}")
    try:
        timings = DecoderTimings.for_sample_period(period_ms)
    except ValueError as e:
        raise ConfigError(f"invalid receiver settings: {e}") from e

    overrides = config.get("timings", {})
    names = {f.name for f in fields(DecoderTimings)}
    unknown = set(overrides) - names
    if unknown:
        raise ConfigError(f"unknown timing settings: {', '.join(sorted(unknown))}")
    for name in overrides:
        _integer(overrides, name, None, section="timing", minimum=1)
    timings = replace(timings, **overrides)
    if timings.min_window_high >= timings.window:
        raise ConfigError(
            f"min_window_high {timings.min_window_high} must be below window {timings.window}, "
            "no bit could ever be decoded"
        )

    return ReceiverConfig(pin=pin, invert=invert, sample_period_ms=period_ms, timings=timings)


def _integer(section_dict, name, default, section="receiver", minimum=0):
    value = section_dict.get(name, default)
    # bool is an int subclass, TOML true must not pass as 1
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"{section} {name} must be an integer >= {minimum}, got {value!r}")
    return value


def load_config(path):
    path = Path(path)
    try:
        with open(path) as f:
            config = toml.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {path}") from e
    except toml.TomlDecodeError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    logger.info(f"Loaded configuration from {path}")
    return config_from_dict(config)
