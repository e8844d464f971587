"""Timeslot based DCF77 decoder for a receiver sampled every 10 ms"""
from .decoder import DecoderTimings, SimpleDecoder, State
from .timeframe import DCF77Error, Timeframe, ValidationError

__version__ = "2.0.0"

__all__ = [
    "DCF77Error",
    "DecoderTimings",
    "SimpleDecoder",
    "State",
    "Timeframe",
    "ValidationError",
]
