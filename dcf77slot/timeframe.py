"""
DCF77 timeframe

A timeframe is the register of the 59 bits received during one minute,
bit 0 is the first bit of the minute:

Sekunde     0: Minutenmarke (kennzeichnet den Beginn)
Sekunde  1-14: Bereitgestellte Daten von BBK und Meteo Time
Sekunde    15: Rufbit
Sekunde    16: Wechsel von MEZ <> MESZ
Sekunde    17: Sommerzeit
Sekunde    18: Normalzeit
Sekunde    19: Schaltsekunde
Sekunde    20: Beginn des Zeitprotokolls
Sekunde 21-28: Minute mit Parität
Sekunde 29-35: Stunde mit Parität
Sekunde 36-41: Tag
Sekunde 42-44: Wochentag
Sekunde 45-49: Monat
Sekunde 50-58: Jahr mit Parität für Datum
Sekunde    59: Kein Impuls oder Schaltsekunde
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

CET = timezone(timedelta(hours=1), "CET")
CEST = timezone(timedelta(hours=2), "CEST")

FRAME_BITS = 59


class DCF77Error(ValueError):
    pass


class ValidationError(DCF77Error):
    pass


@dataclass(frozen=True)
class Timeframe:
    bits: int

    def __post_init__(self):
        if not 0 <= self.bits < 1 << 64:
            raise ValueError(f"timeframe register out of range: {self.bits!r}")

    def bit(self, n):
        return (self.bits >> n) & 1 != 0

    def bcd(self, start, end):
        """2 digit BCD of bits start..end, nibbles above 9 are not corrected"""
        length = end - start + 1
        value = (self.bits >> start) & ((1 << length) - 1)
        return ((value & 0xF0) >> 4) * 10 + (value & 0x0F)

    def parity(self, start, end):
        """Even parity over bits start..end"""
        length = end - start + 1
        return bin((self.bits >> start) & ((1 << length) - 1)).count("1") % 2 == 1

    def _check_parity(self, start, end, parity_bit):
        if self.parity(start, end) != self.bit(parity_bit):
            raise ValidationError(f"parity error in bits {start}..{end}")

    def validate_start(self):
        if self.bit(0):
            raise ValidationError("start of minute bit is set")

    def validate_time_start(self):
        if not self.bit(20):
            raise ValidationError("start of time information bit is not set")

    def call_bit(self):
        return self.bit(15)

    def changeover_announced(self):
        return self.bit(16)

    def leap_second_announced(self):
        return self.bit(19)

    def cest_unchecked(self):
        return self.bit(17)

    def cest(self):
        cest = self.cest_unchecked()
        if self.bit(18) == cest:
            raise ValidationError("CEST and CET flags agree")
        return cest

    def minutes_unchecked(self):
        return self.bcd(21, 27)

    def minutes(self):
        self._check_parity(21, 27, 28)
        minutes = self.minutes_unchecked()
        if minutes > 59:
            raise ValidationError(f"minutes out of range: {minutes}")
        return minutes

    def hours_unchecked(self):
        return self.bcd(29, 34)

    def hours(self):
        self._check_parity(29, 34, 35)
        hours = self.hours_unchecked()
        if hours > 23:
            raise ValidationError(f"hours out of range: {hours}")
        return hours

    def day_unchecked(self):
        return self.bcd(36, 41)

    def day(self):
        # the date parity only covers the whole date, see date()
        day = self.day_unchecked()
        if day > 31:
            raise ValidationError(f"day out of range: {day}")
        return day

    def weekday_unchecked(self):
        """1 meaning Monday ... 7 meaning Sunday"""
        return self.bcd(42, 44)

    def weekday(self):
        weekday = self.weekday_unchecked()
        if weekday > 7:
            raise ValidationError(f"weekday out of range: {weekday}")
        return weekday

    def month_unchecked(self):
        return self.bcd(45, 49)

    def month(self):
        month = self.month_unchecked()
        if month > 12:
            raise ValidationError(f"month out of range: {month}")
        return month

    def year_unchecked(self):
        return 2000 + self.bcd(50, 57)

    def year(self):
        year = self.year_unchecked()
        if year > 2100:
            raise ValidationError(f"year out of range: {year}")
        return year

    def date(self):
        """Return (year, month, day, weekday) if the date parity and ranges are ok"""
        self._check_parity(36, 57, 58)
        return self.year(), self.month(), self.day(), self.weekday()

    def to_datetime(self):
        """
        Return the fully validated timeframe as timezone aware datetime.
        Raises ValidationError if any check fails, including impossible
        calendar dates such as 31.02.
        """
        self.validate_start()
        self.validate_time_start()
        tz = CEST if self.cest() else CET
        year, month, day, _ = self.date()
        try:
            return datetime(year, month, day, self.hours(), self.minutes(), tzinfo=tz)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def decode(self):
        """
        Returns None if bit 0 is not 0 or bit 20 is not 1, else a dict with keys
        minute, minute_valid, hour, hour_valid, day_of_month, day_of_week,
        month, year, date_valid, mesz, mesz_valid, mez_mesz_anounce,
        leapsecond_anounce, call_bit
        """
        try:
            self.validate_start()
            self.validate_time_start()
        except ValidationError:
            return None
        rdict = dict()
        rdict["minute"] = self.minutes_unchecked()
        rdict["minute_valid"] = _passes(self.minutes)
        rdict["hour"] = self.hours_unchecked()
        rdict["hour_valid"] = _passes(self.hours)
        rdict["day_of_month"] = self.day_unchecked()
        rdict["day_of_week"] = self.weekday_unchecked()
        rdict["month"] = self.month_unchecked()
        rdict["year"] = self.year_unchecked()
        rdict["date_valid"] = _passes(self.date)
        rdict["mesz"] = self.cest_unchecked()
        rdict["mesz_valid"] = _passes(self.cest)
        rdict["mez_mesz_anounce"] = self.changeover_announced()
        rdict["leapsecond_anounce"] = self.leap_second_announced()
        rdict["call_bit"] = self.call_bit()
        return rdict

    def to_bitstring(self):
        """Bits 0..58 in order of transmission"""
        return "".join("1" if self.bit(n) else "0" for n in range(FRAME_BITS))


def _passes(check):
    try:
        check()
    except ValidationError:
        return False
    return True
