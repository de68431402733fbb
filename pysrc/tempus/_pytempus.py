# The MIT License (MIT)
#
# Copyright (c) Arie Bovenberg
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - Why is everything in one file?
#   - The value types, the calendar and timezone capabilities, and the
#     arithmetic operations all 'know' about each other. One module
#     prevents circular imports.
#   - The arithmetic reads top to bottom in the same order as it is called.
# - Calendars and timezones may be supplied by users. Everything they return
#   passes through the `_calendar_*` and `_tz_*` helpers, which validate it.
#   Never call their methods directly from the arithmetic.
# - All nanosecond quantities are ints. Floats never appear.
from __future__ import annotations

__version__ = "0.1.0"

import logging
import re
from abc import ABC, abstractmethod
from typing import ClassVar, Literal, NamedTuple, Sequence

from . import _math
from ._common import (
    MAX_CALENDAR_UNIT,
    MAX_DAY_LENGTH,
    MAX_TIME_DURATION,
    NS_MAX_INSTANT,
    NS_MIN_INSTANT,
    NS_PER_DAY,
    NS_PER_HOUR,
    NS_PER_MINUTE,
    NS_PER_SECOND,
    ConstructionError,
    InvalidOffset,
    RepeatedTime,
    SignInconsistencyError,
    SkippedTime,
    UnsafeDayLengthError,
    _ImmutableBase,
    final,
)
from ._math import Overflow
from ._tz import ZoneRules, get_rules

__all__ = [
    # Values
    "Instant",
    "PlainDate",
    "PlainTime",
    "PlainDateTime",
    "ZonedDateTime",
    "Duration",
    "NormalizedTimeDuration",
    # Capabilities
    "Calendar",
    "IsoCalendar",
    "TimeZone",
    "FixedOffsetTimeZone",
    "IanaTimeZone",
    "get_calendar",
    "get_time_zone",
    "ISO_CALENDAR",
    "UTC",
    # Options
    "ArithmeticOptions",
    "DEFAULT_OPTIONS",
    "Disambiguation",
    "Overflow",
    "Unit",
    # Operations
    "get_instant_for",
    "get_plain_datetime_for",
    "add_zoned_datetime",
    "balance_time_duration",
    "difference_iso_datetime",
    "difference_zoned_datetime",
    "normalized_time_duration_to_days",
    "DayFolding",
    "NormalizedDurationRecord",
]

_log = logging.getLogger(__name__)

Disambiguation = Literal["compatible", "earlier", "later", "reject"]
Unit = Literal[
    "year",
    "month",
    "week",
    "day",
    "hour",
    "minute",
    "second",
    "millisecond",
    "microsecond",
    "nanosecond",
]
DateUnit = Literal["year", "month", "week", "day"]

# Largest first
_UNITS: tuple[str, ...] = (
    "year",
    "month",
    "week",
    "day",
    "hour",
    "minute",
    "second",
    "millisecond",
    "microsecond",
    "nanosecond",
)
_UNIT_RANK = {u: i for i, u in enumerate(_UNITS)}
_DISAMBIGUATIONS = ("compatible", "earlier", "later", "reject")
_TIME_UNIT_NANOS = (
    ("day", NS_PER_DAY),
    ("hour", NS_PER_HOUR),
    ("minute", NS_PER_MINUTE),
    ("second", NS_PER_SECOND),
    ("millisecond", 1_000_000),
    ("microsecond", 1_000),
    ("nanosecond", 1),
)


def _canonical_unit(unit: str) -> str:
    """Accept both singular and plural unit names"""
    if unit in _UNIT_RANK:
        return unit
    elif isinstance(unit, str) and unit[-1:] == "s" and unit[:-1] in _UNIT_RANK:
        return unit[:-1]
    raise ValueError(f"Invalid unit: {unit!r}")


def _larger_unit(a: str, b: str) -> str:
    return a if _UNIT_RANK[a] <= _UNIT_RANK[b] else b


def _is_date_unit(unit: str) -> bool:
    return _UNIT_RANK[unit] <= _UNIT_RANK["day"]


def _sign(n: int) -> int:
    return (n > 0) - (n < 0)


def _check_int(value: object, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an integer, got {value!r}")


@final
class ArithmeticOptions(_ImmutableBase):
    """Options passed to :meth:`Calendar.date_add`.

    ``overflow`` decides what happens when adding months or years lands
    on a day that doesn't exist (e.g. January 31st plus one month):
    ``"constrain"`` clamps to the last day of the month,
    ``"reject"`` raises :class:`ConstructionError`.

    :data:`DEFAULT_OPTIONS` is what the arithmetic passes
    whenever the caller didn't choose.
    """

    __slots__ = ("_overflow",)

    def __init__(self, overflow: Overflow = "constrain") -> None:
        if overflow not in ("constrain", "reject"):
            raise ValueError(
                f"overflow must be 'constrain' or 'reject', got {overflow!r}"
            )
        self._overflow = overflow

    @property
    def overflow(self) -> Overflow:
        return self._overflow

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ArithmeticOptions):
            return NotImplemented
        return self._overflow == other._overflow

    def __hash__(self) -> int:
        return hash(self._overflow)

    def __repr__(self) -> str:
        return f"ArithmeticOptions(overflow={self._overflow!r})"


DEFAULT_OPTIONS = ArithmeticOptions()


@final
class Instant(_ImmutableBase):
    """An exact point in time, as nanoseconds since the Unix epoch.

    Example
    -------
    >>> Instant(1_700_000_000 * 10**9)
    Instant(2023-11-14 22:13:20Z)
    """

    __slots__ = ("_ns",)

    MIN: ClassVar[Instant]
    """The earliest representable instant, 100 million days before the epoch"""
    MAX: ClassVar[Instant]
    """The latest representable instant, 100 million days after the epoch"""

    def __init__(self, epoch_nanoseconds: int) -> None:
        _check_int(epoch_nanoseconds, "epoch_nanoseconds")
        if not NS_MIN_INSTANT <= epoch_nanoseconds <= NS_MAX_INSTANT:
            raise ConstructionError._out_of_range("Instant", epoch_nanoseconds)
        self._ns = epoch_nanoseconds

    @classmethod
    def from_epoch_seconds(cls, secs: int, /) -> Instant:
        _check_int(secs, "secs")
        return cls(secs * NS_PER_SECOND)

    @property
    def epoch_nanoseconds(self) -> int:
        return self._ns

    @property
    def epoch_seconds(self) -> int:
        """Whole seconds since the epoch, rounded toward negative infinity"""
        return self._ns // NS_PER_SECOND

    def add(self, duration: Duration, /) -> Instant:
        """Add a duration made up of time units only.

        Days and larger units have no fixed length without a timezone,
        so they raise :class:`ValueError`.
        """
        if duration.years or duration.months or duration.weeks or duration.days:
            raise ValueError(
                "Cannot add days or calendar units to an Instant. "
                "Convert to a ZonedDateTime first."
            )
        return Instant(self._ns + duration.normalized_time()._ns)

    def subtract(self, duration: Duration, /) -> Instant:
        return self.add(-duration)

    def until(
        self, other: Instant, /, *, largest_unit: Unit = "second"
    ) -> Duration:
        """The duration from this instant to another, in time units
        no larger than ``largest_unit`` (at most hours)."""
        unit = _canonical_unit(largest_unit)
        if _is_date_unit(unit):
            raise ValueError(
                f"largest_unit for an Instant difference can't be {unit!r}"
            )
        return balance_time_duration(
            NormalizedTimeDuration.between(self._ns, other._ns), unit
        )

    def since(
        self, other: Instant, /, *, largest_unit: Unit = "second"
    ) -> Duration:
        return other.until(self, largest_unit=largest_unit)

    def to_tz(
        self, tz: str | TimeZone, /, calendar: str | Calendar = "iso8601"
    ) -> ZonedDateTime:
        return ZonedDateTime(self, tz, calendar)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._ns == other._ns

    def __hash__(self) -> int:
        return hash(self._ns)

    def __lt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._ns < other._ns

    def __le__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._ns <= other._ns

    def __gt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._ns > other._ns

    def __ge__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self._ns >= other._ns

    def __repr__(self) -> str:
        return f"Instant({PlainDateTime._from_utc_epoch_ns(self._ns)}Z)"

    def __reduce__(self):
        return (Instant, (self._ns,))


Instant.MIN = Instant(NS_MIN_INSTANT)
Instant.MAX = Instant(NS_MAX_INSTANT)


def _format_year(year: int) -> str:
    return f"{year:04}" if 0 <= year <= 9999 else f"{year:+07}"


# PlainDateTimes may stray one day beyond the instant range,
# so every instant has a wall-clock time in every timezone.
def _check_datetime_limits(utc_ns: int) -> None:
    if not NS_MIN_INSTANT - NS_PER_DAY < utc_ns < NS_MAX_INSTANT + NS_PER_DAY:
        raise ConstructionError(
            "Date and time are outside the supported range"
        )


@final
class PlainDate(_ImmutableBase):
    """A date in the proleptic Gregorian (ISO 8601) calendar,
    without a time or timezone.

    Example
    -------
    >>> PlainDate(2021, 1, 2)
    PlainDate(2021-01-02)
    """

    __slots__ = ("_year", "_month", "_day")

    def __init__(self, year: int, month: int, day: int) -> None:
        _check_int(year, "year")
        _check_int(month, "month")
        _check_int(day, "day")
        if not 1 <= month <= 12:
            raise ConstructionError._out_of_range("month", month)
        if not 1 <= day <= _math.days_in_month(year, month):
            raise ConstructionError._out_of_range("day", day)
        _check_datetime_limits(
            _math.epoch_days_from_ymd(year, month, day) * NS_PER_DAY
            + 12 * NS_PER_HOUR
        )
        self._year = year
        self._month = month
        self._day = day

    @property
    def year(self) -> int:
        return self._year

    @property
    def month(self) -> int:
        return self._month

    @property
    def day(self) -> int:
        return self._day

    def _as_tuple(self) -> _math.IsoDate:
        return (self._year, self._month, self._day)

    def at(self, t: PlainTime, /) -> PlainDateTime:
        """Combine with a time

        Example
        -------
        >>> PlainDate(2021, 1, 2).at(PlainTime(12, 30))
        PlainDateTime(2021-01-02 12:30:00)
        """
        return PlainDateTime._from_parts(self, t)

    def add(
        self,
        *,
        years: int = 0,
        months: int = 0,
        weeks: int = 0,
        days: int = 0,
        overflow: Overflow = "constrain",
    ) -> PlainDate:
        """Add date components in the ISO calendar.

        Years and months are added first. If the day doesn't exist in
        the resulting month, ``overflow`` decides what happens.

        Example
        -------
        >>> PlainDate(2020, 2, 29).add(years=1)
        PlainDate(2021-02-28)
        >>> PlainDate(2020, 2, 29).add(years=1, overflow="reject")
        Traceback (most recent call last):
          ...
        tempus.ConstructionError: Day 29 does not exist in 2021-02
        """
        return PlainDate(
            *_math.add_iso_date(
                *self._as_tuple(), years, months, weeks, days, overflow
            )
        )

    def days_until(self, other: PlainDate, /) -> int:
        """The number of days from this date to another.
        Negative if the other date is earlier."""
        return _math.days_until(self._as_tuple(), other._as_tuple())

    def until(
        self,
        other: PlainDate,
        /,
        *,
        largest_unit: DateUnit = "day",
        calendar: str | Calendar = "iso8601",
    ) -> Duration:
        """The duration from this date to another, in date units
        no larger than ``largest_unit``.
        Years, months and weeks are counted by ``calendar``.

        Example
        -------
        >>> PlainDate(2023, 1, 15).until(PlainDate(2023, 3, 20))
        Duration(days=64)
        >>> PlainDate(2023, 1, 15).until(
        ...     PlainDate(2023, 3, 20), largest_unit="month"
        ... )
        Duration(months=2, days=5)
        """
        if not isinstance(other, PlainDate):
            raise TypeError(
                f"Expected a PlainDate, got {type(other).__name__}"
            )
        unit = _canonical_unit(largest_unit)
        if not _is_date_unit(unit):
            raise ValueError(
                f"largest_unit for a PlainDate difference can't be {unit!r}"
            )
        return _difference_date(get_calendar(calendar), self, other, unit)

    def since(
        self,
        other: PlainDate,
        /,
        *,
        largest_unit: DateUnit = "day",
        calendar: str | Calendar = "iso8601",
    ) -> Duration:
        """The negation of ``self.until(other)``"""
        return -self.until(
            other, largest_unit=largest_unit, calendar=calendar
        )

    def __str__(self) -> str:
        return f"{_format_year(self._year)}-{self._month:02}-{self._day:02}"

    def __repr__(self) -> str:
        return f"PlainDate({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlainDate):
            return NotImplemented
        return self._as_tuple() == other._as_tuple()

    def __hash__(self) -> int:
        return hash(self._as_tuple())

    def __lt__(self, other: PlainDate) -> bool:
        if not isinstance(other, PlainDate):
            return NotImplemented
        return self._as_tuple() < other._as_tuple()

    def __le__(self, other: PlainDate) -> bool:
        if not isinstance(other, PlainDate):
            return NotImplemented
        return self._as_tuple() <= other._as_tuple()

    def __gt__(self, other: PlainDate) -> bool:
        if not isinstance(other, PlainDate):
            return NotImplemented
        return self._as_tuple() > other._as_tuple()

    def __ge__(self, other: PlainDate) -> bool:
        if not isinstance(other, PlainDate):
            return NotImplemented
        return self._as_tuple() >= other._as_tuple()

    def __reduce__(self):
        return (PlainDate, self._as_tuple())


@final
class PlainTime(_ImmutableBase):
    """A time of day without a date or timezone

    Example
    -------
    >>> PlainTime(12, 30, nanosecond=500)
    PlainTime(12:30:00.0000005)
    """

    __slots__ = ("_ns",)

    MIDNIGHT: ClassVar[PlainTime]

    def __init__(
        self,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        *,
        nanosecond: int = 0,
    ) -> None:
        for name, value, limit in (
            ("hour", hour, 24),
            ("minute", minute, 60),
            ("second", second, 60),
            ("nanosecond", nanosecond, NS_PER_SECOND),
        ):
            _check_int(value, name)
            if not 0 <= value < limit:
                raise ConstructionError._out_of_range(name, value)
        self._ns = (
            hour * NS_PER_HOUR
            + minute * NS_PER_MINUTE
            + second * NS_PER_SECOND
            + nanosecond
        )

    @classmethod
    def _from_ns_of_day(cls, ns: int) -> PlainTime:
        self = object.__new__(cls)
        self._ns = ns
        return self

    @property
    def hour(self) -> int:
        return self._ns // NS_PER_HOUR

    @property
    def minute(self) -> int:
        return self._ns % NS_PER_HOUR // NS_PER_MINUTE

    @property
    def second(self) -> int:
        return self._ns % NS_PER_MINUTE // NS_PER_SECOND

    @property
    def nanosecond(self) -> int:
        return self._ns % NS_PER_SECOND

    def __str__(self) -> str:
        base = f"{self.hour:02}:{self.minute:02}:{self.second:02}"
        if self.nanosecond:
            return f"{base}.{self.nanosecond:09}".rstrip("0")
        return base

    def __repr__(self) -> str:
        return f"PlainTime({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlainTime):
            return NotImplemented
        return self._ns == other._ns

    def __hash__(self) -> int:
        return hash(self._ns)

    def __lt__(self, other: PlainTime) -> bool:
        if not isinstance(other, PlainTime):
            return NotImplemented
        return self._ns < other._ns

    def __le__(self, other: PlainTime) -> bool:
        if not isinstance(other, PlainTime):
            return NotImplemented
        return self._ns <= other._ns

    def __gt__(self, other: PlainTime) -> bool:
        if not isinstance(other, PlainTime):
            return NotImplemented
        return self._ns > other._ns

    def __ge__(self, other: PlainTime) -> bool:
        if not isinstance(other, PlainTime):
            return NotImplemented
        return self._ns >= other._ns

    def __reduce__(self):
        return (PlainTime._from_ns_of_day, (self._ns,))


PlainTime.MIDNIGHT = PlainTime()


@final
class PlainDateTime(_ImmutableBase):
    """A wall-clock date and time, without a timezone.

    This is what timezones map to and from instants.

    Example
    -------
    >>> PlainDateTime(2023, 3, 26, 2, 30)
    PlainDateTime(2023-03-26 02:30:00)
    """

    __slots__ = ("_date", "_time")

    def __init__(
        self,
        year: int,
        month: int,
        day: int,
        hour: int = 0,
        minute: int = 0,
        second: int = 0,
        *,
        nanosecond: int = 0,
    ) -> None:
        self._date = PlainDate(year, month, day)
        self._time = PlainTime(hour, minute, second, nanosecond=nanosecond)
        _check_datetime_limits(self._utc_epoch_ns())

    @classmethod
    def _from_parts(cls, d: PlainDate, t: PlainTime) -> PlainDateTime:
        self = object.__new__(cls)
        self._date = d
        self._time = t
        _check_datetime_limits(self._utc_epoch_ns())
        return self

    @classmethod
    def _from_utc_epoch_ns(cls, ns: int) -> PlainDateTime:
        """The wall-clock time reading ``ns`` nanoseconds after
        1970-01-01 00:00, i.e. the UTC interpretation"""
        _check_datetime_limits(ns)
        days, ns_of_day = divmod(ns, NS_PER_DAY)
        year, month, day = _math.ymd_from_epoch_days(days)
        self = object.__new__(cls)
        self._date = d = object.__new__(PlainDate)
        d._year, d._month, d._day = year, month, day
        self._time = PlainTime._from_ns_of_day(ns_of_day)
        return self

    def _utc_epoch_ns(self) -> int:
        return (
            _math.epoch_days_from_ymd(*self._date._as_tuple()) * NS_PER_DAY
            + self._time._ns
        )

    def _shift_ns(self, ns: int) -> PlainDateTime:
        return PlainDateTime._from_utc_epoch_ns(self._utc_epoch_ns() + ns)

    def _add_days(self, days: int) -> PlainDateTime:
        if not days:
            return self
        return PlainDateTime._from_parts(
            PlainDate(*_math.add_days(self._date._as_tuple(), days)),
            self._time,
        )

    def date(self) -> PlainDate:
        return self._date

    def time(self) -> PlainTime:
        return self._time

    @property
    def year(self) -> int:
        return self._date._year

    @property
    def month(self) -> int:
        return self._date._month

    @property
    def day(self) -> int:
        return self._date._day

    @property
    def hour(self) -> int:
        return self._time.hour

    @property
    def minute(self) -> int:
        return self._time.minute

    @property
    def second(self) -> int:
        return self._time.second

    @property
    def nanosecond(self) -> int:
        return self._time.nanosecond

    def assume_tz(
        self,
        tz: str | TimeZone,
        /,
        *,
        disambiguate: Disambiguation = "compatible",
        calendar: str | Calendar = "iso8601",
    ) -> ZonedDateTime:
        """Find the instant at which the given timezone shows this
        wall-clock time.

        Example
        -------
        >>> PlainDateTime(2023, 3, 26, 2, 30).assume_tz("Europe/Amsterdam")
        ZonedDateTime(2023-03-26 03:30:00+02:00[Europe/Amsterdam])
        >>> PlainDateTime(2023, 3, 26, 2, 30).assume_tz(
        ...     "Europe/Amsterdam", disambiguate="earlier"
        ... )
        ZonedDateTime(2023-03-26 01:30:00+01:00[Europe/Amsterdam])
        """
        zone = get_time_zone(tz)
        return ZonedDateTime(
            get_instant_for(zone, self, disambiguate), zone, calendar
        )

    def __str__(self) -> str:
        return f"{self._date} {self._time}"

    def __repr__(self) -> str:
        return f"PlainDateTime({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlainDateTime):
            return NotImplemented
        return self._date == other._date and self._time == other._time

    def __hash__(self) -> int:
        return hash((self._date, self._time))

    def __lt__(self, other: PlainDateTime) -> bool:
        if not isinstance(other, PlainDateTime):
            return NotImplemented
        return self._utc_epoch_ns() < other._utc_epoch_ns()

    def __le__(self, other: PlainDateTime) -> bool:
        if not isinstance(other, PlainDateTime):
            return NotImplemented
        return self._utc_epoch_ns() <= other._utc_epoch_ns()

    def __gt__(self, other: PlainDateTime) -> bool:
        if not isinstance(other, PlainDateTime):
            return NotImplemented
        return self._utc_epoch_ns() > other._utc_epoch_ns()

    def __ge__(self, other: PlainDateTime) -> bool:
        if not isinstance(other, PlainDateTime):
            return NotImplemented
        return self._utc_epoch_ns() >= other._utc_epoch_ns()

    def __reduce__(self):
        return (PlainDateTime._from_utc_epoch_ns, (self._utc_epoch_ns(),))


@final
class NormalizedTimeDuration(_ImmutableBase):
    """A span of exact time as one signed nanosecond count.

    The magnitude is bounded so that its whole-seconds part stays
    below 2**53. Arithmetic that leaves this range raises
    :class:`ConstructionError`.

    Example
    -------
    >>> NormalizedTimeDuration.from_fields(hours=1, nanoseconds=5)
    NormalizedTimeDuration(3600000000005)
    """

    __slots__ = ("_ns",)

    ZERO: ClassVar[NormalizedTimeDuration]

    def __init__(self, nanoseconds: int) -> None:
        _check_int(nanoseconds, "nanoseconds")
        if abs(nanoseconds) > MAX_TIME_DURATION:
            raise ConstructionError._out_of_range("Time duration", nanoseconds)
        self._ns = nanoseconds

    @classmethod
    def from_fields(
        cls,
        *,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        milliseconds: int = 0,
        microseconds: int = 0,
        nanoseconds: int = 0,
    ) -> NormalizedTimeDuration:
        return cls(
            hours * NS_PER_HOUR
            + minutes * NS_PER_MINUTE
            + seconds * NS_PER_SECOND
            + milliseconds * 1_000_000
            + microseconds * 1_000
            + nanoseconds
        )

    @classmethod
    def between(cls, start_ns: int, end_ns: int) -> NormalizedTimeDuration:
        """The span between two epoch nanosecond values"""
        return cls(end_ns - start_ns)

    @property
    def nanoseconds(self) -> int:
        return self._ns

    def sign(self) -> int:
        return _sign(self._ns)

    def add_24_hour_days(self, days: int) -> NormalizedTimeDuration:
        """Add days, treating each as exactly 24 hours"""
        return NormalizedTimeDuration(self._ns + days * NS_PER_DAY)

    def __add__(self, other: NormalizedTimeDuration) -> NormalizedTimeDuration:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return NormalizedTimeDuration(self._ns + other._ns)

    def __sub__(self, other: NormalizedTimeDuration) -> NormalizedTimeDuration:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return NormalizedTimeDuration(self._ns - other._ns)

    def __neg__(self) -> NormalizedTimeDuration:
        return NormalizedTimeDuration(-self._ns)

    def __abs__(self) -> NormalizedTimeDuration:
        return NormalizedTimeDuration(abs(self._ns))

    def __bool__(self) -> bool:
        return bool(self._ns)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return self._ns == other._ns

    def __hash__(self) -> int:
        return hash(self._ns)

    def __lt__(self, other: NormalizedTimeDuration) -> bool:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return self._ns < other._ns

    def __le__(self, other: NormalizedTimeDuration) -> bool:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return self._ns <= other._ns

    def __gt__(self, other: NormalizedTimeDuration) -> bool:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return self._ns > other._ns

    def __ge__(self, other: NormalizedTimeDuration) -> bool:
        if not isinstance(other, NormalizedTimeDuration):
            return NotImplemented
        return self._ns >= other._ns

    def __repr__(self) -> str:
        return f"NormalizedTimeDuration({self._ns})"

    def __reduce__(self):
        return (NormalizedTimeDuration, (self._ns,))


NormalizedTimeDuration.ZERO = NormalizedTimeDuration(0)


_DURATION_FIELDS = (
    "years",
    "months",
    "weeks",
    "days",
    "hours",
    "minutes",
    "seconds",
    "milliseconds",
    "microseconds",
    "nanoseconds",
)


@final
class Duration(_ImmutableBase):
    """A duration made up of calendar and exact time components.

    All non-zero components share one sign. Years, months and weeks
    (and days, in a timezone) have no fixed length, so combining them
    needs a reference point: see :meth:`add`.

    Example
    -------
    >>> d = Duration(months=1, days=3, hours=12)
    >>> d.sign
    1
    >>> -d
    Duration(months=-1, days=-3, hours=-12)
    >>> Duration(days=1, hours=-1)
    Traceback (most recent call last):
      ...
    tempus.ConstructionError: Duration fields must not have mixed signs
    """

    __slots__ = ("_fields",)

    _fields: tuple[int, int, int, int, int, int, int, int, int, int]

    def __init__(
        self,
        years: int = 0,
        months: int = 0,
        weeks: int = 0,
        days: int = 0,
        hours: int = 0,
        minutes: int = 0,
        seconds: int = 0,
        milliseconds: int = 0,
        microseconds: int = 0,
        nanoseconds: int = 0,
    ) -> None:
        fields = (
            years,
            months,
            weeks,
            days,
            hours,
            minutes,
            seconds,
            milliseconds,
            microseconds,
            nanoseconds,
        )
        sign = 0
        for name, value in zip(_DURATION_FIELDS, fields):
            _check_int(value, name)
            if value:
                if sign and _sign(value) != sign:
                    raise ConstructionError._mixed_signs()
                sign = _sign(value)
        for name, value in zip(_DURATION_FIELDS[:3], fields):
            if abs(value) >= MAX_CALENDAR_UNIT:
                raise ConstructionError._out_of_range(name, value)
        total_ns = (
            days * NS_PER_DAY
            + hours * NS_PER_HOUR
            + minutes * NS_PER_MINUTE
            + seconds * NS_PER_SECOND
            + milliseconds * 1_000_000
            + microseconds * 1_000
            + nanoseconds
        )
        if abs(total_ns) > MAX_TIME_DURATION:
            raise ConstructionError(
                "Duration days and time components exceed 2**53 seconds"
            )
        self._fields = fields

    @property
    def years(self) -> int:
        return self._fields[0]

    @property
    def months(self) -> int:
        return self._fields[1]

    @property
    def weeks(self) -> int:
        return self._fields[2]

    @property
    def days(self) -> int:
        return self._fields[3]

    @property
    def hours(self) -> int:
        return self._fields[4]

    @property
    def minutes(self) -> int:
        return self._fields[5]

    @property
    def seconds(self) -> int:
        return self._fields[6]

    @property
    def milliseconds(self) -> int:
        return self._fields[7]

    @property
    def microseconds(self) -> int:
        return self._fields[8]

    @property
    def nanoseconds(self) -> int:
        return self._fields[9]

    @property
    def sign(self) -> int:
        """1, -1, or 0 for a blank duration"""
        for value in self._fields:
            if value:
                return _sign(value)
        return 0

    @property
    def blank(self) -> bool:
        return not any(self._fields)

    def normalized_time(self) -> NormalizedTimeDuration:
        """The hours and smaller components as one exact span.
        Days are not included."""
        return NormalizedTimeDuration.from_fields(
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
            milliseconds=self.milliseconds,
            microseconds=self.microseconds,
            nanoseconds=self.nanoseconds,
        )

    def date_part(self) -> Duration:
        return Duration(self.years, self.months, self.weeks, self.days)

    def _default_largest_unit(self) -> str:
        for unit, value in zip(_UNITS, self._fields):
            if value:
                return unit
        return "nanosecond"

    def add(
        self,
        other: Duration,
        /,
        *,
        relative_to: ZonedDateTime | PlainDate | None = None,
    ) -> Duration:
        """Add two durations, rebalancing the result.

        Without ``relative_to``, days count as 24 hours and years,
        months or weeks raise :class:`ValueError`.
        With ``relative_to``, both durations are applied in sequence
        starting from that moment, and the difference from the start
        is measured in the timezone and calendar of ``relative_to``.
        A :class:`PlainDate` as ``relative_to`` uses the ISO calendar,
        with days of 24 hours.
        The result's largest unit is the largest unit present
        in either duration.

        Example
        -------
        >>> Duration(days=1).add(Duration(hours=23))
        Duration(days=1, hours=23)

        March 26th 2023 was only 23 hours long in Amsterdam:

        >>> start = PlainDateTime(2023, 3, 25).assume_tz("Europe/Amsterdam")
        >>> Duration(days=1).add(Duration(hours=23), relative_to=start)
        Duration(days=2)
        """
        if not isinstance(other, Duration):
            raise TypeError(f"Cannot add {type(other).__name__} to Duration")
        return _add_durations(self, other, relative_to)

    def subtract(
        self,
        other: Duration,
        /,
        *,
        relative_to: ZonedDateTime | PlainDate | None = None,
    ) -> Duration:
        if not isinstance(other, Duration):
            raise TypeError(
                f"Cannot subtract {type(other).__name__} from Duration"
            )
        return _add_durations(self, -other, relative_to)

    def __neg__(self) -> Duration:
        return Duration(*(-v for v in self._fields))

    def __pos__(self) -> Duration:
        return self

    def __abs__(self) -> Duration:
        return Duration(*map(abs, self._fields))

    def __bool__(self) -> bool:
        return not self.blank

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Duration):
            return NotImplemented
        return self._fields == other._fields

    def __hash__(self) -> int:
        return hash(self._fields)

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{name}={value}"
            for name, value in zip(_DURATION_FIELDS, self._fields)
            if value
        )
        return f"Duration({parts})"

    def __reduce__(self):
        return (Duration, self._fields)


class Calendar(ABC):
    """Date arithmetic in one calendar system.

    Subclass this to plug in your own calendar. :class:`IsoCalendar` is
    the built-in implementation. Results are validated before use:
    :meth:`date_add` must return a :class:`PlainDate` and
    :meth:`date_until` a :class:`Duration` with zero time components.
    """

    __slots__ = ()

    @property
    @abstractmethod
    def id(self) -> str:
        """The identifier of the calendar, e.g. ``"iso8601"``"""

    @abstractmethod
    def date_add(
        self, date: PlainDate, duration: Duration, options: ArithmeticOptions
    ) -> PlainDate:
        """Add the years, months, weeks and days of ``duration``"""

    @abstractmethod
    def date_until(
        self, one: PlainDate, two: PlainDate, largest_unit: DateUnit
    ) -> Duration:
        """The date difference from ``one`` to ``two``,
        with no unit larger than ``largest_unit``"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


@final
class IsoCalendar(Calendar):
    """The proleptic Gregorian calendar of ISO 8601"""

    __slots__ = ()

    @property
    def id(self) -> str:
        return "iso8601"

    def date_add(
        self, date: PlainDate, duration: Duration, options: ArithmeticOptions
    ) -> PlainDate:
        # Whole days in the time components count, the rest is ignored
        time_ns = duration.normalized_time()._ns
        days = duration.days + _sign(time_ns) * (abs(time_ns) // NS_PER_DAY)
        return PlainDate(
            *_math.add_iso_date(
                *date._as_tuple(),
                duration.years,
                duration.months,
                duration.weeks,
                days,
                options.overflow,
            )
        )

    def date_until(
        self, one: PlainDate, two: PlainDate, largest_unit: DateUnit
    ) -> Duration:
        unit = _canonical_unit(largest_unit)
        if not _is_date_unit(unit):
            raise ValueError(f"largest_unit must be a date unit, got {unit!r}")
        return Duration(
            *_math.difference_iso_date(one._as_tuple(), two._as_tuple(), unit)
        )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IsoCalendar)

    def __hash__(self) -> int:
        return hash("iso8601")


ISO_CALENDAR = IsoCalendar()


def get_calendar(calendar: str | Calendar, /) -> Calendar:
    """Resolve a calendar identifier. Calendar objects pass through."""
    if isinstance(calendar, Calendar):
        return calendar
    elif isinstance(calendar, str):
        if calendar.lower() in ("iso8601", "iso"):
            return ISO_CALENDAR
        raise ValueError(f"Unknown calendar: {calendar!r}")
    raise TypeError(f"Expected a calendar or its id, got {calendar!r}")


class TimeZone(ABC):
    """Maps between exact instants and wall-clock times.

    Subclass this to plug in your own rules. The built-in implementations
    are :class:`FixedOffsetTimeZone` and :class:`IanaTimeZone`.

    Offsets must be integers no larger than one day in magnitude.
    Possible instants must be in ascending order: none for a skipped
    wall-clock time, two (or more) for a repeated one.
    """

    __slots__ = ()

    @property
    @abstractmethod
    def id(self) -> str:
        """The identifier of the timezone, e.g. ``"Europe/Paris"``"""

    @abstractmethod
    def get_offset_nanoseconds_for(self, instant: Instant) -> int:
        """The UTC offset in effect at the given instant"""

    @abstractmethod
    def get_possible_instants_for(self, dt: PlainDateTime) -> Sequence[Instant]:
        """All instants at which the wall clock shows ``dt``"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


_OFFSET_ID_PATTERN = re.compile(
    r"([+-])(\d{2}):?(\d{2})(?::?(\d{2})(?:[.,](\d{1,9}))?)?", re.ASCII
)


def _format_offset(ns: int) -> str:
    sign = "-" if ns < 0 else "+"
    secs, subsec = divmod(abs(ns), NS_PER_SECOND)
    hours, rem = divmod(secs, 3600)
    minutes, seconds = divmod(rem, 60)
    result = f"{sign}{hours:02}:{minutes:02}"
    if seconds or subsec:
        result += f":{seconds:02}"
    if subsec:
        result += f".{subsec:09}".rstrip("0")
    return result


def _parse_offset_id(s: str) -> int | None:
    if (m := _OFFSET_ID_PATTERN.fullmatch(s)) is None:
        return None
    sign, hh, mm, ss, frac = m.groups()
    ns = (
        int(hh) * NS_PER_HOUR
        + int(mm) * NS_PER_MINUTE
        + int(ss or 0) * NS_PER_SECOND
        + int((frac or "").ljust(9, "0"))
    )
    if int(mm) > 59 or int(ss or 0) > 59:
        return None
    return -ns if sign == "-" else ns


@final
class FixedOffsetTimeZone(TimeZone):
    """A timezone with one UTC offset at all times.
    Its id is ``"UTC"`` for a zero offset.

    Example
    -------
    >>> FixedOffsetTimeZone(5 * 3_600_000_000_000 + 30 * 60_000_000_000)
    FixedOffsetTimeZone('+05:30')
    """

    __slots__ = ("_offset", "_id")

    def __init__(self, offset_nanoseconds: int, /) -> None:
        _check_int(offset_nanoseconds, "offset_nanoseconds")
        if abs(offset_nanoseconds) > NS_PER_DAY:
            raise InvalidOffset(
                f"Offset must be at most one day, got {offset_nanoseconds}ns"
            )
        self._offset = offset_nanoseconds
        self._id = (
            _format_offset(offset_nanoseconds) if offset_nanoseconds else "UTC"
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def offset_nanoseconds(self) -> int:
        return self._offset

    def get_offset_nanoseconds_for(self, instant: Instant) -> int:
        return self._offset

    def get_possible_instants_for(self, dt: PlainDateTime) -> list[Instant]:
        return [Instant(dt._utc_epoch_ns() - self._offset)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FixedOffsetTimeZone):
            return NotImplemented
        return self._id == other._id and self._offset == other._offset

    def __hash__(self) -> int:
        return hash(self._offset)


UTC = FixedOffsetTimeZone(0)


@final
class IanaTimeZone(TimeZone):
    """A timezone from the IANA database, or defined by a POSIX TZ string.

    Zones are looked up in :data:`tempus.TZPATH` first,
    then in the ``tzdata`` package.

    Example
    -------
    >>> IanaTimeZone("Europe/Amsterdam")
    IanaTimeZone('Europe/Amsterdam')
    >>> IanaTimeZone.from_posix("CET-1CEST,M3.5.0,M10.5.0/3")
    IanaTimeZone('CET-1CEST,M3.5.0,M10.5.0/3')
    """

    __slots__ = ("_id", "_rules")

    def __init__(self, key: str, /) -> None:
        self._rules = get_rules(key)
        self._id = key

    @classmethod
    def from_posix(cls, s: str, /) -> IanaTimeZone:
        """Create a timezone from a POSIX TZ string.
        Its ``id`` is the string itself."""
        self = object.__new__(cls)
        self._rules = ZoneRules.parse_posix(s)
        self._id = s
        return self

    @property
    def id(self) -> str:
        return self._id

    def get_offset_nanoseconds_for(self, instant: Instant) -> int:
        return (
            self._rules.offset_for_instant(instant._ns // NS_PER_SECOND)
            * NS_PER_SECOND
        )

    def get_possible_instants_for(self, dt: PlainDateTime) -> list[Instant]:
        local_ns = dt._utc_epoch_ns()
        ambiguity = self._rules.ambiguity_for_local(local_ns // NS_PER_SECOND)
        return [
            Instant(local_ns - offset * NS_PER_SECOND)
            for offset in ambiguity.offsets()
        ]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IanaTimeZone):
            return NotImplemented
        return self._id == other._id and self._rules == other._rules

    def __hash__(self) -> int:
        return hash(self._id)


def get_time_zone(tz: str | TimeZone, /) -> TimeZone:
    """Resolve a timezone identifier. TimeZone objects pass through.

    ``"UTC"`` and offsets like ``"+05:30"`` give a
    :class:`FixedOffsetTimeZone`, anything else is looked up
    as an IANA key.

    Raises
    ------
    TimeZoneNotFoundError
        If no zone with the given key exists
    """
    if isinstance(tz, TimeZone):
        return tz
    elif not isinstance(tz, str):
        raise TypeError(f"Expected a timezone or its id, got {tz!r}")
    elif tz.upper() == "UTC":
        return UTC
    elif (offset := _parse_offset_id(tz)) is not None:
        return FixedOffsetTimeZone(offset)
    return IanaTimeZone(tz)


# Everything below calls calendars and timezones only through these
# helpers. They validate what user-supplied implementations return.


def _tz_offset_ns(tz: TimeZone, instant: Instant) -> int:
    offset = tz.get_offset_nanoseconds_for(instant)
    if not isinstance(offset, int) or isinstance(offset, bool):
        raise TypeError(
            f"{tz!r} returned a non-integer offset: {offset!r}"
        )
    if abs(offset) > NS_PER_DAY:
        raise InvalidOffset(
            f"{tz!r} returned an offset of {offset}ns, "
            "which is more than one day"
        )
    return offset


def _tz_possible_instants(tz: TimeZone, dt: PlainDateTime) -> list[Instant]:
    instants = list(tz.get_possible_instants_for(dt))
    for instant in instants:
        if not isinstance(instant, Instant):
            raise TypeError(
                f"{tz!r} returned a non-Instant possible instant: {instant!r}"
            )
    return instants


def _calendar_date_add(
    calendar: Calendar,
    date: PlainDate,
    duration: Duration,
    options: ArithmeticOptions,
) -> PlainDate:
    result = calendar.date_add(date, duration, options)
    if not isinstance(result, PlainDate):
        raise TypeError(f"{calendar!r}.date_add returned {result!r}")
    return result


def _calendar_date_until(
    calendar: Calendar, one: PlainDate, two: PlainDate, largest_unit: str
) -> Duration:
    result = calendar.date_until(
        one, two, largest_unit  # type: ignore[arg-type]
    )
    if not isinstance(result, Duration):
        raise TypeError(f"{calendar!r}.date_until returned {result!r}")
    elif result.normalized_time():
        raise ValueError(
            f"{calendar!r}.date_until returned time components: {result!r}"
        )
    return result


def _difference_date(
    calendar: Calendar, one: PlainDate, two: PlainDate, largest_unit: str
) -> Duration:
    # Days are the same in every calendar
    if largest_unit == "day":
        return Duration(days=one.days_until(two))
    return _calendar_date_until(calendar, one, two, largest_unit)


def get_plain_datetime_for(tz: TimeZone, instant: Instant) -> PlainDateTime:
    """The wall-clock time in ``tz`` at the given instant.
    Queries the offset of ``tz`` exactly once."""
    return PlainDateTime._from_utc_epoch_ns(
        instant._ns + _tz_offset_ns(tz, instant)
    )


def get_instant_for(
    tz: TimeZone,
    dt: PlainDateTime,
    disambiguation: Disambiguation = "compatible",
) -> Instant:
    """Resolve a wall-clock time in a timezone to one instant.

    If the wall-clock time is repeated, ``"compatible"`` and ``"earlier"``
    pick the first candidate, ``"later"`` the last one.
    If it is skipped, the size of the gap is measured from the offsets
    one day before and after. ``"compatible"`` and ``"later"`` then move the
    wall-clock time forward by that amount, ``"earlier"`` moves it back.
    ``"reject"`` raises :class:`SkippedTime` or :class:`RepeatedTime`.

    Example
    -------
    >>> ams = get_time_zone("Europe/Amsterdam")
    >>> get_instant_for(ams, PlainDateTime(2023, 3, 26, 2, 30))
    Instant(2023-03-26 01:30:00Z)
    >>> get_instant_for(ams, PlainDateTime(2023, 3, 26, 2, 30), "earlier")
    Instant(2023-03-26 00:30:00Z)
    """
    if disambiguation not in _DISAMBIGUATIONS:
        raise ValueError(f"Invalid disambiguation: {disambiguation!r}")
    candidates = _tz_possible_instants(tz, dt)
    if len(candidates) == 1:
        return candidates[0]
    elif candidates:
        if disambiguation in ("compatible", "earlier"):
            return candidates[0]
        elif disambiguation == "later":
            return candidates[-1]
        raise RepeatedTime._for_tz(dt, tz.id)
    elif disambiguation == "reject":
        raise SkippedTime._for_tz(dt, tz.id)

    utc_ns = dt._utc_epoch_ns()
    offset_before = _tz_offset_ns(tz, Instant(utc_ns - NS_PER_DAY))
    offset_after = _tz_offset_ns(tz, Instant(utc_ns + NS_PER_DAY))
    gap = offset_after - offset_before
    if abs(gap) > NS_PER_DAY:
        raise InvalidOffset(f"{tz!r} reports a gap longer than one day")
    _log.debug(
        "%s is skipped in %r (gap of %dns), resolving %r",
        dt,
        tz.id,
        gap,
        disambiguation,
    )
    if disambiguation == "earlier":
        candidates = _tz_possible_instants(tz, dt._shift_ns(-gap))
        if not candidates:
            raise SkippedTime._for_tz(dt, tz.id)
        return candidates[0]
    candidates = _tz_possible_instants(tz, dt._shift_ns(gap))
    if not candidates:
        raise SkippedTime._for_tz(dt, tz.id)
    return candidates[-1]


def _add_instant(epoch_ns: int, norm: NormalizedTimeDuration) -> int:
    return Instant(epoch_ns + norm._ns)._ns


def _add_days_to_zoned(
    epoch_ns: int, dt: PlainDateTime, tz: TimeZone, days: int
) -> tuple[int, PlainDateTime]:
    """Move ``days`` days in wall-clock time. Returns the new instant and
    the wall-clock time it was resolved from."""
    if not days:
        return epoch_ns, dt
    shifted = dt._add_days(days)
    return get_instant_for(tz, shifted, "compatible")._ns, shifted


def add_zoned_datetime(
    epoch_ns: int,
    tz: TimeZone,
    calendar: Calendar,
    years: int,
    months: int,
    weeks: int,
    days: int,
    norm: NormalizedTimeDuration,
    precalculated: PlainDateTime | None = None,
    options: ArithmeticOptions = DEFAULT_OPTIONS,
) -> int:
    """Add a duration to an instant in a timezone and calendar.

    Date components are added to the wall-clock date by the calendar,
    the result is resolved back with ``"compatible"`` disambiguation,
    then the exact time span ``norm`` is added.
    Without date components the calendar and timezone aren't consulted.

    ``precalculated`` is the wall-clock time at ``epoch_ns``,
    if the caller already has it.
    """
    if not (years or months or weeks or days):
        return _add_instant(epoch_ns, norm)
    dt = precalculated or get_plain_datetime_for(tz, Instant(epoch_ns))
    added = _calendar_date_add(
        calendar, dt.date(), Duration(years, months, weeks, days), options
    )
    intermediate = get_instant_for(tz, added.at(dt.time()), "compatible")
    return _add_instant(intermediate._ns, norm)


class DayFolding(NamedTuple):
    """Result of :func:`normalized_time_duration_to_days`"""

    days: int
    remainder: NormalizedTimeDuration
    # Length of the last day measured, in nanoseconds
    day_length: int


class NormalizedDurationRecord(NamedTuple):
    """A difference split into calendar components and exact time"""

    years: int
    months: int
    weeks: int
    days: int
    norm: NormalizedTimeDuration

    def to_duration(self, largest_time_unit: str = "hour") -> Duration:
        time = balance_time_duration(self.norm, largest_time_unit)
        return Duration(
            self.years,
            self.months,
            self.weeks,
            self.days + time.days,
            time.hours,
            time.minutes,
            time.seconds,
            time.milliseconds,
            time.microseconds,
            time.nanoseconds,
        )


def _check_day_length(day_length: int, sign: int) -> None:
    if abs(day_length) >= MAX_DAY_LENGTH:
        raise UnsafeDayLengthError._for_length(day_length)
    elif day_length * sign <= 0:
        raise SignInconsistencyError(
            f"Timezone reported a day of {day_length}ns "
            f"while moving in direction {sign}"
        )


def normalized_time_duration_to_days(
    norm: NormalizedTimeDuration,
    relative_to: ZonedDateTime,
    precalculated: PlainDateTime | None = None,
) -> DayFolding:
    """Fold an exact time span into whole days of wall-clock time,
    starting from ``relative_to``.

    A day is however long the timezone of ``relative_to`` says it is,
    so 25 hours across a DST change may be exactly one day.
    The remainder has the same sign as ``norm`` (or is zero),
    and is shorter than the day that follows.

    Raises
    ------
    SignInconsistencyError
        If the timezone's answers contradict each other, so that the day
        count or remainder would have the opposite sign of ``norm``.
    UnsafeDayLengthError
        If the timezone reports a day of 2**53 nanoseconds or longer.

    Example
    -------
    >>> start = PlainDateTime(2023, 3, 25, 12).assume_tz("Europe/Amsterdam")
    >>> days, remainder, _ = normalized_time_duration_to_days(
    ...     NormalizedTimeDuration.from_fields(hours=30), start
    ... )
    >>> days, balance_time_duration(remainder, "hour")
    (1, Duration(hours=7))
    """
    tz = relative_to._tz
    start_ns = relative_to._instant._ns
    sign = norm.sign()

    if sign == 0:
        start_dt = precalculated or get_plain_datetime_for(
            tz, relative_to._instant
        )
        next_ns, _ = _add_days_to_zoned(start_ns, start_dt, tz, 1)
        day_length = next_ns - start_ns
        _check_day_length(day_length, 1)
        return DayFolding(0, norm, day_length)

    end_ns = _add_instant(start_ns, norm)
    start_dt = precalculated or get_plain_datetime_for(
        tz, relative_to._instant
    )
    end_dt = get_plain_datetime_for(tz, Instant(end_ns))

    # Estimate the days from the wall-clock dates, then correct
    days = start_dt.date().days_until(end_dt.date())
    time_sign = _sign(start_dt.time()._ns - end_dt.time()._ns)
    if days > 0 and time_sign > 0:
        days -= 1
    elif days < 0 and time_sign < 0:
        days += 1

    relative_ns, relative_dt = _add_days_to_zoned(start_ns, start_dt, tz, days)
    if sign == 1:
        while days > 0 and relative_ns > end_ns:
            days -= 1
            relative_ns, relative_dt = _add_days_to_zoned(
                start_ns, start_dt, tz, days
            )
    else:
        # Going back, a consistent timezone only lands before the end
        # when a repeated wall-clock time resolved to its earlier instant
        while (
            days < 0
            and relative_ns < end_ns
            and len(_tz_possible_instants(tz, relative_dt)) > 1
        ):
            days += 1
            relative_ns, relative_dt = _add_days_to_zoned(
                start_ns, start_dt, tz, days
            )

    remainder = end_ns - relative_ns
    while True:
        next_ns, next_dt = _add_days_to_zoned(
            relative_ns, relative_dt, tz, sign
        )
        day_length = next_ns - relative_ns
        _check_day_length(day_length, sign)
        one_day_less = remainder - day_length
        if _sign(one_day_less) * sign < 0:
            break
        remainder = one_day_less
        relative_ns, relative_dt = next_ns, next_dt
        days += sign

    if days * sign < 0:
        raise SignInconsistencyError(
            f"Folding {norm!r} gave {days} days, which has the wrong sign. "
            "The timezone reports inconsistent offsets."
        )
    elif _sign(remainder) == -sign:
        raise SignInconsistencyError(
            f"Folding {norm!r} left a remainder of {remainder}ns, "
            "which has the wrong sign. "
            "The timezone reports inconsistent offsets."
        )
    _log.debug("Folded %r into %d days and %dns", norm, days, remainder)
    return DayFolding(
        days, NormalizedTimeDuration(remainder), abs(day_length)
    )


def balance_time_duration(
    norm: NormalizedTimeDuration, largest_unit: Unit
) -> Duration:
    """Split an exact time span into components, none larger than
    ``largest_unit``. Days count as 24 hours. Any date unit as
    ``largest_unit`` means days.

    Example
    -------
    >>> balance_time_duration(
    ...     NormalizedTimeDuration.from_fields(minutes=1501), "day"
    ... )
    Duration(days=1, hours=1, minutes=1)
    >>> balance_time_duration(
    ...     NormalizedTimeDuration.from_fields(minutes=1501), "hour"
    ... )
    Duration(hours=25, minutes=1)
    """
    unit = _canonical_unit(largest_unit)
    if _is_date_unit(unit):
        unit = "day"
    remaining = abs(norm._ns)
    components = dict.fromkeys(_DURATION_FIELDS, 0)
    started = False
    for name, size in _TIME_UNIT_NANOS:
        started = started or name == unit
        if started:
            components[name + "s"], remaining = divmod(remaining, size)
    sign = norm.sign()
    return Duration(**{k: v * sign for k, v in components.items()})


def difference_iso_datetime(
    start: PlainDateTime,
    end: PlainDateTime,
    calendar: Calendar,
    largest_unit: Unit,
) -> NormalizedDurationRecord:
    """The wall-clock difference between two datetimes.

    The date part comes from the calendar, the time part is exact.
    Both parts share a sign. If ``largest_unit`` is a time unit,
    days are folded into the time part as 24 hours each.
    """
    unit = _canonical_unit(largest_unit)
    time_ns = end.time()._ns - start.time()._ns
    time_sign = _sign(time_ns)
    date_sign = _math.compare_iso_date(
        end.date()._as_tuple(), start.date()._as_tuple()
    )
    adjusted_end = end.date()
    if time_sign == -date_sign:
        adjusted_end = PlainDate(
            *_math.add_days(adjusted_end._as_tuple(), time_sign)
        )
        time_ns -= time_sign * NS_PER_DAY

    date_largest = _larger_unit("day", unit)
    date_diff = _difference_date(
        calendar, start.date(), adjusted_end, date_largest
    )
    days = date_diff.days
    if date_largest != unit:
        time_ns += days * NS_PER_DAY
        days = 0
    return NormalizedDurationRecord(
        date_diff.years,
        date_diff.months,
        date_diff.weeks,
        days,
        NormalizedTimeDuration(time_ns),
    )


def difference_zoned_datetime(
    ns1: int,
    ns2: int,
    tz: TimeZone,
    calendar: Calendar,
    largest_unit: Unit,
    precalculated: PlainDateTime | None = None,
) -> NormalizedDurationRecord:
    """The difference between two instants, measured in the wall-clock
    time and calendar of a timezone.

    For time units this is the exact difference. For date units,
    the calendar difference of the wall-clock times comes first.
    Whatever exact time remains is folded into whole days with
    :func:`normalized_time_duration_to_days`.

    ``precalculated`` is the wall-clock time at ``ns1``,
    if the caller already has it.
    """
    unit = _canonical_unit(largest_unit)
    if not _is_date_unit(unit):
        return NormalizedDurationRecord(
            0, 0, 0, 0, NormalizedTimeDuration.between(ns1, ns2)
        )
    elif ns1 == ns2:
        return NormalizedDurationRecord(0, 0, 0, 0, NormalizedTimeDuration.ZERO)

    start_dt = precalculated or get_plain_datetime_for(tz, Instant(ns1))
    end_dt = get_plain_datetime_for(tz, Instant(ns2))
    date_diff = difference_iso_datetime(start_dt, end_dt, calendar, unit)
    intermediate_ns = add_zoned_datetime(
        ns1,
        tz,
        calendar,
        date_diff.years,
        date_diff.months,
        date_diff.weeks,
        0,
        NormalizedTimeDuration.ZERO,
        start_dt,
    )
    folded = normalized_time_duration_to_days(
        NormalizedTimeDuration.between(intermediate_ns, ns2),
        ZonedDateTime(intermediate_ns, tz, calendar),
    )
    return NormalizedDurationRecord(
        date_diff.years,
        date_diff.months,
        date_diff.weeks,
        folded.days,
        folded.remainder,
    )


def _add_durations_to_date(
    one: Duration, two: Duration, start: PlainDate, largest: str
) -> Duration:
    # Plain dates have no timezone, so days are always 24 hours
    calendar = ISO_CALENDAR
    intermediate = _calendar_date_add(
        calendar, start, one.date_part(), DEFAULT_OPTIONS
    )
    end = _calendar_date_add(
        calendar, intermediate, two.date_part(), DEFAULT_OPTIONS
    )
    date_diff = _difference_date(
        calendar, start, end, _larger_unit("day", largest)
    )
    time = balance_time_duration(
        (one.normalized_time() + two.normalized_time()).add_24_hour_days(
            date_diff.days
        ),
        largest,
    )
    return Duration(
        date_diff.years,
        date_diff.months,
        date_diff.weeks,
        time.days,
        time.hours,
        time.minutes,
        time.seconds,
        time.milliseconds,
        time.microseconds,
        time.nanoseconds,
    )


def _add_durations(
    one: Duration,
    two: Duration,
    relative_to: ZonedDateTime | PlainDate | None,
) -> Duration:
    largest = _larger_unit(
        one._default_largest_unit(), two._default_largest_unit()
    )
    norm1 = one.normalized_time()
    norm2 = two.normalized_time()

    if relative_to is None:
        if _UNIT_RANK[largest] < _UNIT_RANK["day"]:
            raise ValueError(
                "Adding durations with years, months or weeks "
                "requires relative_to"
            )
        return balance_time_duration(
            (norm1 + norm2).add_24_hour_days(one.days + two.days), largest
        )
    elif isinstance(relative_to, PlainDate):
        return _add_durations_to_date(one, two, relative_to, largest)
    elif not isinstance(relative_to, ZonedDateTime):
        raise TypeError(
            "relative_to must be a ZonedDateTime or PlainDate, "
            f"got {relative_to!r}"
        )

    tz = relative_to._tz
    calendar = relative_to._calendar
    start_ns = relative_to._instant._ns
    start_dt = (
        get_plain_datetime_for(tz, relative_to._instant)
        if _is_date_unit(largest)
        else None
    )
    intermediate_ns = add_zoned_datetime(
        start_ns,
        tz,
        calendar,
        one.years,
        one.months,
        one.weeks,
        one.days,
        norm1,
        start_dt,
    )
    end_ns = add_zoned_datetime(
        intermediate_ns,
        tz,
        calendar,
        two.years,
        two.months,
        two.weeks,
        two.days,
        norm2,
    )
    if not _is_date_unit(largest):
        return balance_time_duration(
            NormalizedTimeDuration.between(start_ns, end_ns), largest
        )
    return difference_zoned_datetime(
        start_ns, end_ns, tz, calendar, largest, start_dt
    ).to_duration()


_BUILTIN_ZONES = (FixedOffsetTimeZone, IanaTimeZone)


@final
class ZonedDateTime(_ImmutableBase):
    """An exact time, viewed in a timezone and calendar.

    Equality and ordering compare the exact time only.
    Use :meth:`exact_eq` to also compare the timezone and calendar.

    Example
    -------
    >>> d = ZonedDateTime(Instant(1_679_794_200 * 10**9), "Europe/Amsterdam")
    >>> d
    ZonedDateTime(2023-03-26 03:30:00+02:00[Europe/Amsterdam])
    >>> d.day_length()
    Duration(hours=23)
    """

    __slots__ = ("_instant", "_tz", "_calendar")

    def __init__(
        self,
        instant: Instant | int,
        tz: str | TimeZone,
        calendar: str | Calendar = "iso8601",
    ) -> None:
        if not isinstance(instant, Instant):
            instant = Instant(instant)
        self._instant = instant
        self._tz = get_time_zone(tz)
        self._calendar = get_calendar(calendar)

    def _with_ns(self, epoch_ns: int) -> ZonedDateTime:
        return ZonedDateTime(Instant(epoch_ns), self._tz, self._calendar)

    @property
    def tz(self) -> TimeZone:
        return self._tz

    @property
    def calendar(self) -> Calendar:
        return self._calendar

    @property
    def epoch_nanoseconds(self) -> int:
        return self._instant._ns

    def to_instant(self) -> Instant:
        return self._instant

    def to_tz(self, tz: str | TimeZone, /) -> ZonedDateTime:
        return ZonedDateTime(self._instant, tz, self._calendar)

    def offset_nanoseconds(self) -> int:
        return _tz_offset_ns(self._tz, self._instant)

    def to_plain(self) -> PlainDateTime:
        """The wall-clock date and time"""
        return get_plain_datetime_for(self._tz, self._instant)

    def date(self) -> PlainDate:
        return self.to_plain().date()

    def time(self) -> PlainTime:
        return self.to_plain().time()

    def add(
        self, duration: Duration, /, *, overflow: Overflow = "constrain"
    ) -> ZonedDateTime:
        """Add a duration.

        Years, months, weeks and days move the wall-clock date
        (so a day may be 23 or 25 hours). The time components
        are then added as exact time.
        If the target wall-clock time is skipped or repeated,
        the ``"compatible"`` disambiguation is used.

        Example
        -------
        >>> d = PlainDateTime(2023, 3, 25, 12).assume_tz("Europe/Amsterdam")
        >>> d.add(Duration(days=1))
        ZonedDateTime(2023-03-26 12:00:00+02:00[Europe/Amsterdam])
        >>> d.add(Duration(hours=24))
        ZonedDateTime(2023-03-26 13:00:00+02:00[Europe/Amsterdam])
        """
        if not isinstance(duration, Duration):
            raise TypeError(
                f"Expected a Duration, got {type(duration).__name__}"
            )
        return self._with_ns(
            add_zoned_datetime(
                self._instant._ns,
                self._tz,
                self._calendar,
                duration.years,
                duration.months,
                duration.weeks,
                duration.days,
                duration.normalized_time(),
                None,
                ArithmeticOptions(overflow),
            )
        )

    def subtract(
        self, duration: Duration, /, *, overflow: Overflow = "constrain"
    ) -> ZonedDateTime:
        return self.add(-duration, overflow=overflow)

    def _difference(
        self, other: ZonedDateTime, largest_unit: Unit
    ) -> Duration:
        if not isinstance(other, ZonedDateTime):
            raise TypeError(
                f"Expected a ZonedDateTime, got {type(other).__name__}"
            )
        elif self._calendar.id != other._calendar.id:
            raise ValueError(
                "Cannot compute the difference between calendars "
                f"{self._calendar.id!r} and {other._calendar.id!r}"
            )
        unit = _canonical_unit(largest_unit)
        if not _is_date_unit(unit):
            return balance_time_duration(
                NormalizedTimeDuration.between(
                    self._instant._ns, other._instant._ns
                ),
                unit,
            )
        elif self._tz.id != other._tz.id:
            raise ValueError(
                "Date units can only be used between ZonedDateTimes in the "
                f"same timezone, got {self._tz.id!r} and {other._tz.id!r}"
            )
        elif self._instant == other._instant:
            return Duration()
        return difference_zoned_datetime(
            self._instant._ns,
            other._instant._ns,
            self._tz,
            self._calendar,
            unit,
            get_plain_datetime_for(self._tz, self._instant),
        ).to_duration()

    def until(
        self, other: ZonedDateTime, /, *, largest_unit: Unit = "hour"
    ) -> Duration:
        """The duration from this moment to another.

        With a date unit as ``largest_unit``, the difference is measured
        in wall-clock time and both must share a timezone.
        Otherwise it is exact elapsed time.

        Example
        -------
        >>> a = PlainDateTime(2023, 3, 25, 12).assume_tz("Europe/Amsterdam")
        >>> b = PlainDateTime(2023, 3, 27, 12).assume_tz("Europe/Amsterdam")
        >>> a.until(b)
        Duration(hours=47)
        >>> a.until(b, largest_unit="day")
        Duration(days=2)
        """
        return self._difference(other, largest_unit)

    def since(
        self, other: ZonedDateTime, /, *, largest_unit: Unit = "hour"
    ) -> Duration:
        """The duration from another moment to this one.
        The negation of ``self.until(other)``, measured from ``self``."""
        return -self._difference(other, largest_unit)

    def start_of_day(self) -> ZonedDateTime:
        """The first moment of this day in the timezone.
        Usually midnight, but DST changes can make it later."""
        midnight = self.date().at(PlainTime.MIDNIGHT)
        return self._with_ns(get_instant_for(self._tz, midnight)._ns)

    def day_length(self) -> Duration:
        """The length of the current day, in hours and smaller units

        Example
        -------
        >>> d = PlainDateTime(2023, 10, 29).assume_tz("Europe/Amsterdam")
        >>> d.day_length()
        Duration(hours=25)
        """
        today = self.date()
        start = get_instant_for(self._tz, today.at(PlainTime.MIDNIGHT))
        end = get_instant_for(
            self._tz, today.add(days=1).at(PlainTime.MIDNIGHT)
        )
        length = end._ns - start._ns
        _check_day_length(length, 1)
        return balance_time_duration(NormalizedTimeDuration(length), "hour")

    def exact_eq(self, other: ZonedDateTime, /) -> bool:
        """Equal in exact time, timezone and calendar"""
        return (
            self._instant == other._instant
            and self._tz == other._tz
            and self._calendar == other._calendar
        )

    def __add__(self, duration: Duration) -> ZonedDateTime:
        if not isinstance(duration, Duration):
            return NotImplemented
        return self.add(duration)

    def __sub__(self, duration: Duration) -> ZonedDateTime:
        if not isinstance(duration, Duration):
            return NotImplemented
        return self.subtract(duration)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ZonedDateTime):
            return NotImplemented
        return self._instant == other._instant

    def __hash__(self) -> int:
        return hash(self._instant)

    def __lt__(self, other: ZonedDateTime) -> bool:
        if not isinstance(other, ZonedDateTime):
            return NotImplemented
        return self._instant < other._instant

    def __le__(self, other: ZonedDateTime) -> bool:
        if not isinstance(other, ZonedDateTime):
            return NotImplemented
        return self._instant <= other._instant

    def __gt__(self, other: ZonedDateTime) -> bool:
        if not isinstance(other, ZonedDateTime):
            return NotImplemented
        return self._instant > other._instant

    def __ge__(self, other: ZonedDateTime) -> bool:
        if not isinstance(other, ZonedDateTime):
            return NotImplemented
        return self._instant >= other._instant

    def __repr__(self) -> str:
        calendar = (
            ""
            if self._calendar.id == "iso8601"
            else f"[u-ca={self._calendar.id}]"
        )
        # User-supplied zones are never queried here,
        # so repr() doesn't disturb their call recording
        if type(self._tz) not in _BUILTIN_ZONES:
            return (
                f"ZonedDateTime({self._instant._ns}ns "
                f"[{self._tz.id}]{calendar})"
            )
        offset = self.offset_nanoseconds()
        plain = PlainDateTime._from_utc_epoch_ns(self._instant._ns + offset)
        return (
            f"ZonedDateTime({plain}{_format_offset(offset)}"
            f"[{self._tz.id}]{calendar})"
        )
