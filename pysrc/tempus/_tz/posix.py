"""POSIX TZ strings: parsing, and the recurring DST rule they describe.

A TZif file ends with such a string, which governs all instants after
its last listed transition.
"""

from __future__ import annotations

from typing import Optional, Union

from .._math import (
    days_in_month,
    epoch_days_from_ymd,
    is_leap,
    weekday_from_epoch_days,
    ymd_from_epoch_days,
)
from .common import Ambiguity, Fold, Gap, Unambiguous

DEFAULT_DST = 3600
DEFAULT_RULE_TIME = 2 * 3600
MAX_OFFSET = 24 * 3600
SECS_PER_DAY = 86_400
Weekday = int  # Different than usual! Sunday=0, Saturday=6
EpochDays = int


def year_for_epoch(secs: int) -> int:
    return ymd_from_epoch_days(secs // SECS_PER_DAY)[0]


class LastWeekday:
    month: int
    weekday: Weekday

    __slots__ = ("month", "weekday")

    def __init__(self, month: int, weekday: Weekday):
        self.month = month
        self.weekday = weekday

    def apply(self, year: int) -> EpochDays:
        last_day = epoch_days_from_ymd(
            year, self.month, days_in_month(year, self.month)
        )
        return last_day - (weekday_from_epoch_days(last_day) - self.weekday) % 7

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LastWeekday):
            return NotImplemented  # pragma: no cover
        return self.month == other.month and self.weekday == other.weekday

    def __repr__(self) -> str:
        return f"LastWeekday({self.month}, {self.weekday})"


class NthWeekday:
    month: int
    nth: int
    weekday: Weekday

    __slots__ = ("month", "nth", "weekday")

    def __init__(self, month: int, nth: int, weekday: Weekday):
        self.month = month
        self.nth = nth
        self.weekday = weekday

    def apply(self, year: int) -> EpochDays:
        first_day = epoch_days_from_ymd(year, self.month, 1)
        return (
            first_day
            + (self.weekday - weekday_from_epoch_days(first_day)) % 7
            + 7 * (self.nth - 1)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NthWeekday):
            return NotImplemented  # pragma: no cover
        return (
            self.month == other.month
            and self.nth == other.nth
            and self.weekday == other.weekday
        )

    def __repr__(self) -> str:
        return f"NthWeekday({self.month}, {self.nth}, {self.weekday})"


class DayOfYear:
    nth: int  # 1-365, 366 for leap years

    __slots__ = ("nth",)

    def __init__(self, nth: int):
        self.nth = nth

    def apply(self, year: int) -> EpochDays:
        day = min(self.nth, 365 + is_leap(year))
        return epoch_days_from_ymd(year, 1, 1) + day - 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DayOfYear):
            return NotImplemented  # pragma: no cover
        return self.nth == other.nth

    def __repr__(self) -> str:
        return f"DayOfYear({self.nth})"


class JulianDayOfYear:
    nth: int  # 1-365, never counting Feb 29

    __slots__ = ("nth",)

    def __init__(self, nth: int):
        self.nth = nth

    def apply(self, year: int) -> EpochDays:
        day = self.nth + (is_leap(year) and self.nth > 59)
        return epoch_days_from_ymd(year, 1, 1) + day - 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JulianDayOfYear):
            return NotImplemented  # pragma: no cover
        return self.nth == other.nth

    def __repr__(self) -> str:
        return f"JulianDayOfYear({self.nth})"


Rule = Union[LastWeekday, NthWeekday, DayOfYear, JulianDayOfYear]


def _rule_moment(rule: tuple[Rule, int], year: int) -> int:
    """Local epoch seconds at which the rule fires in the given year"""
    day_rule, time = rule
    return day_rule.apply(year) * SECS_PER_DAY + time


class Dst:
    offset: int
    start: tuple[Rule, int]
    end: tuple[Rule, int]

    __slots__ = ("offset", "start", "end")

    def __init__(
        self, offset: int, start: tuple[Rule, int], end: tuple[Rule, int]
    ):
        self.offset = offset
        self.start = start
        self.end = end

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dst):
            return NotImplemented  # pragma: no cover
        return (
            self.offset == other.offset
            and self.start == other.start
            and self.end == other.end
        )

    def __repr__(self) -> str:
        return f"Dst(offset={self.offset}, start={self.start}, end={self.end})"


class TzStr:
    std: int
    dst: Optional[Dst]

    __slots__ = ("std", "dst")

    def __init__(self, std: int, dst: Optional[Dst] = None):
        self.std = std
        self.dst = dst

    def offset_for_instant(self, epoch: int) -> int:
        if not self.dst:
            return self.std
        # The year of the transition is assumed unaffected by the DST change
        # itself. This is what Python's `zoneinfo` does too.
        year = year_for_epoch(epoch + self.std)
        dst_offset = self.dst.offset

        start = _rule_moment(self.dst.start, year) - self.std
        end = _rule_moment(self.dst.end, year) - dst_offset

        # Southern hemisphere rules wrap around the new year
        if start < end:
            return dst_offset if start <= epoch < end else self.std
        else:
            return self.std if end <= epoch < start else dst_offset

    # NOTE: `epoch` is the datetime in seconds since the LOCAL epoch.
    def ambiguity_for_local(self, epoch: int) -> Ambiguity:
        if not self.dst:
            return Unambiguous(self.std)
        year = year_for_epoch(epoch)
        dst_offset = self.dst.offset

        start = _rule_moment(self.dst.start, year)
        end = _rule_moment(self.dst.end, year)

        if start < end:
            t1, t2 = start, end
            off1, off2 = self.std, dst_offset
        else:
            t1, t2 = end, start
            off1, off2 = dst_offset, self.std
        shift = off2 - off1

        if shift >= 0:
            if epoch < t1:
                return Unambiguous(off1)
            elif epoch < t1 + shift:
                return Gap(off2, off1)
            elif epoch < t2 - shift:
                return Unambiguous(off2)
            elif epoch < t2:
                return Fold(off2, off1)
            return Unambiguous(off1)
        else:
            if epoch < t1 + shift:
                return Unambiguous(off1)
            elif epoch < t1:
                return Fold(off1, off2)
            elif epoch < t2:
                return Unambiguous(off2)
            elif epoch < t2 - shift:
                return Gap(off1, off2)
            return Unambiguous(off1)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TzStr):
            return NotImplemented  # pragma: no cover
        return self.std == other.std and self.dst == other.dst

    def __repr__(self) -> str:
        if not self.dst:
            return f"TzStr(std={self.std})"
        return f"TzStr(std={self.std}, dst={self.dst})"

    @classmethod
    def parse(cls, s: str) -> TzStr:
        if not s.isascii():
            raise ValueError(
                "Invalid POSIX TZ string: non-ASCII characters found"
            )

        s = _skip_tzname(s)
        std, s = _parse_offset(s)

        # Nothing else: a fixed offset without DST
        if not s:
            return cls(std)

        s = _skip_tzname(s)

        if s[:1] == ",":
            # No DST offset given: the default is std + 1hr
            s = s[1:]
            dst = std + DEFAULT_DST
            if dst >= MAX_OFFSET:
                raise ValueError(
                    "Invalid POSIX TZ string: DST offset out of range"
                )
        else:
            dst, s = _parse_offset(s)
            s = _expect_char(s, ",")

        start, s = _parse_rule(s)
        s = _expect_char(s, ",")
        end, s = _parse_rule(s)

        if s:
            raise ValueError(
                f"Invalid POSIX TZ string: unexpected trailing '{s}'"
            )
        return cls(std, Dst(dst, start, end))


def _skip_tzname(s: str) -> str:
    if s[:1] == "<":  # bracketed format
        stop = s.find(">") + 1
        if stop < 3:  # not found or empty name
            raise ValueError("Invalid TZ string: missing or empty name")
        return s[stop:]

    # unbracketed names are letters only
    stop = 0
    while stop < len(s) and s[stop].isalpha():
        stop += 1
    if stop == len(s):
        raise ValueError("Invalid TZ string: missing offset")
    if stop == 0:
        raise ValueError("Invalid TZ string: invalid name")
    return s[stop:]


def _expect_char(s: str, char: str) -> str:
    if s[:1] != char:
        raise ValueError(f"Invalid TZ string: expected '{char}'")
    return s[1:]


def _parse_offset(s: str) -> tuple[int, str]:
    secs, s = _parse_hms(s)
    if abs(secs) >= MAX_OFFSET:
        raise ValueError("Invalid POSIX TZ string: offset out of range")
    # POSIX offsets count westward, so they're the negation of UTC offsets
    return -secs, s


# h[hh[:mm[:ss]]], optionally signed
def _parse_hms(s: str) -> tuple[int, str]:
    sign = -1 if s[:1] == "-" else 1
    if s[:1] in ("+", "-"):
        s = s[1:]

    hour, s = _parse_digits(s, 3)
    total = hour * 3600
    if s[:1] == ":":
        minute, s = _parse_00_to_59(s[1:])
        total += minute * 60
        if s[:1] == ":":
            second, s = _parse_00_to_59(s[1:])
            total += second

    return sign * total, s


def _parse_digits(s: str, max_digits: int) -> tuple[int, str]:
    count = 0
    while count < max_digits and s[count : count + 1].isdigit():
        count += 1
    if count == 0:
        raise ValueError(f"Invalid TZ string: expected digit, got '{s[:1]}'")
    return int(s[:count]), s[count:]


def _parse_00_to_59(s: str) -> tuple[int, str]:
    if len(s) < 2 or not s[:2].isdigit():
        raise ValueError(f"Invalid TZ string: expected 2 digits, got '{s}'")
    value = int(s[:2])
    if value > 59:
        raise ValueError(f"Invalid TZ string: expected 00-59, got '{s[:2]}'")
    return value, s[2:]


def _parse_rule(s: str) -> tuple[tuple[Rule, int], str]:
    rule: Rule
    if s[:1] == "M":  # Mm.n.d format
        m, s = _parse_digits(s[1:], 2)
        s = _expect_char(s, ".")
        n, s = _parse_digits(s, 1)
        s = _expect_char(s, ".")
        d, s = _parse_digits(s, 1)

        if m < 1 or m > 12 or n < 1 or n > 5 or d > 6:
            raise ValueError("Invalid DST rule")
        rule = LastWeekday(m, d) if n == 5 else NthWeekday(m, n, d)
    elif s[:1] == "J":  # Jnnn format
        nth, s = _parse_digits(s[1:], 3)
        if nth < 1 or nth > 365:
            raise ValueError(f"Invalid Julian day of year: {nth}")
        rule = JulianDayOfYear(nth)
    else:  # nnn format
        nth, s = _parse_digits(s, 3)
        if nth > 365:
            raise ValueError(f"Invalid day of year: {nth}")
        rule = DayOfYear(nth + 1)

    if s[:1] == "/":
        time, s = _parse_hms(s[1:])
    else:
        time = DEFAULT_RULE_TIME

    return (rule, time), s
