"""Proleptic Gregorian (ISO) calendar arithmetic on plain integers.

Unlike :mod:`datetime`, these helpers aren't limited to years 1-9999,
so they cover the full instant range.
"""

from __future__ import annotations

from typing import Literal

from ._common import ConstructionError

IsoDate = tuple[int, int, int]
Overflow = Literal["constrain", "reject"]

# Days between 0000-03-01 and 1970-01-01
_EPOCH_SHIFT = 719_468
_DAYS_PER_400Y = 146_097


def is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


# 1-indexed days per month
_MONTHDAYS = [0, 31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]


def days_in_month(year: int, month: int) -> int:
    return _MONTHDAYS[month] + (month == 2 and is_leap(year))


def epoch_days_from_ymd(year: int, month: int, day: int) -> int:
    """Days since 1970-01-01 of the given (valid) ISO date"""
    # Count years from March, so the leap day is the last day of the year
    year -= month <= 2
    era = year // 400
    year_of_era = year - era * 400
    day_of_year = (153 * (month + (-3 if month > 2 else 9)) + 2) // 5 + day - 1
    day_of_era = (
        year_of_era * 365 + year_of_era // 4 - year_of_era // 100 + day_of_year
    )
    return era * _DAYS_PER_400Y + day_of_era - _EPOCH_SHIFT


def ymd_from_epoch_days(days: int) -> IsoDate:
    """Inverse of :func:`epoch_days_from_ymd`"""
    days += _EPOCH_SHIFT
    era = days // _DAYS_PER_400Y
    day_of_era = days - era * _DAYS_PER_400Y
    year_of_era = (
        day_of_era
        - day_of_era // 1460
        + day_of_era // 36524
        - day_of_era // 146096
    ) // 365
    day_of_year = day_of_era - (
        365 * year_of_era + year_of_era // 4 - year_of_era // 100
    )
    month_from_march = (5 * day_of_year + 2) // 153
    day = day_of_year - (153 * month_from_march + 2) // 5 + 1
    month = month_from_march + (3 if month_from_march < 10 else -9)
    return (year_of_era + era * 400 + (month <= 2), month, day)


def weekday_from_epoch_days(days: int) -> int:
    """Day of the week with Sunday=0, Saturday=6 (POSIX numbering)"""
    # 1970-01-01 was a Thursday
    return (days + 4) % 7


def compare_iso_date(a: IsoDate, b: IsoDate) -> int:
    return (a > b) - (a < b)


def balance_iso_year_month(year: int, month: int) -> tuple[int, int]:
    year_delta, month0 = divmod(month - 1, 12)
    return year + year_delta, month0 + 1


def regulate_iso_date(
    year: int, month: int, day: int, overflow: Overflow
) -> IsoDate:
    if overflow == "constrain":
        return (year, month, min(day, days_in_month(year, month)))
    elif overflow == "reject":
        if day > days_in_month(year, month):
            raise ConstructionError(
                f"Day {day} does not exist in {year:04}-{month:02}"
            )
        return (year, month, day)
    raise ValueError(f"Invalid overflow: {overflow!r}")


def add_iso_date(
    year: int,
    month: int,
    day: int,
    years: int,
    months: int,
    weeks: int,
    days: int,
    overflow: Overflow,
) -> IsoDate:
    year, month = balance_iso_year_month(year + years, month + months)
    year, month, day = regulate_iso_date(year, month, day, overflow)
    return ymd_from_epoch_days(
        epoch_days_from_ymd(year, month, day) + weeks * 7 + days
    )


def add_days(d: IsoDate, days: int) -> IsoDate:
    return ymd_from_epoch_days(epoch_days_from_ymd(*d) + days)


def days_until(a: IsoDate, b: IsoDate) -> int:
    return epoch_days_from_ymd(*b) - epoch_days_from_ymd(*a)


def difference_iso_date(
    a: IsoDate, b: IsoDate, largest_unit: str
) -> tuple[int, int, int, int]:
    """The (years, months, weeks, days) to add to ``a`` to arrive at ``b``.
    All components share the sign of ``b - a``."""
    if largest_unit in ("year", "month"):
        sign = -compare_iso_date(a, b)
        if sign == 0:
            return (0, 0, 0, 0)

        years = b[0] - a[0]
        mid = add_iso_date(*a, years, 0, 0, 0, "constrain")
        mid_sign = -compare_iso_date(mid, b)
        if mid_sign == 0:
            if largest_unit == "year":
                return (years, 0, 0, 0)
            return (0, years * 12, 0, 0)

        months = b[1] - a[1]
        # Check if we overshot
        if mid_sign != sign:
            years -= sign
            months += sign * 12

        mid = add_iso_date(*a, years, months, 0, 0, "constrain")
        mid_sign = -compare_iso_date(mid, b)
        if mid_sign == 0:
            if largest_unit == "year":
                return (years, months, 0, 0)
            return (0, months + years * 12, 0, 0)

        if mid_sign != sign:
            months -= sign
            if months == -sign:
                years -= sign
                months = 11 * sign
            mid = add_iso_date(*a, years, months, 0, 0, "constrain")

        if mid[1] == b[1]:
            days = b[2] - mid[2]
        elif sign < 0:
            days = -mid[2] - (days_in_month(b[0], b[1]) - b[2])
        else:
            days = b[2] + (days_in_month(mid[0], mid[1]) - mid[2])

        if largest_unit == "month":
            return (0, months + years * 12, 0, days)
        return (years, months, 0, days)

    days = days_until(a, b)
    if largest_unit == "week":
        weeks, rem = divmod(abs(days), 7)
        sign = -1 if days < 0 else 1
        return (0, 0, weeks * sign, rem * sign)
    return (0, 0, 0, days)
