from copy import copy, deepcopy

import pytest
from hypothesis import given
from hypothesis.strategies import integers, sampled_from

from tempus import (
    ConstructionError,
    Duration,
    Instant,
    PlainDate,
    PlainDateTime,
    PlainTime,
    ZonedDateTime,
)
from tempus.testing import OneShiftTimeZone, RecordingCalendar

from .common import NS_PER_DAY, NS_PER_HOUR, AlwaysEqual, NeverEqual

AMS = "Europe/Amsterdam"
# 2023-10-29 01:00 UTC, when clocks are set back
AMS_FOLD_NS = 1_698_541_200 * 10**9


def ams(*args, **kwargs) -> ZonedDateTime:
    return PlainDateTime(*args, **kwargs).assume_tz(AMS)


class TestInit:

    def test_from_int(self):
        d = ZonedDateTime(0, AMS)
        assert d.to_instant() == Instant(0)
        assert d.tz.id == AMS
        assert d.calendar.id == "iso8601"

    def test_from_instant(self):
        assert ZonedDateTime(Instant(5), "UTC").epoch_nanoseconds == 5

    def test_out_of_range(self):
        with pytest.raises(ConstructionError):
            ZonedDateTime(Instant.MAX.epoch_nanoseconds + 1, "UTC")

    def test_wrong_tz(self):
        with pytest.raises(TypeError):
            ZonedDateTime(0, 3600)  # type: ignore[arg-type]


def test_wall_clock():
    d = ZonedDateTime(1_679_794_200 * 10**9, AMS)
    assert d.to_plain() == PlainDateTime(2023, 3, 26, 3, 30)
    assert d.date() == PlainDate(2023, 3, 26)
    assert d.time() == PlainTime(3, 30)
    assert d.offset_nanoseconds() == 2 * NS_PER_HOUR


class TestAdd:

    def test_days_are_calendar_days(self):
        d = ams(2023, 3, 25, 12)
        assert d.add(Duration(days=1)).to_plain() == PlainDateTime(
            2023, 3, 26, 12
        )
        assert d.add(Duration(hours=24)).to_plain() == PlainDateTime(
            2023, 3, 26, 13
        )

    def test_fall_back(self):
        d = ams(2023, 10, 28, 12)
        later = d.add(Duration(days=1))
        assert later.to_plain() == PlainDateTime(2023, 10, 29, 12)
        assert later.epoch_nanoseconds - d.epoch_nanoseconds == (
            25 * NS_PER_HOUR
        )

    def test_lands_in_gap(self):
        d = ams(2023, 3, 25, 2, 30).add(Duration(days=1))
        assert d.to_plain() == PlainDateTime(2023, 3, 26, 3, 30)

    def test_lands_in_fold(self):
        d = ams(2023, 10, 28, 2, 30).add(Duration(days=1))
        assert d.to_plain() == PlainDateTime(2023, 10, 29, 2, 30)
        assert d.offset_nanoseconds() == 2 * NS_PER_HOUR

    def test_date_then_time(self):
        d = ams(2023, 3, 25, 1, 30).add(Duration(days=1, hours=1))
        # 2023-03-26 01:30 exists, one exact hour later is 03:30
        assert d.to_plain() == PlainDateTime(2023, 3, 26, 3, 30)

    def test_overflow(self):
        d = ams(2023, 1, 31, 12)
        assert d.add(Duration(months=1)).to_plain() == PlainDateTime(
            2023, 2, 28, 12
        )
        with pytest.raises(ConstructionError):
            d.add(Duration(months=1), overflow="reject")

    def test_subtract(self):
        d = ams(2023, 3, 27, 12)
        assert d.subtract(Duration(days=2)) == ams(2023, 3, 25, 12)
        assert d.subtract(Duration(hours=48)) == ams(2023, 3, 25, 11)

    def test_out_of_range(self):
        with pytest.raises(ConstructionError):
            ZonedDateTime(Instant.MAX, "UTC").add(Duration(nanoseconds=1))

    def test_operators(self):
        d = ams(2023, 6, 1, 12)
        assert d + Duration(hours=1) == ams(2023, 6, 1, 13)
        assert d - Duration(days=1) == ams(2023, 5, 31, 12)
        with pytest.raises(TypeError):
            d + 3  # type: ignore[operator]
        with pytest.raises(TypeError):
            d.add(3)  # type: ignore[arg-type]

    def test_keeps_tz_and_calendar(self):
        calendar = RecordingCalendar()
        d = ZonedDateTime(0, AMS, calendar).add(Duration(days=1))
        assert d.tz.id == AMS
        assert d.calendar is calendar


class TestDifference:

    def test_time_units(self):
        a = ams(2023, 3, 25, 12)
        b = ams(2023, 3, 27, 12)
        assert a.until(b) == Duration(hours=47)
        assert a.until(b, largest_unit="minute") == Duration(minutes=47 * 60)
        assert b.until(a) == Duration(hours=-47)

    def test_days(self):
        a = ams(2023, 3, 25, 12)
        b = ams(2023, 3, 27, 12)
        assert a.until(b, largest_unit="day") == Duration(days=2)
        assert b.until(a, largest_unit="day") == Duration(days=-2)
        assert b.since(a, largest_unit="day") == Duration(days=2)

    def test_short_day_with_remainder(self):
        a = ams(2023, 3, 25, 12)
        b = ams(2023, 3, 26, 19)
        assert a.until(b) == Duration(hours=30)
        assert a.until(b, largest_unit="day") == Duration(days=1, hours=7)

    def test_months(self):
        a = ams(2023, 1, 15, 12)
        b = ams(2023, 3, 26, 12)
        assert a.until(b, largest_unit="month") == Duration(months=2, days=11)
        assert a.until(b, largest_unit="week") == Duration(weeks=10)

    def test_years(self):
        a = ams(2022, 3, 26, 12)
        b = ams(2023, 3, 26, 12, 30)
        assert a.until(b, largest_unit="year") == Duration(
            years=1, minutes=30
        )

    @pytest.mark.parametrize("unit", ["day", "month"])
    @pytest.mark.parametrize(
        "start, minutes, expect",
        [
            # Back to the second 02:00 of the repeated hour
            (
                PlainDateTime(2023, 10, 30, 2, 30),
                -(24 * 60 + 30),
                Duration(hours=-24, minutes=-30),
            ),
            (
                PlainDateTime(2023, 10, 28, 2, 30),
                24 * 60 + 30,
                Duration(days=1, minutes=30),
            ),
            # Back to the first 02:00 of the repeated hour
            (
                PlainDateTime(2023, 10, 30, 2, 30),
                -(25 * 60 + 30),
                Duration(days=-1, minutes=-30),
            ),
            (
                PlainDateTime(2023, 3, 27, 2, 30),
                -(24 * 60 + 30),
                Duration(days=-1, hours=-1, minutes=-30),
            ),
            (
                PlainDateTime(2023, 3, 26, 1),
                24 * 60 + 30,
                Duration(days=1, hours=1, minutes=30),
            ),
        ],
    )
    def test_across_transition(self, start, minutes, expect, unit):
        a = start.assume_tz(AMS)
        b = a.add(Duration(minutes=minutes))
        assert a.until(b, largest_unit=unit) == expect
        assert a.since(b, largest_unit=unit) == -expect
        assert a.add(expect) == b

    def test_same_instant(self):
        a = ams(2023, 3, 26, 12)
        assert a.until(a, largest_unit="year") == Duration()

    def test_date_units_require_same_tz(self):
        a = ams(2023, 3, 25, 12)
        b = ams(2023, 3, 27, 12).to_tz("UTC")
        assert a.until(b) == Duration(hours=47)
        with pytest.raises(ValueError, match="same timezone"):
            a.until(b, largest_unit="day")

    def test_wrong_type(self):
        with pytest.raises(TypeError):
            ams(2023, 1, 1).until(Instant(0))  # type: ignore[arg-type]

    def test_invalid_unit(self):
        a = ams(2023, 1, 1)
        with pytest.raises(ValueError, match="unit"):
            a.until(a, largest_unit="decade")  # type: ignore[arg-type]


class TestDayLength:

    @pytest.mark.parametrize(
        "date, hours",
        [
            (PlainDateTime(2023, 3, 26, 12), 23),
            (PlainDateTime(2023, 10, 29, 23, 59), 25),
            (PlainDateTime(2023, 7, 1), 24),
        ],
    )
    def test_day_length(self, date, hours):
        assert date.assume_tz(AMS).day_length() == Duration(hours=hours)

    def test_start_of_day(self):
        assert ams(2023, 3, 26, 15).start_of_day().to_plain() == (
            PlainDateTime(2023, 3, 26)
        )

    def test_start_of_day_after_skipped_midnight(self):
        tz = OneShiftTimeZone(Instant(0), NS_PER_HOUR)
        d = ZonedDateTime(2 * NS_PER_HOUR, tz)
        assert d.start_of_day().to_instant() == Instant(0)
        assert d.start_of_day().to_plain() == PlainDateTime(1970, 1, 1, 1)


class TestComparison:

    def test_eq_compares_exact_time(self):
        a = ams(2023, 6, 1, 12)
        same_moment = a.to_tz("UTC")
        assert a == same_moment
        assert hash(a) == hash(same_moment)
        assert not a.exact_eq(same_moment)
        assert a.exact_eq(ams(2023, 6, 1, 12))
        assert a != ams(2023, 6, 1, 13)
        assert a == AlwaysEqual()
        assert a != NeverEqual()

    def test_exact_eq_calendar(self):
        a = ZonedDateTime(0, "UTC")
        b = ZonedDateTime(0, "UTC", RecordingCalendar())
        assert a == b
        assert not a.exact_eq(b)

    def test_ordering(self):
        a = ams(2023, 6, 1, 12)
        b = ams(2023, 6, 1, 12).to_tz("Asia/Tokyo").add(Duration(nanoseconds=1))
        assert a < b
        assert a <= b
        assert b > a
        assert b >= a
        with pytest.raises(TypeError):
            a < Instant(0)  # type: ignore[operator]


class TestRepr:

    def test_builtin_zone(self):
        assert repr(ZonedDateTime(0, AMS)) == (
            "ZonedDateTime(1970-01-01 01:00:00+01:00[Europe/Amsterdam])"
        )
        assert repr(ZonedDateTime(-1, "+05:30")) == (
            "ZonedDateTime(1970-01-01 05:29:59.999999999+05:30[+05:30])"
        )

    def test_custom_zone_not_queried(self):
        tz = OneShiftTimeZone(Instant(0), NS_PER_HOUR)
        assert repr(ZonedDateTime(5, tz)) == (
            "ZonedDateTime(5ns [Custom/One_Shift])"
        )
        assert tz.offset_calls == []

    def test_other_calendar(self):
        class Renamed(RecordingCalendar):
            @property
            def id(self):
                return "custom"

        assert repr(ZonedDateTime(0, "UTC", Renamed())) == (
            "ZonedDateTime(1970-01-01 00:00:00+00:00[UTC][u-ca=custom])"
        )


def test_copy():
    d = ams(2023, 6, 1)
    assert copy(d) is d
    assert deepcopy(d) is d


@given(
    integers(-2 * NS_PER_DAY, 2 * NS_PER_DAY),
    integers(-3 * NS_PER_DAY, 3 * NS_PER_DAY),
    sampled_from(["day", "month"]),
)
def test_difference_around_fold(x, y, unit):
    a = ZonedDateTime(AMS_FOLD_NS + x, AMS)
    b = ZonedDateTime(AMS_FOLD_NS + y, AMS)
    d = a.until(b, largest_unit=unit)
    assert d.sign == (y > x) - (y < x)
    assert a.add(d) == b


@given(
    integers(-(10**18), 10**18),
    integers(-(10**18), 10**18),
    sampled_from(["UTC", "+05:30", "-09:45"]),
    sampled_from(["year", "month", "week", "day", "hour"]),
)
def test_difference_adds_back_without_transitions(x, y, tz, unit):
    a = ZonedDateTime(x, tz)
    b = ZonedDateTime(y, tz)
    assert a.add(a.until(b, largest_unit=unit)) == b
