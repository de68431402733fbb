import pickle

import pytest

from tempus import (
    ConstructionError,
    Duration,
    PlainDate,
    PlainDateTime,
    PlainTime,
    RepeatedTime,
    SkippedTime,
    ZonedDateTime,
)
from tempus.testing import RecordingCalendar

from .common import AlwaysEqual, NeverEqual


class TestPlainDate:

    def test_fields(self):
        d = PlainDate(2021, 1, 2)
        assert (d.year, d.month, d.day) == (2021, 1, 2)

    @pytest.mark.parametrize(
        "ymd",
        [
            (2021, 0, 1),
            (2021, 13, 1),
            (2021, 2, 29),
            (2021, 4, 31),
            (2021, 1, 0),
        ],
    )
    def test_invalid(self, ymd):
        with pytest.raises(ConstructionError):
            PlainDate(*ymd)

    def test_leap_day(self):
        assert PlainDate(2024, 2, 29).day == 29

    def test_out_of_range(self):
        PlainDate(-271821, 4, 20)
        PlainDate(275760, 9, 13)
        with pytest.raises(ConstructionError):
            PlainDate(275760, 9, 15)
        with pytest.raises(ConstructionError):
            PlainDate(-271821, 4, 18)

    def test_not_an_int(self):
        with pytest.raises(TypeError, match="month"):
            PlainDate(2021, 1.0, 1)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "d, expected",
        [
            (PlainDate(2021, 1, 2), "2021-01-02"),
            (PlainDate(33, 12, 31), "0033-12-31"),
            (PlainDate(-5, 3, 1), "-000005-03-01"),
            (PlainDate(12345, 3, 1), "+012345-03-01"),
        ],
    )
    def test_str(self, d, expected):
        assert str(d) == expected
        assert repr(d) == f"PlainDate({expected})"

    def test_add(self):
        d = PlainDate(2023, 1, 31)
        assert d.add(months=1) == PlainDate(2023, 2, 28)
        assert d.add(years=1, months=1) == PlainDate(2024, 2, 29)
        assert d.add(weeks=-1, days=-3) == PlainDate(2023, 1, 21)
        with pytest.raises(ConstructionError, match="2023-02"):
            d.add(months=1, overflow="reject")

    def test_days_until(self):
        assert PlainDate(2023, 3, 1).days_until(PlainDate(2024, 3, 1)) == 366
        assert PlainDate(2024, 3, 1).days_until(PlainDate(2023, 3, 1)) == -366

    @pytest.mark.parametrize(
        "unit, expected",
        [
            ("day", Duration(days=64)),
            ("weeks", Duration(weeks=9, days=1)),
            ("month", Duration(months=2, days=5)),
            ("year", Duration(months=2, days=5)),
        ],
    )
    def test_until(self, unit, expected):
        a = PlainDate(2023, 1, 15)
        b = PlainDate(2023, 3, 20)
        assert a.until(b, largest_unit=unit) == expected
        assert a.until(b, largest_unit=unit) == -a.since(b, largest_unit=unit)
        assert b.since(a, largest_unit=unit) == expected

    def test_until_default_is_days(self):
        assert PlainDate(2024, 3, 1).until(PlainDate(2023, 3, 1)) == Duration(
            days=-366
        )

    def test_until_calendar(self):
        calendar = RecordingCalendar()
        a = PlainDate(2023, 1, 15)
        b = PlainDate(2023, 3, 20)
        a.until(b, largest_unit="day", calendar=calendar)
        assert calendar.date_until_calls == []
        a.until(b, largest_unit="month", calendar=calendar)
        assert calendar.date_until_calls == [(a, b, "month")]

    def test_until_invalid(self):
        d = PlainDate(2023, 1, 15)
        with pytest.raises(ValueError, match="largest_unit"):
            d.until(d, largest_unit="hour")  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            d.until(PlainDateTime(2023, 1, 1))  # type: ignore[arg-type]

    def test_comparison(self):
        a = PlainDate(2020, 12, 31)
        b = PlainDate(2021, 1, 1)
        assert a < b <= b
        assert b > a >= a
        assert a == PlainDate(2020, 12, 31)
        assert hash(a) == hash(PlainDate(2020, 12, 31))
        assert a != b
        assert a == AlwaysEqual()
        assert a != NeverEqual()

    def test_at(self):
        assert PlainDate(2021, 1, 2).at(PlainTime(3, 4)) == PlainDateTime(
            2021, 1, 2, 3, 4
        )

    def test_pickle(self):
        d = PlainDate(2021, 1, 2)
        assert pickle.loads(pickle.dumps(d)) == d


class TestPlainTime:

    def test_fields(self):
        t = PlainTime(1, 2, 3, nanosecond=4)
        assert (t.hour, t.minute, t.second, t.nanosecond) == (1, 2, 3, 4)

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(hour=24),
            dict(minute=60),
            dict(second=-1),
            dict(nanosecond=1_000_000_000),
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ConstructionError):
            PlainTime(**kwargs)

    @pytest.mark.parametrize(
        "t, expected",
        [
            (PlainTime(), "00:00:00"),
            (PlainTime(23, 59, 59), "23:59:59"),
            (PlainTime(12, nanosecond=500_000_000), "12:00:00.5"),
            (PlainTime(12, nanosecond=1), "12:00:00.000000001"),
        ],
    )
    def test_str(self, t, expected):
        assert str(t) == expected

    def test_comparison(self):
        assert PlainTime(1) < PlainTime(1, nanosecond=1)
        assert PlainTime.MIDNIGHT == PlainTime()
        assert PlainTime(2) >= PlainTime(2)

    def test_pickle(self):
        t = PlainTime(1, 2, 3, nanosecond=4)
        assert pickle.loads(pickle.dumps(t)) == t


class TestPlainDateTime:

    def test_fields(self):
        dt = PlainDateTime(2023, 3, 26, 2, 30, nanosecond=9)
        assert dt.date() == PlainDate(2023, 3, 26)
        assert dt.time() == PlainTime(2, 30, nanosecond=9)
        assert (dt.year, dt.month, dt.day) == (2023, 3, 26)
        assert (dt.hour, dt.minute, dt.second, dt.nanosecond) == (2, 30, 0, 9)

    def test_invalid(self):
        with pytest.raises(ConstructionError):
            PlainDateTime(2023, 2, 29)
        with pytest.raises(ConstructionError):
            PlainDateTime(2023, 2, 28, 24)

    def test_str(self):
        dt = PlainDateTime(2023, 3, 26, 2, 30)
        assert str(dt) == "2023-03-26 02:30:00"
        assert repr(dt) == "PlainDateTime(2023-03-26 02:30:00)"

    def test_comparison(self):
        a = PlainDateTime(2023, 3, 26, 23, 59)
        b = PlainDateTime(2023, 3, 27)
        assert a < b
        assert b > a
        assert a <= a
        assert a == PlainDateTime(2023, 3, 26, 23, 59)
        assert hash(a) == hash(PlainDateTime(2023, 3, 26, 23, 59))

    def test_pickle(self):
        dt = PlainDateTime(1900, 1, 1, 1, nanosecond=1)
        assert pickle.loads(pickle.dumps(dt)) == dt


class TestAssumeTz:

    def test_unambiguous(self):
        d = PlainDateTime(2023, 7, 1, 12).assume_tz("Europe/Amsterdam")
        assert isinstance(d, ZonedDateTime)
        assert d.offset_nanoseconds() == 2 * 3_600_000_000_000
        assert d.to_plain() == PlainDateTime(2023, 7, 1, 12)

    @pytest.mark.parametrize(
        "disambiguate, expected",
        [
            ("compatible", PlainDateTime(2023, 3, 26, 3, 30)),
            ("later", PlainDateTime(2023, 3, 26, 3, 30)),
            ("earlier", PlainDateTime(2023, 3, 26, 1, 30)),
        ],
    )
    def test_skipped(self, disambiguate, expected):
        d = PlainDateTime(2023, 3, 26, 2, 30).assume_tz(
            "Europe/Amsterdam", disambiguate=disambiguate
        )
        assert d.to_plain() == expected

    @pytest.mark.parametrize(
        "disambiguate, offset_hours",
        [("compatible", 2), ("earlier", 2), ("later", 1)],
    )
    def test_repeated(self, disambiguate, offset_hours):
        d = PlainDateTime(2023, 10, 29, 2, 30).assume_tz(
            "Europe/Amsterdam", disambiguate=disambiguate
        )
        assert d.to_plain() == PlainDateTime(2023, 10, 29, 2, 30)
        assert d.offset_nanoseconds() == offset_hours * 3_600_000_000_000

    def test_reject(self):
        with pytest.raises(SkippedTime, match="Europe/Amsterdam"):
            PlainDateTime(2023, 3, 26, 2, 30).assume_tz(
                "Europe/Amsterdam", disambiguate="reject"
            )
        with pytest.raises(RepeatedTime, match="2023-10-29 02:30:00"):
            PlainDateTime(2023, 10, 29, 2, 30).assume_tz(
                "Europe/Amsterdam", disambiguate="reject"
            )

    def test_invalid_disambiguation(self):
        with pytest.raises(ValueError, match="disambiguation"):
            PlainDateTime(2023, 1, 1).assume_tz(
                "UTC", disambiguate="raise"  # type: ignore[arg-type]
            )
