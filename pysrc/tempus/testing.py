"""Calendars and timezones for verifying how the arithmetic uses them.

They wrap a real implementation, record every call, and can be rigged to
return chosen values. This makes it possible to check exactly how often
a calendar is consulted, or how the arithmetic reacts to a timezone that
contradicts itself.

Example
-------
>>> tz = SubstitutingTimeZone(
...     "UTC", offsets=[SUBSTITUTE_SKIP, 3_600_000_000_000]
... )
>>> tz.get_offset_nanoseconds_for(Instant(0))
0
>>> tz.get_offset_nanoseconds_for(Instant(0))
3600000000000
>>> tz.get_offset_nanoseconds_for(Instant(0))
0
>>> len(tz.offset_calls)
3
"""

from __future__ import annotations

from typing import Callable, Generic, Iterable, Sequence, TypeVar

from ._pytempus import (
    ArithmeticOptions,
    Calendar,
    Duration,
    Instant,
    PlainDate,
    PlainDateTime,
    TimeZone,
    get_calendar,
    get_time_zone,
)

__all__ = [
    "SUBSTITUTE_SKIP",
    "SubstitutingTimeZone",
    "RecordingCalendar",
    "OneShiftTimeZone",
]

_A = TypeVar("_A")
_R = TypeVar("_R")


class _SubstituteSkip:
    __slots__ = ()

    def __repr__(self) -> str:
        return "SUBSTITUTE_SKIP"


SUBSTITUTE_SKIP = _SubstituteSkip()
"""Placeholder in a substitution list: the call goes to the wrapped object"""


class _Substitutions(Generic[_A, _R]):
    """Hands out the n-th queued value on the n-th call"""

    def __init__(self, values: Iterable[_R | _SubstituteSkip]) -> None:
        self._values = list(values)
        self.calls: list[_A] = []

    def __call__(self, fallback: Callable[[_A], _R], arg: _A) -> _R:
        index = len(self.calls)
        self.calls.append(arg)
        if index < len(self._values):
            value = self._values[index]
            if not isinstance(value, _SubstituteSkip):
                return value
        return fallback(arg)


class SubstitutingTimeZone(TimeZone):
    """Wraps a timezone, substituting the results of its first calls.

    The n-th call to :meth:`get_possible_instants_for` returns the n-th
    entry of ``possible_instants``, and likewise for ``offsets``.
    Once a list is used up, or at a :data:`SUBSTITUTE_SKIP` entry,
    the call passes through to ``inner``.
    The id is that of ``inner``.
    """

    def __init__(
        self,
        inner: str | TimeZone,
        *,
        possible_instants: Iterable[
            Sequence[Instant] | _SubstituteSkip
        ] = (),
        offsets: Iterable[int | _SubstituteSkip] = (),
    ) -> None:
        self._inner = get_time_zone(inner)
        self._possible_instants: _Substitutions[
            PlainDateTime, Sequence[Instant]
        ] = _Substitutions(possible_instants)
        self._offsets: _Substitutions[Instant, int] = _Substitutions(offsets)

    @property
    def id(self) -> str:
        return self._inner.id

    @property
    def possible_instants_calls(self) -> list[PlainDateTime]:
        return list(self._possible_instants.calls)

    @property
    def offset_calls(self) -> list[Instant]:
        return list(self._offsets.calls)

    def get_possible_instants_for(self, dt: PlainDateTime) -> Sequence[Instant]:
        return self._possible_instants(
            self._inner.get_possible_instants_for, dt
        )

    def get_offset_nanoseconds_for(self, instant: Instant) -> int:
        return self._offsets(self._inner.get_offset_nanoseconds_for, instant)


class RecordingCalendar(Calendar):
    """Wraps a calendar, recording the arguments of each call"""

    def __init__(self, inner: str | Calendar = "iso8601") -> None:
        self._inner = get_calendar(inner)
        self.date_add_calls: list[
            tuple[PlainDate, Duration, ArithmeticOptions]
        ] = []
        self.date_until_calls: list[tuple[PlainDate, PlainDate, str]] = []

    @property
    def id(self) -> str:
        return self._inner.id

    def date_add(
        self, date: PlainDate, duration: Duration, options: ArithmeticOptions
    ) -> PlainDate:
        self.date_add_calls.append((date, duration, options))
        return self._inner.date_add(date, duration, options)

    def date_until(self, one: PlainDate, two: PlainDate, largest_unit):
        self.date_until_calls.append((one, two, largest_unit))
        return self._inner.date_until(one, two, largest_unit)


class OneShiftTimeZone(TimeZone):
    """A timezone with offset zero until ``shift_instant``,
    and ``shift_ns`` from then on.

    A positive shift creates a gap in wall-clock time,
    a negative one a fold. All calls are recorded.

    Example
    -------
    >>> tz = OneShiftTimeZone(Instant(0), 3_600_000_000_000)
    >>> tz.get_possible_instants_for(PlainDateTime(1970, 1, 1, 0, 30))
    []
    """

    def __init__(self, shift_instant: Instant, shift_ns: int) -> None:
        self._shift_at = shift_instant.epoch_nanoseconds
        self._shift_ns = shift_ns
        self.possible_instants_calls: list[PlainDateTime] = []
        self.offset_calls: list[Instant] = []

    @property
    def id(self) -> str:
        return "Custom/One_Shift"

    def get_offset_nanoseconds_for(self, instant: Instant) -> int:
        self.offset_calls.append(instant)
        if instant.epoch_nanoseconds < self._shift_at:
            return 0
        return self._shift_ns

    def get_possible_instants_for(self, dt: PlainDateTime) -> list[Instant]:
        self.possible_instants_calls.append(dt)
        local = dt._utc_epoch_ns()
        shift_at, shift = self._shift_at, self._shift_ns
        # wall-clock times shown before and after the shift
        before = [Instant(local)] if local < shift_at else []
        after = [Instant(local - shift)] if local >= shift_at + shift else []
        return before + after
