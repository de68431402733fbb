"""Constants, the immutable base class, and the error hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING, no_type_check

NS_PER_SECOND = 1_000_000_000
NS_PER_MINUTE = 60 * NS_PER_SECOND
NS_PER_HOUR = 60 * NS_PER_MINUTE
NS_PER_DAY = 24 * NS_PER_HOUR

# The instant range is 100 million days either side of the epoch
NS_MAX_INSTANT = 100_000_000 * NS_PER_DAY
NS_MIN_INSTANT = -NS_MAX_INSTANT

# Largest magnitude of a time-only span. The whole-seconds part fits in
# a float-safe integer, so multiplying by a day count stays exact.
MAX_TIME_DURATION = 2**53 * NS_PER_SECOND - 1

# Day lengths at or above this are rejected
MAX_DAY_LENGTH = 2**53

MAX_CALENDAR_UNIT = 2**32


class _ImmutableBase:
    __slots__ = ()

    # Immutable classes don't need to be copied
    @no_type_check
    def __copy__(self):
        return self

    @no_type_check
    def __deepcopy__(self, _):
        return self


if TYPE_CHECKING:
    from typing import final
else:

    def final(cls):

        def init_subclass_not_allowed(cls, **kwargs):  # pragma: no cover
            raise TypeError("Subclassing not allowed")

        cls.__init_subclass__ = init_subclass_not_allowed
        return cls


class TempusError(ValueError):
    """Base class for all errors raised by tempus"""


class ConstructionError(TempusError):
    """A value was constructed from fields outside its valid range,
    or a duration mixes positive and negative fields."""

    @classmethod
    def _mixed_signs(cls) -> ConstructionError:
        return cls("Duration fields must not have mixed signs")

    @classmethod
    def _out_of_range(cls, what: str, value: object) -> ConstructionError:
        return cls(f"{what} out of range: {value!r}")


class ResolutionError(TempusError):
    """A wall-clock time could not be resolved to a unique instant"""


class SkippedTime(ResolutionError):
    """A wall-clock time is skipped in a timezone, e.g. because of DST"""

    @classmethod
    def _for_tz(cls, dt: object, tzid: str) -> SkippedTime:
        return cls(f"{dt} is skipped in timezone {tzid!r}")


class RepeatedTime(ResolutionError):
    """A wall-clock time is repeated in a timezone, e.g. because of DST"""

    @classmethod
    def _for_tz(cls, dt: object, tzid: str) -> RepeatedTime:
        return cls(f"{dt} is repeated in timezone {tzid!r}")


class SignInconsistencyError(TempusError):
    """Folding a time span into days produced a result whose sign
    contradicts the span itself. This points to a misbehaving timezone."""


class UnsafeDayLengthError(TempusError):
    """A timezone reported a day too long for exact arithmetic"""

    @classmethod
    def _for_length(cls, day_length: int) -> UnsafeDayLengthError:
        return cls(
            f"Day length of {day_length}ns is not below 2**53ns; "
            "the timezone reports an impossible day"
        )


class InvalidOffset(TempusError):
    """A timezone reported a UTC offset that isn't valid"""
