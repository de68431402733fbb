"""Outcomes of mapping a local (wall-clock) time to UTC offsets.

All offsets are in whole seconds, as stored in TZif files.
"""

from __future__ import annotations

from typing import Union


class Unambiguous:
    __slots__ = ("offset",)

    offset: int

    def __init__(self, offset: int):
        self.offset = offset

    def offsets(self) -> tuple[int, ...]:
        return (self.offset,)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Unambiguous):
            return self.offset == other.offset
        return NotImplemented  # pragma: no cover

    def __repr__(self) -> str:
        return f"Unambiguous({self.offset})"


class _Transition:
    """Two offsets competing for a local time. Applied to that local time,
    ``before`` gives the earlier instant and ``after`` the later one."""

    __slots__ = ("before", "after")

    before: int
    after: int

    def __init__(self, before: int, after: int):
        self.before = before
        self.after = after

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _Transition) and type(other) is type(self):
            return self.before == other.before and self.after == other.after
        return NotImplemented  # pragma: no cover

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.before}, {self.after})"


class Gap(_Transition):
    """The local time doesn't exist: clocks were set forward"""

    __slots__ = ()

    def offsets(self) -> tuple[int, ...]:
        return ()


class Fold(_Transition):
    """The local time occurs twice: clocks were set back"""

    __slots__ = ()

    def offsets(self) -> tuple[int, ...]:
        # The larger offset is in effect first, so it yields the earlier instant
        return (self.before, self.after)


Ambiguity = Union[Unambiguous, Gap, Fold]
