"""Zone rules: transition tables parsed from TZif files,
optionally followed by a POSIX TZ rule."""

from __future__ import annotations

import struct
from io import BytesIO
from typing import IO, Optional, Sequence, final

from .common import Ambiguity, Fold, Gap, Unambiguous
from .posix import TzStr

EpochSecs = int
Offset = int
OffsetDelta = int

# The instant range in seconds, with one day of slack for local times
EPOCH_SECS_MAX = 8_640_000_000_000 + 86_400
EPOCH_SECS_MIN = -EPOCH_SECS_MAX


@final
class ZoneRules:
    """Everything needed to map between UTC and local time in one zone.

    Also represents a bare POSIX TZ string (empty transition tables)
    or a zone loaded from a file without a known ID (``key`` is ``None``).
    """

    __slots__ = (
        "__weakref__",
        "key",
        "_offsets_by_utc",
        "_offsets_by_local",
        "_end",
    )

    key: Optional[str]

    # UTC -> local is simple.
    # Read Sequence[(X, Y)] as "FROM time X onwards (epoch seconds) the offset is Y".
    _offsets_by_utc: tuple[tuple[EpochSecs, Offset], ...]

    # Local -> UTC may be ambiguous, so requires extra information.
    # Read Sequence[(X, (Y, Z))] as "UNTIL local time X (epoch seconds)
    # the offset is Y. At this point it shifts by Z."
    _offsets_by_local: tuple[tuple[EpochSecs, tuple[Offset, OffsetDelta]], ...]

    # Invariant: without a POSIX rule, both tables have at least one entry
    _end: Optional[TzStr]

    def __init__(
        self,
        key: Optional[str],
        _offsets_by_utc: tuple[tuple[EpochSecs, Offset], ...],
        _offsets_by_local: tuple[
            tuple[EpochSecs, tuple[Offset, OffsetDelta]], ...
        ],
        _end: Optional[TzStr] = None,
    ):
        self.key = key
        self._offsets_by_utc = _offsets_by_utc
        self._offsets_by_local = _offsets_by_local
        self._end = _end

    def offset_for_instant(self, t: EpochSecs) -> Offset:
        """The UTC offset at the given exact time"""
        idx = bisect(self._offsets_by_utc, t)
        if idx is not None:
            return self._offsets_by_utc[max(0, idx - 1)][1]
        elif self._end is not None:
            return self._end.offset_for_instant(t)
        # No rule for later times: the last offset is the best guess
        return self._offsets_by_utc[-1][1]

    def ambiguity_for_local(self, t: EpochSecs) -> Ambiguity:
        """The UTC offset(s) at the given local time (in epoch seconds)"""
        idx = bisect(self._offsets_by_local, t)
        if idx is not None:
            next_transition, (offset, change) = self._offsets_by_local[idx]
            if t < next_transition - abs(change):
                return Unambiguous(offset)
            elif change < 0:
                return Fold(offset, offset + change)
            return Gap(offset + change, offset)
        elif self._end is not None:
            return self._end.ambiguity_for_local(t)
        return Unambiguous(self._offsets_by_utc[-1][1])

    # NOTE: this needs to be fast, since it's used to check whether
    # two datetimes share a zone.
    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        elif type(other) is ZoneRules:
            return (
                self.key == other.key
                and self._offsets_by_utc == other._offsets_by_utc
                and self._offsets_by_local == other._offsets_by_local
                and self._end == other._end
            )
        return NotImplemented  # pragma: no cover

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"ZoneRules({self.key!r})"

    @classmethod
    def parse_posix(cls, s: str) -> ZoneRules:
        return cls(
            key=None,
            _offsets_by_utc=(),
            _offsets_by_local=(),
            _end=TzStr.parse(s),
        )

    @classmethod
    def parse_tzif(cls, data: bytes, key: Optional[str] = None) -> ZoneRules:
        read = BytesIO(data)
        header = _parse_header(read)
        return _parse_content(header, read, key)


def bisect(
    arr: Sequence[tuple[EpochSecs, object]], x: EpochSecs
) -> Optional[int]:
    """The index of the first entry starting after ``x``.
    None if ``x`` is at or after the last entry.
    """
    left, right = 0, len(arr)
    while left < right:
        mid = (left + right) // 2
        if x >= arr[mid][0]:
            left = mid + 1
        else:
            right = mid
    return left if left != len(arr) else None


def clamp_epoch_secs(value: int) -> EpochSecs:
    return max(EPOCH_SECS_MIN, min(EPOCH_SECS_MAX, value))


class Header:
    __slots__ = (
        "version",
        "isutcnt",
        "isstdcnt",
        "leapcnt",
        "timecnt",
        "typecnt",
        "charcnt",
    )

    def __init__(
        self,
        version: int,
        isutcnt: int,
        isstdcnt: int,
        leapcnt: int,
        timecnt: int,
        typecnt: int,
        charcnt: int,
    ):
        self.version = version
        self.isutcnt = isutcnt
        self.isstdcnt = isstdcnt
        self.leapcnt = leapcnt
        self.timecnt = timecnt
        self.typecnt = typecnt
        self.charcnt = charcnt

    def v1_data_size(self) -> int:
        return (
            self.timecnt * 5
            + self.typecnt * 6
            + self.charcnt
            + self.leapcnt * 8
            + self.isstdcnt
            + self.isutcnt
        )


def _parse_header(data: IO[bytes]) -> Header:
    if data.read(4) != b"TZif":
        raise ValueError("Invalid header value")

    version_byte = data.read(1)
    if version_byte == b"\x00":
        version = 1
    elif version_byte.isdigit():
        version = int(version_byte)
    else:
        raise ValueError("Invalid header value")  # pragma: no cover

    data.read(15)  # reserved
    return Header(version, *struct.unpack(">6i", data.read(24)))


def _parse_content(
    header: Header, data: IO[bytes], key: Optional[str]
) -> ZoneRules:
    if header.version >= 2:
        # Version 2+ repeats the data with 64-bit times. Skip the 32-bit part.
        data.read(header.v1_data_size())
        header = _parse_header(data)
        transition_times = [
            clamp_epoch_secs(t)
            for t in struct.unpack(
                f">{header.timecnt}q", data.read(8 * header.timecnt)
            )
        ]
    else:
        transition_times = list(
            struct.unpack(f">{header.timecnt}i", data.read(4 * header.timecnt))
        )

    offset_indices = list(data.read(header.timecnt))
    offsets = [
        utoff
        for utoff, *_ in struct.iter_unpack(
            ">ixx", data.read(6 * header.typecnt)
        )
    ]
    data.read(header.charcnt)  # abbreviations aren't used

    offsets_by_utc = [
        (EPOCH_SECS_MIN, offsets[0]),
        *(
            (epoch, offsets[idx])
            for idx, epoch in zip(offset_indices, transition_times)
        ),
    ]

    end = None
    if header.version >= 2:
        # Skip leap seconds and indicators, plus the newline before the footer
        data.read(header.isutcnt + header.isstdcnt + header.leapcnt * 12 + 1)
        tz_string, *_ = data.read().split(b"\n", 1)
        if tz_string:  # pragma: no branch
            end = TzStr.parse(tz_string.decode("ascii"))

    if len(offsets_by_utc) == 1 and end is not None:
        # Only the initial sentinel: the POSIX rule says it all
        offsets_by_utc = []

    return ZoneRules(
        key=key,
        _offsets_by_utc=tuple(offsets_by_utc),
        _offsets_by_local=tuple(_local_transitions(offsets_by_utc)),
        _end=end,
    )


def _local_transitions(
    transitions: Sequence[tuple[EpochSecs, Offset]],
) -> list[tuple[EpochSecs, tuple[Offset, OffsetDelta]]]:
    result: list[tuple[EpochSecs, tuple[Offset, OffsetDelta]]] = []
    if not transitions:
        return result

    (_, offset_prev), *remaining = transitions
    for epoch, offset in remaining:
        # NOTE: we don't check for "impossible" gaps or folds
        local_time = clamp_epoch_secs(epoch + max(offset_prev, offset))
        result.append((local_time, (offset_prev, offset - offset_prev)))
        offset_prev = offset

    return result
