import struct

import pytest

from tempus._math import epoch_days_from_ymd
from tempus._tz import get_rules
from tempus._tz.common import Fold, Gap, Unambiguous
from tempus._tz.tzif import EPOCH_SECS_MAX, ZoneRules, bisect

AMS_POSIX = "CET-1CEST,M3.5.0,M10.5.0/3"


def local_secs(y, m, d, hh=0, mm=0, ss=0) -> int:
    return epoch_days_from_ymd(y, m, d) * 86_400 + hh * 3600 + mm * 60 + ss


def make_tzif(offsets, transitions, footer=None) -> bytes:
    """Assemble a minimal TZif file. A footer makes it version 2"""
    version = b"\x00" if footer is None else b"2"
    abbrs = b"X\x00"

    def block(time_format, times):
        header = (
            b"TZif"
            + version
            + bytes(15)
            + struct.pack(
                ">6i", 0, 0, 0, len(transitions), len(offsets), len(abbrs)
            )
        )
        return (
            header
            + struct.pack(f">{len(times)}{time_format}", *times)
            + bytes(idx for _, idx in transitions)
            + b"".join(struct.pack(">ibB", off, 0, 0) for off in offsets)
            + abbrs
        )

    times = [t for t, _ in transitions]
    data = block("i", [max(-(2**31), min(2**31 - 1, t)) for t in times])
    if footer is not None:
        data += block("q", times) + b"\n" + footer.encode() + b"\n"
    return data


class TestHeader:

    @pytest.mark.parametrize(
        "data", [b"", b"TZi", b"tzif2", b"this-is-not-tzif-data"]
    )
    def test_invalid(self, data):
        with pytest.raises(ValueError, match="Invalid header value"):
            ZoneRules.parse_tzif(data)


def test_bisect():
    table = [(-50, "a"), (0, "b"), (7, "c"), (100, "d")]
    assert bisect(table, -51) == 0
    assert bisect(table, -50) == 1
    assert bisect(table, -1) == 1
    assert bisect(table, 0) == 2
    assert bisect(table, 99) == 3
    assert bisect(table, 100) is None
    assert bisect(table, 10_000) is None
    assert bisect([], 0) is None


class TestVersion1:

    def test_fixed_offset(self):
        rules = ZoneRules.parse_tzif(make_tzif([-7200], []))
        assert rules.key is None
        assert rules.offset_for_instant(-(10**10)) == -7200
        assert rules.offset_for_instant(10**10) == -7200
        assert rules.ambiguity_for_local(0) == Unambiguous(-7200)

    def test_clocks_forward(self):
        rules = ZoneRules.parse_tzif(make_tzif([0, 3600], [(1000, 1)]))
        assert rules.offset_for_instant(999) == 0
        assert rules.offset_for_instant(1000) == 3600
        assert rules.offset_for_instant(10**9) == 3600

        assert rules.ambiguity_for_local(999) == Unambiguous(0)
        assert rules.ambiguity_for_local(1000) == Gap(3600, 0)
        assert rules.ambiguity_for_local(4599) == Gap(3600, 0)
        assert rules.ambiguity_for_local(4600) == Unambiguous(3600)

    def test_clocks_back(self):
        rules = ZoneRules.parse_tzif(make_tzif([3600, 0], [(1000, 1)]))
        assert rules.offset_for_instant(999) == 3600
        assert rules.offset_for_instant(1000) == 0

        assert rules.ambiguity_for_local(999) == Unambiguous(3600)
        assert rules.ambiguity_for_local(1000) == Fold(3600, 0)
        assert rules.ambiguity_for_local(4599) == Fold(3600, 0)
        assert rules.ambiguity_for_local(4600) == Unambiguous(0)

    def test_key(self):
        rules = ZoneRules.parse_tzif(make_tzif([0], []), "Some/Zone")
        assert rules.key == "Some/Zone"
        assert repr(rules) == "ZoneRules('Some/Zone')"


class TestVersion2:

    def test_footer_governs_after_last_transition(self):
        rules = ZoneRules.parse_tzif(
            make_tzif([0, 3600], [(1000, 1)], footer=AMS_POSIX)
        )
        assert rules.offset_for_instant(999) == 0
        # winter, then summer of 2023
        assert rules.offset_for_instant(local_secs(2023, 1, 10)) == 3600
        assert rules.offset_for_instant(local_secs(2023, 7, 10)) == 7200

        assert rules.ambiguity_for_local(
            local_secs(2023, 3, 26, 2, 30)
        ) == Gap(7200, 3600)
        assert rules.ambiguity_for_local(
            local_secs(2023, 10, 29, 2, 30)
        ) == Fold(7200, 3600)

    def test_footer_only_equals_posix_string(self):
        rules = ZoneRules.parse_tzif(make_tzif([3600], [], footer=AMS_POSIX))
        assert rules == ZoneRules.parse_posix(AMS_POSIX)
        assert rules != ZoneRules.parse_posix("CET-1")

    def test_distant_transitions_are_clamped(self):
        rules = ZoneRules.parse_tzif(
            make_tzif([0, 3600], [(10**15, 1)], footer="FOO-1")
        )
        assert rules._offsets_by_utc[-1][0] == EPOCH_SECS_MAX
        assert rules.offset_for_instant(10**12) == 0


class TestSystemData:
    """Zones as shipped with tzdata, or found on the TZPATH"""

    # 2023-10-29 01:00 UTC: clocks go back from 03:00 to 02:00
    FOLD_AT = 1_698_541_200

    def test_offsets(self):
        rules = get_rules("Europe/Amsterdam")
        assert rules.key == "Europe/Amsterdam"
        assert rules.offset_for_instant(self.FOLD_AT - 1) == 7200
        assert rules.offset_for_instant(self.FOLD_AT) == 3600

    def test_ambiguity(self):
        rules = get_rules("Europe/Amsterdam")
        assert rules.ambiguity_for_local(
            local_secs(2023, 10, 29, 2, 30)
        ) == Fold(7200, 3600)
        assert rules.ambiguity_for_local(
            local_secs(2025, 3, 30, 2, 30)
        ) == Gap(7200, 3600)
        assert rules.ambiguity_for_local(
            local_secs(2025, 3, 30, 3, 0)
        ) == Unambiguous(7200)

    def test_far_future_follows_rule(self):
        rules = get_rules("Europe/Amsterdam")
        assert rules.offset_for_instant(local_secs(2140, 7, 1)) == 7200
        assert rules.offset_for_instant(local_secs(2140, 12, 1)) == 3600

    def test_cached(self):
        assert get_rules("America/New_York") is get_rules("America/New_York")
