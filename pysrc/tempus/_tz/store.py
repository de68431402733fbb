"""Timezone database access and caching."""

from __future__ import annotations

import logging
import os.path
from collections import OrderedDict
from threading import Lock
from typing import NewType
from weakref import WeakValueDictionary

from .._common import TempusError
from .tzif import ZoneRules

__all__ = [
    "TimeZoneNotFoundError",
    "get_rules",
    "clear_cache",
    "clear_cache_by_keys",
    "set_tzpath",
]

_log = logging.getLogger(__name__)

_TZPATH: tuple[str, ...] = ()

# Cache of loaded zones. The design is based off that of `zoneinfo`:
# a weak lookup so live zones are shared, plus a small LRU so
# recently used zones survive without outside references.
_TZCACHE_LRU_SIZE = 8
_tzcache_lru: OrderedDict[str, ZoneRules] = OrderedDict()
_tzcache_lookup: WeakValueDictionary[str, ZoneRules] = WeakValueDictionary()
_tzcache_lru_lock = Lock()


def set_tzpath(to: tuple[str, ...]) -> None:
    global _TZPATH
    _TZPATH = to


def clear_cache() -> None:
    _log.debug("Clearing timezone cache")
    _tzcache_lookup.clear()
    with _tzcache_lru_lock:
        _tzcache_lru.clear()


def clear_cache_by_keys(keys: tuple[str, ...]) -> None:
    _log.debug("Clearing timezone cache for %s", keys)
    with _tzcache_lru_lock:
        for k in keys:
            _tzcache_lookup.pop(k, None)
            _tzcache_lru.pop(k, None)


def get_rules(key: str) -> ZoneRules:
    instance = _tzcache_lookup.get(key)
    if instance is None:
        # Two threads may load the same zone at once. That's fine:
        # zones are immutable, and the last one to write wins.
        instance = _tzcache_lookup.setdefault(
            key, _load_tz(validate_tzid(key))
        )

    with _tzcache_lru_lock:
        _tzcache_lru[key] = _tzcache_lru.pop(key, instance)
        if len(_tzcache_lru) > _TZCACHE_LRU_SIZE:
            _tzcache_lru.popitem(last=False)

    return instance


# A TZ key that has been confirmed not to be a path traversal
# or contain other "bad" characters.
SafeTzId = NewType("SafeTzId", str)


def validate_tzid(key: str) -> SafeTzId:
    if (
        key.isascii()
        # There's no standard limit on IANA tz IDs, but we have to draw
        # the line somewhere to prevent abuse.
        and 0 < len(key) < 100
        and all(b.isalnum() or b in "-_+/." for b in key)
        and ".." not in key
        and "//" not in key
        and "/./" not in key
        and key[0] not in ".-+/"
        and key[-1] != "/"
    ):
        return SafeTzId(key)
    raise TimeZoneNotFoundError.for_key(key)


def _try_tzif_from_path(key: SafeTzId) -> bytes | None:
    for search_path in _TZPATH:
        target = os.path.join(search_path, key)
        if os.path.isfile(target):
            _log.debug("Loading timezone %r from %s", key, target)
            with open(target, "rb") as f:
                return f.read()
    return None


def _tzif_from_tzdata(key: SafeTzId) -> bytes:
    try:
        tzdata_path = __import__("tzdata.zoneinfo").zoneinfo.__path__[0]
        # We check before we read, since the resulting exceptions vary
        # on different platforms
        if os.path.isfile(
            relpath := os.path.join(tzdata_path, *key.split("/"))
        ):
            _log.debug("Loading timezone %r from tzdata", key)
            with open(relpath, "rb") as f:
                return f.read()
        raise FileNotFoundError(relpath)
    # Several exceptions amount to "can't find the key"
    except (ImportError, FileNotFoundError, UnicodeEncodeError):
        raise TimeZoneNotFoundError.for_key(key)


def _load_tz(key: SafeTzId) -> ZoneRules:
    tzif = _try_tzif_from_path(key) or _tzif_from_tzdata(key)
    if not tzif.startswith(b"TZif"):
        # A file exists, but it isn't a TZif file.
        # Stop here instead of getting a cryptic error later.
        raise TimeZoneNotFoundError.for_key(key)
    return ZoneRules.parse_tzif(tzif, key)


class TimeZoneNotFoundError(TempusError):
    """A timezone with the given ID was not found"""

    @classmethod
    def for_key(cls, key: str) -> TimeZoneNotFoundError:
        return cls(f"No time zone found for key: {key!r}")
