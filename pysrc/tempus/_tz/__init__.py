from .common import Ambiguity, Fold, Gap, Unambiguous
from .store import TimeZoneNotFoundError, get_rules
from .tzif import ZoneRules

__all__ = [
    "Ambiguity",
    "Fold",
    "Gap",
    "Unambiguous",
    "TimeZoneNotFoundError",
    "ZoneRules",
    "get_rules",
]
