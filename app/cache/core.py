"""
Core cache data structures.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class DataCategory(Enum):
    """Categories of cached data with different lifetimes."""
    CORNERS = "corners"     # 12 hours, derived team/season aggregate
    SEASON = "season"       # 24 hours, season dates rarely change
    DEFAULT = "default"     # 6 hours fallback


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached value with an absolute expiry.

    Entries are replaced, never mutated. A read at or after ``expires_at``
    must be treated as a miss even if the entry is still stored.
    """
    key: str
    value: Any
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def remaining_seconds(self, now: datetime) -> float:
        return max((self.expires_at - now).total_seconds(), 0.0)
