"""
In-memory key/value cache with per-entry TTL and single-flight misses.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.settings import settings

from .coalescer import RequestCoalescer
from .core import CacheEntry

logger = logging.getLogger("cache.ttl")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TTLCache:
    """
    Minimal associative store where every entry has a lifetime.

    - Lazy expiry: an expired entry reads as a miss and is dropped on access.
      ``purge_expired`` is available for an explicit sweep.
    - ``get_or_fetch`` collapses concurrent misses on one key into a single
      call of the fetch function.
    - The clock is injectable so tests can move time forward.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        default_ttl: int = settings.default_ttl_seconds,
        coalesce_timeout: float = settings.coalesce_timeout,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self._default_ttl = default_ttl
        self._coalescer = RequestCoalescer(timeout=coalesce_timeout)
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0}

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None on a miss."""
        entry = self._live_entry(key)
        if entry is None:
            self._count("misses")
            logger.info(f"CACHE MISS: {key}")
            return None
        self._count("hits")
        logger.info(f"CACHE HIT: {key}")
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, replacing any prior entry."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        now = self.now()
        entry = CacheEntry(
            key=key,
            value=value,
            expires_at=now + timedelta(seconds=ttl),
            created_at=now,
        )
        with self._lock:
            self._entries[key] = entry
        self._count("sets")
        logger.info(f"CACHE SET: {key} (TTL: {ttl}s)")

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if a live entry was removed."""
        with self._lock:
            entry = self._entries.pop(key, None)
        deleted = entry is not None and not entry.is_expired(self.now())
        if deleted:
            self._count("deletes")
        logger.info(f"CACHE DEL: {key} (deleted: {deleted})")
        return deleted

    def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        ttl_seconds: Optional[int] = None,
    ) -> Tuple[Any, bool]:
        """
        Get a cached value or compute, store and return it.

        Concurrent callers missing on the same key share one ``fetch_fn``
        call. Errors from ``fetch_fn`` propagate and nothing is stored.

        Returns:
            (value, from_cache)
        """
        cached = self._live_entry(key)
        if cached is not None:
            self._count("hits")
            logger.info(f"CACHE HIT: {key}")
            return cached.value, True

        self._count("misses")
        logger.info(f"CACHE MISS: {key}")

        def load():
            # Another caller may have stored the key between our miss and
            # acquiring the in-flight slot.
            entry = self._live_entry(key)
            if entry is not None:
                return entry.value
            value = fetch_fn()
            self.set(key, value, ttl_seconds)
            return value

        return self._coalescer.get_or_fetch(key, load), False

    def clear(self) -> int:
        """Drop every entry. Returns the number of entries cleared."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def purge_expired(self) -> int:
        """Physically remove expired entries. Returns how many were removed."""
        now = self.now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired entries")
        return len(expired)

    def keys(self) -> List[str]:
        """Keys of all live (unexpired) entries."""
        now = self.now()
        with self._lock:
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def get_ttl(self, key: str) -> int:
        """Remaining lifetime of ``key`` in whole seconds, or -1 if absent."""
        entry = self._live_entry(key)
        if entry is None:
            return -1
        return round(entry.remaining_seconds(self.now()))

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            stats = dict(self._stats)
        total = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total * 100) if total > 0 else 0
        return {
            "entries": len(self.keys()),
            **stats,
            "hit_rate_percent": round(hit_rate, 1),
            "coalescer": self._coalescer.get_stats(),
        }

    def _count(self, stat: str) -> None:
        with self._lock:
            self._stats[stat] += 1

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self.now()):
                del self._entries[key]
                return None
            return entry


# Global cache instance
_cache: Optional[TTLCache] = None


def get_cache() -> TTLCache:
    """Get or create the process-wide TTL cache."""
    global _cache
    if _cache is None:
        _cache = TTLCache()
    return _cache
