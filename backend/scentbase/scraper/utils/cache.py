import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from scentbase.schemas.scraper import CacheStats


@dataclass
class _Entry:
    value: Any
    expires_at: float


class RecordCache:
    """In-process key/value cache with a time-to-live per entry.

    Used to skip re-scraping a URL that was scraped recently. Nothing is
    persisted; a restart starts cold.
    """

    def __init__(self, default_ttl: float = 3600, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            default_ttl: Seconds an entry lives when ``set`` gets no ttl.
            clock: Monotonic time source, replaceable in tests.
        """
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value, or None if missing or expired.

        Counts a hit or a miss. Expired entries are dropped on read.
        """
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            entry = None

        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store ``value`` under ``key``, replacing any previous entry.

        Args:
            key: Cache key (the source URL for scraped records).
            value: Object to cache. It is stored as-is, not copied.
            ttl: Lifetime in seconds; defaults to ``default_ttl``.
        """
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + lifetime)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset the hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        self._evict_expired()
        return CacheStats(hits=self._hits, misses=self._misses, keys=len(self._entries))

    def _evict_expired(self) -> Tuple[str, ...]:
        now = self._clock()
        expired = tuple(k for k, e in self._entries.items() if e.expires_at <= now)
        for key in expired:
            del self._entries[key]
        return expired
