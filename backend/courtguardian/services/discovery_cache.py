"""
Discovery result cache.

Caches place-search results by rounded query location, radius and sport so
that repeated discovery runs over the same area (scheduled sweeps, UI jitter
on manual searches) do not hit the rate-limited place-search provider again.

The cache is not a source of truth: clearing it only costs extra provider
calls, never correctness.
"""

import threading
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from courtguardian.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    candidates: list
    stats: dict = field(default_factory=dict)
    cached_at: float = 0.0


def _make_key(lat: float, lng: float, radius: int, sport: str, precision: int) -> str:
    """
    Create the cache key.

    Precision 3 rounds to 0.001 degrees (~110m cells), so near-identical
    queries collide on purpose.
    """
    grid_lat = round(lat, precision)
    grid_lng = round(lng, precision)
    return f"{grid_lat}_{grid_lng}_{int(radius)}_{sport.lower()}"


class DiscoveryCache:
    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        precision: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.DISCOVERY_CACHE_TTL_HOURS * 3600
        self.precision = precision if precision is not None else settings.DISCOVERY_CACHE_PRECISION
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def key_for(self, lat: float, lng: float, radius: int, sport: str) -> str:
        return _make_key(lat, lng, radius, sport, self.precision)

    def get(self, lat: float, lng: float, radius: int, sport: str) -> Optional[CacheEntry]:
        """Return a fresh entry, or None. Expired entries are evicted here."""
        key = self.key_for(lat, lng, radius, sport)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Discovery cache miss for {key}")
                return None
            if self._clock() - entry.cached_at >= self.ttl_seconds:
                del self._entries[key]
                logger.debug(f"Discovery cache entry expired for {key}")
                return None
        logger.debug(f"Discovery cache hit for {key}")
        return entry

    def put(self, lat: float, lng: float, radius: int, sport: str, candidates: list, stats: Optional[dict] = None) -> CacheEntry:
        key = self.key_for(lat, lng, radius, sport)
        entry = CacheEntry(candidates=list(candidates), stats=dict(stats or {}), cached_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cached {len(candidates)} discovery candidates for {key}")
        return entry

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries = {}
        logger.info(f"Discovery cache cleared ({count} entries)")
        return count

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            total = len(self._entries)
            valid = sum(
                1 for entry in self._entries.values()
                if now - entry.cached_at < self.ttl_seconds
            )
        return {
            "total_entries": total,
            "valid_entries": valid,
            "ttl_seconds": self.ttl_seconds,
            "precision": self.precision,
        }
