"""Memoization of occurrence expansion.

Expansion is a pure function of its inputs, so the cache key carries every
input that can change the result: series id, window, rule string, duration
and the sorted exception set. A changed rule, window or exception list yields
a new key, so entries never go stale; the TTL and size bound only cap memory.

Example:
    cache = ExpansionCache(max_size=256, ttl_seconds=600)
    occurrences = cache.expand(series, window_start, window_end)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Any, Optional, Union

from cachetools import TTLCache

from .config_loader import Config
from .datetime_utils import ensure_utc, window_bound
from .models import Occurrence, Series
from .occurrence_expander import expand

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str, str, float, tuple[str, ...]]


class _CountingTTLCache(TTLCache):
    """TTLCache that counts size-driven evictions."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.evictions = 0

    def popitem(self):  # type: ignore[override]
        item = super().popitem()
        self.evictions += 1
        return item


class ExpansionCache:
    """Bounded LRU/TTL cache around :func:`occurrence_expander.expand`.

    Map access is serialized by a lock; the expansion itself runs outside it,
    so two threads missing on the same key may both compute it. The last
    write wins and both results are identical.
    """

    def __init__(
        self,
        max_size: int = 512,
        ttl_seconds: float = 3600,
        timer: Optional[Callable[[], float]] = None,
    ):
        """Initialize expansion cache.

        Args:
            max_size: Maximum number of cached expansions (least recently used evicted first)
            ttl_seconds: Seconds an entry stays valid
            timer: Optional clock for TTL bookkeeping (defaults to time.monotonic)
        """
        cache_kwargs: dict[str, Any] = {"maxsize": max_size, "ttl": ttl_seconds}
        if timer is not None:
            cache_kwargs["timer"] = timer
        self._cache: _CountingTTLCache = _CountingTTLCache(**cache_kwargs)
        self._lock = threading.Lock()
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.stats = {"hits": 0, "misses": 0}

        logger.debug(
            "ExpansionCache initialized: max_size=%d, ttl_seconds=%s", max_size, ttl_seconds
        )

    @classmethod
    def from_config(cls, config: Config) -> ExpansionCache:
        """Build a cache sized from configuration."""
        return cls(max_size=config.cache_max_size, ttl_seconds=config.cache_ttl_seconds)

    @staticmethod
    def build_key(
        series: Series,
        window_start: datetime,
        window_end: datetime,
        exceptions: Iterable[datetime] = (),
    ) -> CacheKey:
        """Compose the cache key for one expansion call."""
        excluded = {ensure_utc(ex) for ex in series.exceptions}
        excluded.update(ensure_utc(ex) for ex in exceptions)
        return (
            series.id,
            window_start.isoformat(),
            window_end.isoformat(),
            series.rule,
            series.duration.total_seconds(),
            tuple(sorted(ex.isoformat() for ex in excluded)),
        )

    def expand(
        self,
        series: Series,
        window_start: Union[datetime, date],
        window_end: Union[datetime, date],
        exceptions: Optional[Iterable[datetime]] = None,
    ) -> list[Occurrence]:
        """Return occurrences for the window, computing them on a miss."""
        start_bound = window_bound(window_start)
        end_bound = window_bound(window_end, end_of_day=True)
        extra = list(exceptions or ())
        key = self.build_key(series, start_bound, end_bound, extra)

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self.stats["hits"] += 1
            else:
                self.stats["misses"] += 1

        if cached is not None:
            logger.debug("Expansion cache hit for series %s", series.id)
            return list(cached)

        logger.debug("Expansion cache miss for series %s", series.id)
        occurrences = expand(series, start_bound, end_bound, extra)

        with self._lock:
            self._cache[key] = tuple(occurrences)
        return occurrences

    def clear(self) -> None:
        """Drop every cached expansion."""
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.info("Cleared expansion cache (%d entries)", size)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate (0-100), evictions, current_size,
            max_size and ttl_seconds
        """
        with self._lock:
            self._cache.expire()
            hits = self.stats["hits"]
            misses = self.stats["misses"]
            total_requests = hits + misses
            hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "hits": hits,
                "misses": misses,
                "hit_rate": round(hit_rate, 2),
                "evictions": self._cache.evictions,
                "current_size": len(self._cache),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
            }

    def clear_stats(self) -> None:
        """Clear cache statistics (useful for testing)."""
        with self._lock:
            self.stats = {"hits": 0, "misses": 0}
            self._cache.evictions = 0


# Shared cache for callers that do not manage their own instance
_expansion_cache: Optional[ExpansionCache] = None
_expansion_cache_lock = threading.Lock()


def get_expansion_cache(config: Optional[Config] = None) -> ExpansionCache:
    """Return the process-wide expansion cache, creating it on first use.

    Args:
        config: Sizing used only when the cache is first created
    """
    global _expansion_cache  # noqa: PLW0603
    with _expansion_cache_lock:
        if _expansion_cache is None:
            _expansion_cache = ExpansionCache.from_config(config or Config())
        return _expansion_cache


def reset_expansion_cache() -> None:
    """Discard the process-wide cache (next use creates a fresh one)."""
    global _expansion_cache  # noqa: PLW0603
    with _expansion_cache_lock:
        _expansion_cache = None


def expand_occurrences(
    series: Series,
    window_start: Union[datetime, date],
    window_end: Union[datetime, date],
    exceptions: Optional[Iterable[datetime]] = None,
) -> list[Occurrence]:
    """Expand through the shared cache."""
    return get_expansion_cache().expand(series, window_start, window_end, exceptions)
