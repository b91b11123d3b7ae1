"""Time-bounded memoization of provider responses.

Entries are keyed by (normalized asset id, kind) and expire after a
kind-specific TTL. Expired entries are evicted lazily on lookup or by an
explicit purge_expired() sweep; there is no size bound since the tracked
asset universe is small and fixed.

Stored values must be immutable (tuples, frozen dataclasses, floats), so
readers never observe a partially written value. Individual dict
operations are atomic, so no global lock is taken.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tracker.config import CacheSettings
from tracker.logging import get_logger

logger = get_logger(__name__)


class CacheKind(str, Enum):
    """Kinds of cached provider results, each with its own TTL."""

    OHLC = "ohlc"
    MARKET = "market"
    PRICE = "price"
    VOLUME = "volume"


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


@dataclass(frozen=True)
class CacheStats:
    """Hit/miss counters and per-kind entry counts."""

    requests: int
    hits: int
    misses: int
    entries: dict[str, int]

    @property
    def hit_ratio(self) -> float:
        return self.hits / self.requests if self.requests else 0.0


def _normalize_key(key: str) -> str:
    return key.strip().lower()


class ResultCache:
    """TTL cache for OHLC series, market metrics, prices and volumes.

    Args:
        ttls: Seconds to live per kind. Missing kinds fall back to
            CacheSettings defaults.
        clock: Time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        ttls: dict[CacheKind, float] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        defaults = CacheSettings()
        self._ttls: dict[CacheKind, float] = {
            CacheKind.OHLC: defaults.ohlc_ttl,
            CacheKind.MARKET: defaults.market_ttl,
            CacheKind.PRICE: defaults.price_ttl,
            CacheKind.VOLUME: defaults.volume_ttl,
        }
        if ttls:
            self._ttls.update(ttls)
        self._clock = clock
        self._entries: dict[tuple[str, CacheKind], CacheEntry] = {}
        self._requests = 0
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "ResultCache":
        return cls(
            ttls={
                CacheKind.OHLC: settings.ohlc_ttl,
                CacheKind.MARKET: settings.market_ttl,
                CacheKind.PRICE: settings.price_ttl,
                CacheKind.VOLUME: settings.volume_ttl,
            }
        )

    def ttl(self, kind: CacheKind) -> float:
        return self._ttls[kind]

    def get(self, key: str, kind: CacheKind) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        if not key or not key.strip():
            return None

        self._requests += 1
        cache_key = (_normalize_key(key), kind)
        entry = self._entries.get(cache_key)

        if entry is None:
            self._misses += 1
            logger.debug("cache_miss", key=cache_key[0], kind=kind.value)
            return None

        age = self._clock() - entry.stored_at
        if age > self._ttls[kind]:
            self._misses += 1
            # Only remove the entry we saw; a concurrent writer may have replaced it
            if self._entries.get(cache_key) is entry:
                self._entries.pop(cache_key, None)
            logger.debug(
                "cache_expired", key=cache_key[0], kind=kind.value, age=round(age, 1)
            )
            return None

        self._hits += 1
        logger.debug("cache_hit", key=cache_key[0], kind=kind.value, age=round(age, 1))
        return entry.value

    def put(self, key: str, kind: CacheKind, value: Any) -> None:
        """Store ``value`` under (key, kind). Blank keys and None are ignored."""
        if not key or not key.strip() or value is None:
            return
        self._entries[(_normalize_key(key), kind)] = CacheEntry(value, self._clock())

    def clear_asset(self, key: str) -> int:
        """Drop every cached kind for one asset. Returns entries removed."""
        normalized = _normalize_key(key)
        removed = 0
        for kind in CacheKind:
            if self._entries.pop((normalized, kind), None) is not None:
                removed += 1
        if removed:
            logger.info("cache_cleared_for_asset", key=normalized, removed=removed)
        return removed

    def purge_expired(self) -> int:
        """Remove every expired entry across all kinds. Returns entries removed."""
        now = self._clock()
        expired = [
            cache_key
            for cache_key, entry in list(self._entries.items())
            if now - entry.stored_at > self._ttls[cache_key[1]]
        ]
        for cache_key in expired:
            self._entries.pop(cache_key, None)
        if expired:
            logger.info("cache_expired_purged", removed=len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        counts = {kind.value: 0 for kind in CacheKind}
        for _, kind in list(self._entries):
            counts[kind.value] += 1
        return CacheStats(
            requests=self._requests,
            hits=self._hits,
            misses=self._misses,
            entries=counts,
        )
