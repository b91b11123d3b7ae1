"""Tests for ResultCache TTL expiry, key normalization and statistics."""

import pytest

from tracker.config import CacheSettings
from tracker.market_data.cache import CacheKind, ResultCache
from tracker.models import MarketMetrics


@pytest.fixture
def cache(clock) -> ResultCache:
    return ResultCache(clock=clock)


class TestGetPut:
    def test_miss_returns_none(self, cache: ResultCache) -> None:
        assert cache.get("bitcoin", CacheKind.PRICE) is None

    def test_hit_within_ttl(self, cache: ResultCache, clock) -> None:
        cache.put("bitcoin", CacheKind.PRICE, 50_000.0)
        clock.advance(119)
        assert cache.get("bitcoin", CacheKind.PRICE) == 50_000.0

    def test_expired_after_ttl(self, cache: ResultCache, clock) -> None:
        """PRICE entries live for 2 minutes."""
        cache.put("bitcoin", CacheKind.PRICE, 50_000.0)
        clock.advance(121)
        assert cache.get("bitcoin", CacheKind.PRICE) is None
        assert cache.stats().entries["price"] == 0

    def test_kinds_are_independent(self, cache: ResultCache, clock) -> None:
        """An OHLC entry outlives a PRICE entry stored at the same moment."""
        cache.put("bitcoin", CacheKind.PRICE, 50_000.0)
        cache.put("bitcoin", CacheKind.OHLC, ("candles",))
        clock.advance(600)
        assert cache.get("bitcoin", CacheKind.PRICE) is None
        assert cache.get("bitcoin", CacheKind.OHLC) == ("candles",)

    def test_keys_are_normalized(self, cache: ResultCache) -> None:
        cache.put(" Bitcoin ", CacheKind.MARKET, MarketMetrics(market_cap=1.0))
        assert cache.get("bitcoin", CacheKind.MARKET) == MarketMetrics(market_cap=1.0)

    def test_blank_key_is_ignored(self, cache: ResultCache) -> None:
        cache.put("  ", CacheKind.PRICE, 1.0)
        assert cache.get("  ", CacheKind.PRICE) is None
        assert cache.stats().requests == 0

    def test_none_value_not_stored(self, cache: ResultCache) -> None:
        cache.put("bitcoin", CacheKind.VOLUME, None)
        assert cache.stats().entries["volume"] == 0

    def test_put_overwrites_and_resets_age(self, cache: ResultCache, clock) -> None:
        cache.put("bitcoin", CacheKind.PRICE, 1.0)
        clock.advance(100)
        cache.put("bitcoin", CacheKind.PRICE, 2.0)
        clock.advance(100)
        assert cache.get("bitcoin", CacheKind.PRICE) == 2.0


class TestMaintenance:
    def test_clear_asset_removes_every_kind(self, cache: ResultCache) -> None:
        cache.put("bitcoin", CacheKind.PRICE, 1.0)
        cache.put("bitcoin", CacheKind.VOLUME, 2.0)
        cache.put("ethereum", CacheKind.PRICE, 3.0)

        assert cache.clear_asset("BITCOIN") == 2
        assert cache.get("bitcoin", CacheKind.PRICE) is None
        assert cache.get("ethereum", CacheKind.PRICE) == 3.0

    def test_clear_unknown_asset(self, cache: ResultCache) -> None:
        assert cache.clear_asset("dogecoin") == 0

    def test_purge_expired(self, cache: ResultCache, clock) -> None:
        cache.put("bitcoin", CacheKind.PRICE, 1.0)
        cache.put("bitcoin", CacheKind.OHLC, ())
        clock.advance(300)

        assert cache.purge_expired() == 1
        entries = cache.stats().entries
        assert entries["price"] == 0
        assert entries["ohlc"] == 1


class TestStats:
    def test_counts_hits_and_misses(self, cache: ResultCache) -> None:
        cache.get("bitcoin", CacheKind.PRICE)
        cache.put("bitcoin", CacheKind.PRICE, 1.0)
        cache.get("bitcoin", CacheKind.PRICE)
        cache.get("bitcoin", CacheKind.PRICE)

        stats = cache.stats()
        assert stats.requests == 3
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_ratio == pytest.approx(2 / 3)

    def test_hit_ratio_without_requests(self, cache: ResultCache) -> None:
        assert cache.stats().hit_ratio == 0.0


class TestSettings:
    def test_default_ttls(self) -> None:
        cache = ResultCache()
        assert cache.ttl(CacheKind.OHLC) == 1800
        assert cache.ttl(CacheKind.MARKET) == 900
        assert cache.ttl(CacheKind.PRICE) == 120
        assert cache.ttl(CacheKind.VOLUME) == 300

    def test_from_settings(self) -> None:
        cache = ResultCache.from_settings(CacheSettings(price_ttl=5))
        assert cache.ttl(CacheKind.PRICE) == 5
        assert cache.ttl(CacheKind.OHLC) == 1800


def test_entry_present_at_exact_ttl(clock) -> None:
    """Absent strictly after the TTL, not at it."""
    cache = ResultCache(clock=clock)
    cache.put("bitcoin", CacheKind.VOLUME, 1.0)
    clock.advance(300)
    assert cache.get("bitcoin", CacheKind.VOLUME) == 1.0
    clock.advance(0.001)
    assert cache.get("bitcoin", CacheKind.VOLUME) is None
