"""Market data retrieval with caching, rate coordination, retry and fallback.

Every provider call goes through the same pipeline:
1. Normalize the asset id through the static alias table
2. Serve from ResultCache when a fresh entry exists
3. Ask the RateGate for a slot (denial degrades, it never raises to callers)
4. GET with a bounded timeout
5. 429 -> exponential backoff retry; network error -> linear backoff retry;
   404, other statuses and malformed payloads -> no retry
6. Write usable results through to the cache

fetch_history() always returns a non-empty PriceHistory: when the provider
cannot be used it returns a synthetic series tagged DataSource.SYNTHETIC.
"""

import asyncio
import random
from typing import Any

from tracker.config import ProviderSettings
from tracker.coordination.rate_gate import ANALYSIS_CALLER, RateGate
from tracker.exceptions import (
    AssetNotFoundError,
    MalformedPayloadError,
    ProviderError,
    RateGateDenied,
    RateLimitedError,
    TrackerError,
)
from tracker.logging import get_logger
from tracker.market_data.aliases import normalize_asset_id
from tracker.market_data.cache import CacheKind, ResultCache
from tracker.market_data.client import CoinGeckoClient
from tracker.market_data.synthetic import estimate_volume, generate_synthetic_history
from tracker.models import DataSource, MarketMetrics, PriceHistory, PricePoint

logger = get_logger(__name__)

#: Final candle close may differ from the live price by at most this fraction.
LAST_CLOSE_TOLERANCE = 0.10

_COIN_DETAIL_PARAMS = {
    "localization": "false",
    "tickers": "false",
    "market_data": "true",
    "community_data": "false",
    "developer_data": "false",
}


def reconcile_last_close(history: PriceHistory, current_price: float) -> PriceHistory:
    """Snap the final close to ``current_price`` when it is more than 10% off."""
    if not history.points or current_price <= 0:
        return history
    last_close = history.points[-1].close
    if abs(last_close - current_price) / current_price > LAST_CLOSE_TOLERANCE:
        logger.warning(
            "last_close_adjusted",
            asset_id=history.asset_id,
            last_close=last_close,
            current_price=current_price,
        )
        return history.with_last_close(current_price)
    return history


def parse_ohlc_payload(
    asset_id: str, payload: Any, rng: random.Random
) -> PriceHistory:
    """Parse ``[[ts, open, high, low, close], ...]`` into a PriceHistory.

    The OHLC endpoint carries no volume, so each candle gets a tier-based
    volume estimate. Rows are sorted by timestamp; duplicate timestamps
    keep the last row.

    Raises:
        MalformedPayloadError: Payload is not a list of numeric rows.
    """
    if not isinstance(payload, list):
        raise MalformedPayloadError(
            f"expected OHLC array for {asset_id}, got {type(payload).__name__}"
        )

    by_timestamp: dict[int, PricePoint] = {}
    try:
        for row in payload:
            if not isinstance(row, (list, tuple)) or len(row) < 5:
                continue
            close = float(row[4])
            by_timestamp[int(row[0])] = PricePoint(
                timestamp_ms=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=close,
                volume=estimate_volume(close, rng),
            )
    except (TypeError, ValueError) as e:
        raise MalformedPayloadError(f"bad OHLC row for {asset_id}: {e}") from e

    points = tuple(by_timestamp[ts] for ts in sorted(by_timestamp))
    return PriceHistory(asset_id=asset_id, points=points, source=DataSource.PROVIDER)


class MarketDataFetcher:
    """Fetches OHLC history, market metrics, volume and prices for assets.

    Args:
        client: CoinGecko HTTP client.
        cache: Shared result cache.
        rate_gate: Shared process-wide rate gate.
        settings: Provider settings (timeouts, retry policy, lookback).
        rng: Random source for synthetic data and volume estimates.
        caller: Identity presented to the rate gate.
    """

    def __init__(
        self,
        client: CoinGeckoClient,
        cache: ResultCache,
        rate_gate: RateGate,
        settings: ProviderSettings,
        rng: random.Random | None = None,
        caller: str = ANALYSIS_CALLER,
    ) -> None:
        self._client = client
        self._cache = cache
        self._rate_gate = rate_gate
        self._settings = settings
        self._rng = rng or random.Random()
        self._caller = caller

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def fetch_history(self, asset_id: str, current_price: float) -> PriceHistory:
        """Return OHLC history for ``asset_id``, synthetic if the provider fails."""
        provider_id = normalize_asset_id(asset_id)

        cached = self._cache.get(provider_id, CacheKind.OHLC)
        if cached is not None:
            logger.info("ohlc_cache_hit", asset_id=provider_id, points=len(cached))
            return reconcile_last_close(cached, current_price)

        try:
            payload = await self._request(
                provider_id,
                "ohlc",
                f"coins/{provider_id}/ohlc",
                {"vs_currency": "usd", "days": str(self._settings.history_days)},
                self._settings.history_timeout,
            )
            history = parse_ohlc_payload(provider_id, payload, self._rng)
        except TrackerError as e:
            return self._synthetic(provider_id, current_price, reason=type(e).__name__)

        if not history.points:
            return self._synthetic(provider_id, current_price, reason="empty_payload")

        self._cache.put(provider_id, CacheKind.OHLC, history)
        logger.info("ohlc_fetched", asset_id=provider_id, points=len(history))
        return reconcile_last_close(history, current_price)

    async def fetch_metrics(self, asset_id: str) -> MarketMetrics | None:
        """Return market cap and percent changes, or None when unavailable."""
        provider_id = normalize_asset_id(asset_id)

        cached = self._cache.get(provider_id, CacheKind.MARKET)
        if cached is not None:
            return cached

        await self._fetch_coin_detail(provider_id)
        return self._cache.get(provider_id, CacheKind.MARKET)

    async def fetch_volume(self, asset_id: str) -> float:
        """Return current 24h USD volume, or 0.0 when unavailable."""
        provider_id = normalize_asset_id(asset_id)

        cached = self._cache.get(provider_id, CacheKind.VOLUME)
        if cached is not None:
            return cached

        await self._fetch_coin_detail(provider_id)
        return self._cache.get(provider_id, CacheKind.VOLUME) or 0.0

    async def fetch_prices(self, asset_ids: list[str]) -> dict[str, float]:
        """Return USD prices keyed by the given asset ids.

        Cached prices are served directly; only misses hit the provider, in
        one batched simple-price request. Assets whose price cannot be
        obtained are omitted.
        """
        result: dict[str, float] = {}
        missing: dict[str, list[str]] = {}
        for asset_id in asset_ids:
            provider_id = normalize_asset_id(asset_id)
            cached = self._cache.get(provider_id, CacheKind.PRICE)
            if cached is not None:
                result[asset_id] = cached
            else:
                missing.setdefault(provider_id, []).append(asset_id)

        if not missing:
            return result

        ids_param = ",".join(sorted(missing))
        try:
            payload = await self._request(
                ids_param,
                "simple_price",
                "simple/price",
                {"ids": ids_param, "vs_currencies": "usd"},
                self._settings.price_timeout,
            )
        except TrackerError as e:
            logger.warning(
                "price_fetch_failed", ids=ids_param, reason=type(e).__name__
            )
            return result

        if not isinstance(payload, dict):
            logger.warning("price_payload_malformed", ids=ids_param)
            return result

        for provider_id, requested in missing.items():
            entry = payload.get(provider_id)
            price = entry.get("usd") if isinstance(entry, dict) else None
            if not isinstance(price, (int, float)) or price <= 0:
                continue
            self._cache.put(provider_id, CacheKind.PRICE, float(price))
            for asset_id in requested:
                result[asset_id] = float(price)

        logger.info(
            "prices_fetched",
            requested=len(asset_ids),
            from_cache=len(asset_ids) - sum(len(v) for v in missing.values()),
            resolved=len(result),
        )
        return result

    # ──────────────────────────────────────────────
    # Internal helpers
    # ──────────────────────────────────────────────

    async def _fetch_coin_detail(self, provider_id: str) -> None:
        """Fetch the coin detail payload and cache metrics and volume from it."""
        try:
            payload = await self._request(
                provider_id,
                "coin_detail",
                f"coins/{provider_id}",
                _COIN_DETAIL_PARAMS,
                self._settings.metrics_timeout,
            )
        except TrackerError as e:
            logger.debug(
                "coin_detail_unavailable", asset_id=provider_id, reason=type(e).__name__
            )
            return

        market_data = payload.get("market_data") if isinstance(payload, dict) else None
        if not isinstance(market_data, dict):
            logger.debug("coin_detail_without_market_data", asset_id=provider_id)
            return

        metrics = MarketMetrics(
            market_cap=_usd(market_data.get("market_cap")),
            pct_change_7d=_number(market_data.get("price_change_percentage_7d")),
            pct_change_24h=_number(market_data.get("price_change_percentage_24h")),
        )
        self._cache.put(provider_id, CacheKind.MARKET, metrics)

        volume = _usd(market_data.get("total_volume"))
        if volume > 0:
            self._cache.put(provider_id, CacheKind.VOLUME, volume)

        logger.debug(
            "coin_detail_fetched",
            asset_id=provider_id,
            market_cap=metrics.market_cap,
            pct_change_7d=metrics.pct_change_7d,
            volume=volume,
        )

    def _synthetic(self, provider_id: str, current_price: float, reason: str) -> PriceHistory:
        logger.warning(
            "history_fallback_synthetic", asset_id=provider_id, reason=reason
        )
        return generate_synthetic_history(provider_id, current_price, rng=self._rng)

    async def _request(
        self,
        provider_id: str,
        operation: str,
        path: str,
        params: dict[str, str],
        timeout: float,
    ) -> Any:
        """Issue one provider call with rate gating and retry.

        Returns the decoded JSON payload of a 200 response.

        Raises:
            RateGateDenied: The gate refused a slot.
            RateLimitedError: Still 429 after max_retries retries.
            AssetNotFoundError: 404.
            MalformedPayloadError: Undecodable body.
            ProviderError: Any other status, or network failure after retries.
        """
        max_retries = self._settings.max_retries
        base_delay = self._settings.retry_base_delay
        max_delay = self._settings.retry_max_delay
        label = f"{operation}:{provider_id}"

        attempt = 0
        while True:
            if not await self._rate_gate.acquire(self._caller, label):
                raise RateGateDenied(f"rate gate denied {label}")

            try:
                response = await self._client.get(path, params, timeout)
            except MalformedPayloadError:
                raise
            except OSError as e:
                if attempt >= max_retries:
                    logger.error(
                        "provider_request_failed", operation=label, attempts=attempt + 1, error=str(e)
                    )
                    raise ProviderError(f"{label} failed: {e}") from e
                delay = min(base_delay * (attempt + 1), max_delay)
                logger.warning(
                    "provider_request_retry",
                    operation=label,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.ok:
                return response.payload

            if response.status == 429:
                if attempt >= max_retries:
                    logger.error("provider_rate_limited", operation=label, attempts=attempt + 1)
                    raise RateLimitedError(f"{label} rate limited", status=429)
                delay = min(base_delay * (2**attempt), max_delay)
                logger.warning(
                    "provider_rate_limit_retry",
                    operation=label,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status == 404:
                logger.warning("provider_asset_not_found", operation=label)
                raise AssetNotFoundError(f"{provider_id} not found", status=404)

            logger.warning("provider_bad_status", operation=label, status=response.status)
            raise ProviderError(f"{label} returned {response.status}", status=response.status)


def _number(value: Any) -> float:
    return float(value) if isinstance(value, (int, float)) else 0.0


def _usd(value: Any) -> float:
    if isinstance(value, dict):
        return _number(value.get("usd"))
    return 0.0
