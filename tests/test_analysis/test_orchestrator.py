"""Tests for AnalysisOrchestrator pipeline, error state and batch locking.

The fetcher is an AsyncMock for pipeline tests; the end-to-end test wires a
real MarketDataFetcher to a rate-limited stub client.
"""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from tracker.analysis.models import EntryQuality, EntryTechnique, TrendDirection
from tracker.analysis.orchestrator import (
    WATCHLIST_CALLER,
    AnalysisOrchestrator,
    create_error_indicators,
)
from tracker.coordination.rate_gate import RateGate
from tracker.market_data.cache import ResultCache
from tracker.market_data.client import ProviderResponse
from tracker.market_data.fetcher import MarketDataFetcher
from tracker.models import MarketMetrics


@pytest.fixture
def rate_gate() -> RateGate:
    return RateGate(min_interval=0.0)


@pytest.fixture
def fetcher(make_history) -> AsyncMock:
    fetcher = AsyncMock()
    fetcher.fetch_history = AsyncMock(return_value=make_history([100.0 + i for i in range(30)]))
    fetcher.fetch_volume = AsyncMock(return_value=0.0)
    fetcher.fetch_metrics = AsyncMock(return_value=None)
    return fetcher


@pytest.fixture
def orchestrator(fetcher, rate_gate, analysis_settings) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(fetcher, rate_gate, analysis_settings)


class TestRunAnalysis:
    @pytest.mark.asyncio
    async def test_successful_run(self, orchestrator, fetcher) -> None:
        indicators = await orchestrator.analyze("bitcoin", 129.0)

        assert indicators.error is None
        assert indicators.asset_id == "bitcoin"
        assert indicators.trend is TrendDirection.BULLISH
        assert indicators.history is not None
        # SMA50 stays 0.0 below 50 closes, so any positive SMA10 reads as a cross
        assert EntryTechnique.MOVING_AVERAGE_CROSSOVER in [
            s.technique for s in indicators.signals
        ]
        fetcher.fetch_history.assert_awaited_once_with("bitcoin", 129.0)
        fetcher.fetch_volume.assert_awaited_once_with("bitcoin")

    @pytest.mark.asyncio
    async def test_metrics_skipped_for_directional_trend(self, orchestrator, fetcher) -> None:
        await orchestrator.analyze("bitcoin", 129.0)
        fetcher.fetch_metrics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_neutral_trend_upgraded_from_weekly_change(
        self, orchestrator, fetcher, make_history
    ) -> None:
        fetcher.fetch_history.return_value = make_history([100.0] * 30)
        fetcher.fetch_metrics.return_value = MarketMetrics(pct_change_7d=8.0)

        indicators = await orchestrator.analyze("bitcoin", 100.0)

        assert indicators.trend is TrendDirection.BULLISH
        fetcher.fetch_metrics.assert_awaited_once_with("bitcoin")

    @pytest.mark.asyncio
    async def test_neutral_trend_kept_without_metrics(
        self, orchestrator, fetcher, make_history
    ) -> None:
        fetcher.fetch_history.return_value = make_history([100.0] * 30)
        indicators = await orchestrator.analyze("bitcoin", 100.0)
        assert indicators.trend is TrendDirection.NEUTRAL

    @pytest.mark.asyncio
    async def test_volume_not_fetched_for_short_history(
        self, orchestrator, fetcher, make_history
    ) -> None:
        fetcher.fetch_history.return_value = make_history([100.0] * 10)
        await orchestrator.analyze("bitcoin", 100.0)
        fetcher.fetch_volume.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_yields_error_state(self, orchestrator, fetcher) -> None:
        fetcher.fetch_history.side_effect = RuntimeError("boom")

        indicators = await orchestrator.analyze("bitcoin", 100.0)

        assert indicators.overall_quality is EntryQuality.VERY_POOR
        assert indicators.trend is TrendDirection.NEUTRAL
        assert len(indicators.signals) == 1
        assert indicators.signals[0].confidence == 0.0
        assert "manual review" in indicators.signals[0].rationale
        assert indicators.error.startswith("fetching")
        assert indicators.current_price == 100.0

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, orchestrator, fetcher, make_history) -> None:
        active = 0
        peak = 0

        async def slow_history(asset_id: str, price: float):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return make_history([price] * 30, asset_id=asset_id)

        fetcher.fetch_history.side_effect = slow_history

        tasks = [orchestrator.analyze(f"asset-{i}", 10.0) for i in range(5)]
        await asyncio.gather(*tasks)

        assert peak == 2


class TestAnalyzeMany:
    @pytest.mark.asyncio
    async def test_holds_intensive_lock_during_batch(
        self, orchestrator, fetcher, rate_gate, make_history
    ) -> None:
        holders: list[str | None] = []

        async def record(asset_id: str, price: float):
            holders.append(rate_gate.intensive_holder)
            return make_history([price] * 30, asset_id=asset_id)

        fetcher.fetch_history.side_effect = record

        results = await orchestrator.analyze_many({"bitcoin": 50_000.0, "ethereum": 3_000.0})

        assert set(results) == {"bitcoin", "ethereum"}
        assert holders == [WATCHLIST_CALLER, WATCHLIST_CALLER]
        assert rate_gate.intensive_holder is None

    @pytest.mark.asyncio
    async def test_failed_asset_does_not_fail_batch(self, orchestrator, fetcher, make_history) -> None:
        async def flaky(asset_id: str, price: float):
            if asset_id == "ethereum":
                raise RuntimeError("provider exploded")
            return make_history([price] * 30, asset_id=asset_id)

        fetcher.fetch_history.side_effect = flaky

        results = await orchestrator.analyze_many({"bitcoin": 50_000.0, "ethereum": 3_000.0})

        assert results["bitcoin"].error is None
        assert results["ethereum"].overall_quality is EntryQuality.VERY_POOR

    @pytest.mark.asyncio
    async def test_lock_released_on_cancel(self, orchestrator, fetcher, rate_gate) -> None:
        never = asyncio.Event()

        async def hang(asset_id: str, price: float):
            await never.wait()

        fetcher.fetch_history.side_effect = hang

        batch = asyncio.create_task(orchestrator.analyze_many({"bitcoin": 1.0}))
        await asyncio.sleep(0.01)
        assert rate_gate.intensive_holder == WATCHLIST_CALLER

        batch.cancel()
        with pytest.raises(asyncio.CancelledError):
            await batch
        assert rate_gate.intensive_holder is None

    @pytest.mark.asyncio
    async def test_empty_batch(self, orchestrator, rate_gate) -> None:
        assert await orchestrator.analyze_many({}) == {}
        assert rate_gate.intensive_holder is None


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_rate_limited_provider_degrades_to_synthetic(
        self, rate_gate, provider_settings, analysis_settings
    ) -> None:
        client = AsyncMock()
        client.get = AsyncMock(return_value=ProviderResponse(429))
        fetcher = MarketDataFetcher(
            client, ResultCache(), rate_gate, provider_settings, rng=random.Random(1)
        )
        orchestrator = AnalysisOrchestrator(fetcher, rate_gate, analysis_settings)

        indicators = await orchestrator.analyze("bitcoin", 50_000.0)

        assert indicators.error is None
        assert indicators.is_synthetic
        assert len(indicators.history) == 30
        assert indicators.history[-1].close == 50_000.0
        assert indicators.overall_quality in set(EntryQuality)


class TestErrorIndicators:
    def test_shape(self) -> None:
        indicators = create_error_indicators("bitcoin")

        assert indicators.current_price == 0.0
        assert indicators.signals[0].technique is EntryTechnique.SUPPORT_RESISTANCE
        assert indicators.overall_quality is EntryQuality.VERY_POOR
        assert indicators.entry_quality_score == 10.0
        assert indicators.data_source is None


class TestAbandonedRuns:
    @pytest.mark.asyncio
    async def test_absorbed_cancel_stops_before_more_provider_calls(
        self, orchestrator, fetcher, make_history
    ) -> None:
        """A fetch that swallows cancellation (as a rate gate wait does)
        must not be followed by volume or metrics requests."""

        async def absorbing_history(asset_id: str, price: float):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                pass
            return make_history([price] * 30, asset_id=asset_id)

        fetcher.fetch_history.side_effect = absorbing_history

        task = orchestrator.analyze("bitcoin", 100.0)
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        fetcher.fetch_volume.assert_not_awaited()
        fetcher.fetch_metrics.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancelled_batch_issues_no_follow_up_calls(
        self, orchestrator, fetcher, rate_gate, make_history
    ) -> None:
        async def absorbing_history(asset_id: str, price: float):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                pass
            return make_history([price] * 30, asset_id=asset_id)

        fetcher.fetch_history.side_effect = absorbing_history

        batch = asyncio.create_task(
            orchestrator.analyze_many({"bitcoin": 1.0, "ethereum": 2.0})
        )
        await asyncio.sleep(0.01)
        batch.cancel()
        with pytest.raises(asyncio.CancelledError):
            await batch
        await asyncio.sleep(0.01)

        fetcher.fetch_volume.assert_not_awaited()
        assert rate_gate.intensive_holder is None
