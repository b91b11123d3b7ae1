"""Per-asset analysis pipeline.

Each run moves strictly forward through:

    START -> FETCHING -> COMPUTING_INDICATORS -> ENHANCING
          -> GENERATING_SIGNALS -> SCORING -> DONE

Any exception in a stage ends the run in ERROR, which yields a fixed
minimal IndicatorSet (VERY_POOR, NEUTRAL, one "manual review required"
signal) instead of propagating to the caller. Runs for different assets
execute concurrently, bounded by a semaphore; all of them share the same
RateGate and ResultCache through the fetcher.
"""

import asyncio
from dataclasses import replace
from enum import Enum

import structlog

from tracker.analysis.indicators import VOLUME_PERIOD, compute_indicators, enhance_trend
from tracker.analysis.models import (
    EntrySignal,
    EntryTechnique,
    IndicatorSet,
    SignalStrength,
    TrendDirection,
)
from tracker.analysis.signals import generate_signals
from tracker.config import AnalysisSettings
from tracker.coordination.rate_gate import RateGate
from tracker.logging import get_logger
from tracker.market_data.fetcher import MarketDataFetcher

logger = get_logger(__name__)

#: Rate gate identity used while a batch analysis holds the intensive lock.
WATCHLIST_CALLER = "watchlist_scanner"


class AnalysisStage(str, Enum):
    START = "start"
    FETCHING = "fetching"
    COMPUTING_INDICATORS = "computing_indicators"
    ENHANCING = "enhancing"
    GENERATING_SIGNALS = "generating_signals"
    SCORING = "scoring"
    DONE = "done"
    ERROR = "error"


def create_error_indicators(
    asset_id: str, current_price: float = 0.0, error: str | None = None
) -> IndicatorSet:
    """Minimal result for a failed run: VERY_POOR quality, NEUTRAL trend."""
    return IndicatorSet(
        asset_id=asset_id,
        current_price=current_price,
        trend=TrendDirection.NEUTRAL,
        signals=(
            EntrySignal(
                EntryTechnique.SUPPORT_RESISTANCE,
                SignalStrength.VERY_WEAK,
                "Technical analysis failed - manual review required",
                target_price=0.0,
                stop_price=0.0,
                confidence=0.0,
            ),
        ),
        error=error,
    )


def _raise_if_cancelled() -> None:
    """Re-raise a cancellation that a rate gate wait returned as a denial."""
    task = asyncio.current_task()
    if task is not None and task.cancelling():
        raise asyncio.CancelledError()


class AnalysisOrchestrator:
    """Runs the fetch -> indicators -> enhance -> signals -> score pipeline.

    Args:
        fetcher: Market data fetcher (shares the cache and rate gate).
        rate_gate: Process-wide rate gate, used for batch intensive locks.
        settings: Analysis settings (concurrency bound).
    """

    def __init__(
        self,
        fetcher: MarketDataFetcher,
        rate_gate: RateGate,
        settings: AnalysisSettings,
    ) -> None:
        self._fetcher = fetcher
        self._rate_gate = rate_gate
        self._settings = settings
        self._semaphore = asyncio.Semaphore(max(1, settings.max_concurrent_analyses))

    def analyze(self, asset_id: str, current_price: float) -> "asyncio.Task[IndicatorSet]":
        """Schedule an analysis and return its task (a future of IndicatorSet).

        Must be called from within a running event loop.
        """
        return asyncio.create_task(
            self._run_bounded(asset_id, current_price),
            name=f"analysis:{asset_id}",
        )

    async def analyze_many(
        self, prices: dict[str, float], caller: str = WATCHLIST_CALLER
    ) -> dict[str, IndicatorSet]:
        """Analyze a batch of assets while ``caller`` holds the intensive lock.

        Other rate-gated subsystems are deferred for the duration of the
        batch; the lock is released even if the batch is cancelled.
        """
        if not prices:
            return {}

        await self._rate_gate.begin_intensive(caller)
        try:
            tasks = {
                asset_id: self.analyze(asset_id, price)
                for asset_id, price in prices.items()
            }
            try:
                await asyncio.gather(*tasks.values())
            except asyncio.CancelledError:
                for task in tasks.values():
                    task.cancel()
                raise
            return {asset_id: task.result() for asset_id, task in tasks.items()}
        finally:
            await self._rate_gate.end_intensive(caller)

    async def _run_bounded(self, asset_id: str, current_price: float) -> IndicatorSet:
        async with self._semaphore:
            return await self.run_analysis(asset_id, current_price)

    async def run_analysis(self, asset_id: str, current_price: float) -> IndicatorSet:
        """Run the full pipeline for one asset. Never raises (except on cancel)."""
        stage = AnalysisStage.START
        with structlog.contextvars.bound_contextvars(asset_id=asset_id):
            logger.info("analysis_started", current_price=current_price)
            try:
                stage = AnalysisStage.FETCHING
                history = await self._fetcher.fetch_history(asset_id, current_price)
                _raise_if_cancelled()
                live_volume = None
                if len(history) >= VOLUME_PERIOD:
                    live_volume = await self._fetcher.fetch_volume(asset_id)
                    _raise_if_cancelled()

                stage = AnalysisStage.COMPUTING_INDICATORS
                indicators = compute_indicators(
                    asset_id, history, current_price, live_volume=live_volume
                )

                stage = AnalysisStage.ENHANCING
                indicators = await self._enhance_with_market_data(indicators)
                _raise_if_cancelled()

                stage = AnalysisStage.GENERATING_SIGNALS
                indicators = replace(
                    indicators, signals=generate_signals(indicators, current_price)
                )

                stage = AnalysisStage.SCORING
                quality = indicators.overall_quality

                stage = AnalysisStage.DONE
                logger.info(
                    "analysis_completed",
                    quality=quality.value,
                    trend=indicators.trend.value,
                    signals=len(indicators.signals),
                    data_source=indicators.data_source.value
                    if indicators.data_source is not None
                    else None,
                )
                return indicators
            except asyncio.CancelledError:
                logger.info("analysis_cancelled", stage=stage.value)
                raise
            except Exception as e:
                logger.error(
                    "analysis_failed",
                    stage=stage.value,
                    error=str(e),
                    exc_info=True,
                )
                return create_error_indicators(
                    asset_id, current_price, error=f"{stage.value}: {e}"
                )

    async def _enhance_with_market_data(self, indicators: IndicatorSet) -> IndicatorSet:
        """Upgrade a NEUTRAL trend from the 7-day price change, if available."""
        if indicators.trend is not TrendDirection.NEUTRAL:
            return indicators

        metrics = await self._fetcher.fetch_metrics(indicators.asset_id)
        if metrics is None:
            return indicators

        trend = enhance_trend(indicators.trend, metrics.pct_change_7d)
        if trend is not indicators.trend:
            logger.debug(
                "trend_enhanced",
                trend=trend.value,
                pct_change_7d=metrics.pct_change_7d,
            )
            return replace(indicators, trend=trend)
        return indicators
