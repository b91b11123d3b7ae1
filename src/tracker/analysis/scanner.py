"""Periodic watchlist analysis.

On every cycle the scanner resolves live prices for the watchlist (cache
first, one batched provider call for the rest), then analyzes all priced
assets as one intensive batch so other rate-gated consumers defer until
it finishes.
"""

import asyncio

from tracker.analysis.models import IndicatorSet
from tracker.analysis.orchestrator import WATCHLIST_CALLER, AnalysisOrchestrator
from tracker.config import AnalysisSettings
from tracker.logging import get_logger
from tracker.market_data.cache import ResultCache
from tracker.market_data.fetcher import MarketDataFetcher

logger = get_logger(__name__)


class WatchlistScanner:
    """Background loop analyzing the configured watchlist on an interval.

    Args:
        orchestrator: Analysis pipeline.
        fetcher: Used for batched price lookups.
        settings: Watchlist and scan interval.
        cache: Shared result cache, swept for expired entries after every
            cycle.
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        fetcher: MarketDataFetcher,
        settings: AnalysisSettings,
        cache: ResultCache | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._fetcher = fetcher
        self._settings = settings
        self._cache = cache
        self._results: dict[str, IndicatorSet] = {}
        self._cycle_lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def results(self) -> dict[str, IndicatorSet]:
        """Latest completed result per asset."""
        return dict(self._results)

    async def start(self) -> None:
        """Begin scanning in the background."""
        if self._running:
            logger.warning("watchlist_scanner_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "watchlist_scanner_started",
            assets=len(self._settings.watchlist),
            scan_interval=self._settings.scan_interval,
        )

    async def stop(self) -> None:
        """Stop the scanner, cancelling any in-flight cycle."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("watchlist_scanner_stopped")

    async def scan_once(self) -> dict[str, IndicatorSet] | None:
        """Run one scan cycle. Returns None if a cycle is already in progress."""
        if self._cycle_lock.locked():
            logger.info("watchlist_scan_skipped_overlap")
            return None

        async with self._cycle_lock:
            watchlist = list(self._settings.watchlist)
            prices = await self._fetcher.fetch_prices(watchlist)
            unpriced = [a for a in watchlist if a not in prices]
            if unpriced:
                logger.warning("watchlist_assets_unpriced", assets=unpriced)

            results = await self._orchestrator.analyze_many(prices, caller=WATCHLIST_CALLER)
            self._results.update(results)
            purged = self._cache.purge_expired() if self._cache is not None else 0
            logger.info(
                "watchlist_scan_completed",
                analyzed=len(results),
                unpriced=len(unpriced),
                cache_purged=purged,
            )
            return results

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.scan_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("watchlist_scan_error", exc_info=True)
            if self._running:
                await asyncio.sleep(self._settings.scan_interval)
