"""Entry point for the crypto portfolio tracker analysis service.

Wires the analysis engine together, optionally embeds the FastAPI API,
and starts the watchlist scanner. When the API is enabled (default), the
scanner and the API share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Component wiring order (in _build_components):
1. RateGate (process-wide provider call spacing)
2. ResultCache (TTL memoization of provider results)
3. CoinGeckoClient (HTTP transport)
4. MarketDataFetcher (cache -> gate -> retry -> synthetic fallback)
5. AnalysisOrchestrator (per-asset pipeline)
6. WatchlistScanner (periodic batch analysis)
"""

import asyncio
import random
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from tracker.analysis.orchestrator import AnalysisOrchestrator
from tracker.analysis.scanner import WatchlistScanner
from tracker.config import AppSettings
from tracker.coordination.rate_gate import RateGate
from tracker.logging import get_logger, setup_logging
from tracker.market_data.cache import ResultCache
from tracker.market_data.client import CoinGeckoClient
from tracker.market_data.fetcher import MarketDataFetcher


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all analysis components from settings.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("tracker.main")

    rate_gate = RateGate(
        min_interval=settings.rate_gate.min_interval_seconds,
        privileged_callers=settings.rate_gate.privileged_callers,
    )
    cache = ResultCache.from_settings(settings.cache)
    client = CoinGeckoClient(settings.provider)

    if not settings.provider.api_key.get_secret_value():
        logger.info(
            "no_provider_api_key",
            note="Using the public CoinGecko tier; expect stricter rate limits.",
        )

    fetcher = MarketDataFetcher(
        client=client,
        cache=cache,
        rate_gate=rate_gate,
        settings=settings.provider,
        rng=random.Random(settings.analysis.synthetic_seed),
    )
    orchestrator = AnalysisOrchestrator(fetcher, rate_gate, settings.analysis)
    scanner = WatchlistScanner(orchestrator, fetcher, settings.analysis, cache=cache)

    return {
        "rate_gate": rate_gate,
        "cache": cache,
        "client": client,
        "fetcher": fetcher,
        "orchestrator": orchestrator,
        "scanner": scanner,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state and starts the scanner.
    On shutdown: stops the scanner.
    """
    logger = get_logger("tracker.main")
    components = app.state.components

    app.state.rate_gate = components["rate_gate"]
    app.state.cache = components["cache"]
    app.state.orchestrator = components["orchestrator"]
    app.state.scanner = components["scanner"]

    await components["scanner"].start()
    logger.info("lifespan_started")

    yield

    await components["scanner"].stop()
    logger.info("crypto_tracker_stopped")


async def run() -> None:
    """Run the analysis service.

    When the API is enabled (API_ENABLED=true, the default) the scanner
    runs inside the uvicorn event loop and is managed by the lifespan.
    Otherwise the scanner runs until SIGINT/SIGTERM.
    """
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("tracker.main")

    components = _build_components(settings)

    if settings.api.enabled:
        from tracker.api.app import create_api_app

        app = create_api_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_api",
            host=settings.api.host,
            port=settings.api.port,
            watchlist=settings.analysis.watchlist,
        )

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info(
        "starting_without_api",
        watchlist=settings.analysis.watchlist,
        scan_interval=settings.analysis.scan_interval,
    )

    scanner = components["scanner"]
    await scanner.start()
    try:
        await stop_event.wait()
    finally:
        await scanner.stop()
        logger.info("crypto_tracker_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
