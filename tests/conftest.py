"""Shared test fixtures for the crypto portfolio tracker."""

from collections.abc import Callable, Sequence

import pytest

from tracker.config import AnalysisSettings, ProviderSettings
from tracker.models import DataSource, PriceHistory, PricePoint

DAY_MS = 86_400_000
START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced time source for TTL and spacing tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_settings() -> ProviderSettings:
    """Provider settings with zero retry delay so retry tests run instantly."""
    return ProviderSettings(retry_base_delay=0.0, retry_max_delay=0.0)


@pytest.fixture
def analysis_settings() -> AnalysisSettings:
    return AnalysisSettings(
        max_concurrent_analyses=2,
        watchlist=["bitcoin", "ethereum"],
        scan_interval=1,
    )


@pytest.fixture
def make_history() -> Callable[..., PriceHistory]:
    """Factory building a daily PriceHistory from a list of closes.

    Open equals the close, high/low sit 1% around it and every candle gets
    the same volume unless ``volumes`` is given.
    """

    def _make(
        closes: Sequence[float],
        asset_id: str = "bitcoin",
        volume: float = 1_000_000.0,
        volumes: Sequence[float] | None = None,
        source: DataSource = DataSource.PROVIDER,
    ) -> PriceHistory:
        points = tuple(
            PricePoint(
                timestamp_ms=START_MS + i * DAY_MS,
                open=close,
                high=close * 1.01,
                low=close * 0.99,
                close=close,
                volume=volumes[i] if volumes is not None else volume,
            )
            for i, close in enumerate(closes)
        )
        return PriceHistory(asset_id=asset_id, points=points, source=source)

    return _make
