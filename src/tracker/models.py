"""Shared market data models.

Prices and volumes are floats: the provider delivers JSON numbers and the
indicator math is floating point throughout.
"""

from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum


class DataSource(str, Enum):
    """Provenance of a price history."""

    PROVIDER = "provider"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class PricePoint:
    """One OHLC candle."""

    timestamp_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self) -> None:
        if self.volume < 0:
            raise ValueError(f"volume must be >= 0, got {self.volume}")


@dataclass(frozen=True)
class PriceHistory:
    """Ordered candles for one asset over the lookback window.

    Timestamps are strictly ascending. Never mutated; adjustments return
    a new instance.
    """

    asset_id: str
    points: tuple[PricePoint, ...] = ()
    source: DataSource = DataSource.PROVIDER

    def __post_init__(self) -> None:
        for prev, cur in zip(self.points, self.points[1:]):
            if cur.timestamp_ms <= prev.timestamp_ms:
                raise ValueError(
                    f"price history for {self.asset_id} is not strictly ascending "
                    f"at {cur.timestamp_ms}"
                )

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self.points)

    def __getitem__(self, index: int) -> PricePoint:
        return self.points[index]

    @property
    def is_synthetic(self) -> bool:
        return self.source is DataSource.SYNTHETIC

    @property
    def closes(self) -> list[float]:
        return [p.close for p in self.points]

    def with_last_close(self, price: float) -> "PriceHistory":
        """Return a copy whose final candle closes at ``price``.

        High and low are widened to contain the new close; timestamp, open
        and volume are preserved.
        """
        if not self.points:
            return self
        last = self.points[-1]
        adjusted = replace(
            last,
            high=max(last.high, price),
            low=min(last.low, price),
            close=price,
        )
        return replace(self, points=self.points[:-1] + (adjusted,))


@dataclass(frozen=True)
class MarketMetrics:
    """Scalar market metrics from the coin detail endpoint."""

    market_cap: float = 0.0
    pct_change_7d: float = 0.0
    pct_change_24h: float = 0.0
