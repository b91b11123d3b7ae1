"""Synthetic price history used when the provider is unreachable.

The series is anchored on the live price: the final candle closes at the
current price and earlier daily bases are walked backward with a bounded
random daily change. Results are tagged DataSource.SYNTHETIC so callers can
tell them apart from provider data.
"""

import random
import time

from tracker.models import DataSource, PriceHistory, PricePoint

SYNTHETIC_POINTS = 30
DAILY_VOLATILITY = 0.05  # max abs daily change
INTRADAY_JITTER = 0.01  # open/close around the daily base
WICK_EXTENSION = 0.03  # high/low beyond open/close

_DAY_MS = 86_400_000

#: (price floor, base volume, random span). Higher-priced assets are
#: modelled as large caps with lower unit volume.
_VOLUME_TIERS: tuple[tuple[float, float, float], ...] = (
    (10_000, 500_000, 2_000_000),
    (1_000, 1_000_000, 5_000_000),
    (100, 2_000_000, 10_000_000),
    (1, 5_000_000, 20_000_000),
    (0, 10_000_000, 50_000_000),
)


def estimate_volume(price: float, rng: random.Random) -> float:
    """Estimate a daily trading volume from the price tier."""
    for floor, base, span in _VOLUME_TIERS:
        if price > floor:
            return base + rng.random() * span
    _, base, span = _VOLUME_TIERS[-1]
    return base + rng.random() * span


def generate_synthetic_history(
    asset_id: str,
    current_price: float,
    rng: random.Random | None = None,
    points: int = SYNTHETIC_POINTS,
    now_ms: int | None = None,
) -> PriceHistory:
    """Build a plausible daily OHLC series ending at ``current_price``.

    Args:
        asset_id: Asset the series is generated for.
        current_price: Live price; becomes the last candle's close.
        rng: Random source. Pass a seeded Random for reproducible output.
        points: Number of daily candles.
        now_ms: "Today" in epoch millis (defaults to wall clock).
    """
    rng = rng or random.Random()
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    today_ms = now_ms - now_ms % _DAY_MS

    # Walk daily bases backward from today
    bases = [current_price]
    for _ in range(points - 1):
        change = rng.uniform(-DAILY_VOLATILITY, DAILY_VOLATILITY)
        bases.append(bases[-1] / (1 + change))
    bases.reverse()

    candles: list[PricePoint] = []
    for i, base in enumerate(bases):
        is_last = i == points - 1
        open_ = base * (1 + rng.uniform(-INTRADAY_JITTER, INTRADAY_JITTER))
        close = current_price if is_last else base * (
            1 + rng.uniform(-INTRADAY_JITTER, INTRADAY_JITTER)
        )
        high = max(open_, close) * (1 + rng.uniform(0, WICK_EXTENSION))
        low = min(open_, close) * (1 - rng.uniform(0, WICK_EXTENSION))
        candles.append(
            PricePoint(
                timestamp_ms=today_ms - (points - 1 - i) * _DAY_MS,
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=estimate_volume(close, rng),
            )
        )

    return PriceHistory(asset_id=asset_id, points=tuple(candles), source=DataSource.SYNTHETIC)
