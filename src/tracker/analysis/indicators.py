"""Technical indicator computation over a price history.

Pure functions: no I/O and no shared state. Each indicator degrades to a
neutral default when the history is too short (RSI 50, moving averages 0.0,
NEUTRAL trend) instead of raising.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from tracker.analysis.models import IndicatorSet, TrendDirection
from tracker.models import PriceHistory, PricePoint

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
#: Signal line is approximated as a fixed fraction of the MACD line.
MACD_SIGNAL_FACTOR = 0.9
SMA_SHORT = 10
SMA_LONG = 50
VOLUME_PERIOD = 20
VOLUME_CONFIRMATION_RATIO = 1.5
SUPPORT_RESISTANCE_SAMPLES = 5
TREND_WINDOW = 10
TREND_BULLISH_RATIO = 1.02
TREND_BEARISH_RATIO = 0.98
TRENDLINE_SUPPORT_FACTOR = 0.95
TRENDLINE_RESISTANCE_FACTOR = 1.05
FIB_RATIOS = (0.382, 0.5, 0.618)


@dataclass(frozen=True)
class VolumeStats:
    average: float = 0.0
    current: float = 0.0
    confirmed: bool = False


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> float:
    """RSI over the trailing ``period`` close-to-close changes.

    Uses simple (not Wilder-smoothed) averages of gains and losses.
    Returns 50.0 with fewer than period + 1 closes and 100.0 when the
    average loss is exactly zero.
    """
    if len(closes) < period + 1:
        return 50.0

    window = closes[-(period + 1):]
    gains = 0.0
    losses = 0.0
    for prev, cur in zip(window, window[1:]):
        change = cur - prev
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    rsi = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    return min(max(rsi, 0.0), 100.0)


def compute_sma(closes: Sequence[float], period: int) -> float:
    """Mean of the trailing ``period`` closes; 0.0 when history is shorter."""
    if period <= 0 or len(closes) < period:
        return 0.0
    return _mean(closes[-period:])


def compute_ema(closes: Sequence[float], period: int) -> float:
    """Final EMA value, seeded with the SMA of the first ``period`` closes.

    Every later close is folded in with multiplier 2 / (period + 1).
    Returns 0.0 when history is shorter than ``period``.
    """
    if period <= 0 or len(closes) < period:
        return 0.0
    multiplier = 2.0 / (period + 1.0)
    ema = _mean(closes[:period])
    for close in closes[period:]:
        ema = close * multiplier + ema * (1.0 - multiplier)
    return ema


def compute_macd(closes: Sequence[float]) -> tuple[float, float]:
    """Return (MACD line, signal line).

    MACD = EMA(12) - EMA(26). The signal line is 0.9 x MACD, an
    approximation kept for parity rather than a 9-period EMA of MACD.
    Both are 0.0 with fewer than 26 closes.
    """
    if len(closes) < MACD_SLOW:
        return 0.0, 0.0
    macd = compute_ema(closes, MACD_FAST) - compute_ema(closes, MACD_SLOW)
    return macd, macd * MACD_SIGNAL_FACTOR


def compute_support_resistance(
    points: Sequence[PricePoint], samples: int = SUPPORT_RESISTANCE_SAMPLES
) -> tuple[float, float]:
    """Support = mean of the lowest lows, resistance = mean of the highest highs."""
    if not points:
        return 0.0, 0.0
    lows = sorted(p.low for p in points)[:samples]
    highs = sorted((p.high for p in points), reverse=True)[:samples]
    return _mean(lows), _mean(highs)


def compute_fibonacci_levels(points: Sequence[PricePoint]) -> tuple[float, float, float]:
    """38.2%, 50% and 61.8% retracements measured down from the swing high."""
    if not points:
        return 0.0, 0.0, 0.0
    swing_high = max(p.high for p in points)
    swing_low = min(p.low for p in points)
    span = swing_high - swing_low
    fib_382, fib_500, fib_618 = (swing_high - span * ratio for ratio in FIB_RATIOS)
    return fib_382, fib_500, fib_618


def compute_volume_stats(
    points: Sequence[PricePoint],
    live_volume: float | None = None,
    period: int = VOLUME_PERIOD,
) -> VolumeStats:
    """Trailing average volume, current volume and confirmation flag.

    ``live_volume`` (e.g. provider 24h volume) is preferred for the current
    volume when positive; otherwise the last candle's volume is used.
    Needs at least ``period`` points, else all fields stay at defaults.
    """
    if len(points) < period:
        return VolumeStats()
    average = _mean([p.volume for p in points[-period:]])
    current = live_volume if live_volume and live_volume > 0 else points[-1].volume
    return VolumeStats(
        average=average,
        current=current,
        confirmed=current > average * VOLUME_CONFIRMATION_RATIO,
    )


def classify_trend(closes: Sequence[float], window: int = TREND_WINDOW) -> TrendDirection:
    """Compare the mean of the last ``window`` closes with the window before it."""
    if len(closes) < window * 2:
        return TrendDirection.NEUTRAL
    recent = _mean(closes[-window:])
    older = _mean(closes[-2 * window:-window])
    if recent >= older * TREND_BULLISH_RATIO:
        return TrendDirection.BULLISH
    if recent <= older * TREND_BEARISH_RATIO:
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


def enhance_trend(trend: TrendDirection, pct_change_7d: float | None) -> TrendDirection:
    """Upgrade a NEUTRAL trend from the 7-day percent change (beyond +/-5%)."""
    if trend is not TrendDirection.NEUTRAL or pct_change_7d is None:
        return trend
    if pct_change_7d > 5.0:
        return TrendDirection.BULLISH
    if pct_change_7d < -5.0:
        return TrendDirection.BEARISH
    return trend


def compute_indicators(
    asset_id: str,
    history: PriceHistory,
    current_price: float,
    live_volume: float | None = None,
) -> IndicatorSet:
    """Derive the full indicator battery from ``history``.

    The returned IndicatorSet carries no signals yet.
    """
    points = history.points
    closes = history.closes

    macd, macd_signal = compute_macd(closes)
    support, resistance = compute_support_resistance(points)
    fib_382, fib_500, fib_618 = compute_fibonacci_levels(points)
    volume = compute_volume_stats(points, live_volume)

    trend = classify_trend(closes)
    trendline_support = 0.0
    trendline_resistance = 0.0
    if len(closes) >= TREND_WINDOW * 2:
        trendline_support = support * TRENDLINE_SUPPORT_FACTOR
        trendline_resistance = resistance * TRENDLINE_RESISTANCE_FACTOR

    return IndicatorSet(
        asset_id=asset_id,
        current_price=current_price,
        history=history,
        rsi=compute_rsi(closes),
        macd=macd,
        macd_signal=macd_signal,
        sma10=compute_sma(closes, SMA_SHORT),
        sma50=compute_sma(closes, SMA_LONG),
        ema10=compute_ema(closes, SMA_SHORT),
        ema50=compute_ema(closes, SMA_LONG),
        support=support,
        resistance=resistance,
        fib_382=fib_382,
        fib_500=fib_500,
        fib_618=fib_618,
        average_volume=volume.average,
        current_volume=volume.current,
        volume_confirmed=volume.confirmed,
        trend=trend,
        trendline_support=trendline_support,
        trendline_resistance=trendline_resistance,
    )
