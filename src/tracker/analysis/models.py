"""Technical analysis data models.

IndicatorSet is frozen: each pipeline stage derives a new instance with
dataclasses.replace, so a delivered result can never be half filled or
mutated by its consumer. Overall entry quality is derived from the signal
list on access and cannot drift from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tracker.models import DataSource, PriceHistory


class TrendDirection(str, Enum):
    """Price trend classification."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class EntryTechnique(str, Enum):
    """Kind of detected entry opportunity."""

    RSI_OVERSOLD = "rsi_oversold"
    MACD_BULLISH_CROSSOVER = "macd_bullish_crossover"
    MOVING_AVERAGE_CROSSOVER = "moving_average_crossover"
    SUPPORT_RESISTANCE = "support_resistance"
    FIBONACCI_RETRACEMENT = "fibonacci_retracement"
    VOLUME_BREAKOUT = "volume_breakout"
    TRENDLINE_BOUNCE = "trendline_bounce"


class SignalStrength(str, Enum):
    """Five-level ordinal signal strength."""

    VERY_WEAK = "very_weak"
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"
    VERY_STRONG = "very_strong"


class EntryQuality(str, Enum):
    """Overall entry rating derived from the weighted signal score."""

    VERY_POOR = "very_poor"
    POOR = "poor"
    AVERAGE = "average"
    GOOD = "good"
    EXCELLENT = "excellent"


#: Display score (0-100) per quality rating.
QUALITY_DISPLAY_SCORES: dict[EntryQuality, float] = {
    EntryQuality.EXCELLENT: 95.0,
    EntryQuality.GOOD: 80.0,
    EntryQuality.AVERAGE: 60.0,
    EntryQuality.POOR: 30.0,
    EntryQuality.VERY_POOR: 10.0,
}


@dataclass(frozen=True)
class EntrySignal:
    """One detected entry opportunity. Confidence is clamped to [0, 1]."""

    technique: EntryTechnique
    strength: SignalStrength
    rationale: str
    target_price: float
    stop_price: float
    confidence: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", min(max(self.confidence, 0.0), 1.0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "technique": self.technique.value,
            "strength": self.strength.value,
            "rationale": self.rationale,
            "target_price": self.target_price,
            "stop_price": self.stop_price,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class IndicatorSet:
    """Computed technical state for one asset and one analysis run.

    Moving averages and volume statistics stay at 0.0 when the history is
    too short to compute them.
    """

    asset_id: str
    current_price: float = 0.0
    history: PriceHistory | None = None
    rsi: float = 50.0
    macd: float = 0.0
    macd_signal: float = 0.0
    sma10: float = 0.0
    sma50: float = 0.0
    ema10: float = 0.0
    ema50: float = 0.0
    support: float = 0.0
    resistance: float = 0.0
    fib_382: float = 0.0
    fib_500: float = 0.0
    fib_618: float = 0.0
    average_volume: float = 0.0
    current_volume: float = 0.0
    volume_confirmed: bool = False
    trend: TrendDirection = TrendDirection.NEUTRAL
    trendline_support: float = 0.0
    trendline_resistance: float = 0.0
    signals: tuple[EntrySignal, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def quality_score(self) -> float:
        """Confidence-weighted-by-strength average of the signals."""
        from tracker.analysis.quality import weighted_score

        return weighted_score(self.signals)

    @property
    def overall_quality(self) -> EntryQuality:
        from tracker.analysis.quality import assess_quality

        return assess_quality(self.signals)

    @property
    def entry_quality_score(self) -> float:
        """Display score in 0-100 for the overall quality rating."""
        return QUALITY_DISPLAY_SCORES[self.overall_quality]

    @property
    def volume_ratio(self) -> float:
        if self.average_volume > 0:
            return self.current_volume / self.average_volume
        return 1.0

    @property
    def data_source(self) -> DataSource | None:
        return self.history.source if self.history is not None else None

    @property
    def is_synthetic(self) -> bool:
        return self.history is not None and self.history.is_synthetic

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (price history omitted, point count kept)."""
        source = self.data_source
        return {
            "asset_id": self.asset_id,
            "current_price": self.current_price,
            "data_source": source.value if source is not None else None,
            "history_points": len(self.history) if self.history is not None else 0,
            "rsi": self.rsi,
            "macd": self.macd,
            "macd_signal": self.macd_signal,
            "sma10": self.sma10,
            "sma50": self.sma50,
            "ema10": self.ema10,
            "ema50": self.ema50,
            "support": self.support,
            "resistance": self.resistance,
            "fib_382": self.fib_382,
            "fib_500": self.fib_500,
            "fib_618": self.fib_618,
            "average_volume": self.average_volume,
            "current_volume": self.current_volume,
            "volume_ratio": self.volume_ratio,
            "volume_confirmed": self.volume_confirmed,
            "trend": self.trend.value,
            "trendline_support": self.trendline_support,
            "trendline_resistance": self.trendline_resistance,
            "signals": [s.to_dict() for s in self.signals],
            "overall_quality": self.overall_quality.value,
            "quality_score": self.quality_score,
            "entry_quality_score": self.entry_quality_score,
            "error": self.error,
        }
