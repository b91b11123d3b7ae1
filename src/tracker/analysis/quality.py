"""Aggregate entry signals into one overall entry-quality rating.

score = sum(confidence_i * weight(strength_i)) / sum(weight(strength_i))

An empty signal list is rated POOR rather than VERY_POOR: no signal means
"nothing to act on", not "actively bad".
"""

from collections.abc import Iterable

from tracker.analysis.models import EntryQuality, EntrySignal, SignalStrength

STRENGTH_WEIGHTS: dict[SignalStrength, float] = {
    SignalStrength.VERY_STRONG: 1.0,
    SignalStrength.STRONG: 0.8,
    SignalStrength.MODERATE: 0.6,
    SignalStrength.WEAK: 0.4,
    SignalStrength.VERY_WEAK: 0.2,
}
DEFAULT_WEIGHT = 0.5

#: Minimum score per rating, checked in order.
QUALITY_THRESHOLDS: tuple[tuple[float, EntryQuality], ...] = (
    (0.85, EntryQuality.EXCELLENT),
    (0.75, EntryQuality.GOOD),
    (0.60, EntryQuality.AVERAGE),
    (0.40, EntryQuality.POOR),
)


def signal_weight(strength: SignalStrength) -> float:
    return STRENGTH_WEIGHTS.get(strength, DEFAULT_WEIGHT)


def weighted_score(signals: Iterable[EntrySignal]) -> float:
    """Confidence-weighted-by-strength average; 0.0 for no signals."""
    total_score = 0.0
    total_weight = 0.0
    for signal in signals:
        weight = signal_weight(signal.strength)
        total_score += signal.confidence * weight
        total_weight += weight
    return total_score / total_weight if total_weight > 0 else 0.0


def classify_score(score: float) -> EntryQuality:
    for threshold, quality in QUALITY_THRESHOLDS:
        if score >= threshold:
            return quality
    return EntryQuality.VERY_POOR


def assess_quality(signals: Iterable[EntrySignal]) -> EntryQuality:
    """Rate a set of signals. Empty input is POOR."""
    signals = list(signals)
    if not signals:
        return EntryQuality.POOR
    return classify_score(weighted_score(signals))
