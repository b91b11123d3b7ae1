"""Technical analysis and entry-signal engine.

Provides the indicator battery, the entry signal rule table, the quality
scorer, the per-asset AnalysisOrchestrator and the WatchlistScanner.
"""

from tracker.analysis.indicators import compute_indicators
from tracker.analysis.models import (
    EntryQuality,
    EntrySignal,
    EntryTechnique,
    IndicatorSet,
    SignalStrength,
    TrendDirection,
)
from tracker.analysis.orchestrator import AnalysisOrchestrator, create_error_indicators
from tracker.analysis.quality import assess_quality, weighted_score
from tracker.analysis.scanner import WatchlistScanner
from tracker.analysis.signals import generate_signals
from tracker.analysis.summary import format_summary

__all__ = [
    "AnalysisOrchestrator",
    "EntryQuality",
    "EntrySignal",
    "EntryTechnique",
    "IndicatorSet",
    "SignalStrength",
    "TrendDirection",
    "WatchlistScanner",
    "assess_quality",
    "compute_indicators",
    "create_error_indicators",
    "format_summary",
    "generate_signals",
    "weighted_score",
]
