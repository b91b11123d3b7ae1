"""Cross-subsystem coordination of the shared market-data provider."""

from tracker.coordination.rate_gate import ANALYSIS_CALLER, RateGate

__all__ = ["ANALYSIS_CALLER", "RateGate"]
