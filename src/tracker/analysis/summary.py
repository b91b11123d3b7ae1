"""Plain-text analysis summary for display surfaces."""

from tracker.analysis.models import IndicatorSet


def _rsi_zone(rsi: float) -> str:
    if rsi < 30:
        return "oversold"
    if rsi > 70:
        return "overbought"
    return "neutral"


def format_summary(indicators: IndicatorSet) -> str:
    """Render key levels, indicator states and fired signals as text."""
    macd_state = "bullish" if indicators.macd > indicators.macd_signal else "bearish"
    ma_state = "golden cross" if indicators.sma10 > indicators.sma50 else "death cross"

    lines = [
        f"TECHNICAL ANALYSIS: {indicators.asset_id}",
        f"Entry quality: {indicators.overall_quality.value} "
        f"({indicators.entry_quality_score:.0f}/100)",
        f"Trend: {indicators.trend.value}",
        f"Support: ${indicators.support:,.2f}",
        f"Resistance: ${indicators.resistance:,.2f}",
        f"RSI: {indicators.rsi:.1f} ({_rsi_zone(indicators.rsi)})",
        f"MACD: {indicators.macd:.4f} ({macd_state})",
        f"SMA10/50: ${indicators.sma10:,.2f}/${indicators.sma50:,.2f} ({ma_state})",
        f"Volume ratio: {indicators.volume_ratio:.2f}x",
    ]
    if indicators.is_synthetic:
        lines.append("Data: estimated (provider unavailable)")

    if indicators.signals:
        lines.append("Entry signals:")
        for signal in indicators.signals:
            lines.append(
                f"- [{signal.strength.value}] {signal.technique.value}: {signal.rationale}"
            )
    return "\n".join(lines)
