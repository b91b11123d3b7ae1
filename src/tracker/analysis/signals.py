"""Entry signal rules evaluated over computed indicators and the live price.

Rules are independent: any number of them may fire in one run. Each rule
is a (predicate, builder) pair in ENTRY_RULES, evaluated in table order.
"""

from collections.abc import Callable

from tracker.analysis.models import (
    EntrySignal,
    EntryTechnique,
    IndicatorSet,
    SignalStrength,
    TrendDirection,
)

RSI_OVERSOLD = 30.0

_Predicate = Callable[[IndicatorSet, float], bool]
_Builder = Callable[[IndicatorSet, float], EntrySignal]


def _rsi_oversold(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.RSI_OVERSOLD,
        SignalStrength.STRONG,
        "RSI indicates oversold conditions - potential bounce",
        target_price=price * 1.05,
        stop_price=price * 0.95,
        confidence=0.75,
    )


def _macd_crossover(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.MACD_BULLISH_CROSSOVER,
        SignalStrength.MODERATE,
        "MACD line above signal line - bullish momentum",
        target_price=price * 1.08,
        stop_price=price * 0.92,
        confidence=0.70,
    )


def _golden_cross(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.MOVING_AVERAGE_CROSSOVER,
        SignalStrength.STRONG,
        "Golden cross - short moving average above long moving average",
        target_price=price * 1.10,
        stop_price=price * 0.90,
        confidence=0.80,
    )


def _support_bounce(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.SUPPORT_RESISTANCE,
        SignalStrength.MODERATE,
        "Price near support level - potential bounce opportunity",
        target_price=ind.resistance,
        stop_price=ind.support * 0.95,
        confidence=0.65,
    )


def _fibonacci(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.FIBONACCI_RETRACEMENT,
        SignalStrength.MODERATE,
        "Price at 61.8% Fibonacci retracement - key support level",
        target_price=ind.fib_382,
        stop_price=ind.fib_618 * 0.97,
        confidence=0.70,
    )


def _volume_breakout(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.VOLUME_BREAKOUT,
        SignalStrength.VERY_STRONG,
        "High volume breakout with bullish trend confirmed",
        target_price=price * 1.15,
        stop_price=price * 0.88,
        confidence=0.85,
    )


def _trendline_bounce(ind: IndicatorSet, price: float) -> EntrySignal:
    return EntrySignal(
        EntryTechnique.TRENDLINE_BOUNCE,
        SignalStrength.STRONG,
        "Price bouncing off ascending trendline support",
        target_price=ind.trendline_resistance,
        stop_price=ind.trendline_support * 0.96,
        confidence=0.78,
    )


ENTRY_RULES: tuple[tuple[_Predicate, _Builder], ...] = (
    (lambda ind, price: ind.rsi < RSI_OVERSOLD, _rsi_oversold),
    (lambda ind, price: ind.macd > ind.macd_signal and ind.macd > 0, _macd_crossover),
    (lambda ind, price: ind.sma10 > ind.sma50 and ind.sma10 > 0, _golden_cross),
    (lambda ind, price: price <= ind.support * 1.02, _support_bounce),
    (lambda ind, price: price <= ind.fib_618 * 1.01, _fibonacci),
    (
        lambda ind, price: ind.volume_confirmed and ind.trend is TrendDirection.BULLISH,
        _volume_breakout,
    ),
    (
        lambda ind, price: price <= ind.trendline_support * 1.01
        and ind.trend is TrendDirection.BULLISH,
        _trendline_bounce,
    ),
)


def generate_signals(indicators: IndicatorSet, current_price: float) -> tuple[EntrySignal, ...]:
    """Evaluate every entry rule and return the signals that fired."""
    return tuple(
        build(indicators, current_price)
        for predicate, build in ENTRY_RULES
        if predicate(indicators, current_price)
    )
