"""Indicator conditions tested against trade outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from trade_verifier.models import TradeSignal


@dataclass(frozen=True)
class Condition:
    """One indicator condition at generation time.

    ``applies`` says whether a trade carries the indicator at all; trades it
    rejects are left out of the condition's denominators.
    """

    indicator: str
    name: str
    applies: Callable[[TradeSignal], bool]
    test: Callable[[TradeSignal], bool]

    def holds(self, signal: TradeSignal) -> bool:
        return self.applies(signal) and self.test(signal)


def _has(*fields: str) -> Callable[[TradeSignal], bool]:
    return lambda s: all(getattr(s.indicators, f) is not None for f in fields)


def _between(field: str, low: float | None, high: float | None) -> Callable[[TradeSignal], bool]:
    def test(s: TradeSignal) -> bool:
        value = getattr(s.indicators, field)
        return (low is None or value >= low) and (high is None or value < high)
    return test


RSI_CONDITIONS = [
    Condition("RSI", "RSI < 30 (Oversold)", _has("rsi"), _between("rsi", None, 30)),
    Condition("RSI", "RSI 30-40 (Weak)", _has("rsi"), _between("rsi", 30, 40)),
    Condition("RSI", "RSI 40-60 (Neutral)", _has("rsi"), _between("rsi", 40, 60)),
    Condition("RSI", "RSI 60-70 (Strong)", _has("rsi"), _between("rsi", 60, 70)),
    Condition("RSI", "RSI > 70 (Overbought)", _has("rsi"), _between("rsi", 70, None)),
]

MACD_CONDITIONS = [
    Condition("MACD", "MACD Strongly Negative (< -2)", _has("macd"), _between("macd", None, -2)),
    Condition("MACD", "MACD Negative (-2 to 0)", _has("macd"), _between("macd", -2, 0)),
    Condition("MACD", "MACD Neutral (0 to 2)", _has("macd"), _between("macd", 0, 2)),
    Condition("MACD", "MACD Positive (2 to 5)", _has("macd"), _between("macd", 2, 5)),
    Condition("MACD", "MACD Strongly Positive (>= 5)", _has("macd"), _between("macd", 5, None)),
]

EMA_CONDITIONS = [
    Condition(
        "EMA", "Price Above EMA20", _has("ema_20"),
        lambda s: float(s.entry_price) > s.indicators.ema_20,
    ),
    Condition(
        "EMA", "Price Below EMA20", _has("ema_20"),
        lambda s: float(s.entry_price) < s.indicators.ema_20,
    ),
    Condition(
        "EMA", "EMA20 > EMA50 (Bullish)", _has("ema_20", "ema_50"),
        lambda s: s.indicators.ema_20 > s.indicators.ema_50,
    ),
    Condition(
        "EMA", "EMA20 < EMA50 (Bearish)", _has("ema_20", "ema_50"),
        lambda s: s.indicators.ema_20 < s.indicators.ema_50,
    ),
    Condition(
        "EMA", "EMA50 > EMA200 (Long-term Bullish)", _has("ema_50", "ema_200"),
        lambda s: s.indicators.ema_50 > s.indicators.ema_200,
    ),
    Condition(
        "EMA", "EMA50 < EMA200 (Long-term Bearish)", _has("ema_50", "ema_200"),
        lambda s: s.indicators.ema_50 < s.indicators.ema_200,
    ),
]


def _label_conditions(indicator: str, field: str, labels: Iterable[str]) -> list[Condition]:
    return [
        Condition(
            indicator,
            f"{indicator} = {label}",
            _has(field),
            lambda s, label=label: getattr(s.indicators, field) == label,
        )
        for label in sorted(set(labels))
    ]


def build_conditions(signals: Iterable[TradeSignal]) -> list[Condition]:
    """Fixed indicator buckets plus one condition per observed label."""
    signals = list(signals)
    market = [s.indicators.market_condition for s in signals if s.indicators.market_condition]
    volatility = [s.indicators.volatility for s in signals if s.indicators.volatility]
    return [
        *RSI_CONDITIONS,
        *MACD_CONDITIONS,
        *EMA_CONDITIONS,
        *_label_conditions("Market Condition", "market_condition", market),
        *_label_conditions("Volatility", "volatility", volatility),
    ]
