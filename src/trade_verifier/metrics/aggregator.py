"""Performance aggregation over a snapshot of trade records."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from trade_verifier.metrics.formulas import (
    Drawdown,
    Streaks,
    correlation_strength,
    expectancy,
    max_drawdown,
    pearson,
    profit_factor,
    profit_factor_label,
    recovery_factor,
    sharpe_label,
    sharpe_ratio,
    streaks,
    success_rate,
)
from trade_verifier.models import STATUS_NAMES, TradeFilter, TradeRecord

DEFAULT_NOTIONAL = 1000.0


@dataclass
class GroupPerformance:
    label: str
    trades: int
    success_rate: float | None
    total_pnl: float
    avg_pnl: float


@dataclass
class ConfidenceAnalysis:
    average_success_confidence: float | None = None
    average_failure_confidence: float | None = None
    threshold: float | None = None
    correlation: float | None = None
    strength: str | None = None


@dataclass
class PerformanceStats:
    """Summary statistics for one trade population."""

    total_trades: int = 0
    status_counts: dict[str, int] = field(default_factory=lambda: dict.fromkeys(STATUS_NAMES, 0))
    successes: int = 0
    failures: int = 0
    success_rate: float | None = None

    total_pnl: float = 0.0
    average_win: float | None = None
    average_loss: float | None = None
    best_trade: float | None = None
    worst_trade: float | None = None
    average_duration_minutes: float | None = None

    sharpe_ratio: float | None = None
    sharpe_label: str | None = None
    profit_factor: float | None = None
    profit_factor_label: str | None = None
    expectancy: float | None = None
    recovery_factor: float | None = None
    max_drawdown: Drawdown = field(default_factory=Drawdown)
    streaks: Streaks = field(default_factory=Streaks)
    confidence: ConfidenceAnalysis = field(default_factory=ConfidenceAnalysis)

    by_timeframe: list[GroupPerformance] = field(default_factory=list)
    by_market_condition: list[GroupPerformance] = field(default_factory=list)
    by_volatility: list[GroupPerformance] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def _completion_key(record: TradeRecord):
    return (record.completed_at or record.signal.expires_at, record.trade_id)


def _pnl(record: TradeRecord) -> float:
    return float(record.result.net_pnl_usd)


def _decided(records: Iterable[TradeRecord]) -> list[TradeRecord]:
    """Completed success/failure trades that carry a net P&L, in completion order."""
    decided = [
        r for r in records
        if r.status.status in ("completed_success", "completed_failure")
        and r.result is not None
        and r.result.net_pnl_usd is not None
    ]
    return sorted(decided, key=_completion_key)


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def group_performance(
    records: list[TradeRecord],
    key: Callable[[TradeRecord], str | None],
) -> list[GroupPerformance]:
    """Per-label trade count, success rate and P&L, best total P&L first."""
    groups: dict[str, list[TradeRecord]] = {}
    for record in records:
        groups.setdefault(key(record) or "unknown", []).append(record)

    out = []
    for label, members in groups.items():
        wins = sum(1 for r in members if r.status.status == "completed_success")
        pnls = [_pnl(r) for r in members]
        out.append(GroupPerformance(
            label=label,
            trades=len(members),
            success_rate=success_rate(wins, len(members) - wins),
            total_pnl=sum(pnls),
            avg_pnl=sum(pnls) / len(pnls),
        ))
    out.sort(key=lambda g: (-g.total_pnl, g.label))
    return out


def confidence_analysis(decided: list[TradeRecord]) -> ConfidenceAnalysis:
    wins = [r.signal.confidence_score for r in decided if r.status.status == "completed_success"]
    losses = [r.signal.confidence_score for r in decided if r.status.status == "completed_failure"]
    avg_win = _mean(wins)
    avg_loss = _mean(losses)
    threshold = (avg_win + avg_loss) / 2 if avg_win is not None and avg_loss is not None else None

    coefficient = pearson(
        [r.signal.confidence_score for r in decided],
        [1.0 if r.status.status == "completed_success" else 0.0 for r in decided],
    )
    return ConfidenceAnalysis(
        average_success_confidence=avg_win,
        average_failure_confidence=avg_loss,
        threshold=threshold,
        correlation=coefficient,
        strength=correlation_strength(coefficient),
    )


def recommendations(stats: PerformanceStats) -> list[str]:
    """Plain-language suggestions derived from the summary figures."""
    if stats.successes + stats.failures == 0:
        return ["Not enough completed trades to assess performance yet."]

    rate = stats.success_rate or 0.0
    notes = []
    if rate >= 70:
        notes.append("Excellent performance. Continue with the current strategy.")
    elif rate >= 60:
        notes.append("Good performance. Consider refining entry criteria for even better results.")
    elif rate >= 50:
        notes.append("Moderate performance. Focus on high-confidence trades and favourable market conditions.")
    else:
        notes.append("Performance needs improvement. Review and adjust the trading strategy.")

    if stats.by_market_condition:
        top = stats.by_market_condition[0]
        if top.success_rate is not None and top.success_rate > rate + 10:
            notes.append(
                f"Focus on {top.label} market conditions: {top.success_rate:.1f}% success rate."
            )

    if stats.by_timeframe:
        top = stats.by_timeframe[0]
        if top.total_pnl > 0 and top.success_rate is not None and top.success_rate > rate + 10:
            notes.append(
                f"{top.label} timeframe performs best with {top.success_rate:.1f}% success "
                f"and ${top.total_pnl:.2f} total profit."
            )

    conf = stats.confidence
    if (
        conf.average_success_confidence is not None
        and conf.average_failure_confidence is not None
        and conf.average_success_confidence - conf.average_failure_confidence > 10
    ):
        notes.append(
            f"Prioritise trades with confidence above {conf.threshold:.0f} for better outcomes."
        )

    decided = stats.successes + stats.failures
    if decided < 10:
        notes.append("Keep generating trades to build a more reliable performance history.")
    elif decided < 30:
        notes.append("Sample size is growing. Patterns become more reliable with each trade.")

    if rate < 60:
        notes.append("Consider tightening stop losses or widening take-profit targets to improve risk/reward.")
    return notes


def compute_performance_stats(
    records: Iterable[TradeRecord],
    trade_filter: TradeFilter | None = None,
    notional_usd: float = DEFAULT_NOTIONAL,
) -> PerformanceStats:
    """Compute summary statistics for the records matching *trade_filter*.

    *records* is copied before use, so a concurrent writer appending to the
    source collection cannot produce a partial aggregate.
    """
    population = [r for r in list(records) if trade_filter is None or trade_filter.matches(r)]
    stats = PerformanceStats(total_trades=len(population))
    stats.status_counts.update(Counter(r.status.status for r in population))
    stats.successes = stats.status_counts["completed_success"]
    stats.failures = stats.status_counts["completed_failure"]
    stats.success_rate = success_rate(stats.successes, stats.failures)

    decided = _decided(population)
    if not decided:
        stats.recommendations = recommendations(stats)
        return stats

    pnls = [_pnl(r) for r in decided]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    stats.total_pnl = sum(pnls)
    stats.average_win = _mean(wins)
    stats.average_loss = _mean(losses)
    stats.best_trade = max(pnls)
    stats.worst_trade = min(pnls)
    durations = [r.result.duration_minutes for r in decided if r.result.duration_minutes is not None]
    stats.average_duration_minutes = _mean(durations)

    stats.sharpe_ratio = sharpe_ratio([float(r.result.net_pnl_pct) for r in decided])
    stats.sharpe_label = sharpe_label(stats.sharpe_ratio)
    stats.profit_factor = profit_factor(sum(wins), abs(sum(losses)))
    stats.profit_factor_label = profit_factor_label(stats.profit_factor)
    stats.expectancy = expectancy(pnls)

    # Equity starts at the notional, one point before the first completion
    equity = [notional_usd]
    timestamps: list[datetime] = [decided[0].signal.generated_at]
    running = notional_usd
    for record, pnl in zip(decided, pnls):
        running += pnl
        equity.append(running)
        timestamps.append(_completion_key(record)[0])
    stats.max_drawdown = max_drawdown(equity, timestamps)
    stats.recovery_factor = recovery_factor(stats.total_pnl, stats.max_drawdown.amount)

    stats.streaks = streaks([r.status.status == "completed_success" for r in decided])
    stats.confidence = confidence_analysis(decided)

    stats.by_timeframe = group_performance(decided, lambda r: r.signal.timeframe.value)
    stats.by_market_condition = group_performance(decided, lambda r: r.signal.indicators.market_condition)
    stats.by_volatility = group_performance(decided, lambda r: r.signal.indicators.volatility)
    stats.recommendations = recommendations(stats)
    return stats
