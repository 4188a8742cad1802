"""Statistical association between generation-time indicators and outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from trade_verifier.config.schema import AnalyticsConfig
from trade_verifier.logging import get_logger
from trade_verifier.models import TradeFilter, TradeRecord
from trade_verifier.patterns.conditions import Condition, build_conditions

log = get_logger(__name__)


@dataclass
class PatternRecord:
    """One condition's occurrence among winners vs losers and its test result."""

    indicator: str
    condition: str
    occurrence_in_winning: int
    occurrence_in_losing: int
    winning_total: int
    losing_total: int
    winning_pct: float
    losing_pct: float
    predictive_power: float
    p_value: float
    is_significant: bool
    confidence: float


@dataclass
class ExcludedCondition:
    indicator: str
    condition: str
    reason: str


@dataclass
class PatternSummary:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    expired_trades: int = 0
    win_rate: float | None = None


@dataclass
class PatternAnalysis:
    summary: PatternSummary = field(default_factory=PatternSummary)
    success_factors: list[PatternRecord] = field(default_factory=list)
    failure_factors: list[PatternRecord] = field(default_factory=list)
    tested: list[PatternRecord] = field(default_factory=list)
    excluded: list[ExcludedCondition] = field(default_factory=list)


def two_by_two_p_value(
    win_with: int,
    win_without: int,
    loss_with: int,
    loss_without: int,
    method: str = "fisher",
) -> float:
    """p-value for independence of condition and outcome in a 2x2 table.

    ``fisher`` uses Fisher's exact test, ``chi2`` Pearson's chi-square with
    Yates' continuity correction. A zero row or column gives 1.0.
    """
    from scipy.stats import chi2_contingency, fisher_exact  # lazy import -- only needed here

    table = [[win_with, win_without], [loss_with, loss_without]]
    if min(win_with + win_without, loss_with + loss_without,
           win_with + loss_with, win_without + loss_without) == 0:
        return 1.0
    if method == "chi2":
        _, p_value, _, _ = chi2_contingency(table, correction=True)
    else:
        _, p_value = fisher_exact(table, alternative="two-sided")
    return float(p_value)


def _test_condition(
    condition: Condition,
    winners: list[TradeRecord],
    losers: list[TradeRecord],
    config: AnalyticsConfig,
) -> PatternRecord | ExcludedCondition:
    win_pool = [r.signal for r in winners if condition.applies(r.signal)]
    loss_pool = [r.signal for r in losers if condition.applies(r.signal)]

    def excluded(reason: str) -> ExcludedCondition:
        return ExcludedCondition(condition.indicator, condition.name, reason)

    if not win_pool or not loss_pool:
        return excluded("no winning or no losing trades carry this indicator")
    if len(win_pool) + len(loss_pool) < config.min_trades:
        return excluded(
            f"only {len(win_pool) + len(loss_pool)} trades carry this indicator "
            f"(minimum {config.min_trades})"
        )

    win_with = sum(1 for s in win_pool if condition.holds(s))
    loss_with = sum(1 for s in loss_pool if condition.holds(s))
    if win_with + loss_with < config.min_occurrences:
        return excluded(
            f"condition occurs in {win_with + loss_with} trades (minimum {config.min_occurrences})"
        )

    p_value = two_by_two_p_value(
        win_with, len(win_pool) - win_with,
        loss_with, len(loss_pool) - loss_with,
        config.test,
    )
    winning_pct = win_with / len(win_pool) * 100
    losing_pct = loss_with / len(loss_pool) * 100
    return PatternRecord(
        indicator=condition.indicator,
        condition=condition.name,
        occurrence_in_winning=win_with,
        occurrence_in_losing=loss_with,
        winning_total=len(win_pool),
        losing_total=len(loss_pool),
        winning_pct=round(winning_pct, 2),
        losing_pct=round(losing_pct, 2),
        predictive_power=round(abs(winning_pct - losing_pct), 2),
        p_value=round(p_value, 4),
        is_significant=p_value < config.significance_level,
        confidence=round(min(100.0, (1 - p_value) * 100), 2),
    )


def analyze_patterns(
    records: Iterable[TradeRecord],
    config: AnalyticsConfig | None = None,
    trade_filter: TradeFilter | None = None,
) -> PatternAnalysis:
    """Find indicator conditions significantly associated with winning or losing.

    Winners are ``completed_success`` trades and losers ``completed_failure``.
    Conditions with too little data are reported in ``excluded`` instead of
    being tested.
    """
    config = config or AnalyticsConfig()
    population = [r for r in list(records) if trade_filter is None or trade_filter.matches(r)]
    winners = [r for r in population if r.status.status == "completed_success"]
    losers = [r for r in population if r.status.status == "completed_failure"]
    expired = [r for r in population if r.status.status == "expired"]

    decided = len(winners) + len(losers)
    analysis = PatternAnalysis(summary=PatternSummary(
        total_trades=decided + len(expired),
        winning_trades=len(winners),
        losing_trades=len(losers),
        expired_trades=len(expired),
        win_rate=round(len(winners) / decided * 100, 2) if decided else None,
    ))

    for condition in build_conditions(r.signal for r in winners + losers):
        outcome = _test_condition(condition, winners, losers, config)
        if isinstance(outcome, ExcludedCondition):
            analysis.excluded.append(outcome)
        else:
            analysis.tested.append(outcome)

    ranked = sorted(
        (p for p in analysis.tested if p.is_significant),
        key=lambda p: (p.confidence, p.predictive_power),
        reverse=True,
    )
    analysis.success_factors = [p for p in ranked if p.winning_pct > p.losing_pct][: config.top_n]
    analysis.failure_factors = [p for p in ranked if p.losing_pct > p.winning_pct][: config.top_n]

    log.info(
        "patterns_analyzed",
        trades=decided,
        tested=len(analysis.tested),
        excluded=len(analysis.excluded),
        success_factors=len(analysis.success_factors),
        failure_factors=len(analysis.failure_factors),
    )
    return analysis
