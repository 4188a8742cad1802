"""Performance metrics: formulas, aggregation, caching and the store bridge."""

from trade_verifier.metrics.aggregator import PerformanceStats, compute_performance_stats
from trade_verifier.metrics.cache import MetricsCache
from trade_verifier.metrics.formulas import (
    Drawdown,
    Streaks,
    expectancy,
    max_drawdown,
    pearson,
    profit_factor,
    recovery_factor,
    sharpe_ratio,
    streaks,
    success_rate,
)

__all__ = [
    "Drawdown",
    "MetricsCache",
    "PerformanceStats",
    "Streaks",
    "compute_performance_stats",
    "expectancy",
    "max_drawdown",
    "pearson",
    "profit_factor",
    "recovery_factor",
    "sharpe_ratio",
    "streaks",
    "success_rate",
]
