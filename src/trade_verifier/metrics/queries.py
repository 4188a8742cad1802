"""Snapshot records from the store and hand them to the pure aggregators."""

from __future__ import annotations

from trade_verifier.config.schema import AnalyticsConfig
from trade_verifier.db.store import TradeStore
from trade_verifier.metrics.aggregator import PerformanceStats, compute_performance_stats
from trade_verifier.metrics.cache import MetricsCache
from trade_verifier.models import TradeFilter
from trade_verifier.patterns.analyzer import PatternAnalysis, analyze_patterns


def performance_for_scope(
    store: TradeStore,
    scope: TradeFilter | None = None,
    cache: MetricsCache | None = None,
    notional_usd: float = 1000.0,
) -> PerformanceStats:
    """Performance stats for *scope*, memoised per scope when *cache* is given."""
    scope = scope or TradeFilter()

    def _compute() -> PerformanceStats:
        return compute_performance_stats(store.list_records(scope), notional_usd=notional_usd)

    if cache is None:
        return _compute()
    return cache.get_or_compute(f"performance:{scope.cache_key()}", _compute)


def patterns_for_scope(
    store: TradeStore,
    scope: TradeFilter | None = None,
    config: AnalyticsConfig | None = None,
    cache: MetricsCache | None = None,
) -> PatternAnalysis:
    scope = scope or TradeFilter()

    def _compute() -> PatternAnalysis:
        return analyze_patterns(store.list_records(scope), config)

    if cache is None:
        return _compute()
    return cache.get_or_compute(f"patterns:{scope.cache_key()}", _compute)
