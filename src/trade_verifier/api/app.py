"""FastAPI application exposing verification and analytics."""

import math
from dataclasses import asdict
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlalchemy.orm import Session

from trade_verifier import __version__
from trade_verifier.config.loader import load_config
from trade_verifier.db.engine import dispose_engine, init_engine, session_scope
from trade_verifier.db.store import TradeStore
from trade_verifier.evaluation.lifecycle import TradeLifecycleManager
from trade_verifier.evaluation.verify import verify_active_trades
from trade_verifier.exchange import CandlePriceProvider, HyperliquidClient, HyperliquidPriceProvider
from trade_verifier.exchange.base import PriceHistoryProvider
from trade_verifier.logging import get_logger
from trade_verifier.metrics import MetricsCache, PerformanceStats
from trade_verifier.metrics.queries import patterns_for_scope, performance_for_scope
from trade_verifier.models import Timeframe, TradeFilter
from trade_verifier.patterns import PatternAnalysis

logger = get_logger(__name__)

app = FastAPI(
    title="Trade Verifier API",
    description="Trade outcome verification and performance analytics",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Load config once at startup
config = load_config()

_metrics_cache = MetricsCache(ttl_seconds=config.analytics.cache_ttl_s)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session."""
    with session_scope() as session:
        yield session


async def get_provider(session: Session = Depends(get_db)) -> AsyncGenerator[PriceHistoryProvider, None]:
    """Price provider selected by ``verification.data_source``."""
    if config.verification.data_source == "database":
        yield CandlePriceProvider(session)
        return
    client = HyperliquidClient(base_url=config.exchange.base_url, timeout_s=config.exchange.timeout_s)
    provider = HyperliquidPriceProvider(client)
    try:
        yield provider
    finally:
        await provider.close()


def get_scope(
    symbol: Optional[str] = None,
    status: Optional[List[str]] = Query(None),
    timeframe: Optional[Timeframe] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> TradeFilter:
    """Trade scope from query parameters."""
    try:
        return TradeFilter(
            symbol=symbol,
            statuses=tuple(status) if status else None,
            timeframe=timeframe,
            start=start,
            end=end,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _num(value: Optional[float], digits: int = 4):
    """JSON-safe number; infinite ratios become the string ``"Infinity"``."""
    if value is None:
        return None
    if math.isinf(value):
        return "Infinity"
    return round(value, digits)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _performance_payload(stats: PerformanceStats) -> dict:
    dd = stats.max_drawdown
    return {
        "totalTrades": stats.total_trades,
        "statusCounts": stats.status_counts,
        "successfulTrades": stats.successes,
        "failedTrades": stats.failures,
        "successRate": _num(stats.success_rate, 2),
        "totalProfitLoss": _num(stats.total_pnl, 2),
        "averageWin": _num(stats.average_win, 2),
        "averageLoss": _num(stats.average_loss, 2),
        "bestTrade": _num(stats.best_trade, 2),
        "worstTrade": _num(stats.worst_trade, 2),
        "averageDurationMinutes": _num(stats.average_duration_minutes, 1),
        "sharpeRatio": _num(stats.sharpe_ratio),
        "sharpeLabel": stats.sharpe_label,
        "profitFactor": _num(stats.profit_factor),
        "profitFactorLabel": stats.profit_factor_label,
        "expectancy": _num(stats.expectancy, 2),
        "recoveryFactor": _num(stats.recovery_factor),
        "maxDrawdown": {
            "percentage": _num(dd.percentage, 2),
            "amount": _num(dd.amount, 2),
            "startDate": _iso(dd.start),
            "endDate": _iso(dd.end),
            "recoveredAt": _iso(dd.recovered_at),
            "recoveryDays": _num(dd.recovery_days, 2),
        },
        "streaks": {
            "longestWinStreak": stats.streaks.longest_win,
            "longestLossStreak": stats.streaks.longest_loss,
            "currentStreak": {
                "type": stats.streaks.current_type,
                "count": stats.streaks.current_count,
            },
        },
        "confidence": {
            "averageSuccessConfidence": _num(stats.confidence.average_success_confidence, 1),
            "averageFailureConfidence": _num(stats.confidence.average_failure_confidence, 1),
            "threshold": _num(stats.confidence.threshold, 1),
            "correlation": _num(stats.confidence.correlation),
            "strength": stats.confidence.strength,
        },
        "byTimeframe": [asdict(g) for g in stats.by_timeframe],
        "byMarketCondition": [asdict(g) for g in stats.by_market_condition],
        "byVolatility": [asdict(g) for g in stats.by_volatility],
        "recommendations": stats.recommendations,
    }


def _patterns_payload(analysis: PatternAnalysis) -> dict:
    return {
        "summary": asdict(analysis.summary),
        "successFactors": [asdict(p) for p in analysis.success_factors],
        "failureFactors": [asdict(p) for p in analysis.failure_factors],
        "tested": len(analysis.tested),
        "excluded": [asdict(e) for e in analysis.excluded],
    }


@app.on_event("startup")
async def startup_event():
    """Initialize database engine on startup."""
    init_engine(config.database.url)
    logger.info("database_engine_initialised")


@app.on_event("shutdown")
async def shutdown_event():
    dispose_engine()


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.post("/api/verify")
async def verify_trades(
    scope: TradeFilter = Depends(get_scope),
    session: Session = Depends(get_db),
    provider: PriceHistoryProvider = Depends(get_provider),
):
    """Re-evaluate all active trades in scope. Per-trade failures are reported, not raised."""
    store = TradeStore(session)
    manager = TradeLifecycleManager(store, provider, config.verification)
    summary = await verify_active_trades(manager, store, scope)
    if summary.updated:
        _metrics_cache.clear()
    return {
        "totalTrades": summary.total_trades,
        "verified": summary.verified,
        "updated": summary.updated,
        "failed": summary.failed,
        "errors": [asdict(e) for e in summary.errors],
        "timestamp": _iso(summary.timestamp),
    }


@app.get("/api/performance")
async def get_performance(
    scope: TradeFilter = Depends(get_scope),
    session: Session = Depends(get_db),
):
    """Performance statistics for trades in scope."""
    stats = performance_for_scope(
        TradeStore(session), scope, _metrics_cache, notional_usd=config.verification.notional_usd,
    )
    return _performance_payload(stats)


@app.get("/api/patterns")
async def get_patterns(
    scope: TradeFilter = Depends(get_scope),
    session: Session = Depends(get_db),
):
    """Indicator conditions significantly associated with winning or losing."""
    analysis = patterns_for_scope(TradeStore(session), scope, config.analytics, _metrics_cache)
    return _patterns_payload(analysis)


@app.get("/api/trades")
async def list_trades(
    scope: TradeFilter = Depends(get_scope),
    limit: int = 100,
    session: Session = Depends(get_db),
):
    """Trade records in scope, most recently generated first."""
    records = TradeStore(session).list_records(scope)
    records.reverse()
    return {
        "total": len(records),
        "trades": [r.model_dump(mode="json") for r in records[:limit]],
    }
