"""Bulk verification of active trades."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

from trade_verifier.db.store import TradeStore
from trade_verifier.errors import VerificationError
from trade_verifier.evaluation.lifecycle import TradeLifecycleManager
from trade_verifier.logging import get_logger, trade_context
from trade_verifier.models import TradeFilter

log = get_logger(__name__)


@dataclass
class TradeError:
    trade_id: str
    symbol: str
    error: str
    kind: str


@dataclass
class VerificationSummary:
    total_trades: int = 0
    verified: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[TradeError] = field(default_factory=list)
    timestamp: datetime | None = None


async def verify_active_trades(
    manager: TradeLifecycleManager,
    store: TradeStore,
    scope: TradeFilter | None = None,
    now: datetime | None = None,
    max_concurrency: int | None = None,
) -> VerificationSummary:
    """Re-evaluate every active trade in *scope* and report what happened.

    Never raises for an individual trade: failures are collected in
    ``errors`` and counted in ``failed``. ``updated`` counts trades whose
    status changed.
    """
    now = now or datetime.now(timezone.utc)
    records = store.active_records(scope)
    summary = VerificationSummary(total_trades=len(records), timestamp=now)
    if not records:
        log.info("verify_no_active_trades")
        return summary

    sem = asyncio.Semaphore(max_concurrency or manager.config.max_concurrency)

    async def _one(record):
        async with sem:
            with trade_context(record.trade_id, record.signal.symbol):
                try:
                    outcome = await manager.reevaluate(record.trade_id, now)
                except VerificationError as exc:
                    log.warning("verify_trade_failed", kind=type(exc).__name__, error=str(exc))
                    return record, exc
                except Exception as exc:
                    log.exception("verify_trade_error")
                    return record, exc
            return record, outcome

    for record, outcome in await asyncio.gather(*(_one(r) for r in records)):
        if isinstance(outcome, Exception):
            summary.failed += 1
            summary.errors.append(TradeError(
                trade_id=record.trade_id,
                symbol=record.signal.symbol,
                error=str(outcome),
                kind=type(outcome).__name__,
            ))
            continue
        summary.verified += 1
        if outcome.status != outcome.previous_status:
            summary.updated += 1

    log.info(
        "verify_complete",
        total=summary.total_trades,
        verified=summary.verified,
        updated=summary.updated,
        failed=summary.failed,
    )
    return summary
