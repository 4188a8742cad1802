"""Periodic re-check of active trades with change notifications."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from trade_verifier.config.schema import MonitorConfig
from trade_verifier.db.store import TradeStore
from trade_verifier.errors import ConcurrentEvaluationConflict, DataUnavailable, FetchFailure
from trade_verifier.evaluation.lifecycle import TradeLifecycleManager
from trade_verifier.evaluation.pnl import compute_pnl, mark_to_market_pct
from trade_verifier.evaluation.targets import evaluate_targets
from trade_verifier.logging import get_logger, trade_context
from trade_verifier.models import TargetHit, TargetId, TradeFilter, TradeRecord, candle_start
from trade_verifier.monitor.clock import Clock, SystemClock
from trade_verifier.monitor.notifications import NotificationBus, PnLChangeEvent, TargetHitEvent

log = get_logger(__name__)


@dataclass
class SweepReport:
    started_at: datetime
    checked: int = 0
    evaluated: int = 0
    skipped: int = 0
    transitions: int = 0
    notifications: int = 0
    failures: dict[str, str] = field(default_factory=dict)


def _stored_hits(record: TradeRecord) -> dict[TargetId, TargetHit]:
    result = record.result
    if result is None:
        return {}
    return {t: h for t in TargetId if (h := result.hit(t)) is not None}


class RealTimeMonitor:
    """Re-checks ``active`` trades on a fixed interval.

    Each check re-reads prices from the open of the candle that was still
    forming at the previous check, so late updates to that candle are seen.
    The lifecycle manager is invoked when a target newly hit, the window
    closed, or the trade has never been evaluated; it then walks the whole
    window again. Notifications go out for new hits and for P&L swings of at
    least ``materiality_pct`` since the last notice.
    """

    def __init__(
        self,
        manager: TradeLifecycleManager,
        store: TradeStore,
        bus: NotificationBus,
        clock: Clock | None = None,
        config: MonitorConfig | None = None,
        scope: TradeFilter | None = None,
    ) -> None:
        self.manager = manager
        self.store = store
        self.bus = bus
        self.clock = clock or SystemClock()
        self.config = config or MonitorConfig()
        self.scope = scope
        self._last_checked: dict[str, datetime] = {}
        self._last_notified_pct: dict[str, Decimal] = {}

    async def sweep(self) -> SweepReport:
        """Check every active trade once. Per-trade failures never abort the sweep."""
        now = self.clock.now()
        report = SweepReport(started_at=now)
        records = self.store.active_records(self.scope)
        report.checked = len(records)
        self._prune({r.trade_id for r in records})

        await asyncio.gather(*(self._check_guarded(r, now, report) for r in records))

        log.info(
            "monitor_sweep",
            checked=report.checked,
            evaluated=report.evaluated,
            skipped=report.skipped,
            transitions=report.transitions,
            notifications=report.notifications,
            failures=len(report.failures),
        )
        return report

    async def run(self, stop_event: asyncio.Event) -> None:
        """Sweep every ``interval_s`` until *stop_event* is set."""
        log.info("monitor_started", interval_s=self.config.interval_s)
        while not stop_event.is_set():
            try:
                await self.sweep()
            except Exception:
                log.exception("sweep_error")
            if stop_event.is_set():
                break
            await self.clock.sleep(self.config.interval_s)
        log.info("monitor_stopped")

    async def _check_guarded(self, record: TradeRecord, now: datetime, report: SweepReport) -> None:
        trade_id = record.trade_id
        if self.manager.is_in_flight(trade_id):
            report.skipped += 1
            log.debug("trade_in_flight", trade_id=trade_id)
            return
        with trade_context(trade_id, record.signal.symbol):
            try:
                await self._check(record, now, report)
            except (FetchFailure, ConcurrentEvaluationConflict) as exc:
                report.failures[trade_id] = str(exc)
                log.warning("monitor_trade_deferred", kind=type(exc).__name__, error=str(exc))
            except Exception as exc:
                report.failures[trade_id] = str(exc)
                log.exception("monitor_trade_error")

    async def _check(self, record: TradeRecord, now: datetime, report: SweepReport) -> None:
        signal = record.signal
        checked = self._last_checked.get(record.trade_id) or getattr(record.status, "last_checked_at", None)
        since = candle_start(checked, signal.timeframe.resolution) if checked else None
        window_closed = now >= signal.expires_at

        bars = await self.manager.fetch_window(signal, now, since)
        if not bars and not window_closed:
            return

        stored = _stored_hits(record)
        preview = evaluate_targets(
            signal.ladder,
            signal.stop_loss_price,
            bars,
            signal.position_type,
            window_closed=window_closed,
            since=since,
            until=min(now, signal.expires_at),
            already_hit=stored,
        )
        fresh = preview.newly_hit(stored)

        pnl_pct: Decimal | None = None
        if fresh or window_closed or record.result is None:
            try:
                # A first check already holds the full window; otherwise refetch it
                full_window = bars if since is None else None
                outcome = await self.manager.reevaluate(record.trade_id, now, bars=full_window)
            except DataUnavailable:
                return
            report.evaluated += 1
            if outcome.status != outcome.previous_status:
                report.transitions += 1
            for hit in outcome.new_hits:
                await self._notify_hit(record, hit, report)
            pnl_pct = outcome.pnl_pct
            if outcome.record.is_terminal:
                if pnl_pct is not None:
                    await self._notify_pnl(record, pnl_pct, outcome.record.result.last_price, now, report)
                self._forget(record.trade_id)
                return
        else:
            notional = Decimal(str(self.manager.config.notional_usd))
            pnl = compute_pnl(
                signal.entry_price,
                signal.ladder,
                preview,
                position_type=signal.position_type,
                notional_usd=notional,
                fee_pct=self.manager.config.fee_pct,
                slippage_pct=self.manager.config.slippage_pct,
            )
            pnl_pct = mark_to_market_pct(pnl, notional)

        self._last_checked[record.trade_id] = min(now, signal.expires_at)
        if pnl_pct is not None:
            await self._notify_pnl(record, pnl_pct, preview.last_price, now, report)

    async def _notify_hit(self, record: TradeRecord, hit: TargetHit, report: SweepReport) -> None:
        event = TargetHitEvent(
            trade_id=record.trade_id,
            symbol=record.signal.symbol,
            target=hit.target,
            price=hit.hit_price,
            timestamp=hit.hit_at,
        )
        log.info("target_hit", trade_id=record.trade_id, target=hit.target.value, price=str(hit.hit_price))
        await self.bus.publish(event)
        report.notifications += 1

    async def _notify_pnl(
        self,
        record: TradeRecord,
        pnl_pct: Decimal,
        price: Decimal | None,
        now: datetime,
        report: SweepReport,
    ) -> None:
        baseline = self._last_notified_pct.get(record.trade_id, Decimal("0"))
        if abs(pnl_pct - baseline) < Decimal(str(self.config.materiality_pct)):
            return
        self._last_notified_pct[record.trade_id] = pnl_pct
        await self.bus.publish(PnLChangeEvent(
            trade_id=record.trade_id,
            symbol=record.signal.symbol,
            price=price,
            timestamp=now,
            pnl_pct=pnl_pct,
            previous_pnl_pct=baseline,
        ))
        report.notifications += 1

    def _forget(self, trade_id: str) -> None:
        self._last_checked.pop(trade_id, None)
        self._last_notified_pct.pop(trade_id, None)

    def _prune(self, active_ids: set[str]) -> None:
        """Drop state for trades closed elsewhere (API, another process)."""
        for trade_id in set(self._last_checked) | set(self._last_notified_pct):
            if trade_id not in active_ids:
                self._forget(trade_id)
