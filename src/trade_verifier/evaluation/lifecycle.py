"""Trade lifecycle: evaluate, pick the status transition, persist it."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from trade_verifier.config.schema import VerificationConfig
from trade_verifier.db.store import TradeStore
from trade_verifier.errors import ConcurrentEvaluationConflict, DataUnavailable, FetchFailure
from trade_verifier.evaluation.pnl import PnLBreakdown, compute_pnl, mark_to_market_pct
from trade_verifier.evaluation.quality import QualityReport, assess_quality
from trade_verifier.evaluation.targets import TargetEvaluation, evaluate_targets
from trade_verifier.exchange.base import PriceHistoryProvider
from trade_verifier.logging import get_logger
from trade_verifier.models import (
    TAKE_PROFITS,
    Active,
    CompletedFailure,
    CompletedSuccess,
    Expired,
    IncompleteData,
    PriceBar,
    TargetHit,
    TargetId,
    TerminalReason,
    TradeRecord,
    TradeResult,
    TradeSignal,
    TradeStatus,
)

log = get_logger(__name__)

NO_DATA_REASON = "No price data available for the trade window"


@dataclass(frozen=True)
class VerificationOutcome:
    """What one (re-)evaluation did to a trade."""

    trade_id: str
    previous_status: str
    record: TradeRecord
    new_hits: list[TargetHit] = field(default_factory=list)
    pnl_pct: Decimal | None = None

    @property
    def status(self) -> str:
        return self.record.status.status

    @property
    def changed(self) -> bool:
        return self.status != self.previous_status or bool(self.new_hits)


def _previous_hits(result: TradeResult | None) -> dict[TargetId, TargetHit]:
    if result is None:
        return {}
    return {t: h for t in TargetId if (h := result.hit(t)) is not None}


def _closed_at(signal: TradeSignal, evaluation: TargetEvaluation, now: datetime) -> datetime:
    """When the position was (or is, so far) last touched."""
    if evaluation.terminal_reason is TerminalReason.STOP_LOSS:
        return evaluation.hits[TargetId.STOP_LOSS].hit_at
    if evaluation.terminal_reason is TerminalReason.ALL_TARGETS:
        return max(evaluation.hits[t].hit_at for t in TAKE_PROFITS)
    if evaluation.is_terminal:
        return signal.expires_at
    return min(now, signal.expires_at)


class TradeLifecycleManager:
    """Owns status transitions for trades in a :class:`TradeStore`.

    Only this class moves a trade out of ``active``. Terminal trades are never
    re-evaluated, so a later, possibly worse, re-fetch cannot overwrite them.
    """

    def __init__(
        self,
        store: TradeStore,
        provider: PriceHistoryProvider,
        config: VerificationConfig | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.config = config or VerificationConfig()
        self._in_flight: set[str] = set()

    def is_in_flight(self, trade_id: str) -> bool:
        return trade_id in self._in_flight

    async def fetch_window(
        self,
        signal: TradeSignal,
        now: datetime,
        since: datetime | None = None,
    ) -> list[PriceBar]:
        """Bars from *since* (default: generation) up to min(now, expiry).

        Raises:
            FetchFailure: the provider failed; the trade stays as it is.
        """
        start = since or signal.generated_at
        end = min(now, signal.expires_at)
        try:
            return await self.provider.get_prices(
                signal.symbol, start, end, signal.timeframe.resolution,
            )
        except FetchFailure:
            raise
        except Exception as exc:
            log.exception("price_provider_error", trade_id=signal.id, symbol=signal.symbol)
            raise FetchFailure(signal.symbol, str(exc)) from exc

    async def reevaluate(
        self,
        trade_id: str,
        now: datetime | None = None,
        *,
        bars: Sequence[PriceBar] | None = None,
        since: datetime | None = None,
    ) -> VerificationOutcome:
        """Evaluate one trade against its price history and persist the result.

        Args:
            trade_id: Trade to evaluate.
            now: Evaluation time, defaults to the current UTC time.
            bars: Pre-fetched bars; fetched from the provider when omitted.
            since: Only bars after this instant are new; earlier hits are taken
                from the stored result.

        Raises:
            ConcurrentEvaluationConflict: already in flight, or the version
                moved twice in a row.
            DataUnavailable: no bars yet and the window is still open.
            FetchFailure: the provider failed.
        """
        now = now or datetime.now(timezone.utc)
        record = self.store.get(trade_id)
        if record.is_terminal:
            log.debug("trade_already_terminal", trade_id=trade_id, status=record.status.status)
            return VerificationOutcome(trade_id, record.status.status, record)

        if trade_id in self._in_flight:
            raise ConcurrentEvaluationConflict(trade_id)
        self._in_flight.add(trade_id)
        try:
            if bars is None:
                bars = await self.fetch_window(record.signal, now, since)
            return self._decide_and_apply(record, list(bars), now, since)
        finally:
            self._in_flight.discard(trade_id)

    def _decide_and_apply(
        self,
        record: TradeRecord,
        bars: list[PriceBar],
        now: datetime,
        since: datetime | None,
    ) -> VerificationOutcome:
        previous_status = record.status.status
        for attempt in range(2):
            status, evaluation, pnl = self.decide(record, bars, now, since)
            try:
                updated = self.store.apply_transition(record.trade_id, record.version, status)
            except ConcurrentEvaluationConflict:
                if attempt:
                    raise
                log.warning("evaluation_conflict_retry", trade_id=record.trade_id, version=record.version)
                record = self.store.get(record.trade_id)
                if record.is_terminal:
                    return VerificationOutcome(record.trade_id, previous_status, record)
                continue

            new_hits = evaluation.newly_hit(_previous_hits(record.result))
            if updated.status.status != previous_status:
                log.info(
                    "trade_status_changed",
                    trade_id=record.trade_id,
                    symbol=record.signal.symbol,
                    previous=previous_status,
                    status=updated.status.status,
                    net_pnl_usd=str(pnl.net_usd) if pnl.net_usd is not None else None,
                )
            return VerificationOutcome(
                trade_id=record.trade_id,
                previous_status=previous_status,
                record=updated,
                new_hits=new_hits,
                pnl_pct=mark_to_market_pct(pnl, Decimal(str(self.config.notional_usd))),
            )
        raise ConcurrentEvaluationConflict(record.trade_id)

    def decide(
        self,
        record: TradeRecord,
        bars: list[PriceBar],
        now: datetime,
        since: datetime | None = None,
    ) -> tuple[TradeStatus, TargetEvaluation, PnLBreakdown]:
        """Pure part of a re-evaluation: the status the trade should move to."""
        signal = record.signal
        previous = record.result
        window_closed = now >= signal.expires_at
        window_end = min(now, signal.expires_at)
        window_start = since or signal.generated_at

        if not bars and not window_closed:
            raise DataUnavailable(signal.symbol)

        evaluation = evaluate_targets(
            signal.ladder,
            signal.stop_loss_price,
            bars,
            signal.position_type,
            window_closed=window_closed,
            since=window_start,
            until=window_end,
            already_hit=_previous_hits(previous),
        )
        evaluation = self._carry_forward(evaluation, previous)

        notional = Decimal(str(self.config.notional_usd))
        pnl = compute_pnl(
            signal.entry_price,
            signal.ladder,
            evaluation,
            position_type=signal.position_type,
            notional_usd=notional,
            fee_pct=self.config.fee_pct,
            slippage_pct=self.config.slippage_pct,
        )

        resolution = signal.timeframe.resolution
        quality: QualityReport | None = None
        if bars:
            quality = assess_quality(bars, window_start, window_end, resolution)

        result = self._build_result(signal, evaluation, pnl, quality, previous, now, since)
        status = self._status_for(evaluation, pnl, result, _closed_at(signal, evaluation, now), now)
        return status, evaluation, pnl

    def _carry_forward(
        self,
        evaluation: TargetEvaluation,
        previous: TradeResult | None,
    ) -> TargetEvaluation:
        """Reuse the last stored price when the newest fetch came back empty."""
        if previous is None or previous.last_price is None or evaluation.last_price is not None:
            return evaluation
        reason = evaluation.terminal_reason
        if reason is TerminalReason.INCOMPLETE_DATA:
            reason = TerminalReason.EXPIRED
        return dataclasses.replace(
            evaluation,
            terminal_reason=reason,
            last_price=previous.last_price,
            last_at=previous.last_price_at,
        )

    def _build_result(
        self,
        signal: TradeSignal,
        evaluation: TargetEvaluation,
        pnl: PnLBreakdown,
        quality: QualityReport | None,
        previous: TradeResult | None,
        now: datetime,
        since: datetime | None,
    ) -> TradeResult:
        samples = evaluation.samples
        if since is not None and previous is not None:
            samples += previous.samples

        if quality is not None:
            score: float | None = quality.overall_score
            warnings = quality.warnings()
        else:
            score = previous.data_quality_score if previous else None
            warnings = list(previous.warnings) if previous else []

        duration = None
        if evaluation.terminal_reason is not TerminalReason.INCOMPLETE_DATA:
            closed_at = _closed_at(signal, evaluation, now)
            duration = max(0, int((closed_at - signal.generated_at).total_seconds() // 60))

        return TradeResult(
            tp1=evaluation.hit(TargetId.TP1),
            tp2=evaluation.hit(TargetId.TP2),
            tp3=evaluation.hit(TargetId.TP3),
            stop_loss=evaluation.hit(TargetId.STOP_LOSS),
            realised_pnl_usd=pnl.realised_usd,
            unrealised_pnl_usd=pnl.unrealised_usd,
            net_pnl_usd=pnl.net_usd,
            net_pnl_pct=pnl.net_pct,
            fees_usd=pnl.fees_usd,
            closed_pct=pnl.closed_pct,
            notional_usd=Decimal(str(self.config.notional_usd)),
            duration_minutes=duration,
            last_price=evaluation.last_price,
            last_price_at=evaluation.last_at,
            data_source=getattr(self.provider, "name", self.config.data_source),
            data_resolution=signal.timeframe.resolution,
            data_quality_score=score,
            samples=samples,
            warnings=warnings,
            evaluated_at=now,
        )

    def _status_for(
        self,
        evaluation: TargetEvaluation,
        pnl: PnLBreakdown,
        result: TradeResult,
        closed_at: datetime,
        now: datetime,
    ) -> TradeStatus:
        reason = evaluation.terminal_reason

        if reason is None:
            return Active(result=result, last_checked_at=now)
        if reason is TerminalReason.STOP_LOSS:
            return CompletedFailure(result=result, completed_at=closed_at)
        if reason is TerminalReason.ALL_TARGETS:
            return CompletedSuccess(result=result, completed_at=closed_at)
        if reason is TerminalReason.INCOMPLETE_DATA:
            return IncompleteData(reason=NO_DATA_REASON, completed_at=closed_at, result=result)

        # Expired: the outcome rests on the closing price, so data quality matters
        score = result.data_quality_score
        if score is not None and score < self.config.min_data_quality:
            return IncompleteData(
                reason=(
                    f"Data quality {score:.0f}% is below the required "
                    f"{self.config.min_data_quality:.0f}%"
                ),
                completed_at=closed_at,
                result=result,
            )
        if self.config.expire_untouched and not evaluation.any_hit:
            return Expired(result=result, completed_at=closed_at)
        if pnl.net_usd is not None and pnl.net_usd >= 0:
            return CompletedSuccess(result=result, completed_at=closed_at)
        return CompletedFailure(result=result, completed_at=closed_at)
