"""Trade store: signals, status, and results keyed by trade id."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from trade_verifier.db.tables.trades import TradeResultRow, TradeSignalRow
from trade_verifier.errors import ConcurrentEvaluationConflict, TradeNotFound
from trade_verifier.logging import get_logger
from trade_verifier.models import (
    Active,
    CompletedFailure,
    CompletedSuccess,
    Expired,
    IncompleteData,
    IndicatorSnapshot,
    PositionType,
    TargetHit,
    TargetId,
    TargetLadder,
    TargetLevel,
    Timeframe,
    TradeFilter,
    TradeRecord,
    TradeResult,
    TradeSignal,
    TradeStatus,
)

log = get_logger(__name__)


def as_utc(dt: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; everything stored is UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _dec(val) -> Decimal | None:
    if val is None:
        return None
    return Decimal(str(val))


def _signal_from_row(row: TradeSignalRow) -> TradeSignal:
    return TradeSignal(
        id=row.id,
        symbol=row.symbol,
        position_type=PositionType(row.position_type),
        entry_price=_dec(row.entry_price),
        ladder=TargetLadder(
            tp1=TargetLevel(price=_dec(row.tp1_price), allocation_pct=_dec(row.tp1_allocation)),
            tp2=TargetLevel(price=_dec(row.tp2_price), allocation_pct=_dec(row.tp2_allocation)),
            tp3=TargetLevel(price=_dec(row.tp3_price), allocation_pct=_dec(row.tp3_allocation)),
        ),
        stop_loss_price=_dec(row.stop_loss_price),
        timeframe=Timeframe(row.timeframe),
        confidence_score=row.confidence_score,
        generated_at=as_utc(row.generated_at),
        indicators=IndicatorSnapshot.model_validate(row.indicators or {}),
    )


def _hit_from_row(row: TradeResultRow, target: TargetId) -> TargetHit | None:
    prefix = target.value
    if not getattr(row, f"{prefix}_hit"):
        return None
    return TargetHit(
        target=target,
        hit_at=as_utc(getattr(row, f"{prefix}_hit_at")),
        hit_price=_dec(getattr(row, f"{prefix}_hit_price")),
    )


def _result_from_row(row: TradeResultRow) -> TradeResult:
    return TradeResult(
        tp1=_hit_from_row(row, TargetId.TP1),
        tp2=_hit_from_row(row, TargetId.TP2),
        tp3=_hit_from_row(row, TargetId.TP3),
        stop_loss=_hit_from_row(row, TargetId.STOP_LOSS),
        realised_pnl_usd=_dec(row.realised_pnl_usd),
        unrealised_pnl_usd=_dec(row.unrealised_pnl_usd),
        net_pnl_usd=_dec(row.net_pnl_usd),
        net_pnl_pct=_dec(row.net_pnl_pct),
        fees_usd=_dec(row.fees_usd) or Decimal("0"),
        closed_pct=_dec(row.closed_pct) or Decimal("0"),
        notional_usd=_dec(row.notional_usd),
        duration_minutes=row.duration_minutes,
        last_price=_dec(row.last_price),
        last_price_at=as_utc(row.last_price_at),
        data_source=row.data_source,
        data_resolution=row.data_resolution,
        data_quality_score=row.data_quality_score,
        samples=row.samples,
        warnings=list(row.warnings or []),
        evaluated_at=as_utc(row.evaluated_at),
    )


def _status_from_row(row: TradeSignalRow, result: TradeResult | None) -> TradeStatus:
    completed_at = as_utc(row.completed_at)
    if row.status == "active":
        return Active(result=result, last_checked_at=as_utc(row.last_checked_at))
    if row.status == "completed_success":
        return CompletedSuccess(result=result, completed_at=completed_at)
    if row.status == "completed_failure":
        return CompletedFailure(result=result, completed_at=completed_at)
    if row.status == "expired":
        return Expired(result=result, completed_at=completed_at)
    return IncompleteData(reason=row.status_reason or "", completed_at=completed_at, result=result)


def _result_values(result: TradeResult) -> dict:
    values: dict = {}
    for target in TargetId:
        hit = result.hit(target)
        values[f"{target.value}_hit"] = hit is not None
        values[f"{target.value}_hit_at"] = hit.hit_at if hit else None
        values[f"{target.value}_hit_price"] = hit.hit_price if hit else None
    values.update(
        realised_pnl_usd=result.realised_pnl_usd,
        unrealised_pnl_usd=result.unrealised_pnl_usd,
        net_pnl_usd=result.net_pnl_usd,
        net_pnl_pct=result.net_pnl_pct,
        fees_usd=result.fees_usd,
        closed_pct=result.closed_pct,
        notional_usd=result.notional_usd,
        duration_minutes=result.duration_minutes,
        last_price=result.last_price,
        last_price_at=result.last_price_at,
        data_source=result.data_source,
        data_resolution=result.data_resolution,
        data_quality_score=result.data_quality_score,
        samples=result.samples,
        warnings=list(result.warnings),
        evaluated_at=result.evaluated_at,
    )
    return values


class TradeStore:
    """Reads and writes trade records through one SQLAlchemy session.

    Records returned are detached pydantic copies, so callers can aggregate
    over them while lifecycle writes continue.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def add_signal(self, signal: TradeSignal) -> TradeRecord:
        """Persist a new signal in ``active`` status."""
        ladder = signal.ladder
        row = TradeSignalRow(
            id=signal.id,
            symbol=signal.symbol,
            position_type=signal.position_type.value,
            entry_price=signal.entry_price,
            tp1_price=ladder.tp1.price,
            tp1_allocation=ladder.tp1.allocation_pct,
            tp2_price=ladder.tp2.price,
            tp2_allocation=ladder.tp2.allocation_pct,
            tp3_price=ladder.tp3.price,
            tp3_allocation=ladder.tp3.allocation_pct,
            stop_loss_price=signal.stop_loss_price,
            timeframe=signal.timeframe.value,
            confidence_score=signal.confidence_score,
            generated_at=signal.generated_at,
            expires_at=signal.expires_at,
            indicators=signal.indicators.model_dump(mode="json"),
            status="active",
            version=0,
        )
        self._session.add(row)
        self._session.commit()
        log.info("signal_added", trade_id=signal.id, symbol=signal.symbol, timeframe=signal.timeframe.value)
        return TradeRecord(signal=signal)

    def get(self, trade_id: str) -> TradeRecord:
        row = self._session.get(TradeSignalRow, trade_id)
        if row is None:
            raise TradeNotFound(trade_id)
        # Pick up writes committed through other sessions
        self._session.refresh(row)
        return self._to_record(row)

    def list_records(self, trade_filter: TradeFilter | None = None) -> list[TradeRecord]:
        """All records matching *trade_filter*, ordered by generation time."""
        f = trade_filter or TradeFilter()
        stmt = select(TradeSignalRow, TradeResultRow).outerjoin(
            TradeResultRow, TradeResultRow.trade_signal_id == TradeSignalRow.id,
        )
        if f.symbol is not None:
            stmt = stmt.where(TradeSignalRow.symbol == f.symbol)
        if f.statuses is not None:
            stmt = stmt.where(TradeSignalRow.status.in_(f.statuses))
        if f.timeframe is not None:
            stmt = stmt.where(TradeSignalRow.timeframe == f.timeframe.value)
        if f.start is not None:
            stmt = stmt.where(TradeSignalRow.generated_at >= f.start)
        if f.end is not None:
            stmt = stmt.where(TradeSignalRow.generated_at <= f.end)
        stmt = stmt.order_by(TradeSignalRow.generated_at, TradeSignalRow.id)

        rows = self._session.execute(stmt).all()
        return [_record_from_rows(sig, res) for sig, res in rows]

    def active_records(self, trade_filter: TradeFilter | None = None) -> list[TradeRecord]:
        f = trade_filter or TradeFilter()
        return self.list_records(f.model_copy(update={"statuses": ("active",)}))

    def apply_transition(
        self,
        trade_id: str,
        expected_version: int,
        status: TradeStatus,
    ) -> TradeRecord:
        """Write *status* and its result in a single commit.

        The status row is only updated when its version still equals
        *expected_version*; otherwise nothing is written.

        Raises:
            ConcurrentEvaluationConflict: the version moved since it was read.
        """
        now = datetime.now(timezone.utc)
        result = status.result
        checked_at = getattr(status, "last_checked_at", None) or getattr(status, "completed_at", None)
        if checked_at is None and result is not None:
            checked_at = result.evaluated_at

        stmt = (
            update(TradeSignalRow)
            .where(TradeSignalRow.id == trade_id, TradeSignalRow.version == expected_version)
            .values(
                status=status.status,
                status_reason=getattr(status, "reason", None),
                completed_at=getattr(status, "completed_at", None),
                last_checked_at=checked_at,
                version=expected_version + 1,
                updated_at=now,
            )
        )
        updated = self._session.execute(stmt).rowcount
        if updated == 0:
            self._session.rollback()
            if self._session.get(TradeSignalRow, trade_id) is None:
                raise TradeNotFound(trade_id)
            raise ConcurrentEvaluationConflict(trade_id)

        try:
            if result is not None:
                existing = self._session.execute(
                    select(TradeResultRow).where(TradeResultRow.trade_signal_id == trade_id)
                ).scalar_one_or_none()
                values = _result_values(result)
                if existing is None:
                    self._session.add(TradeResultRow(trade_signal_id=trade_id, **values))
                else:
                    for key, value in values.items():
                        setattr(existing, key, value)

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        log.info(
            "trade_transition",
            trade_id=trade_id,
            status=status.status,
            version=expected_version + 1,
        )
        return self.get(trade_id)

    def _to_record(self, row: TradeSignalRow) -> TradeRecord:
        result_row = self._session.execute(
            select(TradeResultRow).where(TradeResultRow.trade_signal_id == row.id)
        ).scalar_one_or_none()
        return _record_from_rows(row, result_row)


def _record_from_rows(row: TradeSignalRow, result_row: TradeResultRow | None) -> TradeRecord:
    result = _result_from_row(result_row) if result_row is not None else None
    return TradeRecord(
        signal=_signal_from_row(row),
        status=_status_from_row(row, result),
        version=row.version,
    )
