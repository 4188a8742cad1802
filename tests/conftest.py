"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from trade_verifier.db.base import Base
import trade_verifier.db.tables  # noqa: F401
from trade_verifier.db.store import TradeStore
from trade_verifier.models import (
    IndicatorSnapshot,
    PriceBar,
    TargetLadder,
    TargetLevel,
    Timeframe,
    TradeSignal,
)

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_sqlite_engine():
    """In-memory SQLite engine with all schemas/tables created.

    Patches JSONB→JSON and BigInteger→Integer for SQLite compatibility.
    A single shared connection lets the API test client use it from
    another thread.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    # SQLite doesn't support schemas, JSONB, or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session():
    engine = make_sqlite_engine()
    session = Session(engine, expire_on_commit=False)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session):
    return TradeStore(db_session)


# ── Factories ─────────────────────────────────────────────────


def make_ladder(tp1="105", tp2="110", tp3="120", allocations=("50", "30", "20")) -> TargetLadder:
    return TargetLadder(
        tp1=TargetLevel(price=Decimal(tp1), allocation_pct=Decimal(allocations[0])),
        tp2=TargetLevel(price=Decimal(tp2), allocation_pct=Decimal(allocations[1])),
        tp3=TargetLevel(price=Decimal(tp3), allocation_pct=Decimal(allocations[2])),
    )


def make_signal(
    trade_id: str = "t1",
    symbol: str = "BTC/USD",
    entry="100",
    stop_loss="95",
    ladder: TargetLadder | None = None,
    timeframe: Timeframe = Timeframe.H1,
    confidence: int = 75,
    generated_at: datetime = NOW,
    **indicators,
) -> TradeSignal:
    return TradeSignal(
        id=trade_id,
        symbol=symbol,
        entry_price=Decimal(entry),
        ladder=ladder or make_ladder(),
        stop_loss_price=Decimal(stop_loss),
        timeframe=timeframe,
        confidence_score=confidence,
        generated_at=generated_at,
        indicators=IndicatorSnapshot(**indicators),
    )


def bar(minutes: float, high, low, close=None, open_=None, start: datetime = NOW) -> PriceBar:
    """OHLC bar *minutes* after *start*; close defaults to the midpoint."""
    high, low = Decimal(str(high)), Decimal(str(low))
    return PriceBar(
        timestamp=start + timedelta(minutes=minutes),
        open=Decimal(str(open_)) if open_ is not None else None,
        high=high,
        low=low,
        close=Decimal(str(close)) if close is not None else (high + low) / 2,
    )


def flat_bars(count: int, price="100", step_minutes: int = 5, start: datetime = NOW) -> list[PriceBar]:
    """*count* bars that never move away from *price*."""
    p = Decimal(price)
    return [
        PriceBar(timestamp=start + timedelta(minutes=step_minutes * i), open=p, high=p, low=p, close=p)
        for i in range(count)
    ]


class FakePriceProvider:
    """Serves bars from memory, filtered to the requested window."""

    name = "fake"

    def __init__(self, bars=None, error: Exception | None = None):
        self.bars = list(bars or [])
        self.error = error
        self.calls: list[tuple] = []

    async def get_prices(self, symbol, start, end, interval=None):
        self.calls.append((symbol, start, end, interval))
        if self.error is not None:
            raise self.error
        return [b for b in self.bars if start <= b.timestamp <= end]


class FakeClock:
    """Manually advanced clock; ``sleep`` moves time forward instantly."""

    def __init__(self, start: datetime = NOW):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
