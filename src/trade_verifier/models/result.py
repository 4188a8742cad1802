"""Target hits and the per-trade verification result."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TargetId(str, Enum):
    TP1 = "tp1"
    TP2 = "tp2"
    TP3 = "tp3"
    STOP_LOSS = "stop_loss"


TAKE_PROFITS = (TargetId.TP1, TargetId.TP2, TargetId.TP3)


class TerminalReason(str, Enum):
    """Why target evaluation stopped."""

    STOP_LOSS = "stop_loss"
    ALL_TARGETS = "all_targets"
    EXPIRED = "expired"
    INCOMPLETE_DATA = "incomplete_data"


class TargetHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: TargetId
    hit_at: datetime
    hit_price: Decimal


class TradeResult(BaseModel):
    """Outcome of evaluating one trade against its price history.

    P&L fields stay ``None`` until the trade is terminal or at least one
    partial exit has happened.
    """

    model_config = ConfigDict(frozen=True)

    tp1: TargetHit | None = None
    tp2: TargetHit | None = None
    tp3: TargetHit | None = None
    stop_loss: TargetHit | None = None

    realised_pnl_usd: Decimal | None = None
    unrealised_pnl_usd: Decimal | None = None
    net_pnl_usd: Decimal | None = None
    net_pnl_pct: Decimal | None = None
    fees_usd: Decimal = Decimal("0")
    closed_pct: Decimal = Decimal("0")
    notional_usd: Decimal = Decimal("1000")

    duration_minutes: int | None = None
    last_price: Decimal | None = None
    last_price_at: datetime | None = None

    data_source: str = "unknown"
    data_resolution: str | None = None
    data_quality_score: float | None = None
    samples: int = 0
    warnings: list[str] = Field(default_factory=list)
    evaluated_at: datetime

    def hit(self, target: TargetId) -> TargetHit | None:
        return getattr(self, target.value)

    @property
    def hit_targets(self) -> frozenset[TargetId]:
        return frozenset(t for t in TargetId if self.hit(t) is not None)
