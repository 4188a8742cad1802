"""Trade signal model: the immutable input to verification."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from trade_verifier.errors import InvalidSignal

# Allocations are percentages; float noise from upstream generators is tolerated
ALLOCATION_TOLERANCE = Decimal("0.01")


class Timeframe(str, Enum):
    """Signal validity window."""

    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"

    @property
    def duration(self) -> timedelta:
        return _DURATIONS[self]

    @property
    def resolution(self) -> str:
        """Candle interval used when fetching history for this timeframe."""
        return _RESOLUTIONS[self]


_DURATIONS = {
    Timeframe.M15: timedelta(minutes=15),
    Timeframe.H1: timedelta(hours=1),
    Timeframe.H4: timedelta(hours=4),
    Timeframe.D1: timedelta(days=1),
    Timeframe.W1: timedelta(days=7),
}

_RESOLUTIONS = {
    Timeframe.M15: "1m",
    Timeframe.H1: "5m",
    Timeframe.H4: "15m",
    Timeframe.D1: "1h",
    Timeframe.W1: "4h",
}

RESOLUTION_SECONDS = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "1h": 3600,
    "4h": 14400,
    "1d": 86400,
}


def candle_start(ts: datetime, resolution: str) -> datetime:
    """Open time of the UTC-aligned candle at *resolution* that contains *ts*."""
    step = RESOLUTION_SECONDS.get(resolution, 60)
    epoch = int(ts.timestamp())
    return datetime.fromtimestamp(epoch - epoch % step, tz=timezone.utc)


class PositionType(str, Enum):
    LONG = "long"
    SHORT = "short"


class TargetLevel(BaseModel):
    """One take-profit rung: exit price and the share of the position it closes."""

    model_config = ConfigDict(frozen=True)

    price: Decimal
    allocation_pct: Decimal


class TargetLadder(BaseModel):
    """TP1..TP3 with partial allocations summing to 100."""

    model_config = ConfigDict(frozen=True)

    tp1: TargetLevel
    tp2: TargetLevel
    tp3: TargetLevel

    @model_validator(mode="after")
    def _check_allocations(self) -> TargetLadder:
        for name, level in self.items():
            if level.price <= 0:
                raise InvalidSignal(f"{name} price must be positive")
            if level.allocation_pct < 0:
                raise InvalidSignal(f"{name} allocation must be non-negative")
        total = self.total_allocation
        if abs(total - 100) > ALLOCATION_TOLERANCE:
            raise InvalidSignal(f"Allocations must sum to 100% (got {total}%)")
        return self

    @property
    def total_allocation(self) -> Decimal:
        return self.tp1.allocation_pct + self.tp2.allocation_pct + self.tp3.allocation_pct

    def items(self) -> list[tuple[str, TargetLevel]]:
        """Targets in ladder order."""
        return [("tp1", self.tp1), ("tp2", self.tp2), ("tp3", self.tp3)]


class IndicatorSnapshot(BaseModel):
    """Indicator values and market labels frozen at signal generation."""

    model_config = ConfigDict(frozen=True)

    rsi: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    ema_20: float | None = None
    ema_50: float | None = None
    ema_200: float | None = None
    volatility: str | None = None
    market_condition: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class TradeSignal(BaseModel):
    """An AI-generated trade signal. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    symbol: str
    position_type: PositionType = PositionType.LONG
    entry_price: Decimal
    ladder: TargetLadder
    stop_loss_price: Decimal
    timeframe: Timeframe
    confidence_score: int
    generated_at: datetime
    indicators: IndicatorSnapshot = Field(default_factory=IndicatorSnapshot)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def expires_at(self) -> datetime:
        return self.generated_at + self.timeframe.duration

    @model_validator(mode="after")
    def _check_levels(self) -> TradeSignal:
        if self.generated_at.tzinfo is None or self.generated_at.utcoffset() is None:
            raise InvalidSignal("generated_at must be timezone-aware")
        if not self.symbol:
            raise InvalidSignal("Symbol is required")
        if self.entry_price <= 0:
            raise InvalidSignal("Entry price must be positive")
        if self.stop_loss_price <= 0:
            raise InvalidSignal("Stop loss price must be positive")
        if not 0 <= self.confidence_score <= 100:
            raise InvalidSignal(f"Confidence score must be 0-100 (got {self.confidence_score})")

        prices = [self.entry_price, self.ladder.tp1.price, self.ladder.tp2.price, self.ladder.tp3.price]
        names = ["entry", "TP1", "TP2", "TP3"]
        if self.position_type is PositionType.LONG:
            for i in range(1, 4):
                if prices[i] <= prices[i - 1]:
                    raise InvalidSignal(f"{names[i]} price must be above {names[i - 1]} price")
            if self.stop_loss_price >= self.entry_price:
                raise InvalidSignal("Stop loss price must be below entry price")
        else:
            for i in range(1, 4):
                if prices[i] >= prices[i - 1]:
                    raise InvalidSignal(f"{names[i]} price must be below {names[i - 1]} price")
            if self.stop_loss_price <= self.entry_price:
                raise InvalidSignal("Stop loss price must be above entry price")
        return self
