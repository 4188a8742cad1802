"""Trade lifecycle status as a closed tagged union."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from trade_verifier.models.result import TradeResult
from trade_verifier.models.signal import TradeSignal


class Active(BaseModel):
    """Still being tracked. May carry partial exits from earlier checks."""

    model_config = ConfigDict(frozen=True)

    status: Literal["active"] = "active"
    result: TradeResult | None = None
    last_checked_at: datetime | None = None


class CompletedSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["completed_success"] = "completed_success"
    result: TradeResult
    completed_at: datetime


class CompletedFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["completed_failure"] = "completed_failure"
    result: TradeResult
    completed_at: datetime


class Expired(BaseModel):
    """Window closed without any level being touched."""

    model_config = ConfigDict(frozen=True)

    status: Literal["expired"] = "expired"
    result: TradeResult
    completed_at: datetime


class IncompleteData(BaseModel):
    """Window closed and no usable price data was ever obtained."""

    model_config = ConfigDict(frozen=True)

    status: Literal["incomplete_data"] = "incomplete_data"
    reason: str
    completed_at: datetime
    result: TradeResult | None = None


TradeStatus = Annotated[
    Union[Active, CompletedSuccess, CompletedFailure, Expired, IncompleteData],
    Field(discriminator="status"),
]

STATUS_NAMES = ("active", "completed_success", "completed_failure", "expired", "incomplete_data")
TERMINAL_STATUSES = frozenset(STATUS_NAMES[1:])


def is_terminal(status: TradeStatus) -> bool:
    return status.status in TERMINAL_STATUSES


class TradeRecord(BaseModel):
    """A signal, its current status, and the optimistic-lock version."""

    model_config = ConfigDict(frozen=True)

    signal: TradeSignal
    status: TradeStatus = Field(default_factory=Active)
    version: int = 0

    @property
    def trade_id(self) -> str:
        return self.signal.id

    @property
    def result(self) -> TradeResult | None:
        return self.status.result

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @property
    def completed_at(self) -> datetime | None:
        return getattr(self.status, "completed_at", None)
