"""Trade population filter shared by the store, analytics, and the API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from trade_verifier.models.signal import Timeframe
from trade_verifier.models.status import STATUS_NAMES, TradeRecord


class TradeFilter(BaseModel):
    """Optional symbol / status / timeframe / generation-date scope.

    An empty filter selects every trade.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str | None = None
    statuses: tuple[str, ...] | None = None
    timeframe: Timeframe | None = None
    start: datetime | None = None
    end: datetime | None = None

    @field_validator("statuses")
    @classmethod
    def _known_statuses(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if v is None:
            return None
        unknown = [s for s in v if s not in STATUS_NAMES]
        if unknown:
            raise ValueError(f"Unknown status: {', '.join(unknown)}")
        return tuple(sorted(set(v)))

    def matches(self, record: TradeRecord) -> bool:
        signal = record.signal
        if self.symbol is not None and signal.symbol != self.symbol:
            return False
        if self.statuses is not None and record.status.status not in self.statuses:
            return False
        if self.timeframe is not None and signal.timeframe is not self.timeframe:
            return False
        if self.start is not None and signal.generated_at < self.start:
            return False
        if self.end is not None and signal.generated_at > self.end:
            return False
        return True

    def cache_key(self) -> str:
        return self.model_dump_json()
