"""Price samples supplied by a price history provider."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PriceBar(BaseModel):
    """One OHLC bar or, with only ``close`` set, one tick/quote."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    close: Decimal
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    volume: Decimal | None = None

    @property
    def touch_high(self) -> Decimal:
        return self.high if self.high is not None else self.close

    @property
    def touch_low(self) -> Decimal:
        return self.low if self.low is not None else self.close

    @property
    def is_ohlc(self) -> bool:
        return self.high is not None and self.low is not None
