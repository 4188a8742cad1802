"""Price history provider interface."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from trade_verifier.models import PriceBar


@runtime_checkable
class PriceHistoryProvider(Protocol):
    """Source of historical bars for a symbol.

    Implementations return bars ordered by timestamp, may return an empty
    list, and raise ``FetchFailure`` for transient errors. They never
    fabricate samples to fill a gap.
    """

    name: str

    async def get_prices(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str | None = None,
    ) -> list[PriceBar]: ...
