"""Price provider backed by candles already stored in the database."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trade_verifier.db.store import as_utc
from trade_verifier.db.tables import CandleRow
from trade_verifier.errors import FetchFailure
from trade_verifier.exchange.hyperliquid import to_coin
from trade_verifier.logging import get_logger
from trade_verifier.models import PriceBar

log = get_logger(__name__)


def _dec(val) -> Decimal | None:
    return Decimal(str(val)) if val is not None else None


class CandlePriceProvider:
    """Reads ``trade_market_data.candles`` rows for a symbol and window."""

    name = "database"

    def __init__(self, session: Session, source: str = "hyperliquid", default_interval: str = "5m"):
        self.session = session
        self.source = source
        self.default_interval = default_interval

    async def get_prices(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str | None = None,
    ) -> list[PriceBar]:
        interval = interval or self.default_interval
        stmt = (
            select(CandleRow)
            .where(
                CandleRow.source == self.source,
                CandleRow.coin == to_coin(symbol),
                CandleRow.interval == interval,
                CandleRow.open_time >= start,
                CandleRow.open_time <= end,
            )
            .order_by(CandleRow.open_time)
        )
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.warning("candle_query_failed", symbol=symbol, error=str(exc))
            raise FetchFailure(symbol, f"Candle query failed for {symbol}: {exc}") from exc

        return [
            PriceBar(
                timestamp=as_utc(row.open_time),
                open=_dec(row.open),
                high=_dec(row.high),
                low=_dec(row.low),
                close=_dec(row.close),
                volume=_dec(row.volume),
            )
            for row in rows
        ]
