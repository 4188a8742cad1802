"""Stored OHLCV history used by the database price provider."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Index, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trade_verifier.db.base import Base

SCHEMA = "trade_market_data"


class CandleRow(Base):
    """One candle per (source, coin, interval, open_time)."""

    __tablename__ = "candles"
    __table_args__ = (
        UniqueConstraint("source", "coin", "interval", "open_time", name="uq_candles_source_coin_interval_time"),
        Index("ix_candles_coin_time", "coin", "open_time"),
        {"schema": SCHEMA},
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    coin: Mapped[str] = mapped_column(Text, nullable=False)
    interval: Mapped[str] = mapped_column(Text, nullable=False)
    open_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    open: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    high: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    low: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    close: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    volume: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
