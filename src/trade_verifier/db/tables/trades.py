"""SQLAlchemy ORM models for the trade_verification schema."""

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime, Float

from trade_verifier.db.base import Base

SCHEMA = "trade_verification"


class TradeSignalRow(Base):
    __tablename__ = "trade_signals"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    symbol: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    position_type: Mapped[str] = mapped_column(Text, nullable=False, default="long")
    entry_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp1_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp1_allocation: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp2_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp2_allocation: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp3_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    tp3_allocation: Mapped[float] = mapped_column(Numeric, nullable=False)
    stop_loss_price: Mapped[float] = mapped_column(Numeric, nullable=False)
    timeframe: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)
    generated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
    indicators: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    status: Mapped[str] = mapped_column(Text, nullable=False, default="active", index=True)
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_checked_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TradeResultRow(Base):
    __tablename__ = "trade_results"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    trade_signal_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey(f"{SCHEMA}.trade_signals.id"),
        nullable=False,
        unique=True,
    )

    tp1_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tp1_hit_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tp1_hit_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    tp2_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tp2_hit_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tp2_hit_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    tp3_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tp3_hit_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    tp3_hit_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    stop_loss_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stop_loss_hit_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stop_loss_hit_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)

    realised_pnl_usd: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    unrealised_pnl_usd: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    net_pnl_usd: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    net_pnl_pct: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    fees_usd: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    closed_pct: Mapped[float] = mapped_column(Numeric, nullable=False, default=0)
    notional_usd: Mapped[float] = mapped_column(Numeric, nullable=False, default=1000)

    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_price: Mapped[float | None] = mapped_column(Numeric, nullable=True)
    last_price_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    data_source: Mapped[str] = mapped_column(Text, nullable=False, default="unknown")
    data_resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_quality_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    samples: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    warnings: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    evaluated_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), nullable=False)
