"""Create trade verification and market data tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _hit_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_hit", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(f"{prefix}_hit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(f"{prefix}_hit_price", sa.Numeric, nullable=True),
    ]


def upgrade() -> None:
    # Schemas are created by env.py before migrations run.

    # --- trade_market_data ---
    op.create_table(
        "candles",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("source", sa.Text, nullable=False),
        sa.Column("coin", sa.Text, nullable=False),
        sa.Column("interval", sa.Text, nullable=False),
        sa.Column("open_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("open", sa.Numeric, nullable=False),
        sa.Column("high", sa.Numeric, nullable=False),
        sa.Column("low", sa.Numeric, nullable=False),
        sa.Column("close", sa.Numeric, nullable=False),
        sa.Column("volume", sa.Numeric, nullable=True),
        sa.UniqueConstraint("source", "coin", "interval", "open_time", name="uq_candles_source_coin_interval_time"),
        schema="trade_market_data",
    )
    op.create_index("ix_candles_coin_time", "candles", ["coin", "open_time"], schema="trade_market_data")

    # --- trade_verification ---
    op.create_table(
        "trade_signals",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("symbol", sa.Text, nullable=False),
        sa.Column("position_type", sa.Text, nullable=False, server_default="long"),
        sa.Column("entry_price", sa.Numeric, nullable=False),
        sa.Column("tp1_price", sa.Numeric, nullable=False),
        sa.Column("tp1_allocation", sa.Numeric, nullable=False),
        sa.Column("tp2_price", sa.Numeric, nullable=False),
        sa.Column("tp2_allocation", sa.Numeric, nullable=False),
        sa.Column("tp3_price", sa.Numeric, nullable=False),
        sa.Column("tp3_allocation", sa.Numeric, nullable=False),
        sa.Column("stop_loss_price", sa.Numeric, nullable=False),
        sa.Column("timeframe", sa.Text, nullable=False),
        sa.Column("confidence_score", sa.Integer, nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("indicators", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("status_reason", sa.Text, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('active', 'completed_success', 'completed_failure', 'expired', 'incomplete_data')",
            name="ck_trade_signals_status",
        ),
        schema="trade_verification",
    )
    op.create_index(
        "ix_trade_signals_symbol", "trade_signals", ["symbol"], schema="trade_verification",
    )
    op.create_index(
        "ix_trade_signals_status", "trade_signals", ["status"], schema="trade_verification",
    )

    op.create_table(
        "trade_results",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "trade_signal_id",
            sa.Text,
            sa.ForeignKey("trade_verification.trade_signals.id"),
            nullable=False,
            unique=True,
        ),
        *_hit_columns("tp1"),
        *_hit_columns("tp2"),
        *_hit_columns("tp3"),
        *_hit_columns("stop_loss"),
        sa.Column("realised_pnl_usd", sa.Numeric, nullable=True),
        sa.Column("unrealised_pnl_usd", sa.Numeric, nullable=True),
        sa.Column("net_pnl_usd", sa.Numeric, nullable=True),
        sa.Column("net_pnl_pct", sa.Numeric, nullable=True),
        sa.Column("fees_usd", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("closed_pct", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("notional_usd", sa.Numeric, nullable=False, server_default="1000"),
        sa.Column("duration_minutes", sa.Integer, nullable=True),
        sa.Column("last_price", sa.Numeric, nullable=True),
        sa.Column("last_price_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data_source", sa.Text, nullable=False, server_default="unknown"),
        sa.Column("data_resolution", sa.Text, nullable=True),
        sa.Column("data_quality_score", sa.Float, nullable=True),
        sa.Column("samples", sa.Integer, nullable=False, server_default="0"),
        sa.Column("warnings", postgresql.JSONB, nullable=True),
        sa.Column("evaluated_at", sa.DateTime(timezone=True), nullable=False),
        schema="trade_verification",
    )


def downgrade() -> None:
    op.drop_table("trade_results", schema="trade_verification")
    op.drop_index("ix_trade_signals_status", table_name="trade_signals", schema="trade_verification")
    op.drop_index("ix_trade_signals_symbol", table_name="trade_signals", schema="trade_verification")
    op.drop_table("trade_signals", schema="trade_verification")
    op.drop_index("ix_candles_coin_time", table_name="candles", schema="trade_market_data")
    op.drop_table("candles", schema="trade_market_data")
