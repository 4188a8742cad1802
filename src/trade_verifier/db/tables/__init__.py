"""Import all table modules so Base.metadata knows about them."""

from trade_verifier.db.tables.market_data import CandleRow
from trade_verifier.db.tables.trades import TradeResultRow, TradeSignalRow

__all__ = [
    "CandleRow",
    "TradeResultRow",
    "TradeSignalRow",
]
