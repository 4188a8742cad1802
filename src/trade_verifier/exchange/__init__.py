"""Price history providers."""

from trade_verifier.exchange.base import PriceHistoryProvider
from trade_verifier.exchange.candles import CandlePriceProvider
from trade_verifier.exchange.hyperliquid import HyperliquidClient, HyperliquidPriceProvider

__all__ = [
    "CandlePriceProvider",
    "HyperliquidClient",
    "HyperliquidPriceProvider",
    "PriceHistoryProvider",
]
