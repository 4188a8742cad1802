"""Error taxonomy for verification, persistence, and price fetching."""

from __future__ import annotations


class VerificationError(Exception):
    """Base class for all trade verification errors."""


class InvalidSignal(VerificationError):
    """A trade signal failed validation at creation time.

    Not a ``ValueError``: pydantic only wraps ValueError and AssertionError, so
    this propagates out of model validators unchanged.
    """


class DataUnavailable(VerificationError):
    """No price samples exist for the required window."""

    def __init__(self, symbol: str, message: str | None = None) -> None:
        self.symbol = symbol
        super().__init__(message or f"No price data available for {symbol}")


class FetchFailure(VerificationError):
    """Transient provider or network failure while fetching prices."""

    def __init__(self, symbol: str, message: str | None = None) -> None:
        self.symbol = symbol
        super().__init__(message or f"Price fetch failed for {symbol}")


class ConcurrentEvaluationConflict(VerificationError):
    """Another writer (or an in-flight evaluation) already owns this trade."""

    def __init__(self, trade_id: str, message: str | None = None) -> None:
        self.trade_id = trade_id
        super().__init__(message or f"Trade {trade_id} is being evaluated concurrently")


class TradeNotFound(VerificationError, KeyError):
    """No trade record exists for the given id."""

    def __init__(self, trade_id: str) -> None:
        self.trade_id = trade_id
        super().__init__(trade_id)
