"""Pydantic domain models."""

from trade_verifier.models.market import PriceBar
from trade_verifier.models.result import (
    TAKE_PROFITS,
    TargetHit,
    TargetId,
    TerminalReason,
    TradeResult,
)
from trade_verifier.models.scope import TradeFilter
from trade_verifier.models.signal import (
    RESOLUTION_SECONDS,
    IndicatorSnapshot,
    PositionType,
    TargetLadder,
    TargetLevel,
    Timeframe,
    TradeSignal,
    candle_start,
)
from trade_verifier.models.status import (
    STATUS_NAMES,
    TERMINAL_STATUSES,
    Active,
    CompletedFailure,
    CompletedSuccess,
    Expired,
    IncompleteData,
    TradeRecord,
    TradeStatus,
    is_terminal,
)

__all__ = [
    "Active",
    "CompletedFailure",
    "CompletedSuccess",
    "Expired",
    "IncompleteData",
    "IndicatorSnapshot",
    "PositionType",
    "PriceBar",
    "RESOLUTION_SECONDS",
    "STATUS_NAMES",
    "TAKE_PROFITS",
    "TERMINAL_STATUSES",
    "TargetHit",
    "TargetId",
    "TargetLadder",
    "TargetLevel",
    "TerminalReason",
    "Timeframe",
    "TradeFilter",
    "TradeRecord",
    "TradeResult",
    "TradeSignal",
    "TradeStatus",
    "candle_start",
    "is_terminal",
]
