"""P&L calculation for partial exits on a standardised notional. Pure, no DB."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from trade_verifier.evaluation.targets import TargetEvaluation
from trade_verifier.models import (
    TAKE_PROFITS,
    PositionType,
    TargetId,
    TargetLadder,
    TerminalReason,
)

DEFAULT_NOTIONAL = Decimal("1000")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PnLBreakdown:
    """Realised, unrealised and net P&L in quote currency.

    ``net_usd`` is ``None`` until the trade is terminal or at least one partial
    exit has happened. Everything is ``None`` when data was incomplete.
    """

    realised_usd: Decimal | None
    unrealised_usd: Decimal | None
    net_usd: Decimal | None
    net_pct: Decimal | None
    fees_usd: Decimal
    closed_pct: Decimal


def leg_pnl(
    position_type: PositionType,
    entry_price: Decimal,
    exit_price: Decimal,
    leg_notional: Decimal,
) -> Decimal:
    """P&L of closing *leg_notional* USD at *exit_price*.

    LONG:  notional * (exit - entry) / entry
    SHORT: notional * (entry - exit) / entry
    """
    if position_type is PositionType.LONG:
        return leg_notional * (exit_price - entry_price) / entry_price
    return leg_notional * (entry_price - exit_price) / entry_price


def compute_pnl(
    entry_price: Decimal,
    ladder: TargetLadder,
    evaluation: TargetEvaluation,
    *,
    position_type: PositionType = PositionType.LONG,
    notional_usd: Decimal = DEFAULT_NOTIONAL,
    fee_pct: float = 0.0,
    slippage_pct: float = 0.0,
) -> PnLBreakdown:
    """Convert target hits plus allocations into P&L on *notional_usd*.

    Each hit take-profit closes its allocation at its level. The remainder is
    closed at the stop-loss when it triggered, at the last observed price when
    the window expired, or marked (unrealised) at the last price while open.
    Round-trip ``fee_pct`` + ``slippage_pct`` are charged on the closed share.
    """
    if evaluation.terminal_reason is TerminalReason.INCOMPLETE_DATA:
        return PnLBreakdown(None, None, None, None, Decimal("0"), Decimal("0"))

    allocations = dict(zip(TAKE_PROFITS, (
        ladder.tp1.allocation_pct, ladder.tp2.allocation_pct, ladder.tp3.allocation_pct,
    )))

    realised = Decimal("0")
    closed = Decimal("0")
    for target in TAKE_PROFITS:
        hit = evaluation.hit(target)
        if hit is None:
            continue
        leg = notional_usd * allocations[target] / _HUNDRED
        realised += leg_pnl(position_type, entry_price, hit.hit_price, leg)
        closed += allocations[target]

    remaining = _HUNDRED - closed
    unrealised: Decimal | None = None
    stop = evaluation.hit(TargetId.STOP_LOSS)

    if remaining > 0:
        leg = notional_usd * remaining / _HUNDRED
        if stop is not None:
            realised += leg_pnl(position_type, entry_price, stop.hit_price, leg)
            closed = _HUNDRED
        elif evaluation.terminal_reason is TerminalReason.EXPIRED and evaluation.last_price is not None:
            realised += leg_pnl(position_type, entry_price, evaluation.last_price, leg)
            closed = _HUNDRED
        elif evaluation.last_price is not None:
            unrealised = leg_pnl(position_type, entry_price, evaluation.last_price, leg)

    cost_rate = Decimal(str(fee_pct)) + Decimal(str(slippage_pct))
    fees = notional_usd * closed / _HUNDRED * cost_rate

    if evaluation.is_terminal or closed > 0:
        net = realised + (unrealised or Decimal("0")) - fees
        net_pct = net / notional_usd * _HUNDRED
        realised_out: Decimal | None = realised
    else:
        net = None
        net_pct = None
        realised_out = None

    return PnLBreakdown(
        realised_usd=realised_out,
        unrealised_usd=unrealised,
        net_usd=net,
        net_pct=net_pct,
        fees_usd=fees,
        closed_pct=closed,
    )


def mark_to_market_pct(pnl: PnLBreakdown, notional_usd: Decimal = DEFAULT_NOTIONAL) -> Decimal | None:
    """Current P&L percentage including the open remainder, for change detection."""
    if pnl.net_pct is not None:
        return pnl.net_pct
    if pnl.unrealised_usd is not None:
        return pnl.unrealised_usd / notional_usd * _HUNDRED
    return None
