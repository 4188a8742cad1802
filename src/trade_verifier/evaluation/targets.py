"""Walk a price path against the TP/SL ladder. Pure, no DB."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from trade_verifier.models import (
    TAKE_PROFITS,
    PositionType,
    PriceBar,
    TargetHit,
    TargetId,
    TargetLadder,
    TerminalReason,
)


@dataclass(frozen=True)
class TargetEvaluation:
    """Which targets were touched, when, and why evaluation stopped.

    ``terminal_reason`` is ``None`` while the window is still open and no
    closing level has been reached.
    """

    hits: Mapping[TargetId, TargetHit] = field(default_factory=dict)
    terminal_reason: TerminalReason | None = None
    last_price: Decimal | None = None
    last_at: datetime | None = None
    first_at: datetime | None = None
    samples: int = 0

    def hit(self, target: TargetId) -> TargetHit | None:
        return self.hits.get(target)

    @property
    def is_terminal(self) -> bool:
        return self.terminal_reason is not None

    @property
    def any_hit(self) -> bool:
        return bool(self.hits)

    def newly_hit(self, previous: Iterable[TargetId]) -> list[TargetHit]:
        """Hits not present in *previous*, in chronological then ladder order."""
        seen = set(previous)
        order = {t: i for i, t in enumerate((*TAKE_PROFITS, TargetId.STOP_LOSS))}
        fresh = [h for t, h in self.hits.items() if t not in seen]
        return sorted(fresh, key=lambda h: (h.hit_at, order[h.target]))


def _touches_take_profit(position_type: PositionType, bar: PriceBar, level: Decimal) -> bool:
    if position_type is PositionType.LONG:
        return bar.touch_high >= level
    return bar.touch_low <= level


def _touches_stop(position_type: PositionType, bar: PriceBar, stop_loss: Decimal) -> bool:
    if position_type is PositionType.LONG:
        return bar.touch_low <= stop_loss
    return bar.touch_high >= stop_loss


def evaluate_targets(
    ladder: TargetLadder,
    stop_loss: Decimal,
    bars: Iterable[PriceBar],
    position_type: PositionType = PositionType.LONG,
    *,
    window_closed: bool = True,
    since: datetime | None = None,
    until: datetime | None = None,
    already_hit: Mapping[TargetId, TargetHit] | None = None,
) -> TargetEvaluation:
    """Walk *bars* in time order and record the first touch of each level.

    Per bar, the stop-loss is checked before any take-profit: when one bar
    touches both, intrabar order is unknown and the worse outcome is assumed.
    Take-profits touched in the same bar resolve TP1, TP2, TP3 in order.
    A stop-loss hit or a filled ladder ends evaluation immediately.

    Args:
        ladder: TP1..TP3 levels and allocations.
        stop_loss: Stop-loss trigger price.
        bars: Price samples; bars outside ``[since, until]`` are ignored.
        position_type: LONG compares highs against TPs, SHORT compares lows.
        window_closed: True once the trade's expiry has passed. Decides whether
            running out of samples means ``expired`` or "still open".
        already_hit: Hits from earlier checks; they are kept and not re-reported.
    """
    hits: dict[TargetId, TargetHit] = dict(already_hit or {})
    reason: TerminalReason | None = None

    if TargetId.STOP_LOSS in hits:
        reason = TerminalReason.STOP_LOSS
    elif all(t in hits for t in TAKE_PROFITS):
        reason = TerminalReason.ALL_TARGETS

    ordered = sorted(
        (
            b for b in bars
            if (since is None or b.timestamp >= since)
            and (until is None or b.timestamp <= until)
        ),
        key=lambda b: b.timestamp,
    )

    levels = dict(zip(TAKE_PROFITS, (ladder.tp1.price, ladder.tp2.price, ladder.tp3.price)))
    samples = 0
    last: PriceBar | None = None

    if reason is None:
        for bar in ordered:
            samples += 1
            last = bar

            if _touches_stop(position_type, bar, stop_loss):
                hits[TargetId.STOP_LOSS] = TargetHit(
                    target=TargetId.STOP_LOSS, hit_at=bar.timestamp, hit_price=stop_loss,
                )
                reason = TerminalReason.STOP_LOSS
                break

            for target in TAKE_PROFITS:
                if target in hits:
                    continue
                if _touches_take_profit(position_type, bar, levels[target]):
                    hits[target] = TargetHit(target=target, hit_at=bar.timestamp, hit_price=levels[target])

            if all(t in hits for t in TAKE_PROFITS):
                reason = TerminalReason.ALL_TARGETS
                break

    if reason is None and window_closed:
        # Hits carried from earlier checks count as having seen data
        reason = TerminalReason.EXPIRED if samples or hits else TerminalReason.INCOMPLETE_DATA

    return TargetEvaluation(
        hits=hits,
        terminal_reason=reason,
        last_price=last.close if last is not None else None,
        last_at=last.timestamp if last is not None else None,
        first_at=ordered[0].timestamp if ordered else None,
        samples=samples,
    )
