"""Notification events and an in-process fan-out bus."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Union

from trade_verifier.logging import get_logger
from trade_verifier.models import TargetId

log = get_logger(__name__)


@dataclass(frozen=True)
class TargetHitEvent:
    """A take-profit or the stop-loss was touched for the first time."""

    trade_id: str
    symbol: str
    target: TargetId
    price: Decimal
    timestamp: datetime
    kind: str = "target_hit"


@dataclass(frozen=True)
class PnLChangeEvent:
    """Net P&L moved past the materiality threshold since the last notice."""

    trade_id: str
    symbol: str
    price: Decimal | None
    timestamp: datetime
    pnl_pct: Decimal
    previous_pnl_pct: Decimal
    target: TargetId | None = None
    kind: str = "pnl_change"

    @property
    def change_pct(self) -> Decimal:
        return self.pnl_pct - self.previous_pnl_pct


NotificationEvent = Union[TargetHitEvent, PnLChangeEvent]
Handler = Callable[[NotificationEvent], Awaitable[None]]


class NotificationBus:
    """Delivers each event to every subscribed async handler in order.

    A failing handler is logged and counted; the remaining handlers still
    receive the event.
    """

    def __init__(self) -> None:
        self._handlers: list[Handler] = []
        self.history: list[NotificationEvent] = []
        self.error_count = 0

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    async def publish(self, event: NotificationEvent) -> int:
        """Send *event* to all handlers; returns how many succeeded."""
        self.history.append(event)
        delivered = 0
        for handler in self._handlers:
            try:
                await handler(event)
                delivered += 1
            except Exception:
                self.error_count += 1
                log.exception(
                    "notification_handler_error",
                    kind=event.kind,
                    trade_id=event.trade_id,
                    handler=getattr(handler, "__name__", repr(handler)),
                )
        return delivered
