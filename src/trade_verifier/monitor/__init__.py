"""Real-time monitoring of active trades."""

from trade_verifier.monitor.clock import Clock, SystemClock
from trade_verifier.monitor.monitor import RealTimeMonitor, SweepReport
from trade_verifier.monitor.notifications import (
    NotificationBus,
    PnLChangeEvent,
    TargetHitEvent,
)

__all__ = [
    "Clock",
    "NotificationBus",
    "PnLChangeEvent",
    "RealTimeMonitor",
    "SweepReport",
    "SystemClock",
    "TargetHitEvent",
]
