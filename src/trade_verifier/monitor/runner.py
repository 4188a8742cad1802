"""Process wiring for the monitor: config, database, price provider, bus."""

from __future__ import annotations

import asyncio
import signal

from trade_verifier.config.loader import load_config
from trade_verifier.config.schema import AppConfig
from trade_verifier.db.engine import dispose_engine, init_engine, session_scope
from trade_verifier.db.store import TradeStore
from trade_verifier.evaluation.lifecycle import TradeLifecycleManager
from trade_verifier.exchange import CandlePriceProvider, HyperliquidClient, HyperliquidPriceProvider
from trade_verifier.logging import get_logger, setup_logging
from trade_verifier.monitor.monitor import RealTimeMonitor
from trade_verifier.monitor.notifications import NotificationBus, NotificationEvent

log = get_logger("monitor")


async def log_notification(event: NotificationEvent) -> None:
    """Default subscriber: one structured log line per event."""
    log.info(
        "notification",
        kind=event.kind,
        trade_id=event.trade_id,
        symbol=event.symbol,
        target=event.target.value if event.target else None,
        price=str(event.price) if event.price is not None else None,
        timestamp=event.timestamp.isoformat(),
    )


def build_provider(config: AppConfig, session):
    if config.verification.data_source == "database":
        return CandlePriceProvider(session)
    client = HyperliquidClient(base_url=config.exchange.base_url, timeout_s=config.exchange.timeout_s)
    return HyperliquidPriceProvider(client)


async def run_monitor(config: AppConfig, stop_event: asyncio.Event | None = None) -> None:
    """Run the monitor loop until SIGINT/SIGTERM or *stop_event*."""
    init_engine(config.database.url)
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    with session_scope() as session:
        provider = build_provider(config, session)
        try:
            store = TradeStore(session)
            manager = TradeLifecycleManager(store, provider, config.verification)
            bus = NotificationBus()
            bus.subscribe(log_notification)
            monitor = RealTimeMonitor(manager, store, bus, config=config.monitor)
            await monitor.run(stop_event)
        finally:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()
    dispose_engine()


def main(config_path: str | None = None) -> None:
    """Load config, configure logging and run until signalled."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    asyncio.run(run_monitor(config))
