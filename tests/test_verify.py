"""Tests for bulk verification of active trades."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, FakePriceProvider, bar, make_signal
from trade_verifier.errors import FetchFailure
from trade_verifier.evaluation.lifecycle import TradeLifecycleManager
from trade_verifier.evaluation.verify import verify_active_trades
from trade_verifier.models import TradeFilter

OPEN = NOW + timedelta(minutes=15)


class PerSymbolProvider(FakePriceProvider):
    """Fails for symbols listed in ``failing``."""

    def __init__(self, bars, failing=()):
        super().__init__(bars)
        self.failing = set(failing)

    async def get_prices(self, symbol, start, end, interval=None):
        if symbol in self.failing:
            raise FetchFailure(symbol)
        if symbol == "SOL/USD":
            raise RuntimeError("unexpected")
        return await super().get_prices(symbol, start, end, interval)


@pytest.mark.asyncio
async def test_failures_are_reported_not_raised(store):
    store.add_signal(make_signal("win", symbol="BTC/USD"))
    store.add_signal(make_signal("down", symbol="ETH/USD"))
    store.add_signal(make_signal("odd", symbol="SOL/USD"))
    provider = PerSymbolProvider([bar(5, 121, 100)], failing={"ETH/USD"})
    manager = TradeLifecycleManager(store, provider)

    summary = await verify_active_trades(manager, store, now=OPEN)

    assert summary.total_trades == 3
    assert summary.verified == 1
    assert summary.updated == 1
    assert summary.failed == 2
    assert {(e.trade_id, e.kind) for e in summary.errors} == {
        ("down", "FetchFailure"),
        ("odd", "FetchFailure"),
    }
    assert summary.timestamp == OPEN
    assert store.get("win").status.status == "completed_success"
    assert store.get("down").status.status == "active"


@pytest.mark.asyncio
async def test_scope_limits_trades(store):
    store.add_signal(make_signal("a", symbol="BTC/USD"))
    store.add_signal(make_signal("b", symbol="ETH/USD"))
    manager = TradeLifecycleManager(store, FakePriceProvider([bar(5, 101, 99)]))

    summary = await verify_active_trades(manager, store, TradeFilter(symbol="ETH/USD"), now=OPEN)
    assert summary.total_trades == 1
    assert summary.verified == 1
    assert summary.updated == 0
    assert store.get("a").version == 0
    assert store.get("b").version == 1


@pytest.mark.asyncio
async def test_no_active_trades(store):
    manager = TradeLifecycleManager(store, FakePriceProvider())
    summary = await verify_active_trades(manager, store, now=OPEN)
    assert summary.total_trades == 0
    assert summary.errors == []


@pytest.mark.asyncio
async def test_terminal_trades_are_skipped(store):
    store.add_signal(make_signal())
    manager = TradeLifecycleManager(store, FakePriceProvider([bar(5, 100, 94)]))
    first = await verify_active_trades(manager, store, now=OPEN)
    second = await verify_active_trades(manager, store, now=OPEN)
    assert first.updated == 1
    assert second.total_trades == 0
