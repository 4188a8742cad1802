"""Tests for the trade lifecycle manager."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import NOW, FakePriceProvider, bar, flat_bars, make_signal
from trade_verifier.config.schema import VerificationConfig
from trade_verifier.errors import ConcurrentEvaluationConflict, DataUnavailable, FetchFailure
from trade_verifier.evaluation.lifecycle import NO_DATA_REASON, TradeLifecycleManager
from trade_verifier.models import Active, CompletedFailure, TargetId

OPEN = NOW + timedelta(minutes=15)
CLOSED = NOW + timedelta(hours=2)


def _manager(store, bars=None, error=None, **config):
    store.add_signal(make_signal())
    provider = FakePriceProvider(bars, error)
    return TradeLifecycleManager(store, provider, VerificationConfig(**config))


class BlockingProvider(FakePriceProvider):
    """Holds every fetch until ``release`` is set."""

    def __init__(self, bars=None):
        super().__init__(bars)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def get_prices(self, symbol, start, end, interval=None):
        self.started.set()
        await self.release.wait()
        return await super().get_prices(symbol, start, end, interval)


@pytest.mark.asyncio
async def test_tp1_then_stop_loss_closes_near_zero(store):
    manager = _manager(store, [bar(5, 106, 100), bar(10, 100, 95)])
    outcome = await manager.reevaluate("t1", OPEN)

    assert outcome.status == "completed_failure"
    assert outcome.previous_status == "active"
    result = outcome.record.result
    assert result.net_pnl_usd == Decimal("0")
    assert result.tp1.hit_price == Decimal("105")
    assert result.stop_loss.hit_price == Decimal("95")
    assert outcome.record.completed_at == NOW + timedelta(minutes=10)
    assert result.duration_minutes == 10
    assert result.data_source == "fake"
    assert [h.target for h in outcome.new_hits] == [TargetId.TP1, TargetId.STOP_LOSS]


@pytest.mark.asyncio
async def test_all_targets_complete_success(store):
    manager = _manager(store, [bar(5, 106, 100), bar(10, 121, 104)])
    outcome = await manager.reevaluate("t1", OPEN)
    assert outcome.status == "completed_success"
    assert outcome.record.result.net_pnl_usd == Decimal("95")
    assert outcome.record.completed_at == NOW + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_partial_exit_stays_active(store):
    manager = _manager(store, [bar(5, 106, 100, close=104)])
    outcome = await manager.reevaluate("t1", OPEN)

    assert outcome.status == "active"
    assert isinstance(outcome.record.status, Active)
    assert outcome.record.status.last_checked_at == OPEN
    assert outcome.record.result.tp1 is not None
    # 25 realised + 500 * 4% unrealised
    assert outcome.pnl_pct == Decimal("4.5")


@pytest.mark.asyncio
async def test_reevaluation_is_idempotent(store):
    manager = _manager(store, [bar(5, 106, 100, close=104)])
    first = await manager.reevaluate("t1", OPEN)
    second = await manager.reevaluate("t1", OPEN)

    assert second.new_hits == []
    assert second.record.result.hit_targets == first.record.result.hit_targets
    assert second.record.result.net_pnl_usd == first.record.result.net_pnl_usd
    assert second.record.version == first.record.version + 1


@pytest.mark.asyncio
async def test_terminal_trade_is_never_reevaluated(store):
    manager = _manager(store, [bar(5, 100, 94)])
    done = await manager.reevaluate("t1", OPEN)
    assert done.status == "completed_failure"

    manager.provider.bars = [bar(5, 125, 100)]
    again = await manager.reevaluate("t1", CLOSED)
    assert again.status == "completed_failure"
    assert not again.changed
    assert again.record.version == done.record.version
    assert len(manager.provider.calls) == 1


@pytest.mark.asyncio
async def test_expiry_with_profit_counts_as_success(store):
    manager = _manager(store, flat_bars(13, price="102"))
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "completed_success"
    assert outcome.record.result.net_pnl_usd == Decimal("20")
    assert outcome.record.completed_at == NOW + timedelta(hours=1)
    assert outcome.record.result.duration_minutes == 60
    assert outcome.record.result.data_quality_score == 100.0


@pytest.mark.asyncio
async def test_expiry_with_loss_counts_as_failure(store):
    manager = _manager(store, flat_bars(13, price="98"))
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "completed_failure"
    assert outcome.record.result.net_pnl_usd == Decimal("-20")


@pytest.mark.asyncio
async def test_untouched_expiry_can_be_reported_as_expired(store):
    manager = _manager(store, flat_bars(13, price="102"), expire_untouched=True)
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "expired"


@pytest.mark.asyncio
async def test_low_quality_expiry_is_incomplete(store):
    manager = _manager(store, flat_bars(2, price="102"))
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "incomplete_data"
    assert "below the required 70%" in outcome.record.status.reason
    assert outcome.record.result.data_quality_score == 50.0


@pytest.mark.asyncio
async def test_quality_gate_can_be_disabled(store):
    manager = _manager(store, flat_bars(2, price="102"), min_data_quality=0)
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "completed_success"


@pytest.mark.asyncio
async def test_no_data_after_expiry_is_incomplete(store):
    manager = _manager(store, [])
    outcome = await manager.reevaluate("t1", CLOSED)
    assert outcome.status == "incomplete_data"
    assert outcome.record.status.reason == NO_DATA_REASON
    assert outcome.record.result.net_pnl_usd is None


@pytest.mark.asyncio
async def test_no_data_while_open_leaves_trade_active(store):
    manager = _manager(store, [])
    with pytest.raises(DataUnavailable):
        await manager.reevaluate("t1", OPEN)
    record = store.get("t1")
    assert record.status.status == "active"
    assert record.version == 0


@pytest.mark.asyncio
async def test_fetch_failure_leaves_trade_unchanged(store):
    manager = _manager(store, error=FetchFailure("BTC/USD"))
    with pytest.raises(FetchFailure):
        await manager.reevaluate("t1", CLOSED)
    assert store.get("t1").version == 0


@pytest.mark.asyncio
async def test_unexpected_provider_error_is_wrapped(store):
    manager = _manager(store, error=RuntimeError("boom"))
    with pytest.raises(FetchFailure, match="boom"):
        await manager.reevaluate("t1", CLOSED)
    assert not manager.is_in_flight("t1")


@pytest.mark.asyncio
async def test_concurrent_reevaluation_is_rejected(store):
    store.add_signal(make_signal())
    provider = BlockingProvider([bar(5, 106, 100)])
    manager = TradeLifecycleManager(store, provider)

    first = asyncio.create_task(manager.reevaluate("t1", OPEN))
    await provider.started.wait()
    assert manager.is_in_flight("t1")
    with pytest.raises(ConcurrentEvaluationConflict):
        await manager.reevaluate("t1", OPEN)

    provider.release.set()
    outcome = await first
    assert outcome.record.version == 1
    assert not manager.is_in_flight("t1")


@pytest.mark.asyncio
async def test_version_conflict_is_retried_once(store, monkeypatch):
    manager = _manager(store, [bar(5, 106, 100)])
    original = store.apply_transition
    calls = []

    def racing_apply(trade_id, expected_version, status):
        if not calls:
            original(trade_id, expected_version, Active(last_checked_at=NOW))
        calls.append(expected_version)
        return original(trade_id, expected_version, status)

    monkeypatch.setattr(store, "apply_transition", racing_apply)
    outcome = await manager.reevaluate("t1", OPEN)
    assert calls == [0, 1]
    assert outcome.record.version == 2
    assert outcome.record.result.tp1 is not None


@pytest.mark.asyncio
async def test_conflict_with_terminal_writer_yields(store, monkeypatch):
    manager = _manager(store, [bar(5, 106, 100)])
    original = store.apply_transition
    terminal = CompletedFailure(
        result=(await manager.reevaluate("t1", OPEN)).record.result,
        completed_at=NOW + timedelta(minutes=5),
    )

    def racing_apply(trade_id, expected_version, status):
        original(trade_id, expected_version, terminal)
        return original(trade_id, expected_version, status)

    monkeypatch.setattr(store, "apply_transition", racing_apply)
    outcome = await manager.reevaluate("t1", OPEN)
    assert outcome.status == "completed_failure"
    assert outcome.previous_status == "active"


@pytest.mark.asyncio
async def test_incremental_check_keeps_earlier_hits(store):
    manager = _manager(store, [bar(5, 106, 100), bar(20, 111, 104)])
    first = await manager.reevaluate("t1", OPEN)
    assert [h.target for h in first.new_hits] == [TargetId.TP1]

    later = NOW + timedelta(minutes=30)
    second = await manager.reevaluate("t1", later, since=OPEN)
    assert [h.target for h in second.new_hits] == [TargetId.TP2]
    assert second.record.result.tp1 == first.record.result.tp1
    assert second.record.result.samples == 2
    assert manager.provider.calls[-1][1] == OPEN
