"""Tests for signal, status and filter models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from conftest import NOW, make_ladder, make_signal
from trade_verifier.errors import InvalidSignal
from trade_verifier.models import (
    Active,
    CompletedSuccess,
    IncompleteData,
    PositionType,
    Timeframe,
    TradeFilter,
    TradeRecord,
    TradeResult,
    TradeSignal,
    TradeStatus,
    candle_start,
    is_terminal,
)


class TestTradeSignal:
    def test_expiry_follows_timeframe(self):
        assert make_signal(timeframe=Timeframe.M15).expires_at == NOW + timedelta(minutes=15)
        assert make_signal(timeframe=Timeframe.H4).expires_at == NOW + timedelta(hours=4)
        assert make_signal(timeframe=Timeframe.W1).expires_at == NOW + timedelta(days=7)

    def test_resolution_per_timeframe(self):
        assert Timeframe.H1.resolution == "5m"
        assert Timeframe.D1.resolution == "1h"

    def test_allocations_must_sum_to_100(self):
        with pytest.raises(InvalidSignal, match="sum to 100"):
            make_ladder(allocations=("50", "30", "10"))

    def test_allocation_float_noise_tolerated(self):
        ladder = make_ladder(allocations=("33.333", "33.333", "33.334"))
        assert ladder.total_allocation == Decimal("100.000")

    def test_long_targets_must_ascend(self):
        with pytest.raises(InvalidSignal, match="TP2 price must be above TP1"):
            make_signal(ladder=make_ladder(tp1="105", tp2="104", tp3="120"))

    def test_long_stop_below_entry(self):
        with pytest.raises(InvalidSignal, match="Stop loss price must be below"):
            make_signal(stop_loss="101")

    def test_short_ladder_descends(self):
        signal = TradeSignal(
            symbol="ETH/USD",
            position_type=PositionType.SHORT,
            entry_price=Decimal("100"),
            ladder=make_ladder(tp1="95", tp2="90", tp3="80"),
            stop_loss_price=Decimal("105"),
            timeframe=Timeframe.H1,
            confidence_score=60,
            generated_at=NOW,
        )
        assert signal.position_type is PositionType.SHORT

    def test_short_rejects_ascending_targets(self):
        with pytest.raises(InvalidSignal):
            TradeSignal(
                symbol="ETH/USD",
                position_type=PositionType.SHORT,
                entry_price=Decimal("100"),
                ladder=make_ladder(),
                stop_loss_price=Decimal("105"),
                timeframe=Timeframe.H1,
                confidence_score=60,
                generated_at=NOW,
            )

    def test_confidence_range(self):
        with pytest.raises(InvalidSignal, match="Confidence"):
            make_signal(confidence=101)

    def test_naive_generation_time_rejected(self):
        with pytest.raises(InvalidSignal, match="timezone-aware"):
            make_signal(generated_at=datetime(2025, 6, 15, 12, 0))

    def test_offset_generation_time_accepted(self):
        plus_two = timezone(timedelta(hours=2))
        signal = make_signal(generated_at=datetime(2025, 6, 15, 14, 0, tzinfo=plus_two))
        assert signal.expires_at == NOW + timedelta(hours=1)

    def test_signal_is_immutable(self):
        signal = make_signal()
        with pytest.raises(ValidationError):
            signal.entry_price = Decimal("1")


class TestTradeStatus:
    def test_discriminated_union_round_trip(self):
        result = TradeResult(evaluated_at=NOW)
        adapter = TypeAdapter(TradeStatus)
        status = adapter.validate_python(
            {"status": "completed_success", "result": result.model_dump(), "completed_at": NOW}
        )
        assert isinstance(status, CompletedSuccess)

    def test_completed_variant_requires_result(self):
        with pytest.raises(ValidationError):
            TypeAdapter(TradeStatus).validate_python({"status": "completed_failure", "completed_at": NOW})

    def test_terminal_statuses(self):
        assert not is_terminal(Active())
        assert is_terminal(IncompleteData(reason="no data", completed_at=NOW))

    def test_record_defaults_to_active(self):
        record = TradeRecord(signal=make_signal())
        assert record.status.status == "active"
        assert record.result is None
        assert record.completed_at is None
        assert not record.is_terminal


class TestTradeFilter:
    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            TradeFilter(statuses=("won",))

    def test_statuses_normalised(self):
        f = TradeFilter(statuses=("completed_failure", "active", "active"))
        assert f.statuses == ("active", "completed_failure")

    def test_matches(self):
        record = TradeRecord(signal=make_signal(symbol="ETH/USD", timeframe=Timeframe.H4))
        assert TradeFilter().matches(record)
        assert TradeFilter(symbol="ETH/USD", timeframe=Timeframe.H4).matches(record)
        assert not TradeFilter(symbol="BTC/USD").matches(record)
        assert not TradeFilter(statuses=("completed_success",)).matches(record)
        assert not TradeFilter(start=NOW + timedelta(seconds=1)).matches(record)
        assert TradeFilter(start=NOW, end=NOW).matches(record)

    def test_cache_key_distinguishes_scopes(self):
        assert TradeFilter(symbol="BTC/USD").cache_key() != TradeFilter(symbol="ETH/USD").cache_key()
        assert TradeFilter().cache_key() == TradeFilter().cache_key()


class TestCandleStart:
    @pytest.mark.parametrize("offset, resolution, expected", [
        (timedelta(minutes=3, seconds=20), "5m", timedelta(0)),
        (timedelta(minutes=7), "5m", timedelta(minutes=5)),
        (timedelta(minutes=59), "1h", timedelta(0)),
        (timedelta(seconds=59), "1m", timedelta(0)),
    ])
    def test_floors_to_candle_open(self, offset, resolution, expected):
        assert candle_start(NOW + offset, resolution) == NOW + expected

    def test_already_aligned(self):
        assert candle_start(NOW, "15m") == NOW
