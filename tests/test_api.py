"""Tests for the FastAPI application."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from conftest import NOW, FakePriceProvider, bar, make_signal, make_sqlite_engine
import trade_verifier.api.app as app_module
from trade_verifier.api.app import app, get_db, get_provider
from trade_verifier.db.store import TradeStore
from trade_verifier.models import CompletedSuccess, TradeResult


@pytest.fixture
def api():
    engine = make_sqlite_engine()
    session = Session(engine, expire_on_commit=False)
    provider = FakePriceProvider([bar(5, 100, 94)])

    def override_db():
        yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_provider] = lambda: provider
    app_module._metrics_cache.clear()

    yield TestClient(app), TradeStore(session), provider

    app.dependency_overrides.clear()
    session.close()
    engine.dispose()


def _win(store, trade_id, pnl="10", minutes=10):
    store.add_signal(make_signal(trade_id, market_condition="trending"))
    result = TradeResult(
        net_pnl_usd=Decimal(pnl),
        net_pnl_pct=Decimal(pnl) / 10,
        evaluated_at=NOW + timedelta(minutes=minutes),
    )
    store.apply_transition(
        trade_id, 0, CompletedSuccess(result=result, completed_at=NOW + timedelta(minutes=minutes)),
    )


def test_health(api):
    client, _, _ = api
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_verify_updates_active_trades(api):
    client, store, provider = api
    store.add_signal(make_signal("t1"))

    resp = client.post("/api/verify")
    assert resp.status_code == 200
    body = resp.json()
    assert body["totalTrades"] == 1
    assert body["verified"] == 1
    assert body["updated"] == 1
    assert body["failed"] == 0
    assert store.get("t1").status.status == "completed_failure"


def test_verify_reports_fetch_errors(api):
    client, store, provider = api
    store.add_signal(make_signal("t1"))
    provider.error = RuntimeError("exchange down")

    body = client.post("/api/verify").json()
    assert body["failed"] == 1
    assert body["errors"][0]["trade_id"] == "t1"
    assert body["errors"][0]["kind"] == "FetchFailure"


def test_performance_with_no_trades(api):
    client, _, _ = api
    body = client.get("/api/performance").json()
    assert body["totalTrades"] == 0
    assert body["successRate"] is None
    assert body["profitFactor"] is None
    assert body["recommendations"]


def test_performance_renders_infinite_ratios(api):
    client, store, _ = api
    _win(store, "a", "10", 10)
    _win(store, "b", "30", 20)

    body = client.get("/api/performance").json()
    assert body["successRate"] == 100.0
    assert body["totalProfitLoss"] == 40.0
    assert body["profitFactor"] == "Infinity"
    assert body["recoveryFactor"] == "Infinity"
    assert body["streaks"]["longestWinStreak"] == 2
    assert body["maxDrawdown"]["percentage"] == 0.0
    assert body["byMarketCondition"][0]["label"] == "trending"


def test_performance_scope(api):
    client, store, _ = api
    _win(store, "a")
    store.add_signal(make_signal("b", symbol="ETH/USD"))

    assert client.get("/api/performance", params={"symbol": "ETH/USD"}).json()["totalTrades"] == 1
    body = client.get("/api/performance", params={"status": ["completed_success", "active"]}).json()
    assert body["totalTrades"] == 2


def test_unknown_status_is_rejected(api):
    client, _, _ = api
    assert client.get("/api/performance", params={"status": "won"}).status_code == 422


def test_verify_invalidates_cached_metrics(api):
    client, store, _ = api
    store.add_signal(make_signal("t1"))
    assert client.get("/api/performance").json()["statusCounts"]["active"] == 1

    client.post("/api/verify")
    counts = client.get("/api/performance").json()["statusCounts"]
    assert counts["active"] == 0
    assert counts["completed_failure"] == 1


def test_patterns(api):
    client, store, _ = api
    _win(store, "a")
    body = client.get("/api/patterns").json()
    assert body["summary"]["winning_trades"] == 1
    assert body["successFactors"] == []
    assert body["tested"] == 0
    assert body["excluded"]


def test_trades_newest_first(api):
    client, store, _ = api
    store.add_signal(make_signal("old"))
    store.add_signal(make_signal("new", generated_at=NOW + timedelta(hours=1)))

    body = client.get("/api/trades", params={"limit": 1}).json()
    assert body["total"] == 2
    (trade,) = body["trades"]
    assert trade["signal"]["id"] == "new"
    assert trade["status"]["status"] == "active"
