"""Tests for structured logging setup."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from trade_verifier.logging import SERVICE_NAME, get_logger, setup_logging, trade_context


@pytest.fixture
def stream():
    yield io.StringIO()
    structlog.contextvars.clear_contextvars()


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestSetupLogging:
    def test_json_record_fields(self, stream):
        setup_logging(level="INFO", log_format="json", stream=stream)
        get_logger("verifier.test").info("trade_status_changed", trade_id="t1", status="expired")

        (line,) = _lines(stream)
        assert line["event"] == "trade_status_changed"
        assert line["status"] == "expired"
        assert line["level"] == "info"
        assert line["logger"] == "verifier.test"
        assert line["service"] == SERVICE_NAME
        assert line["timestamp"].endswith("Z")

    def test_stdlib_records_share_the_renderer(self, stream):
        setup_logging(level="INFO", log_format="json", stream=stream)
        logging.getLogger("some.library").warning("plain stdlib message")

        (line,) = _lines(stream)
        assert line["event"] == "plain stdlib message"
        assert line["level"] == "warning"
        assert line["service"] == SERVICE_NAME

    def test_console_format(self, stream):
        setup_logging(level="INFO", log_format="console", stream=stream)
        get_logger("console").info("candles_fetched", symbol="ETH/USD")

        out = stream.getvalue()
        assert "candles_fetched" in out
        assert "ETH/USD" in out

    def test_level_filtering(self, stream):
        setup_logging(level="WARNING", log_format="json", stream=stream)
        log = get_logger("levels")
        log.info("sweep_started")
        log.warning("monitor_trade_deferred")

        assert [line["event"] for line in _lines(stream)] == ["monitor_trade_deferred"]

    def test_noisy_loggers_held_at_warning(self, stream):
        setup_logging(level="DEBUG", log_format="json", stream=stream)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

        setup_logging(level="ERROR", log_format="json", stream=stream)
        assert logging.getLogger("httpx").level == logging.ERROR

    def test_setup_replaces_previous_handler(self, stream):
        other = io.StringIO()
        setup_logging(level="INFO", log_format="json", stream=other)
        setup_logging(level="INFO", log_format="json", stream=stream)
        get_logger("swap").info("only_once")

        assert other.getvalue() == ""
        assert len(_lines(stream)) == 1

    @pytest.mark.parametrize("level, fmt", [("LOUD", "json"), ("INFO", "xml")])
    def test_rejects_unknown_settings(self, level, fmt):
        with pytest.raises(ValueError):
            setup_logging(level=level, log_format=fmt)


class TestContext:
    def test_initial_context(self, stream):
        setup_logging(level="INFO", log_format="json", stream=stream)
        get_logger("ctx", trade_id="abc", symbol="SOL/USD").info("context_test")

        (line,) = _lines(stream)
        assert line["trade_id"] == "abc"
        assert line["symbol"] == "SOL/USD"

    def test_trade_context_scopes_fields(self, stream):
        setup_logging(level="INFO", log_format="json", stream=stream)
        log = get_logger("ctx")
        with trade_context("t9", "BTC/USD"):
            log.info("inside")
        log.info("outside")

        inside, outside = _lines(stream)
        assert inside["trade_id"] == "t9"
        assert inside["symbol"] == "BTC/USD"
        assert "trade_id" not in outside

    def test_trade_context_without_symbol(self, stream):
        setup_logging(level="INFO", log_format="json", stream=stream)
        with trade_context("t10"):
            get_logger("ctx").info("inside")

        (line,) = _lines(stream)
        assert line["trade_id"] == "t10"
        assert "symbol" not in line
