"""Structured logging."""

from trade_verifier.logging.setup import SERVICE_NAME, get_logger, setup_logging, trade_context

__all__ = ["SERVICE_NAME", "get_logger", "setup_logging", "trade_context"]
