"""Configuration system."""

from trade_verifier.config.loader import load_config
from trade_verifier.config.schema import AppConfig

__all__ = ["AppConfig", "load_config"]
