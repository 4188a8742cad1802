"""Read config.yaml and apply VERIFIER_* environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

import yaml

from trade_verifier.config.schema import AppConfig

CONFIG_PATH_ENV = "VERIFIER_CONFIG"

# env var -> (section, key, parser)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "VERIFIER_DATABASE_URL": ("database", "url", str),
    "VERIFIER_LOG_LEVEL": ("logging", "level", str),
    "VERIFIER_LOG_FORMAT": ("logging", "format", str),
    "VERIFIER_EXCHANGE_URL": ("exchange", "base_url", str),
    "VERIFIER_DATA_SOURCE": ("verification", "data_source", str),
    "VERIFIER_MONITOR_INTERVAL_S": ("monitor", "interval_s", float),
    "VERIFIER_API_HOST": ("api", "host", str),
    "VERIFIER_API_PORT": ("api", "port", int),
}


def _read_yaml(path: Path) -> dict:
    with path.open() as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: str | Path | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from YAML plus environment overrides.

    *path* falls back to ``$VERIFIER_CONFIG``. A missing file means all
    defaults. Any variable in :data:`ENV_OVERRIDES` that is set and
    non-empty wins over the file.
    """
    path = path or os.environ.get(CONFIG_PATH_ENV)
    data: dict = {}
    if path is not None and Path(path).exists():
        data = _read_yaml(Path(path))

    for var, (section, key, parse) in ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw:
            data.setdefault(section, {})[key] = parse(raw)

    return AppConfig.model_validate(data)
