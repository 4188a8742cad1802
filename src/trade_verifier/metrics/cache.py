"""In-process TTL cache for computed analytics."""

from __future__ import annotations

import time
from typing import Any, Callable

_MISSING = object()


class MetricsCache:
    """Keyed TTL cache. Not thread-safe; one per process is enough."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return _MISSING
        return value

    def get(self, key: str) -> Any | None:
        """Cached value, or ``None`` when absent or expired."""
        value = self._lookup(key)
        return None if value is _MISSING else value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        value = self._lookup(key)
        if value is _MISSING:
            value = compute()
            self.set(key, value)
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
