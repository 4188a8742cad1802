"""Hyperliquid REST client and the price provider built on it."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from trade_verifier.errors import FetchFailure
from trade_verifier.logging import get_logger
from trade_verifier.models import PriceBar

log = get_logger(__name__)

_QUOTE_SUFFIXES = ("/USDT", "/USDC", "/USD", "-USDT", "-USDC", "-USD", "-PERP", "USDT", "USDC")


def to_coin(symbol: str) -> str:
    """Map a signal symbol such as ``BTC/USD`` or ``ETHUSDT`` to a Hyperliquid coin."""
    coin = symbol.strip().upper()
    for suffix in _QUOTE_SUFFIXES:
        if coin.endswith(suffix) and len(coin) > len(suffix):
            return coin[: -len(suffix)]
    return coin


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class HyperliquidClient:
    """Async client for Hyperliquid's ``/info`` REST endpoint."""

    def __init__(
        self,
        base_url: str = "https://api.hyperliquid.xyz",
        timeout_s: float = 15.0,
        http: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._http = http

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=self.timeout_s)
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def _post_info(self, payload: dict) -> Any:
        http = await self._get_http()
        resp = await http.post(f"{self.base_url}/info", json=payload)
        resp.raise_for_status()
        return resp.json()

    async def get_candle_snapshot(
        self,
        coin: str,
        interval: str,
        start_time_ms: int,
        end_time_ms: int,
    ) -> list[dict]:
        """Fetch historical candles.

        Returns list of candle dicts with keys: t, T, s, i, o, c, h, l, v, n.
        """
        data = await self._post_info({
            "type": "candleSnapshot",
            "req": {
                "coin": coin,
                "interval": interval,
                "startTime": start_time_ms,
                "endTime": end_time_ms,
            },
        })
        return data or []


def candle_to_bar(candle: dict) -> PriceBar:
    return PriceBar(
        timestamp=datetime.fromtimestamp(candle["t"] / 1000, tz=timezone.utc),
        open=Decimal(str(candle["o"])),
        high=Decimal(str(candle["h"])),
        low=Decimal(str(candle["l"])),
        close=Decimal(str(candle["c"])),
        volume=Decimal(str(candle["v"])) if candle.get("v") is not None else None,
    )


class HyperliquidPriceProvider:
    """Historical OHLC bars from Hyperliquid candle snapshots."""

    name = "hyperliquid"

    def __init__(self, client: HyperliquidClient | None = None, default_interval: str = "5m"):
        self.client = client or HyperliquidClient()
        self.default_interval = default_interval

    async def get_prices(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str | None = None,
    ) -> list[PriceBar]:
        coin = to_coin(symbol)
        interval = interval or self.default_interval
        try:
            candles = await self.client.get_candle_snapshot(coin, interval, _ms(start), _ms(end))
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("candle_fetch_failed", symbol=symbol, coin=coin, interval=interval, error=str(exc))
            raise FetchFailure(symbol, f"Hyperliquid candle fetch failed for {symbol}: {exc}") from exc

        bars = []
        for candle in candles:
            try:
                bars.append(candle_to_bar(candle))
            except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
                log.warning("candle_malformed", symbol=symbol, candle=candle, error=str(exc))
        bars.sort(key=lambda b: b.timestamp)
        log.debug("candles_fetched", symbol=symbol, coin=coin, interval=interval, count=len(bars))
        return bars

    async def close(self) -> None:
        await self.client.close()
