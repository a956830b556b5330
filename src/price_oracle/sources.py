from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Protocol

import httpx
import websockets

from .config import Config
from .errors import SourceUnavailableError

logger = logging.getLogger(__name__)

SLOT0_SELECTOR = "0x3850c7bd"
UINT160_MASK = (1 << 160) - 1
Q192 = 2**192


class PriceSource(Protocol):
    async def fetch(self) -> float | None: ...


def price_from_sqrt_price_x96(sqrt_price_x96: int) -> float:
    return (sqrt_price_x96**2) / Q192


def decode_slot0_price(result: object) -> float:
    if not isinstance(result, str) or not result.startswith("0x"):
        raise SourceUnavailableError(f"unexpected eth_call result: {result!r}")

    payload = result[2:]
    if len(payload) < 64:
        raise SourceUnavailableError("slot0 result is too short")

    try:
        sqrt_price_x96 = int(payload[:64], 16) & UINT160_MASK
    except ValueError as exc:
        raise SourceUnavailableError(f"invalid slot0 word: {exc}") from exc
    if sqrt_price_x96 == 0:
        raise SourceUnavailableError("pool is not initialized")
    return price_from_sqrt_price_x96(sqrt_price_x96)


class PoolPriceSource:
    """Reads the spot price of a concentrated-liquidity pool via ``slot0()``."""

    def __init__(
        self,
        *,
        rpc_url: str,
        pool_address: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.pool_address = pool_address
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._request_id = 0

    def _build_request(self) -> dict:
        self._request_id += 1
        return {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "eth_call",
            "params": [{"to": self.pool_address, "data": SLOT0_SELECTOR}, "latest"],
        }

    async def _call(self, client: httpx.AsyncClient) -> float:
        response = await client.post(self.rpc_url, json=self._build_request())
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise SourceUnavailableError("unexpected JSON-RPC response")
        if body.get("error") is not None:
            raise SourceUnavailableError(f"rpc error: {body['error']}")
        return decode_slot0_price(body.get("result"))

    async def fetch(self) -> float | None:
        try:
            if self._client is not None:
                return await self._call(self._client)
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                return await self._call(client)
        except (httpx.HTTPError, ValueError, SourceUnavailableError) as exc:
            logger.warning("[Pool RPC] Price fetch failed: %s", exc)
            return None


class StreamPriceSource:
    """Keeps the last Binance trade price and serves it while it is fresh."""

    def __init__(
        self,
        symbol: str,
        *,
        max_staleness_seconds: float = 10.0,
        ping_interval_seconds: int = 15,
        ws_url: str | None = None,
    ) -> None:
        self.symbol = symbol.upper()
        self.max_staleness_seconds = max_staleness_seconds
        self.ping_interval_seconds = ping_interval_seconds
        self.ws_url = ws_url or f"wss://stream.binance.com:9443/ws/{self.symbol.lower()}@trade"
        self._latest_price: float | None = None
        self._latest_seen: float | None = None

    async def run(self) -> None:
        while True:
            try:
                logger.info("[Binance WS] Connecting: %s", self.symbol)
                async with websockets.connect(
                    self.ws_url,
                    ping_interval=self.ping_interval_seconds,
                ) as ws:
                    logger.info("[Binance WS] Connected")
                    async for raw in ws:
                        price = self._parse(raw)
                        if price is not None:
                            self.observe(price)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("[Binance WS] Error: %s; reconnecting in 1s", exc)
                await asyncio.sleep(1.0)

    def observe(self, price: float, seen_at: float | None = None) -> None:
        self._latest_price = price
        self._latest_seen = seen_at if seen_at is not None else time.monotonic()

    async def fetch(self) -> float | None:
        return self.latest(time.monotonic())

    def latest(self, now: float) -> float | None:
        if self._latest_price is None or self._latest_seen is None:
            return None
        if now - self._latest_seen > self.max_staleness_seconds:
            return None
        return self._latest_price

    def _parse(self, raw: str | bytes) -> float | None:
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        symbol = str(data.get("s", "")).strip().upper()
        price = data.get("p")
        if symbol != self.symbol or price is None:
            return None

        try:
            return float(price)
        except (TypeError, ValueError):
            return None


def build_price_source(config: Config) -> PoolPriceSource | StreamPriceSource:
    if config.price_source == "binance":
        return StreamPriceSource(
            config.binance_symbol,
            max_staleness_seconds=config.stream_max_staleness_seconds,
            ping_interval_seconds=config.ws_ping_interval_seconds,
        )
    return PoolPriceSource(
        rpc_url=config.rpc_url,
        pool_address=config.pool_address,
        timeout_seconds=config.rpc_timeout_seconds,
    )
