from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .engine import EngineConfig
from .retention import DEFAULT_MAX_AGE_MS
from .timeframes import DEFAULT_TIMEFRAMES, canonical_timeframe_name, parse_duration_ms, timeframes_from_names

DEFAULT_RPC_URL = "https://testnet-rpc.monad.xyz"
DEFAULT_POOL_ADDRESS = "0x6cBa988c15F94ec92F015d9501b16312f8DE4c6c"
DEFAULT_RETENTION_MAX_AGE = "24h:30d,1h:7d,1w:730d,1M:3650d"


@dataclass(frozen=True)
class Config:
    price_source: str
    rpc_url: str
    pool_address: str
    rpc_timeout_seconds: float
    binance_symbol: str
    stream_max_staleness_seconds: float
    ws_ping_interval_seconds: int
    api_port: int
    snapshot_path: str
    timeframes: tuple[str, ...]
    max_candles: int
    retention_max_age_ms: dict[str, int]
    history_window_ms: int
    history_margin_ms: int
    tick_interval_seconds: float
    save_interval_seconds: float
    cors_origins: tuple[str, ...]
    log_level: str

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            timeframes=timeframes_from_names(self.timeframes),
            max_candles=self.max_candles,
            max_age_ms=dict(self.retention_max_age_ms),
            history_window_ms=self.history_window_ms,
            history_margin_ms=self.history_margin_ms,
        )


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_retention_rules(value: str) -> dict[str, int]:
    """Parse ``"24h:30d,1h:7d"`` into ``{"24h": 30 days ms, "1h": 7 days ms}``."""
    rules: dict[str, int] = {}
    for item in _split_csv(value):
        token, sep, age = item.partition(":")
        if not sep:
            raise ValueError(f"invalid retention rule: {item!r}")
        name = canonical_timeframe_name(token)
        if name is None:
            raise ValueError(f"unsupported timeframe in retention rule: {token!r}")
        rules[name] = parse_duration_ms(age)
    return rules


def load_config() -> Config:
    load_dotenv()

    price_source = os.getenv("PRICE_SOURCE", "pool").strip().lower()
    if price_source not in {"pool", "binance"}:
        raise ValueError(f"unsupported PRICE_SOURCE: {price_source!r}")

    pool_address = os.getenv("POOL_ADDRESS", DEFAULT_POOL_ADDRESS).strip()
    if price_source == "pool" and not pool_address:
        raise ValueError("POOL_ADDRESS is required when PRICE_SOURCE is 'pool'")

    timeframes = tuple(_split_csv(os.getenv("TIMEFRAMES", ",".join(DEFAULT_TIMEFRAMES))))
    timeframe_names = tuple(tf.name for tf in timeframes_from_names(timeframes))

    max_candles = int(os.getenv("MAX_CANDLES", "100"))
    if max_candles < 1:
        raise ValueError("MAX_CANDLES must be >= 1")

    retention_raw = os.getenv("RETENTION_MAX_AGE")
    if retention_raw is None:
        retention = dict(DEFAULT_MAX_AGE_MS)
    else:
        retention = parse_retention_rules(retention_raw)

    return Config(
        price_source=price_source,
        rpc_url=os.getenv("RPC_URL", DEFAULT_RPC_URL).strip(),
        pool_address=pool_address,
        rpc_timeout_seconds=float(os.getenv("RPC_TIMEOUT_SECONDS", "5.0")),
        binance_symbol=os.getenv("BINANCE_SYMBOL", "BTCUSDT").strip().upper(),
        stream_max_staleness_seconds=float(os.getenv("STREAM_MAX_STALENESS_SECONDS", "10.0")),
        ws_ping_interval_seconds=int(os.getenv("WS_PING_INTERVAL_SECONDS", "15")),
        api_port=int(os.getenv("API_PORT", "3000")),
        snapshot_path=os.getenv("SNAPSHOT_PATH", "priceData.json").strip(),
        timeframes=timeframe_names,
        max_candles=max_candles,
        retention_max_age_ms=retention,
        history_window_ms=parse_duration_ms(os.getenv("HISTORY_WINDOW", "24h")),
        history_margin_ms=parse_duration_ms(os.getenv("HISTORY_MARGIN", "1m")),
        tick_interval_seconds=float(os.getenv("TICK_INTERVAL_SECONDS", "1.0")),
        save_interval_seconds=float(os.getenv("SAVE_INTERVAL_SECONDS", "60")),
        cors_origins=tuple(_split_csv(os.getenv("CORS_ORIGINS", "*"))),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
