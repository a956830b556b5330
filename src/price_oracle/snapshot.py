from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from .errors import PersistenceError
from .models import Candle, Snapshot, Tick

logger = logging.getLogger(__name__)


def empty_snapshot() -> Snapshot:
    return Snapshot(latest_price=None, last_updated=None, history=(), ohlc={})


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "latestPrice": snapshot.latest_price,
        "lastUpdated": snapshot.last_updated,
        "history": [
            {"price": tick.price, "timestamp": tick.timestamp}
            for tick in snapshot.history
        ],
        "ohlc": {
            name: [
                {
                    "timestamp": candle.bucket_start,
                    "open": candle.open,
                    "high": candle.high,
                    "low": candle.low,
                    "close": candle.close,
                    "volume": candle.volume,
                }
                for candle in candles
            ]
            for name, candles in snapshot.ohlc.items()
        },
    }


def _as_optional_float(value: object) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected number, got {value!r}")
    return float(value)


def _as_optional_int(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected integer, got {value!r}")
    return int(value)


def _tick_from_dict(item: dict[str, Any]) -> Tick:
    return Tick(price=float(item["price"]), timestamp=int(item["timestamp"]))


def _candle_from_dict(item: dict[str, Any]) -> Candle:
    return Candle(
        bucket_start=int(item["timestamp"]),
        open=float(item["open"]),
        high=float(item["high"]),
        low=float(item["low"]),
        close=float(item["close"]),
        volume=int(item.get("volume", 1)),
    )


def snapshot_from_dict(data: object) -> Snapshot:
    if not isinstance(data, dict):
        raise PersistenceError("snapshot must be a JSON object")

    try:
        history = tuple(_tick_from_dict(item) for item in data.get("history") or [])
        raw_ohlc = data.get("ohlc") or {}
        if not isinstance(raw_ohlc, dict):
            raise TypeError("ohlc must be an object")
        ohlc = {
            str(name): tuple(_candle_from_dict(item) for item in candles or [])
            for name, candles in raw_ohlc.items()
        }
        return Snapshot(
            latest_price=_as_optional_float(data.get("latestPrice")),
            last_updated=_as_optional_int(data.get("lastUpdated")),
            history=history,
            ohlc=ohlc,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise PersistenceError(f"malformed snapshot: {exc}") from exc


class JsonSnapshotGateway:
    """Stores the whole engine state as one JSON document."""

    def __init__(self, path: str = "priceData.json") -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot | None:
        with self._lock:
            if not self._path.exists():
                return None
            try:
                raw = self._path.read_text(encoding="utf-8")
                data = json.loads(raw)
            except (OSError, ValueError) as exc:
                raise PersistenceError(f"could not read {self._path}: {exc}") from exc
        return snapshot_from_dict(data)

    def save(self, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot_to_dict(snapshot), separators=(",", ":"))
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self._path)
            except OSError as exc:
                raise PersistenceError(f"could not write {self._path}: {exc}") from exc
        logger.debug("[Snapshot] Saved %d ticks to %s", len(snapshot.history), self._path)
