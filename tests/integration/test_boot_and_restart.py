import asyncio
import json

from src.price_oracle.engine import EngineConfig, PriceEngine
from src.price_oracle.runtime import boot_engine
from src.price_oracle.scheduler import IngestScheduler
from src.price_oracle.snapshot import JsonSnapshotGateway
from src.price_oracle.timeframes import timeframes_from_names

BASE = 1_700_006_400_000


def _engine() -> PriceEngine:
    return PriceEngine(EngineConfig(timeframes=timeframes_from_names(["5m", "15m", "1h"])))


class ListSource:
    def __init__(self, prices: list[float]) -> None:
        self._prices = list(prices)

    async def fetch(self) -> float | None:
        return self._prices.pop(0) if self._prices else None


def test_first_boot_creates_snapshot_file(tmp_path) -> None:
    path = tmp_path / "priceData.json"
    engine = _engine()

    in_sync = boot_engine(engine, JsonSnapshotGateway(str(path)), at_ms=BASE)

    assert in_sync is True
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["latestPrice"] is None
    assert data["history"] == []
    assert set(data["ohlc"]) == {"5m", "15m", "1h"}


def test_corrupt_snapshot_starts_empty_without_overwriting(tmp_path) -> None:
    path = tmp_path / "priceData.json"
    path.write_text("{broken", encoding="utf-8")
    engine = _engine()

    in_sync = boot_engine(engine, JsonSnapshotGateway(str(path)), at_ms=BASE)

    assert in_sync is False
    assert engine.latest() == (None, None)
    assert path.read_text(encoding="utf-8") == "{broken"


def test_restart_restores_state_and_backfills_missing_series(tmp_path) -> None:
    path = tmp_path / "priceData.json"
    gateway = JsonSnapshotGateway(str(path))
    first = _engine()
    boot_engine(first, gateway, at_ms=BASE)

    clock = iter(range(BASE, BASE + 3_600_000, 120_000))
    scheduler = IngestScheduler(
        first,
        ListSource([float(p) for p in range(100, 130)]),
        gateway,
        save_interval_seconds=0.0,
        wall_clock_ms=lambda: next(clock),
    )

    async def _run() -> None:
        for _ in range(30):
            await scheduler.run_cycle()

    asyncio.run(_run())
    expected = first.to_snapshot()

    # Simulate an older file format that only carried raw history.
    data = json.loads(path.read_text(encoding="utf-8"))
    data["ohlc"] = {"5m": data["ohlc"]["5m"], "1h": data["ohlc"]["1h"][:1]}
    path.write_text(json.dumps(data), encoding="utf-8")

    second = _engine()
    boot_engine(second, gateway, at_ms=expected.last_updated)
    restored = second.to_snapshot()

    assert restored.history == expected.history
    assert restored.latest_price == 129.0
    assert restored.ohlc["5m"] == expected.ohlc["5m"]
    assert restored.ohlc["15m"] == expected.ohlc["15m"]
    assert restored.ohlc["1h"] == expected.ohlc["1h"]

    third = _engine()
    boot_engine(third, gateway, at_ms=expected.last_updated)
    assert third.to_snapshot() == restored
