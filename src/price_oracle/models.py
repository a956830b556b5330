from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Tick:
    price: float
    timestamp: int


@dataclass(frozen=True)
class Candle:
    bucket_start: int
    open: float
    high: float
    low: float
    close: float
    volume: int = 1


@dataclass(frozen=True)
class Timeframe:
    name: str
    duration_ms: int

    @property
    def minutes(self) -> int:
        return self.duration_ms // 60_000


@dataclass(frozen=True)
class PriceStats:
    count: int
    avg: float
    min: float
    max: float


@dataclass(frozen=True)
class Snapshot:
    latest_price: float | None
    last_updated: int | None
    history: tuple[Tick, ...] = ()
    ohlc: dict[str, tuple[Candle, ...]] = field(default_factory=dict)
