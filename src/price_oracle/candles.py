from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import Candle, Tick, Timeframe


def bucket_start(timestamp: int, duration_ms: int) -> int:
    return (timestamp // duration_ms) * duration_ms


@dataclass
class CandleAggregator:
    timeframe: Timeframe

    def __post_init__(self) -> None:
        self._series: list[Candle] = []

    @property
    def name(self) -> str:
        return self.timeframe.name

    @property
    def duration_ms(self) -> int:
        return self.timeframe.duration_ms

    @property
    def series(self) -> list[Candle]:
        return list(self._series)

    @property
    def last(self) -> Candle | None:
        if not self._series:
            return None
        return self._series[-1]

    def __len__(self) -> int:
        return len(self._series)

    def update(self, price: float, timestamp: int) -> Candle:
        """Fold one tick into the series and return the candle it landed in.

        Assumes non-decreasing timestamps. A tick older than the tail window
        is folded into the tail, never into an earlier candle.
        """
        current = self.last
        if current is None or timestamp >= current.bucket_start + self.duration_ms:
            candle = Candle(
                bucket_start=bucket_start(timestamp, self.duration_ms),
                open=price,
                high=price,
                low=price,
                close=price,
                volume=1,
            )
            self._series.append(candle)
            return candle

        candle = Candle(
            bucket_start=current.bucket_start,
            open=current.open,
            high=max(current.high, price),
            low=min(current.low, price),
            close=price,
            volume=current.volume + 1,
        )
        self._series[-1] = candle
        return candle

    def replay(self, ticks: Iterable[Tick]) -> None:
        for tick in ticks:
            self.update(tick.price, tick.timestamp)

    def replace_series(self, candles: Iterable[Candle]) -> None:
        self._series = list(candles)

    def reset(self) -> None:
        self._series = []
