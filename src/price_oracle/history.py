from __future__ import annotations

from collections.abc import Iterable, Iterator

from .models import Tick
from .timeframes import DAY_MS, MINUTE_MS

DEFAULT_HISTORY_WINDOW_MS = DAY_MS
DEFAULT_HISTORY_MARGIN_MS = MINUTE_MS


class HistoryBuffer:
    """Rolling buffer of raw ticks, oldest first.

    Entries are only ever removed by ``trim``. Reads return new lists so
    callers can hold on to them while ingestion keeps appending.
    """

    def __init__(
        self,
        ticks: Iterable[Tick] = (),
        *,
        window_ms: int = DEFAULT_HISTORY_WINDOW_MS,
        margin_ms: int = DEFAULT_HISTORY_MARGIN_MS,
    ) -> None:
        self.window_ms = window_ms
        self.margin_ms = margin_ms
        self._ticks: list[Tick] = []
        self._ordered = True
        self.replace(ticks)

    def __len__(self) -> int:
        return len(self._ticks)

    def __iter__(self) -> Iterator[Tick]:
        return iter(list(self._ticks))

    def append(self, tick: Tick) -> None:
        if self._ticks and tick.timestamp < self._ticks[-1].timestamp:
            self._ordered = False
        self._ticks.append(tick)

    def cutoff(self, now_ms: int) -> int:
        return now_ms - (self.window_ms + self.margin_ms)

    def trim(self, now_ms: int) -> int:
        cutoff = self.cutoff(now_ms)
        if not self._ticks:
            return 0
        # The head is the oldest entry only while timestamps never went backward.
        if self._ordered and self._ticks[0].timestamp >= cutoff:
            return 0
        before = len(self._ticks)
        self.replace(tick for tick in self._ticks if tick.timestamp >= cutoff)
        return before - len(self._ticks)

    def range(self, from_ts: int | None = None, to_ts: int | None = None) -> list[Tick]:
        return [
            tick
            for tick in self._ticks
            if (from_ts is None or tick.timestamp >= from_ts)
            and (to_ts is None or tick.timestamp <= to_ts)
        ]

    def since(self, cutoff: int) -> list[Tick]:
        return self.range(from_ts=cutoff)

    def latest(self) -> Tick | None:
        if not self._ticks:
            return None
        return self._ticks[-1]

    def ticks(self) -> list[Tick]:
        return list(self._ticks)

    def replace(self, ticks: Iterable[Tick]) -> None:
        self._ticks = list(ticks)
        self._ordered = all(
            earlier.timestamp <= later.timestamp
            for earlier, later in zip(self._ticks, self._ticks[1:])
        )
