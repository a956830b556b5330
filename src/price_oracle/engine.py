from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from .backfill import backfill
from .candles import CandleAggregator
from .history import DEFAULT_HISTORY_MARGIN_MS, DEFAULT_HISTORY_WINDOW_MS, HistoryBuffer
from .models import Candle, Snapshot, Tick, Timeframe
from .query import DEFAULT_SAMPLE_LIMIT, QueryEngine
from .retention import DEFAULT_MAX_AGE_MS, DEFAULT_MAX_CANDLES, RetentionManager, RetentionPolicy
from .timeframes import DEFAULT_TIMEFRAMES, resolve_timeframe, timeframes_from_names

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EngineConfig:
    timeframes: tuple[Timeframe, ...] = field(
        default_factory=lambda: timeframes_from_names(DEFAULT_TIMEFRAMES)
    )
    max_candles: int = DEFAULT_MAX_CANDLES
    max_age_ms: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_MAX_AGE_MS))
    history_window_ms: int = DEFAULT_HISTORY_WINDOW_MS
    history_margin_ms: int = DEFAULT_HISTORY_MARGIN_MS

    @property
    def timeframe_names(self) -> tuple[str, ...]:
        return tuple(tf.name for tf in self.timeframes)


class PriceEngine:
    """Owns the raw history, every candle series and the latest-price metadata.

    Each ingestion cycle runs under one lock; queries copy what they return
    under the same lock, so readers never see a half-applied tick.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._lock = threading.Lock()
        self._history = HistoryBuffer(
            window_ms=self.config.history_window_ms,
            margin_ms=self.config.history_margin_ms,
        )
        self._aggregators: dict[str, CandleAggregator] = {
            tf.name: CandleAggregator(tf) for tf in self.config.timeframes
        }
        self._retention = RetentionManager(
            RetentionPolicy(
                max_candles=self.config.max_candles,
                max_age_ms=dict(self.config.max_age_ms),
            )
        )
        self._query = QueryEngine(self._history, self._aggregators)
        self._latest_price: float | None = None
        self._last_updated: int | None = None

    @property
    def timeframes(self) -> tuple[Timeframe, ...]:
        return self.config.timeframes

    def resolve(self, token: str) -> Timeframe:
        return resolve_timeframe(token, self._aggregators)

    def ingest(self, price: float, timestamp: int | None = None) -> Tick:
        tick = Tick(price=float(price), timestamp=timestamp if timestamp is not None else now_ms())
        with self._lock:
            self._history.append(tick)
            for aggregator in self._aggregators.values():
                aggregator.update(tick.price, tick.timestamp)
            self._latest_price = tick.price
            self._last_updated = tick.timestamp
            self._retention.apply(self._history, self._aggregators.values(), tick.timestamp)
        return tick

    def restore(self, snapshot: Snapshot, at_ms: int | None = None) -> list[str]:
        """Load persisted state, rebuild thin series and apply retention.

        Returns the names of the timeframes rebuilt from history.
        """
        at_ms = at_ms if at_ms is not None else now_ms()
        with self._lock:
            self._latest_price = snapshot.latest_price
            self._last_updated = snapshot.last_updated
            self._history.replace(snapshot.history)

            for name, aggregator in self._aggregators.items():
                aggregator.replace_series(snapshot.ohlc.get(name, ()))
            ignored = sorted(set(snapshot.ohlc) - set(self._aggregators))
            if ignored:
                logger.info("[Engine] Ignoring unconfigured timeframes in snapshot: %s", ignored)

            rebuilt = backfill(self._history, self._aggregators.values())
            self._retention.apply(self._history, self._aggregators.values(), at_ms)
        return rebuilt

    def to_snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                latest_price=self._latest_price,
                last_updated=self._last_updated,
                history=tuple(self._history.ticks()),
                ohlc={name: tuple(agg.series) for name, agg in self._aggregators.items()},
            )

    def latest(self) -> tuple[float | None, int | None]:
        with self._lock:
            return self._latest_price, self._last_updated

    def candles(self, token: str, from_ts: int | None = None, to_ts: int | None = None) -> list[Candle]:
        timeframe = self.resolve(token)
        with self._lock:
            return self._query.candles(timeframe.name, from_ts, to_ts)

    def all_candles(self, from_ts: int | None = None, to_ts: int | None = None) -> dict[str, list[Candle]]:
        with self._lock:
            return {
                name: self._query.candles(name, from_ts, to_ts)
                for name in self._aggregators
            }

    def sample(
        self,
        token: str,
        limit: int = DEFAULT_SAMPLE_LIMIT,
        at_ms: int | None = None,
    ) -> list[Tick]:
        timeframe = self.resolve(token)
        return self.sample_window(timeframe.minutes, limit=limit, at_ms=at_ms)

    def sample_window(
        self,
        window_minutes: int,
        limit: int = DEFAULT_SAMPLE_LIMIT,
        at_ms: int | None = None,
    ) -> list[Tick]:
        at_ms = at_ms if at_ms is not None else now_ms()
        with self._lock:
            return self._query.sample(window_minutes, at_ms, limit=limit)

    def history(
        self,
        from_ts: int | None = None,
        to_ts: int | None = None,
        limit: int | None = None,
    ) -> list[Tick]:
        with self._lock:
            return self._query.history(from_ts, to_ts, limit=limit)

    def status(self) -> dict:
        with self._lock:
            return {
                "latest_price": self._latest_price,
                "last_updated": self._last_updated,
                "history_size": len(self._history),
                "candles": {name: len(agg) for name, agg in self._aggregators.items()},
            }
