from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeVar

from .candles import CandleAggregator
from .errors import InvalidQueryError
from .history import HistoryBuffer
from .models import Candle, PriceStats, Tick
from .timeframes import MINUTE_MS, WEEK_MS

T = TypeVar("T")

DEFAULT_SAMPLE_LIMIT = 10
LONG_WINDOW_MINUTES = WEEK_MS // MINUTE_MS


def parse_timestamp(value: object, name: str = "timestamp") -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidQueryError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError as exc:
            raise InvalidQueryError(f"{name} must be an integer") from exc
    raise InvalidQueryError(f"{name} must be an integer")


def parse_limit(value: object, default: int | None = DEFAULT_SAMPLE_LIMIT) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise InvalidQueryError("limit must be an integer")
    try:
        limit = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidQueryError("limit must be an integer") from exc
    if limit < 1:
        raise InvalidQueryError("limit must be >= 1")
    return limit


def validate_bounds(from_ts: int | None, to_ts: int | None) -> None:
    if from_ts is not None and to_ts is not None and from_ts > to_ts:
        raise InvalidQueryError("fromTimestamp must be <= toTimestamp")


def downsample(points: Sequence[T], limit: int) -> list[T]:
    """Fixed-stride sample of ``limit`` points that always keeps the last one."""
    n = len(points)
    if n <= limit:
        return list(points)

    step = n // limit
    result = [points[i * step] for i in range(limit - 1)]
    result.append(points[-1])
    return result


def compute_stats(points: Sequence[Tick]) -> PriceStats:
    if not points:
        return PriceStats(count=0, avg=0.0, min=0.0, max=0.0)

    prices = [point.price for point in points]
    return PriceStats(
        count=len(prices),
        avg=sum(prices) / len(prices),
        min=min(prices),
        max=max(prices),
    )


def filter_candles(
    series: Sequence[Candle],
    from_ts: int | None = None,
    to_ts: int | None = None,
) -> list[Candle]:
    return [
        candle
        for candle in series
        if (from_ts is None or candle.bucket_start >= from_ts)
        and (to_ts is None or candle.bucket_start <= to_ts)
    ]


class QueryEngine:
    """Read-only views over the raw history and the candle series."""

    def __init__(self, history: HistoryBuffer, aggregators: Mapping[str, CandleAggregator]) -> None:
        self._history = history
        self._aggregators = aggregators

    def candles(self, name: str, from_ts: int | None = None, to_ts: int | None = None) -> list[Candle]:
        validate_bounds(from_ts, to_ts)
        aggregator = self._aggregators.get(name)
        if aggregator is None:
            raise InvalidQueryError(f"timeframe not configured: {name}")
        return filter_candles(aggregator.series, from_ts, to_ts)

    def sample(self, window_minutes: int, now_ms: int, limit: int = DEFAULT_SAMPLE_LIMIT) -> list[Tick]:
        if limit < 1:
            raise InvalidQueryError("limit must be >= 1")
        cutoff = now_ms - window_minutes * MINUTE_MS
        points = self._history.since(cutoff)
        if not points and window_minutes >= LONG_WINDOW_MINUTES:
            points = self._history.ticks()
        return downsample(points, limit)

    def history(
        self,
        from_ts: int | None = None,
        to_ts: int | None = None,
        limit: int | None = None,
    ) -> list[Tick]:
        validate_bounds(from_ts, to_ts)
        points = self._history.range(from_ts, to_ts)
        if limit is None:
            return points
        if limit < 1:
            raise InvalidQueryError("limit must be >= 1")
        return downsample(points, limit)
