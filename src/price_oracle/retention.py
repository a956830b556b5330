from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .candles import CandleAggregator
from .history import HistoryBuffer
from .models import Candle
from .timeframes import DAY_MS

logger = logging.getLogger(__name__)

DEFAULT_MAX_CANDLES = 100
DEFAULT_MAX_AGE_MS: dict[str, int] = {
    "1h": 7 * DAY_MS,
    "24h": 30 * DAY_MS,
    "1w": 730 * DAY_MS,
    "1M": 3650 * DAY_MS,
}


def apply_count_cap(series: list[Candle], max_candles: int) -> list[Candle]:
    if len(series) <= max_candles:
        return series
    return series[-max_candles:] if max_candles > 0 else []


def apply_age_cap(series: list[Candle], now_ms: int, max_age_ms: int) -> list[Candle]:
    oldest_allowed = now_ms - max_age_ms
    return [candle for candle in series if candle.bucket_start >= oldest_allowed]


@dataclass(frozen=True)
class RetentionPolicy:
    max_candles: int = DEFAULT_MAX_CANDLES
    max_age_ms: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_MAX_AGE_MS))

    def evict(self, name: str, series: list[Candle], now_ms: int) -> list[Candle]:
        kept = apply_count_cap(series, self.max_candles)
        max_age = self.max_age_ms.get(name)
        if max_age is not None:
            kept = apply_age_cap(kept, now_ms, max_age)
        return kept


class RetentionManager:
    def __init__(self, policy: RetentionPolicy | None = None) -> None:
        self.policy = policy or RetentionPolicy()

    def apply(
        self,
        history: HistoryBuffer,
        aggregators: Iterable[CandleAggregator],
        now_ms: int,
    ) -> dict[str, int]:
        """Evict old data everywhere and return how many items each store lost."""
        evicted: dict[str, int] = {}

        trimmed = history.trim(now_ms)
        if trimmed:
            evicted["history"] = trimmed

        for aggregator in aggregators:
            series = aggregator.series
            kept = self.policy.evict(aggregator.name, series, now_ms)
            if len(kept) != len(series):
                aggregator.replace_series(kept)
                evicted[aggregator.name] = len(series) - len(kept)

        if evicted:
            logger.debug("[Retention] Evicted %s", evicted)
        return evicted
