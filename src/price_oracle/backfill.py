from __future__ import annotations

import logging
from collections.abc import Iterable

from .candles import CandleAggregator
from .history import HistoryBuffer
from .models import Candle, Timeframe

logger = logging.getLogger(__name__)

MIN_CANDLES_BEFORE_BACKFILL = 2


def rebuild_series(timeframe: Timeframe, history: HistoryBuffer) -> list[Candle]:
    aggregator = CandleAggregator(timeframe)
    aggregator.replay(history.ticks())
    return aggregator.series


def is_well_formed(series: list[Candle], duration_ms: int) -> bool:
    for candle in series:
        if candle.bucket_start % duration_ms != 0:
            return False
    return all(
        earlier.bucket_start < later.bucket_start
        for earlier, later in zip(series, series[1:])
    )


def needs_backfill(aggregator: CandleAggregator) -> bool:
    if len(aggregator) < MIN_CANDLES_BEFORE_BACKFILL:
        return True
    return not is_well_formed(aggregator.series, aggregator.duration_ms)


def backfill(history: HistoryBuffer, aggregators: Iterable[CandleAggregator]) -> list[str]:
    """Rebuild every under-populated or malformed series from raw history.

    Only history is read, so running this twice gives the same series.
    Windows longer than the history horizon stay short until live ticks
    fill them in.
    """
    rebuilt: list[str] = []
    for aggregator in aggregators:
        if not needs_backfill(aggregator):
            continue
        aggregator.replace_series(rebuild_series(aggregator.timeframe, history))
        rebuilt.append(aggregator.name)
        logger.info(
            "[Backfill] Rebuilt %s from %d ticks -> %d candles",
            aggregator.name,
            len(history),
            len(aggregator),
        )
    return rebuilt
