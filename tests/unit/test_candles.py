import random
from collections import Counter

from src.price_oracle.candles import CandleAggregator, bucket_start
from src.price_oracle.models import Candle, Tick
from src.price_oracle.timeframes import TIMEFRAMES


def test_bucket_start_floors_to_duration() -> None:
    assert bucket_start(0, 300_000) == 0
    assert bucket_start(299_999, 300_000) == 0
    assert bucket_start(300_000, 300_000) == 300_000
    assert bucket_start(1_000_123, 60_000) == 960_000


def test_ticks_inside_one_window_fold_into_one_candle() -> None:
    aggregator = CandleAggregator(TIMEFRAMES["5m"])

    aggregator.update(10.0, 0)
    aggregator.update(12.0, 1_000)
    aggregator.update(9.0, 61_000)

    assert aggregator.series == [
        Candle(bucket_start=0, open=10.0, high=12.0, low=9.0, close=9.0, volume=3)
    ]


def test_tick_at_window_end_opens_new_candle() -> None:
    aggregator = CandleAggregator(TIMEFRAMES["5m"])

    aggregator.update(10.0, 0)
    aggregator.update(20.0, 300_000)

    assert aggregator.series == [
        Candle(bucket_start=0, open=10.0, high=10.0, low=10.0, close=10.0, volume=1),
        Candle(bucket_start=300_000, open=20.0, high=20.0, low=20.0, close=20.0, volume=1),
    ]


def test_skipped_buckets_are_left_absent() -> None:
    aggregator = CandleAggregator(TIMEFRAMES["5m"])

    aggregator.update(10.0, 10_000)
    aggregator.update(11.0, 3_600_000 + 42_000)

    assert [c.bucket_start for c in aggregator.series] == [0, 3_600_000]
    assert all(c.volume == 1 for c in aggregator.series)


def test_late_tick_is_folded_into_tail_only() -> None:
    aggregator = CandleAggregator(TIMEFRAMES["5m"])

    aggregator.update(10.0, 0)
    aggregator.update(20.0, 300_000)
    aggregator.update(5.0, 1_000)

    first, tail = aggregator.series
    assert first == Candle(bucket_start=0, open=10.0, high=10.0, low=10.0, close=10.0, volume=1)
    assert tail.bucket_start == 300_000
    assert tail.low == 5.0
    assert tail.close == 5.0
    assert tail.volume == 2


def test_series_invariants_hold_for_every_timeframe() -> None:
    rng = random.Random(7)
    ticks: list[Tick] = []
    ts = 1_700_006_400_000
    for _ in range(3_000):
        ts += rng.choice([0, 1_000, 7_000, 65_000, 900_000, 4 * 3_600_000])
        ticks.append(Tick(price=rng.uniform(90.0, 110.0), timestamp=ts))

    for timeframe in TIMEFRAMES.values():
        aggregator = CandleAggregator(timeframe)
        aggregator.replay(ticks)
        series = aggregator.series

        starts = [c.bucket_start for c in series]
        assert starts == sorted(set(starts))
        for candle in series:
            assert candle.bucket_start % timeframe.duration_ms == 0
            assert candle.low <= candle.open <= candle.high
            assert candle.low <= candle.close <= candle.high

        expected = Counter(bucket_start(t.timestamp, timeframe.duration_ms) for t in ticks)
        assert {c.bucket_start: c.volume for c in series} == dict(expected)
