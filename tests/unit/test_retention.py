from src.price_oracle.candles import CandleAggregator
from src.price_oracle.history import HistoryBuffer
from src.price_oracle.models import Tick
from src.price_oracle.retention import RetentionManager, RetentionPolicy, apply_count_cap
from src.price_oracle.timeframes import DAY_MS, HOUR_MS, TIMEFRAMES


def _hourly_aggregator(hours: int) -> CandleAggregator:
    aggregator = CandleAggregator(TIMEFRAMES["1h"])
    for hour in range(hours):
        aggregator.update(100.0 + hour, hour * HOUR_MS)
    return aggregator


def test_count_cap_keeps_most_recent_suffix() -> None:
    aggregator = _hourly_aggregator(10)

    kept = apply_count_cap(aggregator.series, 4)

    assert [c.bucket_start for c in kept] == [h * HOUR_MS for h in range(6, 10)]


def test_manager_applies_count_cap_then_age_cap() -> None:
    aggregator = _hourly_aggregator(200)
    now = 199 * HOUR_MS
    manager = RetentionManager(RetentionPolicy(max_candles=100, max_age_ms={"1h": 2 * DAY_MS}))

    evicted = manager.apply(HistoryBuffer(), [aggregator], now)

    starts = [c.bucket_start for c in aggregator.series]
    assert starts[0] == 151 * HOUR_MS
    assert starts[-1] == 199 * HOUR_MS
    assert len(starts) == 49
    assert evicted == {"1h": 151}


def test_series_without_age_rule_only_gets_count_cap() -> None:
    aggregator = CandleAggregator(TIMEFRAMES["5m"])
    for i in range(120):
        aggregator.update(1.0, i * 300_000)
    manager = RetentionManager(RetentionPolicy(max_candles=100, max_age_ms={"1h": DAY_MS}))

    manager.apply(HistoryBuffer(), [aggregator], 10 * 365 * DAY_MS)

    assert len(aggregator) == 100
    assert aggregator.series[0].bucket_start == 20 * 300_000


def test_manager_trims_history_in_same_pass() -> None:
    history = HistoryBuffer(
        [Tick(price=1.0, timestamp=0), Tick(price=2.0, timestamp=3 * DAY_MS)]
    )
    manager = RetentionManager()

    evicted = manager.apply(history, [], 3 * DAY_MS)

    assert evicted == {"history": 1}
    assert [t.price for t in history] == [2.0]


def test_default_policy_ages() -> None:
    policy = RetentionPolicy()

    assert policy.max_candles == 100
    assert policy.max_age_ms["24h"] == 30 * DAY_MS
    assert policy.max_age_ms["1h"] == 7 * DAY_MS
    assert policy.max_age_ms["1w"] == 730 * DAY_MS
    assert policy.max_age_ms["1M"] == 3650 * DAY_MS
    assert "5m" not in policy.max_age_ms
