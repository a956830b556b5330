import pytest

from src.price_oracle.errors import InvalidQueryError
from src.price_oracle.timeframes import (
    parse_duration_ms,
    resolve_timeframe,
    timeframes_from_names,
)


def test_parse_duration_ms_for_common_units() -> None:
    assert parse_duration_ms("15m") == 900_000
    assert parse_duration_ms("24h") == 86_400_000
    assert parse_duration_ms("30d") == 30 * 86_400_000
    assert parse_duration_ms("2w") == 14 * 86_400_000


def test_parse_duration_ms_rejects_invalid_unit() -> None:
    with pytest.raises(ValueError, match="unsupported duration unit"):
        parse_duration_ms("10x")


def test_parse_duration_ms_rejects_non_numeric() -> None:
    with pytest.raises(ValueError, match="invalid duration"):
        parse_duration_ms("abch")


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("5", "5m"),
        ("5m", "5m"),
        ("60", "1h"),
        ("1", "1h"),
        ("1H", "1h"),
        ("12", "12h"),
        ("720", "12h"),
        ("1440", "24h"),
        ("24", "24h"),
        ("week", "1w"),
        ("WEEK", "1w"),
        ("1M", "1M"),
        ("month", "1M"),
    ],
)
def test_resolve_timeframe_aliases(token: str, expected: str) -> None:
    assert resolve_timeframe(token).name == expected


@pytest.mark.parametrize("token", ["7m", "1m", "", "abc", "2h"])
def test_resolve_timeframe_rejects_unknown_tokens(token: str) -> None:
    with pytest.raises(InvalidQueryError, match="unknown timeframe"):
        resolve_timeframe(token)


def test_resolve_timeframe_requires_configured_timeframe() -> None:
    assert resolve_timeframe("12", configured=["5m", "12h"]).name == "12h"

    with pytest.raises(InvalidQueryError, match="not configured"):
        resolve_timeframe("12", configured=["5m", "1h", "24h"])


def test_timeframes_from_names_dedupes_and_sorts() -> None:
    resolved = timeframes_from_names(["24h", "5", "1h", "5m"])

    assert [tf.name for tf in resolved] == ["5m", "1h", "24h"]


def test_timeframes_from_names_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="unsupported timeframe"):
        timeframes_from_names(["5m", "3m"])
