from __future__ import annotations

from collections.abc import Iterable

from .errors import InvalidQueryError
from .models import Timeframe

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
WEEK_MS = 7 * DAY_MS
MONTH_MS = 30 * DAY_MS

TIMEFRAMES: dict[str, Timeframe] = {
    tf.name: tf
    for tf in (
        Timeframe("5m", 5 * MINUTE_MS),
        Timeframe("15m", 15 * MINUTE_MS),
        Timeframe("30m", 30 * MINUTE_MS),
        Timeframe("1h", HOUR_MS),
        Timeframe("12h", 12 * HOUR_MS),
        Timeframe("24h", DAY_MS),
        Timeframe("1w", WEEK_MS),
        Timeframe("1M", MONTH_MS),
    )
}

DEFAULT_TIMEFRAMES = ("5m", "15m", "30m", "1h", "12h", "24h", "1w", "1M")

# "1M" is month and "1m" is not a timeframe, so exact matches win before
# the case-insensitive lookup.
TIMEFRAME_ALIASES: dict[str, str] = {
    "5": "5m",
    "5m": "5m",
    "15": "15m",
    "15m": "15m",
    "30": "30m",
    "30m": "30m",
    "60": "1h",
    "1": "1h",
    "1h": "1h",
    "720": "12h",
    "12": "12h",
    "12h": "12h",
    "1440": "24h",
    "24": "24h",
    "24h": "24h",
    "1d": "24h",
    "10080": "1w",
    "1w": "1w",
    "week": "1w",
    "43200": "1M",
    "1M": "1M",
    "month": "1M",
}

_LOWER_ALIASES = {key.lower(): value for key, value in TIMEFRAME_ALIASES.items() if key != "1M"}


def parse_duration_ms(value: str) -> int:
    text = value.strip().lower()
    if not text:
        raise ValueError("duration must not be empty")

    unit = text[-1]
    try:
        number = int(text[:-1])
    except ValueError as exc:
        raise ValueError(f"invalid duration: {value!r}") from exc
    if number <= 0:
        raise ValueError("duration must be > 0")

    factors = {
        "s": 1000,
        "m": MINUTE_MS,
        "h": HOUR_MS,
        "d": DAY_MS,
        "w": WEEK_MS,
    }
    if unit not in factors:
        raise ValueError(f"unsupported duration unit: {unit}")
    return number * factors[unit]


def canonical_timeframe_name(token: str) -> str | None:
    token = token.strip()
    name = TIMEFRAME_ALIASES.get(token)
    if name is None:
        name = _LOWER_ALIASES.get(token.lower())
    return name


def resolve_timeframe(token: str, configured: Iterable[str] | None = None) -> Timeframe:
    """Map a client token ("60", "1h", "week", ...) to a configured timeframe."""
    name = canonical_timeframe_name(token)
    if name is None:
        raise InvalidQueryError(f"unknown timeframe: {token!r}")
    if configured is not None and name not in set(configured):
        raise InvalidQueryError(f"timeframe not configured: {name}")
    return TIMEFRAMES[name]


def timeframes_from_names(names: Iterable[str]) -> tuple[Timeframe, ...]:
    resolved: list[Timeframe] = []
    for raw in names:
        name = canonical_timeframe_name(raw)
        if name is None:
            raise ValueError(f"unsupported timeframe: {raw!r}")
        timeframe = TIMEFRAMES[name]
        if timeframe not in resolved:
            resolved.append(timeframe)
    if not resolved:
        raise ValueError("at least one timeframe is required")
    return tuple(sorted(resolved, key=lambda tf: tf.duration_ms))
