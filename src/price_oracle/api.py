from __future__ import annotations

from collections.abc import Iterable

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import InvalidQueryError
from .models import Candle, Tick
from .query import compute_stats, parse_limit, parse_timestamp, validate_bounds
from .runtime import get_or_create_engine

app = FastAPI(title="Price Oracle API", version="0.1.0")


class PricePoint(BaseModel):
    price: float
    timestamp: int


class CandlePoint(BaseModel):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: int


class PriceStatsOut(BaseModel):
    count: int
    avg: float
    min: float
    max: float


def configure_cors(origins: Iterable[str]) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_methods=["GET"],
        allow_headers=["*"],
    )


@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _points(ticks: list[Tick]) -> list[dict]:
    return [PricePoint(price=t.price, timestamp=t.timestamp).model_dump() for t in ticks]


def _candles(candles: list[Candle]) -> list[dict]:
    return [
        CandlePoint(
            timestamp=c.bucket_start,
            open=c.open,
            high=c.high,
            low=c.low,
            close=c.close,
            volume=c.volume,
        ).model_dump()
        for c in candles
    ]


def _stats(ticks: list[Tick]) -> dict:
    stats = compute_stats(ticks)
    return PriceStatsOut(count=stats.count, avg=stats.avg, min=stats.min, max=stats.max).model_dump()


def _bounds(
    from_timestamp: str | None,
    to_timestamp: str | None,
) -> tuple[int | None, int | None]:
    from_ts = parse_timestamp(from_timestamp, "fromTimestamp")
    to_ts = parse_timestamp(to_timestamp, "toTimestamp")
    validate_bounds(from_ts, to_ts)
    return from_ts, to_ts


def _sampled_intervals(limit: int) -> dict[str, list[dict]]:
    engine = get_or_create_engine()
    return {tf.name: _points(engine.sample(tf.name, limit=limit)) for tf in engine.timeframes}


@app.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}


@app.get("/status")
async def status() -> dict:
    return get_or_create_engine().status()


@app.get("/api/timeframes")
async def timeframes() -> dict:
    engine = get_or_create_engine()
    return {
        "items": [
            {"name": tf.name, "durationMs": tf.duration_ms}
            for tf in engine.timeframes
        ]
    }


@app.get("/api/price")
@app.get("/api/price/latest")
async def latest_price() -> dict:
    latest, last_updated = get_or_create_engine().latest()
    return {"latest": latest, "lastUpdated": last_updated}


@app.get("/api/price/all")
async def all_prices(limit: str | None = Query(default=None)) -> dict:
    latest, last_updated = get_or_create_engine().latest()
    return {
        "latest": latest,
        "intervals": _sampled_intervals(parse_limit(limit)),
        "lastUpdated": last_updated,
    }


@app.get("/api/price/intervals/all")
async def all_intervals(limit: str | None = Query(default=None)) -> dict:
    _, last_updated = get_or_create_engine().latest()
    return {
        "intervals": _sampled_intervals(parse_limit(limit)),
        "lastUpdated": last_updated,
    }


@app.get("/api/price/history")
async def price_history(
    from_timestamp: str | None = Query(default=None, alias="fromTimestamp"),
    to_timestamp: str | None = Query(default=None, alias="toTimestamp"),
    limit: str | None = Query(default=None),
) -> dict:
    from_ts, to_ts = _bounds(from_timestamp, to_timestamp)
    engine = get_or_create_engine()
    points = engine.history(from_ts, to_ts, limit=parse_limit(limit, default=None))
    _, last_updated = engine.latest()
    return {
        "dataPoints": _points(points),
        "stats": _stats(points),
        "lastUpdated": last_updated,
    }


@app.get("/api/price/{interval}")
async def interval_prices(interval: str, limit: str | None = Query(default=None)) -> dict:
    engine = get_or_create_engine()
    timeframe = engine.resolve(interval)
    points = engine.sample(timeframe.name, limit=parse_limit(limit))
    _, last_updated = engine.latest()
    return {
        "interval": f"{timeframe.minutes}m",
        "timeframe": timeframe.name,
        "dataPoints": _points(points),
        "stats": _stats(points),
        "lastUpdated": last_updated,
    }


@app.get("/api/ohlc")
async def all_ohlc(
    from_timestamp: str | None = Query(default=None, alias="fromTimestamp"),
    to_timestamp: str | None = Query(default=None, alias="toTimestamp"),
) -> dict:
    from_ts, to_ts = _bounds(from_timestamp, to_timestamp)
    engine = get_or_create_engine()
    series = engine.all_candles(from_ts, to_ts)
    _, last_updated = engine.latest()
    return {
        "ohlc": {name: _candles(candles) for name, candles in series.items()},
        "lastUpdated": last_updated,
    }


@app.get("/api/ohlc/{timeframe}")
async def timeframe_ohlc(
    timeframe: str,
    from_timestamp: str | None = Query(default=None, alias="fromTimestamp"),
    to_timestamp: str | None = Query(default=None, alias="toTimestamp"),
) -> dict:
    from_ts, to_ts = _bounds(from_timestamp, to_timestamp)
    engine = get_or_create_engine()
    resolved = engine.resolve(timeframe)
    candles = engine.candles(resolved.name, from_ts, to_ts)
    if not candles and (from_ts is not None or to_ts is not None):
        raise HTTPException(status_code=404, detail=f"no {resolved.name} candles in range")
    _, last_updated = engine.latest()
    return {
        "timeframe": resolved.name,
        "candles": _candles(candles),
        "lastUpdated": last_updated,
    }
