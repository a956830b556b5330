from __future__ import annotations

import logging
import threading

from .config import Config, load_config
from .engine import PriceEngine
from .errors import PersistenceError
from .snapshot import JsonSnapshotGateway, empty_snapshot

logger = logging.getLogger(__name__)

_engine: PriceEngine | None = None
_lock = threading.Lock()


def boot_engine(engine: PriceEngine, gateway: JsonSnapshotGateway, at_ms: int | None = None) -> bool:
    """Restore persisted state into ``engine``.

    Returns True when the file on disk matches the engine afterwards, so the
    caller can delay the next save by a full interval.
    """
    try:
        snapshot = gateway.load()
    except PersistenceError as exc:
        logger.error("[Snapshot] Load failed, starting empty: %s", exc)
        engine.restore(empty_snapshot(), at_ms=at_ms)
        return False

    if snapshot is None:
        engine.restore(empty_snapshot(), at_ms=at_ms)
        try:
            gateway.save(engine.to_snapshot())
        except PersistenceError as exc:
            logger.error("[Snapshot] Could not create %s: %s", gateway.path, exc)
            return False
        logger.info("[Snapshot] Created new price data file")
        return True

    rebuilt = engine.restore(snapshot, at_ms=at_ms)
    logger.info(
        "[Snapshot] Loaded existing price data: %d ticks, rebuilt=%s",
        len(snapshot.history),
        rebuilt,
    )
    return True


def install_engine(engine: PriceEngine | None) -> None:
    global _engine

    with _lock:
        _engine = engine


def get_or_create_engine(config: Config | None = None) -> PriceEngine:
    global _engine

    if _engine is not None:
        return _engine

    with _lock:
        if _engine is None:
            cfg = config or load_config()
            _engine = PriceEngine(cfg.engine_config())
        return _engine


def get_engine() -> PriceEngine | None:
    return _engine
