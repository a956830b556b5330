from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from .engine import PriceEngine, now_ms
from .errors import PersistenceError
from .models import Tick
from .snapshot import JsonSnapshotGateway
from .sources import PriceSource

logger = logging.getLogger(__name__)


@dataclass
class SaveThrottle:
    interval_seconds: float = 60.0

    def __post_init__(self) -> None:
        self._last_saved: float | None = None

    @property
    def last_saved(self) -> float | None:
        return self._last_saved

    def due(self, now: float) -> bool:
        if self._last_saved is None:
            return True
        return now - self._last_saved >= self.interval_seconds

    def mark_saved(self, now: float) -> None:
        self._last_saved = now


class IngestScheduler:
    """Runs fetch -> ingest -> maybe save once per period."""

    def __init__(
        self,
        engine: PriceEngine,
        source: PriceSource,
        gateway: JsonSnapshotGateway,
        *,
        interval_seconds: float = 1.0,
        save_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        wall_clock_ms: Callable[[], int] = now_ms,
    ) -> None:
        self.engine = engine
        self.source = source
        self.gateway = gateway
        self.interval_seconds = interval_seconds
        self.throttle = SaveThrottle(interval_seconds=save_interval_seconds)
        self._clock = clock
        self._wall_clock_ms = wall_clock_ms

    async def run_cycle(self) -> Tick | None:
        price = await self.source.fetch()
        if price is None or not math.isfinite(price):
            logger.warning("[Ingest] Failed to fetch the latest price")
            return None

        tick = self.engine.ingest(price, self._wall_clock_ms())
        logger.debug("[Ingest] Updated price: %s", price)
        await self.maybe_save()
        return tick

    async def maybe_save(self, force: bool = False) -> bool:
        now = self._clock()
        if not force and not self.throttle.due(now):
            return False

        snapshot = self.engine.to_snapshot()
        try:
            await asyncio.to_thread(self.gateway.save, snapshot)
        except PersistenceError as exc:
            logger.error("[Snapshot] Save failed: %s", exc)
            return False

        self.throttle.mark_saved(now)
        logger.info("[Snapshot] Saved %d ticks", len(snapshot.history))
        return True

    async def run(self) -> None:
        logger.info("[Ingest] Sampling every %ss", self.interval_seconds)
        while True:
            started = self._clock()
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("[Ingest] Cycle failed")
            elapsed = self._clock() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
