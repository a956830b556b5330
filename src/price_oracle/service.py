from __future__ import annotations

import asyncio
import logging
import time

import uvicorn

from .api import app, configure_cors
from .config import load_config
from .engine import PriceEngine
from .runtime import boot_engine, install_engine
from .scheduler import IngestScheduler
from .snapshot import JsonSnapshotGateway
from .sources import StreamPriceSource, build_price_source

logger = logging.getLogger(__name__)


async def serve() -> None:
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    engine = PriceEngine(config.engine_config())
    gateway = JsonSnapshotGateway(config.snapshot_path)
    in_sync = await asyncio.to_thread(boot_engine, engine, gateway)
    install_engine(engine)

    source = build_price_source(config)
    scheduler = IngestScheduler(
        engine,
        source,
        gateway,
        interval_seconds=config.tick_interval_seconds,
        save_interval_seconds=config.save_interval_seconds,
    )
    if in_sync:
        scheduler.throttle.mark_saved(time.monotonic())

    configure_cors(config.cors_origins)
    server = uvicorn.Server(
        uvicorn.Config(
            app=app,
            host="0.0.0.0",
            port=config.api_port,
            log_level=config.log_level.lower(),
        )
    )
    logger.info(
        "Price API server starting on port %s (source=%s, timeframes=%s)",
        config.api_port,
        config.price_source,
        ",".join(config.timeframes),
    )

    try:
        async with asyncio.TaskGroup() as tg:
            background = [tg.create_task(scheduler.run())]
            if isinstance(source, StreamPriceSource):
                background.append(tg.create_task(source.run()))
            await server.serve()
            for task in background:
                task.cancel()
    finally:
        await scheduler.maybe_save(force=True)


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
