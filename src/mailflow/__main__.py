"""Run the delivery worker: ``python -m mailflow``."""

from __future__ import annotations

import asyncio
import logging
import signal

from prometheus_client import CollectorRegistry, start_http_server

from .bootstrap import build_pipeline
from .config import MailflowSettings, get_settings
from .observability import configure_logging

logger = logging.getLogger("mailflow")


async def run(settings: MailflowSettings) -> None:
    registry = CollectorRegistry()
    pipeline = build_pipeline(settings, registry=registry)
    if settings.metrics_port:
        start_http_server(settings.metrics_port, registry=registry)
        logger.info("Prometheus metrics exposed on :%d", settings.metrics_port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await pipeline.start()
    try:
        await stop.wait()
    finally:
        await pipeline.stop()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
