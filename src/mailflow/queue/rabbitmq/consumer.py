"""RabbitMQConsumer — bounded-concurrency consumer of the primary queue."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from ...ports.broker import Route
from .connection import RabbitMQConnectionManager

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from aio_pika.abc import AbstractIncomingMessage, AbstractQueue

logger = logging.getLogger(__name__)


class RabbitMQConsumer:
    """Feeds primary-queue deliveries into a handler, at most ``max_concurrency`` at once.

    Prefetch equals ``max_concurrency`` so the broker never pushes more
    unacknowledged deliveries than there are slots. Each delivery is acked
    once the handler returns; it is requeued only when the handler is
    interrupted (cancellation on shutdown or an escaped exception).
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        handler: Callable[[bytes], Awaitable[Any]],
        *,
        max_concurrency: int = 20,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._connection = connection
        self._handler = handler
        self._max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._queue: AbstractQueue | None = None
        self._consumer_tag: str | None = None
        self._in_flight: set[asyncio.Task[Any]] = set()

    @property
    def consuming(self) -> bool:
        return self._consumer_tag is not None

    async def start(self) -> None:
        """Set QoS and begin consuming. Idempotent."""
        if self._consumer_tag is not None:
            return
        await self._connection.connect()
        await self._connection.channel.set_qos(prefetch_count=self._max_concurrency)
        self._queue = self._connection.queue(Route.PRIMARY)
        self._consumer_tag = await self._queue.consume(self._on_message)
        logger.info(
            "Consuming %s with concurrency %d",
            self._connection.topology.queue_name(Route.PRIMARY),
            self._max_concurrency,
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop receiving, then wait up to ``timeout`` seconds for in-flight work."""
        if self._queue is not None and self._consumer_tag is not None:
            await self._queue.cancel(self._consumer_tag)
        self._consumer_tag = None
        if self._in_flight:
            _, pending = await asyncio.wait(set(self._in_flight), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled %d in-flight deliveries on shutdown", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

    async def _on_message(self, raw: AbstractIncomingMessage) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            async with self._semaphore:
                async with raw.process(requeue=True, ignore_processed=True):
                    await self._handler(raw.body)
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def health_check(self) -> bool:
        return self.consuming and await self._connection.health_check()
