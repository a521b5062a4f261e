"""In-memory broker for tests — emulates the primary/retry/DLQ topology."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from ..exceptions import BrokerConnectionError
from ..models import utcnow
from ..ports.broker import IMessageBroker, OutgoingMessage, Route

Handler = Callable[[bytes], Coroutine[Any, Any, Any]]


@dataclass(frozen=True)
class _Delayed:
    due_at: datetime
    message: OutgoingMessage


class InMemoryBroker(IMessageBroker):
    """Buffers published messages per route.

    Retry messages wait until their expiration elapses and :meth:`release_due`
    moves them back onto the primary route with the expiration dropped, as a
    dead-lettered RabbitMQ message would be. :meth:`deliver` hands ready
    primary messages to a handler, highest priority first, and counts every
    dequeue as acknowledged once the handler returns.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._primary: list[tuple[int, int, OutgoingMessage]] = []
        self._retry: list[_Delayed] = []
        self._dead: list[OutgoingMessage] = []
        self._seq = itertools.count()
        self.failing_routes: set[Route] = set()
        self.published: list[tuple[Route, OutgoingMessage]] = []
        self.acked = 0

    async def publish(self, route: Route, message: OutgoingMessage) -> None:
        if route in self.failing_routes:
            raise BrokerConnectionError(f"{route.value} route unavailable")
        self.published.append((route, message))
        if route is Route.PRIMARY:
            self._primary.append((-(message.priority or 0), next(self._seq), message))
        elif route is Route.RETRY:
            delay = timedelta(milliseconds=message.expiration_ms or 0)
            self._retry.append(_Delayed(self._clock() + delay, message))
        else:
            self._dead.append(message)

    async def health_check(self) -> bool:
        return not self.failing_routes

    def messages(self, route: Route) -> list[OutgoingMessage]:
        """Messages currently sitting on ``route``."""
        if route is Route.PRIMARY:
            return [m for _, _, m in sorted(self._primary)]
        if route is Route.RETRY:
            return [d.message for d in self._retry]
        return list(self._dead)

    def release_due(self, *, force: bool = False) -> int:
        """Move expired retry messages back to primary; ``force`` ignores due times."""
        now = self._clock()
        due = [d for d in self._retry if force or d.due_at <= now]
        self._retry = [d for d in self._retry if d not in due]
        for delayed in due:
            message = replace(delayed.message, expiration_ms=None)
            self._primary.append((-(message.priority or 0), next(self._seq), message))
        return len(due)

    async def deliver(self, handler: Handler, *, concurrency: int = 5) -> int:
        """Dequeue every ready primary message into ``handler``; returns the count."""
        batch = sorted(self._primary)
        self._primary.clear()
        semaphore = asyncio.Semaphore(concurrency)

        async def _one(message: OutgoingMessage) -> None:
            async with semaphore:
                await handler(message.body)
                self.acked += 1

        await asyncio.gather(*(_one(m) for _, _, m in batch))
        return len(batch)

    def clear(self) -> None:
        self._primary.clear()
        self._retry.clear()
        self._dead.clear()
        self.published.clear()
        self.acked = 0
