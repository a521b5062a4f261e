"""Submission deduplication by event id within a fixed window."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .models import utcnow
from .ports.idempotency import Dedup, IIdempotencyGuard

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 86_400


class IdempotencyGuard(IIdempotencyGuard):
    """In-memory TTL map of event id → first-seen time.

    Entries are kept in first-seen order, so eviction only ever pops expired
    entries off the front; it runs inline on every check and, once
    :meth:`start` is called, periodically in the background for idle periods.
    Lookups never refresh an entry's timestamp.
    """

    def __init__(
        self,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        sweep_interval: float = 300.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._window = timedelta(seconds=window_seconds)
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._entries: OrderedDict[str, datetime] = OrderedDict()
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._entries

    async def check_and_record(self, event_id: str) -> Dedup:
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            seen_at = self._entries.get(event_id)
            if seen_at is not None and now - seen_at < self._window:
                return Dedup.DUPLICATE
            self._entries.pop(event_id, None)
            self._entries[event_id] = now
            return Dedup.FRESH

    async def release(self, event_id: str) -> None:
        async with self._lock:
            self._entries.pop(event_id, None)

    async def sweep(self) -> int:
        """Evict every expired entry now; returns the number removed."""
        async with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now: datetime) -> int:
        cutoff = now - self._window
        removed = 0
        while self._entries:
            event_id, seen_at = next(iter(self._entries.items()))
            if seen_at > cutoff:
                break
            del self._entries[event_id]
            removed += 1
        return removed

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("IdempotencyGuard sweeper started (interval=%.1fs)", self._sweep_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("IdempotencyGuard sweeper stopped")

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = await self.sweep()
            if removed:
                logger.debug("Evicted %d idempotency entries", removed)


class RedisIdempotencyGuard(IIdempotencyGuard):
    """Distributed variant: ``SET key NX EX window`` is the test-and-set.

    Redis expiry replaces the sweep; the key holds the first-seen timestamp.
    """

    def __init__(
        self,
        redis_client: Redis,
        *,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        key_prefix: str = "mailflow:idempotency:",
    ) -> None:
        self._redis = redis_client
        self._window_seconds = window_seconds
        self._key_prefix = key_prefix

    def _key(self, event_id: str) -> str:
        return f"{self._key_prefix}{event_id}"

    async def check_and_record(self, event_id: str) -> Dedup:
        created = await self._redis.set(
            self._key(event_id),
            utcnow().isoformat(),
            nx=True,
            ex=self._window_seconds,
        )
        return Dedup.FRESH if created else Dedup.DUPLICATE

    async def release(self, event_id: str) -> None:
        await self._redis.delete(self._key(event_id))

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except Exception:  # noqa: BLE001
            return False
