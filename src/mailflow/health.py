"""Health registry — aggregates broker, transport and store health."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from .models import utcnow

logger = logging.getLogger(__name__)

HealthCheck = Callable[[], bool | Awaitable[bool]]

UP = "up"
DOWN = "down"


class HealthRegistry:
    """Named component probes plus worker heartbeats.

    A probe returns a bool or an awaitable of one. Probes run concurrently and
    each is bounded by ``check_timeout_seconds``; a probe that raises or times
    out reports the component as down. A heartbeat older than
    ``heartbeat_timeout_seconds`` also reports as down.
    """

    def __init__(
        self,
        *,
        heartbeat_timeout_seconds: float = 60.0,
        check_timeout_seconds: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._probes: dict[str, HealthCheck] = {}
        self._last_seen: dict[str, datetime] = {}
        self._heartbeat_window = timedelta(seconds=heartbeat_timeout_seconds)
        self._check_timeout = check_timeout_seconds
        self._clock = clock

    def register(self, component: str, check: HealthCheck) -> None:
        self._probes[component] = check

    def heartbeat(self, component: str) -> None:
        """Mark ``component`` (usually the worker) as alive now."""
        self._last_seen[component] = self._clock()

    async def _probe(self, component: str, check: HealthCheck) -> str:
        try:
            result = check()
            if isinstance(result, Awaitable):
                result = await asyncio.wait_for(result, timeout=self._check_timeout)
        except asyncio.TimeoutError:
            logger.warning("Health probe %s timed out after %.1fs", component, self._check_timeout)
            return DOWN
        except Exception:  # noqa: BLE001
            logger.warning("Health probe %s failed", component, exc_info=True)
            return DOWN
        return UP if result else DOWN

    def _heartbeat_states(self, now: datetime) -> dict[str, str]:
        return {
            component: UP if now - seen < self._heartbeat_window else DOWN
            for component, seen in self._last_seen.items()
        }

    async def check_all(self) -> dict[str, str]:
        """Run every probe and fold in heartbeat freshness: ``{component: up|down}``."""
        components = list(self._probes)
        states = await asyncio.gather(*(self._probe(c, self._probes[c]) for c in components))
        report = dict(zip(components, states))
        report.update(self._heartbeat_states(self._clock()))
        return report

    async def status(self) -> dict[str, Any]:
        components = await self.check_all()
        return {
            "status": "healthy" if all(s == UP for s in components.values()) else "unhealthy",
            "components": components,
            "timestamp": self._clock().isoformat(),
            "heartbeats": {c: seen.isoformat() for c, seen in self._last_seen.items()},
        }
