"""Tests for HealthRegistry."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from mailflow.health import HealthRegistry


@pytest.mark.asyncio
async def test_sync_and_async_checks() -> None:
    registry = HealthRegistry()

    async def broker() -> bool:
        return True

    registry.register("broker", broker)
    registry.register("transport", lambda: True)

    report = await registry.status()

    assert report["status"] == "healthy"
    assert report["components"] == {"broker": "up", "transport": "up"}


@pytest.mark.asyncio
async def test_failing_or_raising_check_is_down() -> None:
    registry = HealthRegistry()

    async def raises() -> bool:
        raise ConnectionError("gone")

    registry.register("broker", raises)
    registry.register("resql", lambda: False)
    registry.register("transport", lambda: True)

    report = await registry.status()

    assert report["status"] == "unhealthy"
    assert report["components"] == {"broker": "down", "resql": "down", "transport": "up"}


@pytest.mark.asyncio
async def test_hanging_check_times_out() -> None:
    registry = HealthRegistry(check_timeout_seconds=0.01)

    async def hangs() -> bool:
        await asyncio.sleep(10)
        return True

    registry.register("transport", hangs)

    assert await registry.check_all() == {"transport": "down"}


@pytest.mark.asyncio
async def test_stale_heartbeat_is_down(clock: Any) -> None:
    registry = HealthRegistry(heartbeat_timeout_seconds=60, clock=clock)
    registry.heartbeat("worker")
    assert (await registry.check_all())["worker"] == "up"

    clock.advance(seconds=120)

    report = await registry.status()
    assert report["components"]["worker"] == "down"
    assert report["status"] == "unhealthy"
    assert "worker" in report["heartbeats"]
