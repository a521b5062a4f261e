"""Idempotency guard port."""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable


class Dedup(str, Enum):
    FRESH = "fresh"
    DUPLICATE = "duplicate"


@runtime_checkable
class IIdempotencyGuard(Protocol):
    """Atomic test-and-set over recently submitted event identifiers.

    Implementations: IdempotencyGuard (in-memory), RedisIdempotencyGuard.
    """

    async def check_and_record(self, event_id: str) -> Dedup:
        """Record ``event_id`` and return FRESH, or return DUPLICATE without mutating."""
        ...

    async def release(self, event_id: str) -> None:
        """Forget ``event_id`` (rollback of a submission that did not complete)."""
        ...
