"""Status store port."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ..models import DeliveryState, DeliveryStatus


@runtime_checkable
class IStatusStore(Protocol):
    """Protocol for persisting and querying delivery status.

    Implementations: InMemoryStatusStore, HttpStatusStore.
    """

    async def log_submission(self, record: dict[str, Any]) -> None:
        """Persist the submission record of a newly queued email."""
        ...

    async def get_status(self, event_id: str) -> DeliveryStatus | None:
        """Return the latest status for ``event_id``; ``None`` when unknown."""
        ...

    async def update_status(self, event_id: str, status: DeliveryState, **fields: Any) -> None:
        """Record a delivery state transition."""
        ...
