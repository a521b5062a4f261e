"""Broker port used by the queue router."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class Route(str, Enum):
    """The three logical queues."""

    PRIMARY = "primary"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"


@dataclass(frozen=True)
class OutgoingMessage:
    """Broker-agnostic message: body plus routing properties."""

    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    priority: int | None = None
    expiration_ms: int | None = None
    content_type: str = "application/json"


@runtime_checkable
class IMessageBroker(Protocol):
    """
    Port for handing messages to a broker route.

    Implementations: RabbitMQBroker, InMemoryBroker.
    """

    async def publish(self, route: Route, message: OutgoingMessage) -> None:
        """Publish to ``route``; raise on failure."""
        ...

    async def health_check(self) -> bool:
        ...
