"""Exchange, queue and routing-key names of the three logical routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..policy import MAX_QUEUE_PRIORITY
from ..ports.broker import Route


@dataclass(frozen=True)
class QueueTopology:
    """Primary, retry and dead-letter routes.

    The retry queue has no consumer: its messages expire after their
    per-message delay (bounded by ``retry_ttl_ms``) and are dead-lettered back
    onto the primary route. The primary queue dead-letters expired or rejected
    messages into the dead-letter queue.

    RabbitMQ only expires per-message TTLs at the head of a queue, so a long
    delay at the head of the retry queue holds back shorter delays queued
    behind it until it expires. Retry delays are therefore upper-bounded by
    ``retry_ttl_ms`` but not strictly ordered.
    """

    exchange: str = "email.exchange"
    primary_queue: str = "email.notifications"
    primary_routing_key: str = "email.notifications"
    retry_exchange: str = "email.retry.exchange"
    retry_queue: str = "email.retry"
    retry_routing_key: str = "email.retry"
    dead_letter_exchange: str = "email.dlx"
    dead_letter_queue: str = "email.dlq"
    dead_letter_routing_key: str = "email.dlq"
    primary_ttl_ms: int = 300_000
    retry_ttl_ms: int = 60_000
    dead_letter_ttl_ms: int = 86_400_000
    max_priority: int = MAX_QUEUE_PRIORITY

    def address(self, route: Route) -> tuple[str, str]:
        """Return ``(exchange, routing_key)`` for a route."""
        if route is Route.PRIMARY:
            return self.exchange, self.primary_routing_key
        if route is Route.RETRY:
            return self.retry_exchange, self.retry_routing_key
        return self.dead_letter_exchange, self.dead_letter_routing_key

    def queue_arguments(self, route: Route) -> dict[str, Any]:
        if route is Route.PRIMARY:
            return {
                "x-message-ttl": self.primary_ttl_ms,
                "x-max-priority": self.max_priority,
                "x-dead-letter-exchange": self.dead_letter_exchange,
                "x-dead-letter-routing-key": self.dead_letter_routing_key,
            }
        if route is Route.RETRY:
            return {
                "x-message-ttl": self.retry_ttl_ms,
                "x-dead-letter-exchange": self.exchange,
                "x-dead-letter-routing-key": self.primary_routing_key,
            }
        return {"x-message-ttl": self.dead_letter_ttl_ms}

    def queue_name(self, route: Route) -> str:
        if route is Route.PRIMARY:
            return self.primary_queue
        if route is Route.RETRY:
            return self.retry_queue
        return self.dead_letter_queue
