"""Priority → delivery policy table."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from .models import Priority


@dataclass(frozen=True)
class DeliveryPolicy:
    """Retry budget, primary-queue TTL and broker priority for one priority level."""

    max_retries: int
    ttl_ms: int
    queue_priority: int


POLICIES: MappingProxyType[Priority, DeliveryPolicy] = MappingProxyType(
    {
        Priority.CRITICAL: DeliveryPolicy(max_retries=5, ttl_ms=60_000, queue_priority=10),
        Priority.HIGH: DeliveryPolicy(max_retries=3, ttl_ms=300_000, queue_priority=7),
        Priority.NORMAL: DeliveryPolicy(max_retries=2, ttl_ms=300_000, queue_priority=5),
        Priority.LOW: DeliveryPolicy(max_retries=1, ttl_ms=3_600_000, queue_priority=2),
    }
)

MAX_QUEUE_PRIORITY = max(p.queue_priority for p in POLICIES.values())


def policy_for(priority: Priority) -> DeliveryPolicy:
    """Return the policy for a validated priority.

    Raw strings are coerced through :class:`Priority` so an unknown value
    fails loudly instead of silently falling back to ``normal``.
    """
    return POLICIES[Priority(priority)]
