"""Queue routing, wire format and topology; broker adapters live in subpackages."""

from __future__ import annotations

from .memory import InMemoryBroker
from .router import QueueRouter
from .serialization import EmailSerializer
from .topology import QueueTopology

__all__ = [
    "EmailSerializer",
    "InMemoryBroker",
    "QueueRouter",
    "QueueTopology",
]
