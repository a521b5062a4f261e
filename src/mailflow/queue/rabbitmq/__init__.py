"""RabbitMQ adapter: connection/topology, publishing broker and consumer."""

from __future__ import annotations

from .broker import RabbitMQBroker
from .connection import RabbitMQConnectionManager
from .consumer import RabbitMQConsumer

__all__ = [
    "RabbitMQBroker",
    "RabbitMQConnectionManager",
    "RabbitMQConsumer",
]
