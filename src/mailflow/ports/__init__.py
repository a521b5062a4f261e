"""Port definitions for the delivery pipeline."""

from __future__ import annotations

from mailflow.ports.broker import IMessageBroker, OutgoingMessage, Route
from mailflow.ports.idempotency import Dedup, IIdempotencyGuard
from mailflow.ports.status import IStatusStore
from mailflow.ports.templates import ITemplateStore, Template
from mailflow.ports.transport import ITransport

__all__ = [
    "Dedup",
    "IIdempotencyGuard",
    "IMessageBroker",
    "IStatusStore",
    "ITemplateStore",
    "ITransport",
    "OutgoingMessage",
    "Route",
    "Template",
]
