"""Transport port — the capability that actually dispatches an email."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..models import DeliveryOutcome, RenderedEmail


@runtime_checkable
class ITransport(Protocol):
    """
    Framework-agnostic port for sending a rendered email.

    Adapters must explicitly declare: ``class SmtpTransport(ITransport):``.
    ``send`` either returns an outcome or raises a classified
    :class:`~mailflow.exceptions.TransportError`.
    """

    name: str

    async def send(self, email: RenderedEmail) -> DeliveryOutcome:
        """Send email and return the delivery outcome."""
        ...

    async def health_check(self) -> bool:
        """Return True when the provider is reachable."""
        ...
