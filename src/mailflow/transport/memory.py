"""In-memory transport for test assertions."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from ..models import DeliveryOutcome, RenderedEmail
from ..ports.transport import ITransport

logger = logging.getLogger(__name__)


@dataclass
class SendAttempt:
    """Record of one send attempt for test assertions."""

    email: RenderedEmail
    outcome: DeliveryOutcome | None
    error: Exception | None = None


class InMemoryTransport(ITransport):
    """
    Test double (Fake) that records every send attempt.

    Scripted results queued with :meth:`script` are consumed in order; each
    one is either a :class:`DeliveryOutcome` to return or an exception to
    raise. With nothing scripted, sends succeed.
    """

    name = "memory"

    def __init__(self) -> None:
        self.attempts: list[SendAttempt] = []
        self.healthy = True
        self._script: deque[DeliveryOutcome | Exception] = deque()

    def script(self, *results: DeliveryOutcome | Exception) -> None:
        self._script.extend(results)

    @property
    def sent(self) -> list[RenderedEmail]:
        """Emails that were accepted."""
        return [a.email for a in self.attempts if a.outcome is not None and a.outcome.success]

    async def send(self, rendered: RenderedEmail) -> DeliveryOutcome:
        result = self._script.popleft() if self._script else None
        if isinstance(result, Exception):
            self.attempts.append(SendAttempt(rendered, None, result))
            raise result
        outcome = result or DeliveryOutcome.delivered(self.name, f"test-{len(self.attempts) + 1}")
        self.attempts.append(SendAttempt(rendered, outcome))
        return outcome

    async def health_check(self) -> bool:
        return self.healthy

    def assert_sent(self, recipient: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [e for e in self.sent if e.recipient_email == recipient]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} emails to {recipient}, but found {len(matches)}."
            )

    def clear(self) -> None:
        self.attempts.clear()
        self._script.clear()
