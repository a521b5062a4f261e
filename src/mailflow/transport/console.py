"""Console transport for development debugging."""

from __future__ import annotations

import logging
import uuid

from ..models import DeliveryOutcome, RenderedEmail
from ..ports.transport import ITransport

logger = logging.getLogger(__name__)


class ConsoleTransport(ITransport):
    """
    Development adapter that prints emails to the console instead of sending them.
    """

    name = "console"

    def __init__(self, output_to_stdout: bool = True):
        self.output_to_stdout = output_to_stdout

    async def send(self, rendered: RenderedEmail) -> DeliveryOutcome:
        output = [
            "═" * 50,
            f"EMAIL {rendered.event_id} ({rendered.event_type}, {rendered.priority.value})",
            f"From:    {rendered.sender or '(default)'}",
            f"To:      {rendered.recipient_email}",
            f"Subject: {rendered.subject}",
            f"Body:    {rendered.text_body}",
        ]
        if rendered.html_body:
            output.append(f"HTML:    [Available: {len(rendered.html_body)} bytes]")
        output.append("═" * 50)

        full_output = "\n".join(output)
        logger.info(full_output)

        if self.output_to_stdout:
            print(full_output)

        return DeliveryOutcome.delivered(self.name, f"console-{uuid.uuid4().hex[:12]}")

    async def health_check(self) -> bool:
        return True
