"""SMTP transport."""

from __future__ import annotations

import asyncio
import email.message
import email.policy
import email.utils
import logging
import time

import aiosmtplib

from ..exceptions import PermanentTransportError, TransientTransportError, TransportError
from ..models import DeliveryOutcome, RenderedEmail
from ..ports.transport import ITransport

logger = logging.getLogger(__name__)


def build_mime(
    rendered: RenderedEmail, *, from_email: str | None = None
) -> email.message.EmailMessage:
    """Build a MIME message: plain text, plus an HTML alternative when present."""
    sender = rendered.sender or from_email
    if not sender:
        raise PermanentTransportError("Sender email (from_email) is required.", provider="smtp")

    message = email.message.EmailMessage(policy=email.policy.default)
    message["From"] = sender
    message["To"] = email.utils.formataddr(
        (rendered.recipient_name or "", rendered.recipient_email)
    )
    if rendered.reply_to:
        message["Reply-To"] = rendered.reply_to
    message["Subject"] = rendered.subject
    message["Message-ID"] = email.utils.make_msgid(domain=sender.rpartition("@")[2] or None)
    message["X-Event-Id"] = rendered.event_id

    message.set_content(rendered.text_body or "", subtype="plain", charset="utf-8")
    if rendered.html_body:
        message.add_alternative(rendered.html_body, subtype="html", charset="utf-8")
    return message


def classify_smtp_error(error: Exception) -> TransportError:
    """Map an aiosmtplib failure onto the transient/permanent split.

    5xx replies (including refused recipients and failed auth) are permanent;
    4xx replies, timeouts and connection problems are transient.
    """
    if isinstance(error, aiosmtplib.SMTPRecipientsRefused):
        codes = [r.code for r in error.recipients]
        if codes and all(code >= 500 for code in codes):
            return PermanentTransportError(str(error), provider="smtp", error_code=codes[0])
        first = codes[0] if codes else None
        return TransientTransportError(str(error), provider="smtp", error_code=first)
    if isinstance(error, aiosmtplib.SMTPResponseException):
        if error.code >= 500:
            return PermanentTransportError(error.message, provider="smtp", error_code=error.code)
        return TransientTransportError(error.message, provider="smtp", error_code=error.code)
    return TransientTransportError(str(error) or type(error).__name__, provider="smtp")


class SmtpTransport(ITransport):
    """
    Async SMTP transport using aiosmtplib. One connection per send.
    """

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        *,
        start_tls: bool = True,
        implicit_tls: bool = False,
        timeout: float = 10.0,
        from_email: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.start_tls = start_tls
        self.implicit_tls = implicit_tls
        self.timeout = timeout
        self.from_email = from_email

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.implicit_tls,
            start_tls=self.start_tls and not self.implicit_tls,
            timeout=self.timeout,
        )

    async def send(self, rendered: RenderedEmail) -> DeliveryOutcome:
        message = build_mime(rendered, from_email=self.from_email)
        start = time.monotonic()
        try:
            async with self._client() as smtp:
                await smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            error = classify_smtp_error(e)
            logger.error(
                "Failed to send email to %s via SMTP (%s): %s",
                rendered.recipient_email,
                "retryable" if error.retryable else "permanent",
                error,
            )
            raise error from e

        duration_ms = (time.monotonic() - start) * 1000
        logger.info("Email sent to %s via SMTP", rendered.recipient_email)
        return DeliveryOutcome.delivered(self.name, message["Message-ID"], duration_ms)

    async def health_check(self) -> bool:
        """Connect, NOOP and quit."""
        smtp = self._client()
        try:
            await smtp.connect()
            await smtp.noop()
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError):
            logger.warning(
                "SMTP health check failed for %s:%d", self.host, self.port, exc_info=True
            )
            return False
        return True
