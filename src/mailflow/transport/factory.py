"""Select the Transport once at process start."""

from __future__ import annotations

from ..config import MailflowSettings
from ..ports.transport import ITransport
from .console import ConsoleTransport
from .memory import InMemoryTransport
from .ses import SesTransport
from .smtp import SmtpTransport


def create_transport(settings: MailflowSettings) -> ITransport:
    """Build the transport named by ``settings.transport.provider``."""
    config = settings.transport
    if config.provider == "smtp":
        return SmtpTransport(
            config.smtp_host,
            config.smtp_port,
            config.smtp_username,
            config.smtp_password,
            start_tls=config.smtp_starttls,
            implicit_tls=config.smtp_implicit_tls,
            timeout=config.smtp_timeout,
            from_email=settings.from_email,
        )
    if config.provider == "ses":
        return SesTransport(config.ses_region, settings.from_email)
    if config.provider == "console":
        return ConsoleTransport()
    if config.provider == "memory":
        return InMemoryTransport()
    raise ValueError(f"Unknown transport provider: {config.provider!r}")
