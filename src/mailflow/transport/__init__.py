"""Transport adapters: SMTP, AWS SES, console and in-memory."""

from __future__ import annotations

from .console import ConsoleTransport
from .factory import create_transport
from .memory import InMemoryTransport, SendAttempt
from .ses import SesTransport
from .smtp import SmtpTransport, build_mime, classify_smtp_error

__all__ = [
    "ConsoleTransport",
    "InMemoryTransport",
    "SendAttempt",
    "SesTransport",
    "SmtpTransport",
    "build_mime",
    "classify_smtp_error",
    "create_transport",
]
