"""Tests for the console and in-memory transports and transport selection."""

from __future__ import annotations

from typing import Any

import pytest

from mailflow.config import MailflowSettings, TransportSettings
from mailflow.exceptions import TransientTransportError
from mailflow.models import DeliveryOutcome
from mailflow.ports.transport import ITransport
from mailflow.transport import (
    ConsoleTransport,
    InMemoryTransport,
    SesTransport,
    SmtpTransport,
    create_transport,
)


@pytest.mark.asyncio
async def test_console_transport_prints(capsys: Any, email_factory: Any) -> None:
    outcome = await ConsoleTransport().send(email_factory())

    assert outcome.success
    assert outcome.provider_message_id is not None
    assert outcome.provider_message_id.startswith("console-")
    out = capsys.readouterr().out
    assert "To:      a@b.com" in out
    assert "Subject: Welcome" in out


@pytest.mark.asyncio
async def test_console_transport_quiet(capsys: Any, email_factory: Any) -> None:
    await ConsoleTransport(output_to_stdout=False).send(email_factory())
    assert capsys.readouterr().out == ""


@pytest.mark.asyncio
async def test_memory_transport_script(email_factory: Any) -> None:
    transport = InMemoryTransport()
    transport.script(
        TransientTransportError("busy"),
        DeliveryOutcome.failed("memory", "rejected", retryable=False),
    )

    with pytest.raises(TransientTransportError):
        await transport.send(email_factory())
    failed = await transport.send(email_factory())
    delivered = await transport.send(email_factory())

    assert not failed.success
    assert delivered.provider_message_id == "test-3"
    assert len(transport.attempts) == 3
    transport.assert_sent("a@b.com")
    with pytest.raises(AssertionError):
        transport.assert_sent("a@b.com", count=2)

    transport.clear()
    assert transport.sent == []


def _settings(**transport: Any) -> MailflowSettings:
    return MailflowSettings(_env_file=None, transport=TransportSettings(**transport))


@pytest.mark.parametrize(
    ("provider", "expected"),
    [
        ("smtp", SmtpTransport),
        ("ses", SesTransport),
        ("console", ConsoleTransport),
        ("memory", InMemoryTransport),
    ],
)
def test_create_transport(provider: str, expected: type) -> None:
    transport = create_transport(_settings(provider=provider))
    assert isinstance(transport, expected)
    assert isinstance(transport, ITransport)


def test_create_smtp_transport_from_settings() -> None:
    transport = create_transport(
        _settings(provider="smtp", smtp_host="mail.internal", smtp_port=465, smtp_implicit_tls=True)
    )
    assert isinstance(transport, SmtpTransport)
    assert (transport.host, transport.port, transport.implicit_tls) == ("mail.internal", 465, True)
    assert transport.from_email == "noreply@buerokratt.ee"
