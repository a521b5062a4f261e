"""Unit tests for the SES transport with an injected client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from mailflow.exceptions import PermanentTransportError, TransientTransportError, TransportError
from mailflow.transport.ses import SesTransport, classify_client_error


def _error(code: str, status: int | None = 400) -> SimpleNamespace:
    response: dict[str, Any] = {"Error": {"Code": code, "Message": f"{code} happened"}}
    if status is not None:
        response["ResponseMetadata"] = {"HTTPStatusCode": status}
    return SimpleNamespace(response=response)


def test_rejected_message_is_permanent() -> None:
    error = classify_client_error(_error("MessageRejected"))
    assert isinstance(error, PermanentTransportError)
    assert error.error_code == "400"
    assert str(error) == "MessageRejected happened"


def test_throttling_is_transient_despite_400() -> None:
    error = classify_client_error(_error("Throttling"))
    assert isinstance(error, TransientTransportError)
    assert error.retryable


@pytest.mark.parametrize(("status", "retryable"), [(403, False), (500, True), (503, True)])
def test_unknown_code_classified_by_status(status: int, retryable: bool) -> None:
    error = classify_client_error(_error("SomethingElse", status))
    assert type(error) is TransportError
    assert error.retryable is retryable


def test_missing_response_is_transient() -> None:
    error = classify_client_error(SimpleNamespace(response=None))
    assert isinstance(error, TransientTransportError)


@pytest.mark.asyncio
async def test_send_success(email_factory: Any) -> None:
    pytest.importorskip("botocore")
    client = MagicMock()
    client.send_email = AsyncMock(return_value={"MessageId": "ses-123"})
    transport = SesTransport(client=client)

    outcome = await transport.send(email_factory(recipient_email="mari@example.ee"))

    assert outcome.success
    assert outcome.provider_message_id == "ses-123"
    params = client.send_email.await_args.kwargs
    assert params["Source"] == "noreply@buerokratt.ee"
    assert params["Destination"] == {"ToAddresses": ["mari@example.ee"]}
    assert params["ReplyToAddresses"] == ["support@buerokratt.ee"]
    assert params["Message"]["Body"]["Html"]["Data"] == "<p>Hello</p>"


@pytest.mark.asyncio
async def test_send_client_error_is_classified(email_factory: Any) -> None:
    exceptions = pytest.importorskip("botocore.exceptions")
    client = MagicMock()
    client.send_email = AsyncMock(
        side_effect=exceptions.ClientError(
            {
                "Error": {"Code": "MessageRejected", "Message": "Email address is not verified"},
                "ResponseMetadata": {"HTTPStatusCode": 400},
            },
            "SendEmail",
        )
    )
    transport = SesTransport(client=client)

    with pytest.raises(PermanentTransportError) as exc_info:
        await transport.send(email_factory())
    assert "not verified" in str(exc_info.value)


@pytest.mark.asyncio
async def test_send_requires_sender(email_factory: Any) -> None:
    transport = SesTransport(client=MagicMock())
    with pytest.raises(PermanentTransportError):
        await transport.send(email_factory(sender=None))


@pytest.mark.asyncio
async def test_health_check(email_factory: Any) -> None:
    client = MagicMock()
    client.get_send_quota = AsyncMock(side_effect=RuntimeError("no credentials"))
    assert await SesTransport(client=client).health_check() is False
    client.get_send_quota = AsyncMock(return_value={"Max24HourSend": 200.0})
    assert await SesTransport(client=client).health_check() is True
