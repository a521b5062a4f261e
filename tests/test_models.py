"""Tests for submission and message models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pydantic
import pytest

from mailflow.exceptions import ValidationError
from mailflow.models import (
    BatchResult,
    DeliveryOutcome,
    DeliveryStatus,
    EmailMessage,
    EmailRequest,
    Priority,
    RenderedEmail,
    SubmissionResult,
    SubmissionStatus,
)


def test_request_defaults() -> None:
    request = EmailRequest.from_payload({"eventType": "welcome", "recipientEmail": "a@b.com"})
    assert request.event_id is None
    assert request.priority is Priority.NORMAL
    assert request.locale == "et"
    assert request.template_data == {}
    assert request.metadata == {}


@pytest.mark.parametrize("field", ["templateData", "metadata"])
def test_request_null_maps_become_empty(field: str) -> None:
    request = EmailRequest.from_payload(
        {"eventType": "welcome", "recipientEmail": "a@b.com", field: None}
    )
    assert request.template_data == {}
    assert request.metadata == {}


def test_request_accepts_field_names() -> None:
    request = EmailRequest(
        event_type="welcome",
        recipient_email="a@b.com",
        priority="high",
        locale="en",
    )
    assert request.priority is Priority.HIGH
    assert request.locale == "en"


@pytest.mark.parametrize("locale", [None, "", "   "])
def test_blank_locale_defaults_to_et(locale: Any) -> None:
    request = EmailRequest.from_payload(
        {"eventType": "welcome", "recipientEmail": "a@b.com", "locale": locale}
    )
    assert request.locale == "et"


def test_blank_event_id_is_generated_later() -> None:
    request = EmailRequest.from_payload(
        {"eventId": "  ", "eventType": "welcome", "recipientEmail": "a@b.com"}
    )
    assert request.event_id is None


def test_invalid_address_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        EmailRequest.from_payload({"eventType": "welcome", "recipientEmail": "not-an-address"})
    assert "recipientEmail" in exc_info.value.errors


def test_missing_event_type_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        EmailRequest.from_payload({"recipientEmail": "a@b.com"})
    assert "eventType" in exc_info.value.errors


def test_blank_event_type_rejected() -> None:
    with pytest.raises(ValidationError):
        EmailRequest.from_payload({"eventType": "   ", "recipientEmail": "a@b.com"})


def test_naive_schedule_is_utc() -> None:
    request = EmailRequest.from_payload(
        {
            "eventType": "welcome",
            "recipientEmail": "a@b.com",
            "scheduledFor": "2026-05-01T10:00:00",
        }
    )
    assert request.scheduled_for == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)


def test_rendered_email_is_immutable(email_factory: Any) -> None:
    email = email_factory()
    with pytest.raises(pydantic.ValidationError):
        email.retry_count = 3


def test_from_message_copies_fields() -> None:
    message = EmailMessage(
        event_id="e1",
        event_type="welcome",
        recipient_email="a@b.com",
        template_id="welcome",
        max_retries=5,
        template_data={"name": "Mari"},
    )
    rendered = RenderedEmail.from_message(message, subject="Hi", html_body="", text_body="Hi")
    assert rendered.event_id == "e1"
    assert rendered.max_retries == 5
    assert rendered.template_data == {"name": "Mari"}
    assert rendered.subject == "Hi"


def test_after_failed_attempt(email_factory: Any) -> None:
    email = email_factory(retry_count=0, max_retries=2)
    once = email.after_failed_attempt()
    assert (once.retry_count, once.attempt_count) == (1, 1)
    assert not once.retries_exhausted
    twice = once.after_failed_attempt()
    assert (twice.retry_count, twice.attempt_count) == (2, 2)
    assert twice.retries_exhausted
    assert email.retry_count == 0


def test_retry_count_never_passes_max(email_factory: Any) -> None:
    email = email_factory(retry_count=1, max_retries=1, attempt_count=1)
    failed = email.after_failed_attempt()
    assert failed.retry_count == 1
    assert failed.attempt_count == 2


def test_with_metadata_merges(email_factory: Any) -> None:
    email = email_factory(metadata={"tenant": "a"})
    annotated = email.with_metadata(failure_reason="boom")
    assert annotated.metadata == {"tenant": "a", "failure_reason": "boom"}
    assert email.metadata == {"tenant": "a"}


def test_remaining_delay(email_factory: Any) -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert email_factory().remaining_delay_ms(now) == 0
    future = email_factory(scheduled_for=now + timedelta(seconds=90))
    assert future.remaining_delay_ms(now) == 90_000
    past = email_factory(scheduled_for=now - timedelta(seconds=5))
    assert past.remaining_delay_ms(now) == 0


def test_delivery_outcome_constructors() -> None:
    ok = DeliveryOutcome.delivered("smtp", "<id@x>", 12.5)
    assert ok.success and ok.provider_message_id == "<id@x>"
    failed = DeliveryOutcome.failed("smtp", "mailbox full", retryable=False)
    assert not failed.success and not failed.retryable and failed.error == "mailbox full"


def test_submission_result_to_dict() -> None:
    queued_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    result = SubmissionResult("e1", SubmissionStatus.QUEUED, queued_at)
    assert result.to_dict() == {
        "messageId": "e1",
        "status": "queued",
        "queuedAt": "2026-01-01T00:00:00+00:00",
    }
    assert SubmissionResult("e1", SubmissionStatus.DUPLICATE).to_dict() == {
        "messageId": "e1",
        "status": "duplicate",
    }


def test_batch_result_counts() -> None:
    batch = BatchResult(
        total=3,
        results=[
            SubmissionResult("a", SubmissionStatus.QUEUED),
            {"error": "bad"},
            SubmissionResult("b", SubmissionStatus.DUPLICATE),
        ],
    )
    assert (batch.success, batch.failed) == (2, 1)


def test_delivery_status_from_store_record() -> None:
    status = DeliveryStatus.model_validate(
        {
            "event_id": "e1",
            "status": "sent",
            "provider": "smtp",
            "retry_count": None,
            "error_message": None,
            "sent_at": "2026-01-01T00:00:00Z",
        }
    )
    assert status.attempts == 0
    assert status.last_error is None
    assert status.sent_at is not None
