"""Pipeline data model: submission request, pre-/post-render email, outcomes."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """Submission-time classification driving retry budget, TTL and dequeue preference."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class SubmissionStatus(str, Enum):
    QUEUED = "queued"
    DUPLICATE = "duplicate"


class DeliveryState(str, Enum):
    """Values written to the status store over a message's lifetime."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SENT = "sent"
    RETRYING = "retrying"
    FAILED = "failed"
    DLQ = "dlq"


class EmailRequest(BaseModel):
    """Inbound submission. Unknown priorities never get past this model.

    Accepts both the camelCase wire names (``recipientEmail``) and field names.
    """

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    event_id: str | None = None
    event_type: str
    recipient_email: EmailStr
    recipient_name: str | None = None
    template_id: str | None = None
    template_data: dict[str, Any] = Field(default_factory=dict)
    priority: Priority = Priority.NORMAL
    locale: str = "et"
    metadata: dict[str, str] = Field(default_factory=dict)
    scheduled_for: datetime | None = None

    @field_validator("event_type")
    @classmethod
    def _event_type_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("Event type is required")
        return value

    @field_validator("event_id", "template_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("locale", mode="before")
    @classmethod
    def _default_locale(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "et"
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _default_priority(cls, value: Any) -> Any:
        return Priority.NORMAL if value is None else value

    @field_validator("template_data", "metadata", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("scheduled_for", mode="after")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> EmailRequest:
        """Validate a raw payload, converting pydantic errors to :class:`ValidationError`."""
        try:
            return cls.model_validate(dict(data))
        except pydantic.ValidationError as e:
            errors: dict[str, list[str]] = {}
            for err in e.errors():
                name = ".".join(str(p) for p in err["loc"]) or "__root__"
                errors.setdefault(name, []).append(err["msg"])
            raise ValidationError(errors) from e


class _EmailFields(BaseModel):
    event_id: str
    event_type: str
    recipient_email: str
    recipient_name: str | None = None
    sender: str | None = None
    reply_to: str | None = None
    template_id: str
    locale: str = "et"
    priority: Priority = Priority.NORMAL
    template_data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, str] = Field(default_factory=dict)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=2, ge=0)
    attempt_count: int = Field(default=0, ge=0)
    scheduled_for: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class EmailMessage(_EmailFields):
    """Mutable pre-render message, owned by the submitting producer."""

    model_config = ConfigDict(validate_assignment=True)


class RenderedEmail(_EmailFields):
    """Immutable post-render message; this is what travels through the queues.

    Delivery bookkeeping produces new copies instead of mutating.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    html_body: str = ""
    text_body: str = ""

    @classmethod
    def from_message(
        cls, message: EmailMessage, *, subject: str, html_body: str, text_body: str
    ) -> RenderedEmail:
        return cls(
            **message.model_dump(),
            subject=subject,
            html_body=html_body,
            text_body=text_body,
        )

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def after_failed_attempt(self) -> RenderedEmail:
        """Copy with one more consumed retry and send attempt.

        ``retry_count`` stops at ``max_retries``.
        """
        return self.model_copy(
            update={
                "retry_count": min(self.retry_count + 1, self.max_retries),
                "attempt_count": self.attempt_count + 1,
            }
        )

    def with_metadata(self, **items: str) -> RenderedEmail:
        return self.model_copy(update={"metadata": {**self.metadata, **items}})

    def remaining_delay_ms(self, now: datetime | None = None) -> int:
        """Milliseconds until ``scheduled_for``; 0 when unscheduled or due."""
        if self.scheduled_for is None:
            return 0
        delta = self.scheduled_for - (now or utcnow())
        return max(0, int(delta.total_seconds() * 1000))


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a single Transport send attempt."""

    success: bool
    provider: str
    provider_message_id: str | None = None
    error: str | None = None
    duration_ms: float = 0.0
    retryable: bool = True

    @classmethod
    def delivered(
        cls,
        provider: str,
        provider_message_id: str | None = None,
        duration_ms: float = 0.0,
    ) -> DeliveryOutcome:
        return cls(
            success=True,
            provider=provider,
            provider_message_id=provider_message_id,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(
        cls,
        provider: str,
        error: str,
        *,
        retryable: bool = True,
        duration_ms: float = 0.0,
    ) -> DeliveryOutcome:
        return cls(
            success=False,
            provider=provider,
            error=error,
            retryable=retryable,
            duration_ms=duration_ms,
        )


@dataclass(frozen=True)
class SubmissionResult:
    message_id: str
    status: SubmissionStatus
    queued_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"messageId": self.message_id, "status": self.status.value}
        if self.queued_at is not None:
            result["queuedAt"] = self.queued_at.isoformat()
        return result


@dataclass(frozen=True)
class BatchResult:
    """Aggregate of a batch submission; ``results`` keeps request order."""

    total: int
    results: list[SubmissionResult | dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> int:
        return sum(1 for r in self.results if isinstance(r, SubmissionResult))

    @property
    def failed(self) -> int:
        return self.total - self.success


class DeliveryStatus(BaseModel):
    """Delivery status record as returned by the status store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_id: str
    status: str
    provider: str | None = None
    provider_message_id: str | None = None
    attempts: int = Field(default=0, alias="retry_count")
    last_error: str | None = Field(default=None, alias="error_message")
    created_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None

    @field_validator("attempts", mode="before")
    @classmethod
    def _null_attempts(cls, value: Any) -> Any:
        return 0 if value is None else value


def new_event_id() -> str:
    return str(uuid.uuid4())
