"""mailflow — queue-backed email notification delivery.

Submission (validate, deduplicate, render, enqueue) is handled by
:class:`NotificationService`; delivery (send, retry with backoff,
dead-letter) by :class:`DeliveryWorker`. :mod:`mailflow.bootstrap` wires both
from :class:`MailflowSettings`.
"""

from __future__ import annotations

from .bootstrap import Pipeline, build_in_memory_pipeline, build_pipeline
from .config import MailflowSettings, get_settings
from .exceptions import (
    BrokerConnectionError,
    MailflowError,
    MalformedMessageError,
    MessagingError,
    PermanentTransportError,
    PublishError,
    StoreError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRenderError,
    TransientTransportError,
    TransportError,
    ValidationError,
)
from .models import (
    BatchResult,
    DeliveryOutcome,
    DeliveryState,
    DeliveryStatus,
    EmailMessage,
    EmailRequest,
    Priority,
    RenderedEmail,
    SubmissionResult,
    SubmissionStatus,
)
from .policy import POLICIES, DeliveryPolicy, policy_for
from .retry import BackoffPolicy
from .service import NotificationService
from .worker import Decision, DeliveryWorker, WorkResult

__all__ = [
    "POLICIES",
    "BackoffPolicy",
    "BatchResult",
    "BrokerConnectionError",
    "Decision",
    "DeliveryOutcome",
    "DeliveryPolicy",
    "DeliveryState",
    "DeliveryStatus",
    "DeliveryWorker",
    "EmailMessage",
    "EmailRequest",
    "MailflowError",
    "MailflowSettings",
    "MalformedMessageError",
    "MessagingError",
    "NotificationService",
    "PermanentTransportError",
    "Pipeline",
    "Priority",
    "PublishError",
    "RenderedEmail",
    "StoreError",
    "SubmissionResult",
    "SubmissionStatus",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TransientTransportError",
    "TransportError",
    "ValidationError",
    "WorkResult",
    "build_in_memory_pipeline",
    "build_pipeline",
    "get_settings",
    "policy_for",
]
