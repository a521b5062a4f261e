"""NotificationService — the submission side of the pipeline.

``submit`` validates a request, deduplicates it by event id, renders it and
puts it on the primary queue. Callers get ``queued`` or ``duplicate`` back
immediately and poll :meth:`NotificationService.get_status` for the outcome.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from prometheus_client import CollectorRegistry

from .exceptions import MailflowError
from .metrics import DeliveryMetrics
from .models import (
    BatchResult,
    DeliveryState,
    DeliveryStatus,
    EmailMessage,
    EmailRequest,
    RenderedEmail,
    SubmissionResult,
    SubmissionStatus,
    new_event_id,
    utcnow,
)
from .observability import correlation_scope
from .policy import policy_for
from .ports.idempotency import Dedup, IIdempotencyGuard
from .ports.status import IStatusStore
from .queue.router import QueueRouter
from .templates.renderer import TemplateRenderer

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "noreply@buerokratt.ee"
DEFAULT_REPLY_TO = "support@buerokratt.ee"


class NotificationService:
    """Accepts email submissions and hands them to the queue."""

    def __init__(
        self,
        guard: IIdempotencyGuard,
        renderer: TemplateRenderer,
        router: QueueRouter,
        *,
        status_store: IStatusStore | None = None,
        metrics: DeliveryMetrics | None = None,
        sender: str = DEFAULT_SENDER,
        reply_to: str | None = DEFAULT_REPLY_TO,
        idempotency_enabled: bool = True,
        batch_size: int = 10,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._guard = guard
        self._renderer = renderer
        self._router = router
        self._status_store = status_store
        self._metrics = metrics or DeliveryMetrics(CollectorRegistry())
        self._sender = sender
        self._reply_to = reply_to
        self._idempotency_enabled = idempotency_enabled
        self._batch_size = batch_size

    async def submit(self, request: EmailRequest | Mapping[str, Any]) -> SubmissionResult:
        """Admit one email.

        Raises:
            ValidationError: the request is invalid; nothing is recorded.
            TemplateNotFoundError: no template in the requested or default locale.
            TemplateRenderError: the subject could not be rendered.
            PublishError: the broker did not accept the message.

        On any failure after deduplication the event id is released, so the
        same submission can be retried by the caller.
        """
        if not isinstance(request, EmailRequest):
            request = EmailRequest.from_payload(request)
        event_id = request.event_id or new_event_id()

        with correlation_scope(event_id):
            if self._idempotency_enabled:
                if await self._guard.check_and_record(event_id) is Dedup.DUPLICATE:
                    logger.info("Duplicate email request detected: %s", event_id)
                    self._metrics.record_submission(SubmissionStatus.DUPLICATE.value)
                    return SubmissionResult(event_id, SubmissionStatus.DUPLICATE)

            logger.info(
                "Processing email request: event=%s, type=%s, to=%s",
                event_id,
                request.event_type,
                request.recipient_email,
            )
            try:
                rendered = await self._renderer.render(self._build_message(request, event_id))
                await self._router.publish_primary(rendered)
            except BaseException as e:
                # a cancelled submission frees its id as well
                if self._idempotency_enabled:
                    await self._guard.release(event_id)
                if isinstance(e, Exception):
                    self._metrics.record_submission("rejected")
                raise

            queued_at = utcnow()
            await self._log_submission(rendered, queued_at)
            self._metrics.record_submission(SubmissionStatus.QUEUED.value)
            return SubmissionResult(event_id, SubmissionStatus.QUEUED, queued_at)

    async def submit_batch(
        self, requests: Iterable[EmailRequest | Mapping[str, Any]]
    ) -> BatchResult:
        """Submit many emails, ``batch_size`` at a time; failures are reported per item."""
        items = list(requests)
        logger.info("Processing batch of %d emails", len(items))

        results: list[SubmissionResult | dict[str, str]] = []
        for start in range(0, len(items), self._batch_size):
            chunk = items[start : start + self._batch_size]
            results.extend(await asyncio.gather(*(self._submit_one(r) for r in chunk)))

        batch = BatchResult(total=len(items), results=results)
        logger.info(
            "Batch processing complete: %d success, %d failed", batch.success, batch.failed
        )
        return batch

    async def _submit_one(
        self, request: EmailRequest | Mapping[str, Any]
    ) -> SubmissionResult | dict[str, str]:
        try:
            return await self.submit(request)
        except MailflowError as e:
            logger.error("Error sending email in batch: %s", e)
            return {"error": str(e)}

    async def get_status(self, event_id: str) -> DeliveryStatus | None:
        """Latest delivery status for ``event_id``; ``None`` if unknown or no store is wired."""
        if self._status_store is None:
            return None
        return await self._status_store.get_status(event_id)

    def _build_message(self, request: EmailRequest, event_id: str) -> EmailMessage:
        return EmailMessage(
            event_id=event_id,
            event_type=request.event_type,
            recipient_email=str(request.recipient_email),
            recipient_name=request.recipient_name,
            sender=self._sender,
            reply_to=self._reply_to,
            template_id=request.template_id or request.event_type,
            locale=request.locale,
            priority=request.priority,
            template_data=dict(request.template_data),
            metadata=dict(request.metadata),
            max_retries=policy_for(request.priority).max_retries,
            scheduled_for=request.scheduled_for,
        )

    async def _log_submission(self, email: RenderedEmail, queued_at: datetime) -> None:
        if self._status_store is None:
            return
        record = {
            "eventId": email.event_id,
            "eventType": email.event_type,
            "recipientEmail": email.recipient_email,
            "templateId": email.template_id,
            "priority": email.priority.value,
            "status": DeliveryState.QUEUED.value,
            "createdAt": queued_at.isoformat(),
        }
        try:
            await self._status_store.log_submission(record)
        except Exception:  # noqa: BLE001
            logger.error("Failed to log email request for %s", email.event_id, exc_info=True)
