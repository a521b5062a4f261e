"""DeliveryWorker — one unit of work per dequeued message.

A dequeued payload goes through ``Pending → Sending`` and ends in exactly one
of four local decisions:

* ``DELIVERED`` — the transport accepted the email.
* ``RETRY`` — transient failure with budget left; republished on the retry
  route with ``min(60s, 2**retry_count * 1s)`` delay.
* ``DEAD_LETTER`` — permanent failure, exhausted budget, malformed payload or
  an unexpected error while handling the message.
* ``DEFERRED`` — ``scheduled_for`` is still in the future; republished on the
  retry route for the remaining wait, counters untouched.

Whatever the decision, the caller acknowledges the dequeue exactly once;
the worker never raises for a message-level failure.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from prometheus_client import CollectorRegistry

from .exceptions import MalformedMessageError, TransportError
from .metrics import DeliveryMetrics
from .models import DeliveryOutcome, DeliveryState, RenderedEmail, utcnow
from .observability import correlation_scope
from .ports.status import IStatusStore
from .ports.transport import ITransport
from .queue.router import QueueRouter
from .queue.serialization import EmailSerializer
from .retry import DEFAULT_BACKOFF, BackoffPolicy

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    DELIVERED = "delivered"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class WorkResult:
    """What happened to one dequeued message."""

    decision: Decision
    event_id: str | None = None
    email: RenderedEmail | None = None
    delay_ms: int | None = None
    reason: str | None = None
    published: bool = True


class DeliveryWorker:
    """Sends queued emails and resolves every failure into retry or dead-letter."""

    def __init__(
        self,
        transport: ITransport,
        router: QueueRouter,
        *,
        backoff: BackoffPolicy = DEFAULT_BACKOFF,
        serializer: EmailSerializer | None = None,
        metrics: DeliveryMetrics | None = None,
        status_store: IStatusStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._transport = transport
        self._router = router
        self._backoff = backoff
        self._serializer = serializer or EmailSerializer()
        self._metrics = metrics or DeliveryMetrics(CollectorRegistry())
        self._status_store = status_store
        self._clock = clock

    async def process(self, body: bytes) -> WorkResult:
        try:
            email = self._serializer.deserialize(body)
        except MalformedMessageError as e:
            return await self._on_malformed(body, e)

        with correlation_scope(email.event_id):
            logger.info("Processing email: event=%s, to=%s", email.event_id, email.recipient_email)
            try:
                return await self._handle(email)
            except Exception as e:
                logger.exception("Unexpected error processing email: event=%s", email.event_id)
                published = await self._router.publish_dead_letter(email, str(e))
                self._metrics.record_failed(email.event_type, "unexpected_error")
                return WorkResult(
                    Decision.DEAD_LETTER,
                    email.event_id,
                    email,
                    reason=str(e),
                    published=published,
                )

    async def _handle(self, email: RenderedEmail) -> WorkResult:
        wait_ms = email.remaining_delay_ms(self._clock())
        if wait_ms > 0:
            logger.debug("Email scheduled for future: event=%s, wait=%dms", email.event_id, wait_ms)
            published = await self._router.publish_retry(email, wait_ms)
            return WorkResult(
                Decision.DEFERRED, email.event_id, email, delay_ms=wait_ms, published=published
            )

        await self._update_status(email.event_id, DeliveryState.PROCESSING)
        outcome = await self._send(email)

        if outcome.success:
            return await self._on_delivered(email, outcome)
        if outcome.retryable:
            return await self._on_retryable(email, outcome)
        return await self._on_permanent(email, outcome)

    async def _send(self, email: RenderedEmail) -> DeliveryOutcome:
        start = time.monotonic()
        try:
            return await self._transport.send(email)
        except TransportError as e:
            logger.error("Provider error for email: event=%s, error=%s", email.event_id, e)
            return DeliveryOutcome.failed(
                e.provider or self._transport.name,
                str(e),
                retryable=e.retryable,
                duration_ms=(time.monotonic() - start) * 1000,
            )
        except Exception as e:  # noqa: BLE001
            # unclassified provider failures carry no error code: retryable
            logger.error(
                "Unclassified transport error: event=%s", email.event_id, exc_info=True
            )
            return DeliveryOutcome.failed(
                self._transport.name,
                str(e) or type(e).__name__,
                retryable=True,
                duration_ms=(time.monotonic() - start) * 1000,
            )

    async def _on_delivered(self, email: RenderedEmail, outcome: DeliveryOutcome) -> WorkResult:
        logger.info(
            "Email sent successfully: event=%s, provider=%s, duration=%.0fms",
            email.event_id,
            outcome.provider,
            outcome.duration_ms,
        )
        self._metrics.record_sent(outcome.provider, email.event_type, outcome.duration_ms)
        await self._update_status(
            email.event_id,
            DeliveryState.SENT,
            provider=outcome.provider,
            provider_message_id=outcome.provider_message_id,
            attempts=email.attempt_count + 1,
        )
        return WorkResult(Decision.DELIVERED, email.event_id, email)

    async def _on_retryable(self, email: RenderedEmail, outcome: DeliveryOutcome) -> WorkResult:
        failed = email.after_failed_attempt()
        reason = outcome.error or "transient delivery failure"
        logger.warning(
            "Email send failed: event=%s, error=%s, retries=%d/%d",
            email.event_id,
            reason,
            failed.retry_count,
            failed.max_retries,
        )
        if failed.retries_exhausted:
            logger.error("Max retries exceeded, sending to DLQ: event=%s", email.event_id)
            return await self._dead_letter(failed, reason, "max_retries")

        delay_ms = self._backoff.delay_ms(failed.retry_count)
        logger.info(
            "Retrying email: event=%s, attempt=%d, delay=%dms",
            email.event_id,
            failed.retry_count,
            delay_ms,
        )
        published = await self._router.publish_retry(failed, delay_ms)
        self._metrics.record_retry(email.event_type)
        await self._update_status(
            email.event_id,
            DeliveryState.RETRYING,
            attempts=failed.attempt_count,
            error=reason,
        )
        return WorkResult(
            Decision.RETRY,
            email.event_id,
            failed,
            delay_ms=delay_ms,
            reason=reason,
            published=published,
        )

    async def _on_permanent(self, email: RenderedEmail, outcome: DeliveryOutcome) -> WorkResult:
        failed = email.after_failed_attempt()
        reason = outcome.error or "permanent delivery failure"
        logger.error(
            "Permanent failure, sending to DLQ: event=%s, error=%s", email.event_id, reason
        )
        return await self._dead_letter(failed, reason, "permanent_error")

    async def _on_malformed(self, body: bytes, error: MalformedMessageError) -> WorkResult:
        reason = f"malformed message: {error}"
        logger.error("Could not decode queued payload (%d bytes): %s", len(body), error)
        published = await self._router.publish_dead_letter_raw(body, reason)
        self._metrics.record_failed("unknown", "malformed")
        return WorkResult(Decision.DEAD_LETTER, reason=reason, published=published)

    async def _dead_letter(self, email: RenderedEmail, reason: str, error_type: str) -> WorkResult:
        published = await self._router.publish_dead_letter(email, reason)
        self._metrics.record_failed(email.event_type, error_type)
        await self._update_status(
            email.event_id,
            DeliveryState.DLQ,
            attempts=email.attempt_count,
            error=reason,
        )
        return WorkResult(
            Decision.DEAD_LETTER, email.event_id, email, reason=reason, published=published
        )

    async def _update_status(self, event_id: str, state: DeliveryState, **fields: Any) -> None:
        if self._status_store is None:
            return
        try:
            await self._status_store.update_status(event_id, state, **fields)
        except Exception:  # noqa: BLE001
            logger.error("Failed to record status %s for %s", state.value, event_id, exc_info=True)
