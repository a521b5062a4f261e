"""QueueRouter — puts emails on the primary, retry or dead-letter route."""

from __future__ import annotations

import logging

from ..exceptions import PublishError
from ..metrics import DeliveryMetrics
from ..models import RenderedEmail, utcnow
from ..policy import policy_for
from ..ports.broker import IMessageBroker, OutgoingMessage, Route
from .serialization import EmailSerializer

logger = logging.getLogger(__name__)


class QueueRouter:
    """Builds broker messages with routing metadata and publishes them.

    Primary publish failures raise :class:`PublishError`. Retry and
    dead-letter publish failures are logged, counted and reported through the
    boolean return value; the message is then lost, since the caller has
    already consumed it from the primary queue.
    """

    def __init__(
        self,
        broker: IMessageBroker,
        *,
        serializer: EmailSerializer | None = None,
        metrics: DeliveryMetrics | None = None,
    ) -> None:
        self._broker = broker
        self._serializer = serializer or EmailSerializer()
        self._metrics = metrics

    @staticmethod
    def _headers(email: RenderedEmail) -> dict[str, str]:
        return {
            "event_id": email.event_id,
            "event_type": email.event_type,
            "priority": email.priority.value,
            "retry_count": str(email.retry_count),
        }

    async def publish_primary(self, email: RenderedEmail) -> None:
        policy = policy_for(email.priority)
        message = OutgoingMessage(
            body=self._serializer.serialize(email),
            headers=self._headers(email),
            priority=policy.queue_priority,
            expiration_ms=policy.ttl_ms,
        )
        try:
            await self._broker.publish(Route.PRIMARY, message)
        except Exception as e:
            logger.error("Failed to publish email to queue: %s", email.event_id, exc_info=True)
            self._record_publish_failure(Route.PRIMARY)
            raise PublishError(Route.PRIMARY.value, email.event_id, str(e)) from e
        logger.info(
            "Published email to queue: event=%s, priority=%s",
            email.event_id,
            email.priority.value,
        )

    async def publish_retry(self, email: RenderedEmail, delay_ms: int) -> bool:
        """Publish onto the delay route; it comes back to primary after ``delay_ms``."""
        message = OutgoingMessage(
            body=self._serializer.serialize(email),
            headers=self._headers(email),
            priority=policy_for(email.priority).queue_priority,
            expiration_ms=max(0, int(delay_ms)),
        )
        try:
            await self._broker.publish(Route.RETRY, message)
        except Exception:  # noqa: BLE001
            logger.error(
                "Failed to publish email to retry queue: %s", email.event_id, exc_info=True
            )
            self._record_publish_failure(Route.RETRY)
            return False
        logger.info(
            "Published email to retry queue: event=%s, delay=%dms", email.event_id, delay_ms
        )
        return True

    async def publish_dead_letter(self, email: RenderedEmail, reason: str) -> bool:
        """Annotate ``failure_reason`` / ``failed_at`` and publish to the DLQ. Terminal."""
        annotated = email.with_metadata(
            failure_reason=reason,
            failed_at=utcnow().isoformat(),
        )
        headers = self._headers(annotated)
        headers["error"] = reason
        message = OutgoingMessage(body=self._serializer.serialize(annotated), headers=headers)
        return await self._publish_dead_letter(message, annotated.event_id, reason)

    async def publish_dead_letter_raw(self, body: bytes, reason: str) -> bool:
        """Dead-letter a payload that could not be decoded, byte for byte."""
        message = OutgoingMessage(
            body=body,
            headers={"error": reason, "failed_at": utcnow().isoformat()},
            content_type="application/octet-stream",
        )
        return await self._publish_dead_letter(message, None, reason)

    async def _publish_dead_letter(
        self, message: OutgoingMessage, event_id: str | None, reason: str
    ) -> bool:
        try:
            await self._broker.publish(Route.DEAD_LETTER, message)
        except Exception:  # noqa: BLE001
            logger.error("Failed to publish email to DLQ: %s", event_id, exc_info=True)
            self._record_publish_failure(Route.DEAD_LETTER)
            return False
        logger.warning("Published email to DLQ: event=%s, error=%s", event_id, reason)
        return True

    def _record_publish_failure(self, route: Route) -> None:
        if self._metrics is not None:
            self._metrics.record_publish_failure(route.value)
