"""In-memory template and status stores for tests and local development."""

from __future__ import annotations

from typing import Any

from ..models import DeliveryState, DeliveryStatus, utcnow
from ..ports.status import IStatusStore
from ..ports.templates import ITemplateStore, Template


class InMemoryTemplateStore(ITemplateStore):
    """Simple in-memory template store; counts fetches so caching can be asserted."""

    def __init__(self, templates: list[Template] | None = None) -> None:
        # Key: (template_id, locale)
        self._templates: dict[tuple[str, str], Template] = {}
        self.fetch_count = 0
        for template in templates or []:
            self.save(template)

    async def fetch_template(self, template_id: str, locale: str) -> Template | None:
        self.fetch_count += 1
        return self._templates.get((template_id, locale))

    def save(self, template: Template) -> None:
        self._templates[(template.template_id, template.locale)] = template


class InMemoryStatusStore(IStatusStore):
    """Keeps the submission log and the latest status per event id."""

    def __init__(self) -> None:
        self.submissions: list[dict[str, Any]] = []
        self.history: list[tuple[str, DeliveryState, dict[str, Any]]] = []
        self._statuses: dict[str, DeliveryStatus] = {}

    async def log_submission(self, record: dict[str, Any]) -> None:
        self.submissions.append(dict(record))
        event_id = str(record["eventId"])
        self._statuses[event_id] = DeliveryStatus(
            event_id=event_id,
            status=str(record.get("status", DeliveryState.QUEUED.value)),
            created_at=utcnow(),
        )

    async def get_status(self, event_id: str) -> DeliveryStatus | None:
        return self._statuses.get(event_id)

    async def update_status(self, event_id: str, status: DeliveryState, **fields: Any) -> None:
        self.history.append((event_id, status, dict(fields)))
        current = self._statuses.get(event_id) or DeliveryStatus(event_id=event_id, status="")
        update: dict[str, Any] = {"status": status.value}
        if "provider" in fields:
            update["provider"] = fields["provider"]
        if "provider_message_id" in fields:
            update["provider_message_id"] = fields["provider_message_id"]
        if "attempts" in fields:
            update["attempts"] = fields["attempts"]
        if "error" in fields:
            update["last_error"] = fields["error"]
        if status is DeliveryState.SENT:
            update["sent_at"] = utcnow()
        elif status in (DeliveryState.DLQ, DeliveryState.FAILED):
            update["failed_at"] = utcnow()
        self._statuses[event_id] = current.model_copy(update=update)
