"""HTTP template and status stores speaking the Resql convention.

Every call is ``POST {base_url}/{query-name}`` with a JSON body; results come
back as ``{"body": [record, ...]}``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import StoreError
from ..models import DeliveryState, DeliveryStatus, utcnow
from ..ports.status import IStatusStore
from ..ports.templates import ITemplateStore, Template

logger = logging.getLogger(__name__)


class ResqlClient:
    """Thin async client around a shared :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def query(self, name: str, payload: dict[str, Any]) -> list[dict[str, Any]]:
        url = f"{self.base_url}/{name}"
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json() if response.content else None
        except httpx.HTTPStatusError as e:
            raise StoreError(f"{name} returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise StoreError(f"{name} failed: {e}") from e
        if not isinstance(data, dict):
            return []
        records = data.get("body")
        return [r for r in records if isinstance(r, dict)] if isinstance(records, list) else []

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/healthz")
            return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HttpTemplateStore(ITemplateStore):
    """Fetches templates via ``get-email-template``."""

    def __init__(self, client: ResqlClient) -> None:
        self._client = client

    async def fetch_template(self, template_id: str, locale: str) -> Template | None:
        records = await self._client.query(
            "get-email-template", {"templateId": template_id, "locale": locale}
        )
        if not records:
            return None
        record = records[0]
        return Template(
            template_id=str(record.get("id") or template_id),
            locale=str(record.get("locale") or locale),
            subject=record.get("subject") or "",
            html_body=record.get("html_body") or "",
            text_body=record.get("text_body") or "",
            version=int(record.get("version") or 1),
        )


class HttpStatusStore(IStatusStore):
    """Submission log and delivery status via Resql queries."""

    def __init__(self, client: ResqlClient) -> None:
        self._client = client

    async def log_submission(self, record: dict[str, Any]) -> None:
        await self._client.query("log-email-request", record)

    async def get_status(self, event_id: str) -> DeliveryStatus | None:
        records = await self._client.query("get-email-status", {"eventId": event_id})
        if not records:
            return None
        return DeliveryStatus.model_validate(records[0])

    async def update_status(self, event_id: str, status: DeliveryState, **fields: Any) -> None:
        payload: dict[str, Any] = {
            "eventId": event_id,
            "status": status.value,
            "updatedAt": utcnow().isoformat(),
        }
        payload.update({k: v for k, v in fields.items() if v is not None})
        await self._client.query("update-email-status", payload)
