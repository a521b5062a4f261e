"""AWS SES transport (optional extra: mailflow[aws])."""

from __future__ import annotations

import importlib.util
import logging
import time
from contextlib import AsyncExitStack
from typing import Any

from ..exceptions import PermanentTransportError, TransientTransportError, TransportError
from ..models import DeliveryOutcome, RenderedEmail
from ..ports.transport import ITransport

logger = logging.getLogger(__name__)

# SES error codes that will not succeed on a later attempt.
PERMANENT_ERROR_CODES = frozenset(
    {
        "MessageRejected",
        "MailFromDomainNotVerified",
        "MailFromDomainNotVerifiedException",
        "ConfigurationSetDoesNotExist",
        "AccountSendingPausedException",
        "InvalidParameterValue",
        "AccessDenied",
        "AccessDeniedException",
        "UnrecognizedClientException",
    }
)

# Returned with HTTP 400 by AWS but still worth retrying.
THROTTLING_ERROR_CODES = frozenset(
    {"Throttling", "ThrottlingException", "TooManyRequestsException", "RequestTimeout"}
)


def classify_client_error(error: Any) -> TransportError:
    """Map a botocore ``ClientError`` onto the transient/permanent split."""
    response = getattr(error, "response", {}) or {}
    code = response.get("Error", {}).get("Code")
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    message = response.get("Error", {}).get("Message") or str(error)
    if code in PERMANENT_ERROR_CODES:
        return PermanentTransportError(message, provider="ses", error_code=status or code)
    if code in THROTTLING_ERROR_CODES:
        return TransientTransportError(message, provider="ses", error_code=code)
    if status is not None:
        return TransportError(message, provider="ses", error_code=status)
    return TransientTransportError(message, provider="ses", error_code=code)


class SesTransport(ITransport):
    """
    AWS SES transport using aiobotocore.

    Requires AWS credentials and region configuration. The client is created
    lazily on first send and released by :meth:`aclose`.
    """

    name = "ses"

    def __init__(
        self,
        region_name: str = "eu-north-1",
        from_email: str | None = None,
        *,
        client: Any | None = None,
    ) -> None:
        self.region_name = region_name
        self.from_email = from_email
        self._client = client
        self._exit_stack: AsyncExitStack | None = None

    async def _get_client(self) -> Any:
        if self._client is None:
            if importlib.util.find_spec("aiobotocore") is None:
                raise ImportError(
                    "aiobotocore is required for SesTransport. "
                    "Install with: pip install 'mailflow[aws]'"
                )

            from aiobotocore.session import get_session

            self._exit_stack = AsyncExitStack()
            self._client = await self._exit_stack.enter_async_context(
                get_session().create_client("ses", region_name=self.region_name)
            )
        return self._client

    @staticmethod
    def _message_params(rendered: RenderedEmail, sender: str) -> dict[str, Any]:
        body: dict[str, Any] = {"Text": {"Data": rendered.text_body or "", "Charset": "UTF-8"}}
        if rendered.html_body:
            body["Html"] = {"Data": rendered.html_body, "Charset": "UTF-8"}
        params: dict[str, Any] = {
            "Source": sender,
            "Destination": {"ToAddresses": [rendered.recipient_email]},
            "Message": {
                "Subject": {"Data": rendered.subject, "Charset": "UTF-8"},
                "Body": body,
            },
        }
        if rendered.reply_to:
            params["ReplyToAddresses"] = [rendered.reply_to]
        return params

    async def send(self, rendered: RenderedEmail) -> DeliveryOutcome:
        sender = rendered.sender or self.from_email
        if not sender:
            raise PermanentTransportError("Sender email (from_email) is required.", provider="ses")

        from botocore.exceptions import BotoCoreError, ClientError

        client = await self._get_client()
        start = time.monotonic()
        try:
            response = await client.send_email(**self._message_params(rendered, sender))
        except ClientError as e:
            error = classify_client_error(e)
            logger.error("Failed to send email via SES to %s: %s", rendered.recipient_email, error)
            raise error from e
        except BotoCoreError as e:
            logger.error("SES unreachable for %s: %s", rendered.recipient_email, e)
            raise TransientTransportError(str(e), provider="ses") from e

        message_id = response["MessageId"]
        logger.info(
            "Email sent to %s via SES (MessageId: %s)", rendered.recipient_email, message_id
        )
        return DeliveryOutcome.delivered(self.name, message_id, (time.monotonic() - start) * 1000)

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            await client.get_send_quota()
        except Exception:  # noqa: BLE001
            logger.warning("SES health check failed", exc_info=True)
            return False
        return True

    async def aclose(self) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self._client = None
