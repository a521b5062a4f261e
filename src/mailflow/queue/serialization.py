"""EmailSerializer — JSON wire format for queued emails."""

from __future__ import annotations

from ..exceptions import MalformedMessageError, MessagingError
from ..models import RenderedEmail


class EmailSerializer:
    """Serialize/deserialize :class:`RenderedEmail` to/from UTF-8 JSON bytes."""

    content_type = "application/json"

    def serialize(self, email: RenderedEmail) -> bytes:
        try:
            return email.model_dump_json().encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessagingError(f"Cannot serialize {email.event_id}: {e}") from e

    def deserialize(self, raw: bytes) -> RenderedEmail:
        """Decode a queued payload; any decoding or schema failure is malformed."""
        try:
            return RenderedEmail.model_validate_json(raw)
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedMessageError(str(e)) from e
