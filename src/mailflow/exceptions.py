"""Exception hierarchy for mailflow."""

from __future__ import annotations


class MailflowError(Exception):
    """Root exception for the whole pipeline."""


class ValidationError(MailflowError):
    """Raised when a submission is rejected before entering the pipeline.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


# ── Templates ────────────────────────────────────────────────────────


class TemplateError(MailflowError):
    """Base class for template lookup and rendering failures."""


class TemplateNotFoundError(TemplateError):
    """Raised when neither the requested nor the default locale has a template."""

    def __init__(self, template_id: str, locale: str, default_locale: str) -> None:
        self.template_id = template_id
        self.locale = locale
        self.default_locale = default_locale
        super().__init__(
            f"No template {template_id!r} for locale {locale!r} "
            f"or default locale {default_locale!r}"
        )


class TemplateRenderError(TemplateError):
    """Raised when a critical field (the subject) cannot be rendered."""

    def __init__(self, template_id: str, field: str, reason: str) -> None:
        self.template_id = template_id
        self.field = field
        super().__init__(f"Failed to render {field} of template {template_id!r}: {reason}")


# ── Transport ────────────────────────────────────────────────────────

_NON_RETRYABLE_CODES: frozenset[str] = frozenset({"400", "401", "403", "404"})


def is_retryable_code(error_code: str | int | None) -> bool:
    """Classify a provider error code. Unknown (missing) codes are retryable."""
    if error_code is None:
        return True
    return str(error_code) not in _NON_RETRYABLE_CODES


class TransportError(MailflowError):
    """Raised by a Transport when a send fails.

    ``retryable`` defaults to the error-code classification when not given.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        error_code: str | int | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.provider = provider
        self.error_code = None if error_code is None else str(error_code)
        self.retryable = is_retryable_code(error_code) if retryable is None else retryable
        super().__init__(message)


class TransientTransportError(TransportError):
    """A send failure worth retrying (timeouts, 4xx SMTP replies, throttling)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        error_code: str | int | None = None,
    ) -> None:
        super().__init__(message, provider=provider, error_code=error_code, retryable=True)


class PermanentTransportError(TransportError):
    """A send failure that will not succeed on retry (bad recipient, auth)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        error_code: str | int | None = None,
    ) -> None:
        super().__init__(message, provider=provider, error_code=error_code, retryable=False)


# ── Messaging ────────────────────────────────────────────────────────


class MessagingError(MailflowError):
    """Base class for broker-related failures."""


class BrokerConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class PublishError(MessagingError):
    """Raised when a message could not be handed to the broker."""

    def __init__(self, route: str, event_id: str | None, reason: str) -> None:
        self.route = route
        self.event_id = event_id
        super().__init__(f"Failed to publish {event_id!r} to {route}: {reason}")


class MalformedMessageError(MessagingError):
    """Raised when a dequeued payload cannot be decoded into an email."""


# ── Collaborator stores ──────────────────────────────────────────────


class StoreError(MailflowError):
    """Raised when the template or status store cannot be reached."""
