"""Shared fixtures for mailflow tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from prometheus_client import CollectorRegistry

from mailflow.metrics import DeliveryMetrics
from mailflow.models import Priority, RenderedEmail
from mailflow.ports.templates import Template

pytest_plugins = ["pytest_asyncio"]


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> DeliveryMetrics:
    return DeliveryMetrics(registry)


@pytest.fixture
def templates() -> list[Template]:
    return [
        Template(
            template_id="user_registration",
            locale="et",
            subject="Tere tulemast, {{ name }}!",
            html_body="<p>Tere, <b>{{ name }}</b></p>",
            text_body="Tere, {{ name }}",
        ),
        Template(
            template_id="user_registration",
            locale="en",
            subject="Welcome, {{ name }}!",
            html_body="<p>Hello, <b>{{ name }}</b></p>",
            text_body="Hello, {{ name }}",
        ),
        Template(
            template_id="password_reset",
            locale="et",
            subject="Parooli lähtestamine",
            html_body="<a href='{{ link }}'>Lähtesta</a>",
            text_body="Lähtesta: {{ link }}",
            version=3,
        ),
    ]


def make_email(**overrides: Any) -> RenderedEmail:
    """A rendered, queue-ready email with sensible defaults."""
    fields: dict[str, Any] = {
        "event_id": "evt-1",
        "event_type": "user_registration",
        "recipient_email": "a@b.com",
        "sender": "noreply@buerokratt.ee",
        "reply_to": "support@buerokratt.ee",
        "template_id": "user_registration",
        "priority": Priority.NORMAL,
        "max_retries": 2,
        "subject": "Welcome",
        "html_body": "<p>Hello</p>",
        "text_body": "Hello",
    }
    fields.update(overrides)
    return RenderedEmail(**fields)


@pytest.fixture
def email_factory() -> Any:
    return make_email
