"""Tests for the wire format, topology, router and in-memory broker."""

from __future__ import annotations

import json
from typing import Any

import pytest

from mailflow.exceptions import MalformedMessageError, PublishError
from mailflow.metrics import DeliveryMetrics
from mailflow.models import Priority
from mailflow.ports.broker import Route
from mailflow.queue import EmailSerializer, InMemoryBroker, QueueRouter, QueueTopology


@pytest.fixture
def broker(clock: Any) -> InMemoryBroker:
    return InMemoryBroker(clock=clock)


@pytest.fixture
def router(broker: InMemoryBroker, metrics: DeliveryMetrics) -> QueueRouter:
    return QueueRouter(broker, metrics=metrics)


# ── Serialization ────────────────────────────────────────────────────


def test_serialized_email_is_json(email_factory: Any) -> None:
    email = email_factory(template_data={"name": "Mari", "n": 3}, metadata={"k": "v"})
    raw = EmailSerializer().serialize(email)
    data = json.loads(raw)
    assert data["event_id"] == "evt-1"
    assert data["priority"] == "normal"
    assert EmailSerializer().deserialize(raw) == email


@pytest.mark.parametrize(
    "raw",
    [b"not json", b"\xff\xfe\x00", b'{"event_id": "x"}', b"[]"],
)
def test_undecodable_payload_is_malformed(raw: bytes) -> None:
    with pytest.raises(MalformedMessageError):
        EmailSerializer().deserialize(raw)


# ── Topology ─────────────────────────────────────────────────────────


def test_topology_arguments() -> None:
    topology = QueueTopology()
    assert topology.address(Route.PRIMARY) == ("email.exchange", "email.notifications")
    assert topology.queue_arguments(Route.PRIMARY) == {
        "x-message-ttl": 300_000,
        "x-max-priority": 10,
        "x-dead-letter-exchange": "email.dlx",
        "x-dead-letter-routing-key": "email.dlq",
    }
    assert topology.queue_arguments(Route.RETRY) == {
        "x-message-ttl": 60_000,
        "x-dead-letter-exchange": "email.exchange",
        "x-dead-letter-routing-key": "email.notifications",
    }
    assert topology.queue_arguments(Route.DEAD_LETTER) == {"x-message-ttl": 86_400_000}
    assert topology.queue_name(Route.DEAD_LETTER) == "email.dlq"
    assert topology.address(Route.DEAD_LETTER) == ("email.dlx", "email.dlq")


# ── Router ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_publish_primary_sets_policy_properties(
    router: QueueRouter, broker: InMemoryBroker, email_factory: Any
) -> None:
    await router.publish_primary(email_factory(priority=Priority.CRITICAL, max_retries=5))

    [message] = broker.messages(Route.PRIMARY)
    assert message.priority == 10
    assert message.expiration_ms == 60_000
    assert message.headers == {
        "event_id": "evt-1",
        "event_type": "user_registration",
        "priority": "critical",
        "retry_count": "0",
    }
    assert message.content_type == "application/json"


@pytest.mark.asyncio
async def test_publish_primary_failure_raises(
    router: QueueRouter, broker: InMemoryBroker, metrics: DeliveryMetrics, email_factory: Any
) -> None:
    broker.failing_routes.add(Route.PRIMARY)
    with pytest.raises(PublishError) as exc_info:
        await router.publish_primary(email_factory())
    assert exc_info.value.event_id == "evt-1"
    assert metrics.sample("email_publish_failures_total", route="primary") == 1


@pytest.mark.asyncio
async def test_publish_retry_uses_delay_as_expiration(
    router: QueueRouter, broker: InMemoryBroker, email_factory: Any
) -> None:
    assert await router.publish_retry(email_factory(retry_count=1), 2_000) is True
    [message] = broker.messages(Route.RETRY)
    assert message.expiration_ms == 2_000
    assert message.headers["retry_count"] == "1"


@pytest.mark.asyncio
async def test_publish_retry_failure_is_reported_not_raised(
    router: QueueRouter, broker: InMemoryBroker, metrics: DeliveryMetrics, email_factory: Any
) -> None:
    broker.failing_routes.add(Route.RETRY)
    assert await router.publish_retry(email_factory(), 2_000) is False
    assert metrics.sample("email_publish_failures_total", route="retry") == 1


@pytest.mark.asyncio
async def test_publish_dead_letter_annotates_failure(
    router: QueueRouter, broker: InMemoryBroker, clock: Any, email_factory: Any
) -> None:
    assert await router.publish_dead_letter(email_factory(metadata={"k": "v"}), "bounced")

    [message] = broker.messages(Route.DEAD_LETTER)
    assert message.headers["error"] == "bounced"
    email = EmailSerializer().deserialize(message.body)
    assert email.metadata["k"] == "v"
    assert email.metadata["failure_reason"] == "bounced"
    assert "failed_at" in email.metadata


@pytest.mark.asyncio
async def test_publish_dead_letter_failure_is_reported(
    router: QueueRouter, broker: InMemoryBroker, email_factory: Any
) -> None:
    broker.failing_routes.add(Route.DEAD_LETTER)
    assert await router.publish_dead_letter(email_factory(), "bounced") is False


@pytest.mark.asyncio
async def test_publish_dead_letter_raw_keeps_bytes(
    router: QueueRouter, broker: InMemoryBroker
) -> None:
    assert await router.publish_dead_letter_raw(b"\x00garbage", "malformed") is True
    [message] = broker.messages(Route.DEAD_LETTER)
    assert message.body == b"\x00garbage"
    assert message.headers["error"] == "malformed"


# ── In-memory broker ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_retry_messages_return_to_primary_when_due(
    router: QueueRouter, broker: InMemoryBroker, clock: Any, email_factory: Any
) -> None:
    await router.publish_retry(email_factory(), 4_000)
    assert broker.release_due() == 0

    clock.advance(seconds=4)
    assert broker.release_due() == 1
    [message] = broker.messages(Route.PRIMARY)
    assert message.expiration_ms is None
    assert broker.messages(Route.RETRY) == []


@pytest.mark.asyncio
async def test_deliver_prefers_higher_priority(
    router: QueueRouter, broker: InMemoryBroker, email_factory: Any
) -> None:
    await router.publish_primary(email_factory(event_id="low", priority=Priority.LOW))
    await router.publish_primary(email_factory(event_id="crit", priority=Priority.CRITICAL))

    seen: list[str] = []

    async def handler(body: bytes) -> None:
        seen.append(EmailSerializer().deserialize(body).event_id)

    assert await broker.deliver(handler, concurrency=1) == 2
    assert seen == ["crit", "low"]
    assert broker.acked == 2
