"""RabbitMQBroker — IMessageBroker over direct exchanges with publisher confirms."""

from __future__ import annotations

from datetime import timedelta

import aio_pika

from ...ports.broker import IMessageBroker, OutgoingMessage, Route
from .connection import RabbitMQConnectionManager


class RabbitMQBroker(IMessageBroker):
    """Publishes persistent messages to the exchange of the requested route.

    ``expiration_ms`` becomes the per-message TTL (the retry delay on the
    retry route) and ``priority`` the AMQP priority property.
    """

    def __init__(self, connection: RabbitMQConnectionManager) -> None:
        self._connection = connection

    async def publish(self, route: Route, message: OutgoingMessage) -> None:
        await self._connection.connect()
        exchange = self._connection.exchange(route)
        _, routing_key = self._connection.topology.address(route)
        await exchange.publish(
            aio_pika.Message(
                body=message.body,
                content_type=message.content_type,
                headers=dict(message.headers),
                priority=message.priority,
                expiration=(
                    timedelta(milliseconds=message.expiration_ms)
                    if message.expiration_ms is not None
                    else None
                ),
                message_id=message.headers.get("event_id"),
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=routing_key,
        )

    async def health_check(self) -> bool:
        return await self._connection.health_check()
