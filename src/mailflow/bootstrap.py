"""Composition root: wires settings into a running submission + delivery pipeline."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from prometheus_client import CollectorRegistry

from .config import MailflowSettings
from .health import HealthRegistry
from .idempotency import IdempotencyGuard, RedisIdempotencyGuard
from .metrics import DeliveryMetrics
from .models import utcnow
from .ports.broker import IMessageBroker
from .ports.idempotency import IIdempotencyGuard
from .ports.status import IStatusStore
from .ports.templates import ITemplateStore, Template
from .ports.transport import ITransport
from .queue.memory import InMemoryBroker
from .queue.router import QueueRouter
from .retry import DEFAULT_BACKOFF
from .service import NotificationService
from .stores.memory import InMemoryStatusStore, InMemoryTemplateStore
from .stores.resql import HttpStatusStore, HttpTemplateStore, ResqlClient
from .templates.cache import TemplateCache
from .templates.renderer import TemplateRenderer
from .transport.factory import create_transport
from .transport.memory import InMemoryTransport
from .worker import DeliveryWorker, WorkResult

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Every long-lived component of one process, plus its lifecycle.

    ``consumer`` is only set when the worker side runs against RabbitMQ;
    in-memory pipelines are driven through ``broker.deliver(pipeline.handle)``.
    """

    service: NotificationService
    worker: DeliveryWorker
    broker: IMessageBroker
    transport: ITransport
    guard: IIdempotencyGuard
    template_store: ITemplateStore
    status_store: IStatusStore
    metrics: DeliveryMetrics
    health: HealthRegistry
    consumer: Any | None = None
    shutdown_timeout: float = 30.0
    _closers: list[Callable[[], Awaitable[Any]]] = field(default_factory=list)

    async def handle(self, body: bytes) -> WorkResult:
        """Process one dequeued payload and record a worker heartbeat."""
        result = await self.worker.process(body)
        self.health.heartbeat("worker")
        return result

    async def start(self) -> None:
        if isinstance(self.guard, IdempotencyGuard):
            await self.guard.start()
        if self.consumer is not None:
            await self.consumer.start()
        logger.info("Pipeline started (transport=%s)", self.transport.name)

    async def stop(self) -> None:
        if self.consumer is not None:
            await self.consumer.stop(self.shutdown_timeout)
        if isinstance(self.guard, IdempotencyGuard):
            await self.guard.stop()
        for close in reversed(self._closers):
            try:
                await close()
            except Exception:  # noqa: BLE001
                logger.warning("Error while closing pipeline resource", exc_info=True)
        logger.info("Pipeline stopped")


Closer = Callable[[], Awaitable[Any]]


def _build_guard(settings: MailflowSettings) -> tuple[IIdempotencyGuard, Closer | None]:
    config = settings.idempotency
    if config.backend == "redis":
        from redis.asyncio import Redis

        client = Redis.from_url(config.redis_url)
        guard = RedisIdempotencyGuard(
            client,
            window_seconds=config.window_seconds,
            key_prefix=config.key_prefix,
        )
        return guard, client.aclose
    return (
        IdempotencyGuard(
            window_seconds=config.window_seconds,
            sweep_interval=config.sweep_interval_seconds,
        ),
        None,
    )


def build_pipeline(
    settings: MailflowSettings,
    *,
    registry: CollectorRegistry | None = None,
    broker: IMessageBroker | None = None,
    transport: ITransport | None = None,
) -> Pipeline:
    """Build a pipeline from settings; ``broker`` / ``transport`` override the configured ones."""
    closers: list[Callable[[], Awaitable[Any]]] = []
    metrics = DeliveryMetrics(registry or CollectorRegistry())
    health = HealthRegistry()

    connection = None
    if broker is None:
        from .queue.rabbitmq import RabbitMQBroker, RabbitMQConnectionManager

        connection = RabbitMQConnectionManager(settings.rabbitmq_url)
        broker = RabbitMQBroker(connection)
        closers.append(connection.close)
    transport = transport or create_transport(settings)
    if hasattr(transport, "aclose"):
        closers.append(transport.aclose)

    template_store: ITemplateStore
    status_store: IStatusStore
    if settings.stores.backend == "http":
        resql = ResqlClient(settings.stores.base_url, timeout=settings.stores.timeout)
        template_store = HttpTemplateStore(resql)
        status_store = HttpStatusStore(resql)
        closers.append(resql.aclose)
        health.register("resql", resql.health_check)
    else:
        template_store = InMemoryTemplateStore()
        status_store = InMemoryStatusStore()

    guard, close_guard = _build_guard(settings)
    if close_guard is not None:
        closers.append(close_guard)
    if isinstance(guard, RedisIdempotencyGuard):
        health.register("idempotency", guard.health_check)

    router = QueueRouter(broker, metrics=metrics)
    renderer = TemplateRenderer(
        TemplateCache(template_store), default_locale=settings.default_locale
    )
    service = NotificationService(
        guard,
        renderer,
        router,
        status_store=status_store,
        metrics=metrics,
        sender=settings.from_email,
        reply_to=settings.reply_to,
        idempotency_enabled=settings.idempotency.enabled,
        batch_size=settings.batch_size,
    )
    worker = DeliveryWorker(
        transport,
        router,
        backoff=DEFAULT_BACKOFF,
        metrics=metrics,
        status_store=status_store,
    )
    health.register("broker", broker.health_check)
    health.register("transport", transport.health_check)

    pipeline = Pipeline(
        service=service,
        worker=worker,
        broker=broker,
        transport=transport,
        guard=guard,
        template_store=template_store,
        status_store=status_store,
        metrics=metrics,
        health=health,
        _closers=closers,
    )
    if connection is not None and settings.worker.enabled:
        from .queue.rabbitmq import RabbitMQConsumer

        pipeline.consumer = RabbitMQConsumer(
            connection,
            pipeline.handle,
            max_concurrency=settings.worker.max_concurrency,
        )
        pipeline.shutdown_timeout = settings.worker.shutdown_timeout_seconds
    return pipeline


def build_in_memory_pipeline(
    templates: Iterable[Template] = (),
    *,
    transport: ITransport | None = None,
    clock: Callable[[], datetime] = utcnow,
    registry: CollectorRegistry | None = None,
    idempotency_window_seconds: int = 86_400,
    default_locale: str = "et",
) -> Pipeline:
    """Fully in-process pipeline for local development and tests."""
    metrics = DeliveryMetrics(registry or CollectorRegistry())
    broker = InMemoryBroker(clock=clock)
    transport = transport or InMemoryTransport()
    template_store = InMemoryTemplateStore(list(templates))
    status_store = InMemoryStatusStore()
    guard = IdempotencyGuard(window_seconds=idempotency_window_seconds, clock=clock)
    router = QueueRouter(broker, metrics=metrics)
    health = HealthRegistry(clock=clock)
    health.register("broker", broker.health_check)
    health.register("transport", transport.health_check)
    return Pipeline(
        service=NotificationService(
            guard,
            TemplateRenderer(TemplateCache(template_store), default_locale=default_locale),
            router,
            status_store=status_store,
            metrics=metrics,
        ),
        worker=DeliveryWorker(
            transport,
            router,
            metrics=metrics,
            status_store=status_store,
            clock=clock,
        ),
        broker=broker,
        transport=transport,
        guard=guard,
        template_store=template_store,
        status_store=status_store,
        metrics=metrics,
        health=health,
    )
