"""DeliveryMetrics — Prometheus counters/histograms for the delivery pipeline.

Emits:
  - ``email_sent_total{provider, event_type}``
  - ``email_failed_total{event_type, error_type}``
  - ``email_retry_total{event_type}``
  - ``email_send_duration_seconds{provider}``
  - ``email_publish_failures_total{route}``
  - ``email_submissions_total{status}``
"""

from __future__ import annotations

import logging

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

_logger = logging.getLogger(__name__)


class DeliveryMetrics:
    """Passive metrics sink. Pass a private ``registry`` to keep instances isolated."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else REGISTRY
        self._sent = Counter(
            "email_sent_total",
            "Emails delivered by the transport",
            ["provider", "event_type"],
            registry=self.registry,
        )
        self._failed = Counter(
            "email_failed_total",
            "Emails routed to the dead-letter queue",
            ["event_type", "error_type"],
            registry=self.registry,
        )
        self._retried = Counter(
            "email_retry_total",
            "Emails scheduled for another attempt",
            ["event_type"],
            registry=self.registry,
        )
        self._duration = Histogram(
            "email_send_duration_seconds",
            "Transport send duration",
            ["provider"],
            registry=self.registry,
        )
        self._publish_failures = Counter(
            "email_publish_failures_total",
            "Broker publishes that did not go through",
            ["route"],
            registry=self.registry,
        )
        self._submissions = Counter(
            "email_submissions_total",
            "Submission outcomes",
            ["status"],
            registry=self.registry,
        )

    def record_sent(self, provider: str, event_type: str, duration_ms: float) -> None:
        self._sent.labels(provider=provider, event_type=event_type).inc()
        self._duration.labels(provider=provider).observe(duration_ms / 1000.0)

    def record_failed(self, event_type: str, error_type: str) -> None:
        self._failed.labels(event_type=event_type, error_type=error_type).inc()

    def record_retry(self, event_type: str) -> None:
        self._retried.labels(event_type=event_type).inc()

    def record_publish_failure(self, route: str) -> None:
        self._publish_failures.labels(route=route).inc()

    def record_submission(self, status: str) -> None:
        self._submissions.labels(status=status).inc()

    def sample(self, name: str, **labels: str) -> float:
        """Current value of a sample (``0.0`` when never emitted). Handy in tests."""
        value = self.registry.get_sample_value(name, labels)
        return 0.0 if value is None else value
