"""Prometheus metrics for journal observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- journal_change_events_total: Counter of change events by category and type
- journal_webhook_deliveries_total: Counter of webhook deliveries by event
  and outcome
- journal_reconciliations_total: Counter of reconciliation runs by result
- journal_reconciliation_duration_seconds: Histogram of reconciliation time
- journal_backfills_total: Counter of comment backfills by result
- journal_cached_issues: Gauge of issues currently held by the cache

The MetricsSubscriber plugs into the cache's subscriber registry to count
change events as they are published.
"""

import logging
from typing import Callable, Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from src.journals.events.emitter import ChangeSubscriber
from src.journals.events.models import ChangeEvent


logger = logging.getLogger(__name__)


# Reconciliation is a handful of search pages, usually well under a minute
RECONCILIATION_DURATION_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)


class JournalMetrics:
    """Container for all journal Prometheus metrics.

    Supports custom registries so tests can create isolated instances.

    Example:
        >>> metrics = JournalMetrics(registry=CollectorRegistry())
        >>> metrics.record_webhook_delivery("issues", "accepted")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize journal metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.change_events_total = Counter(
            "journal_change_events_total",
            "Total number of change events published by the journal cache",
            labelnames=["category", "type"],
            registry=self.registry,
        )

        self.webhook_deliveries_total = Counter(
            "journal_webhook_deliveries_total",
            "Total number of webhook deliveries received",
            labelnames=["event", "outcome"],
            registry=self.registry,
        )

        self.reconciliations_total = Counter(
            "journal_reconciliations_total",
            "Total number of reconciliation runs",
            labelnames=["result"],
            registry=self.registry,
        )

        self.reconciliation_duration_seconds = Histogram(
            "journal_reconciliation_duration_seconds",
            "Time spent reconciling the journal cache in seconds",
            buckets=RECONCILIATION_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.backfills_total = Counter(
            "journal_backfills_total",
            "Total number of comment backfills for reopened issues",
            labelnames=["result"],
            registry=self.registry,
        )

        self.cached_issues = Gauge(
            "journal_cached_issues",
            "Current number of issues held by the journal cache",
            registry=self.registry,
        )

    def record_change_event(self, category: str, change_type: str) -> None:
        self.change_events_total.labels(category=category, type=change_type).inc()

    def record_webhook_delivery(self, event: str, outcome: str) -> None:
        """Record a webhook delivery.

        Args:
            event: The ``x-github-event`` header value.
            outcome: One of accepted, ignored, rejected, failed.
        """
        self.webhook_deliveries_total.labels(event=event, outcome=outcome).inc()

    def record_reconciliation(self, success: bool, duration_seconds: float) -> None:
        result = "success" if success else "failure"
        self.reconciliations_total.labels(result=result).inc()
        self.reconciliation_duration_seconds.observe(duration_seconds)

    def record_backfill(self, success: bool) -> None:
        result = "success" if success else "failure"
        self.backfills_total.labels(result=result).inc()

    def track_cache_size(self, size_fn: Callable[[], float]) -> None:
        """Report the cache size through a callback at scrape time.

        Args:
            size_fn: Callable returning the current number of cached issues.
        """
        self.cached_issues.set_function(size_fn)


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus metrics output for the /metrics endpoint.

    Args:
        registry: Optional Prometheus registry. If None, uses the
                  default REGISTRY.

    Returns:
        bytes: Prometheus metrics in text format.
    """
    target_registry = registry or REGISTRY
    return generate_latest(target_registry)


class MetricsSubscriber(ChangeSubscriber):
    """Subscriber that counts change events in Prometheus.

    Register it for both categories to count every published event.

    Attributes:
        metrics: The JournalMetrics instance to update.
    """

    def __init__(self, metrics: JournalMetrics):
        self._metrics = metrics

    @property
    def metrics(self) -> JournalMetrics:
        return self._metrics

    def notify(self, event: ChangeEvent) -> None:
        self._metrics.record_change_event(event.category.value, event.type.value)
