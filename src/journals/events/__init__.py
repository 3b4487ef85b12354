"""Journal change events and metrics.

Event models:
- ChangeType: ADDED, MODIFIED, DELETED
- EventCategory: issue, comment
- ChangeEvent: Notification published after every cache mutation

Subscribers:
- SubscriberRegistry: Per-category observer registry used by the cache
- ChangeSubscriber: Abstract base class for class-based subscribers
- LoggingSubscriber: Logs change events
- MetricsSubscriber: Counts change events in Prometheus

Metrics:
- JournalMetrics: Container for all Prometheus metrics
- generate_metrics_output: Prometheus format output for /metrics
"""

from src.journals.events.emitter import (
    ChangeSubscriber,
    LoggingSubscriber,
    Subscriber,
    SubscriberRegistry,
)
from src.journals.events.metrics import (
    JournalMetrics,
    MetricsSubscriber,
    generate_metrics_output,
)
from src.journals.events.models import ChangeEvent, ChangeType, EventCategory

__all__ = [
    # Event models
    "ChangeEvent",
    "ChangeType",
    "EventCategory",
    # Subscribers
    "ChangeSubscriber",
    "LoggingSubscriber",
    "MetricsSubscriber",
    "Subscriber",
    "SubscriberRegistry",
    # Metrics
    "JournalMetrics",
    "generate_metrics_output",
]
