"""Subscriber registry for journal change events.

This module provides the publish side of the journal cache. Subscribers
register per event category (``issue`` or ``comment``) and are invoked
synchronously, in registration order, for every change event of that
category.

- ChangeSubscriber: Abstract base class for class-based subscribers
- LoggingSubscriber: Writes change events as structured log entries
- SubscriberRegistry: The per-category observer registry

A failing subscriber never affects the cache or the other subscribers. The
failure is logged and publishing continues with the next subscriber.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from src.journals.events.models import ChangeEvent, ChangeType, EventCategory


logger = logging.getLogger(__name__)


Subscriber = Callable[[ChangeEvent], None]


class ChangeSubscriber(ABC):
    """Abstract base class for change event subscribers.

    Plain callables taking a ChangeEvent work as subscribers too. This base
    class exists for subscribers that carry state, such as metrics.

    Example:
        >>> class Collector(ChangeSubscriber):
        ...     def __init__(self):
        ...         self.events = []
        ...
        ...     def notify(self, event: ChangeEvent) -> None:
        ...         self.events.append(event)
    """

    @abstractmethod
    def notify(self, event: ChangeEvent) -> None:
        """Handle a change event.

        Args:
            event: The change event that was published.
        """

    def __call__(self, event: ChangeEvent) -> None:
        self.notify(event)


class LoggingSubscriber(ChangeSubscriber):
    """Subscriber that logs change events using structured logging.

    ADDED and MODIFIED events are logged at DEBUG level, DELETED events at
    INFO level. The event fields are passed as ``extra`` so log aggregators
    can filter on them.
    """

    def __init__(self, logger_name: Optional[str] = None):
        """Initialize the logging subscriber.

        Args:
            logger_name: Optional logger name. If not provided, uses
                         the module logger.
        """
        self._logger = logging.getLogger(logger_name) if logger_name else logger
        self._log_level_map = {
            ChangeType.ADDED: logging.DEBUG,
            ChangeType.MODIFIED: logging.DEBUG,
            ChangeType.DELETED: logging.INFO,
        }

    def notify(self, event: ChangeEvent) -> None:
        log_level = self._log_level_map.get(event.type, logging.INFO)
        self._logger.log(
            log_level,
            "Journal event: %s %s %s",
            event.type.value,
            event.category.value,
            event.object.id,
            extra=event.to_log_dict(),
        )


class SubscriberRegistry:
    """Observer registry keyed by event category.

    Subscribers are stored per category and invoked synchronously by
    publish(). The subscriber lists are copied before publishing, so a
    subscriber may subscribe or unsubscribe from within a callback.

    Example:
        >>> registry = SubscriberRegistry()
        >>> registry.subscribe(EventCategory.ISSUE, print)
        >>> registry.publish(ChangeEvent(type=ChangeType.ADDED, object=issue))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[EventCategory, List[Subscriber]] = {
            category: [] for category in EventCategory
        }

    def subscribe(self, category: EventCategory, subscriber: Subscriber) -> None:
        """Register a subscriber for a category.

        Args:
            category: The category to receive events for.
            subscriber: Callable invoked with each ChangeEvent.
        """
        category = EventCategory(category)
        with self._lock:
            self._subscribers[category].append(subscriber)

    def unsubscribe(self, category: EventCategory, subscriber: Subscriber) -> bool:
        """Remove a subscriber from a category.

        Args:
            category: The category the subscriber was registered for.
            subscriber: The subscriber to remove.

        Returns:
            True if the subscriber was found and removed, False otherwise.
        """
        category = EventCategory(category)
        with self._lock:
            try:
                self._subscribers[category].remove(subscriber)
                return True
            except ValueError:
                return False

    def subscribers(self, category: EventCategory) -> Tuple[Subscriber, ...]:
        """Get the current subscribers of a category (read-only copy)."""
        with self._lock:
            return tuple(self._subscribers[EventCategory(category)])

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber of its category.

        Each subscriber is called independently. Exceptions are logged and
        not propagated.

        Args:
            event: The change event to publish.
        """
        for subscriber in self.subscribers(event.category):
            try:
                subscriber(event)
            except Exception as e:
                logger.error(
                    "Subscriber %s failed for %s %s event: %s",
                    getattr(subscriber, "__qualname__", type(subscriber).__name__),
                    event.type.value,
                    event.category.value,
                    str(e),
                    exc_info=True,
                    extra={
                        "subscriber": type(subscriber).__name__,
                        "change_type": event.type.value,
                        "category": event.category.value,
                        "error": str(e),
                    },
                )

    def clear(self) -> None:
        """Remove all subscribers of all categories."""
        with self._lock:
            for subscribers in self._subscribers.values():
                subscribers.clear()
