"""Change event models for the journal cache.

This module defines the notifications published after every cache
mutation, modeled after a Kubernetes watch stream:
- ChangeType: ADDED, MODIFIED or DELETED
- EventCategory: The kind of record that changed (issue or comment)
- ChangeEvent: The notification carrying the affected record

Change events are not retained by the cache. A subscriber only sees the
mutations applied after it subscribed.
"""

from enum import Enum
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field

from src.journals.models import Comment, Issue


class ChangeType(str, Enum):
    """Types of change published by the journal cache.

    Attributes:
        ADDED: A record was inserted.
        MODIFIED: A stored record was replaced by a different one.
        DELETED: A record was removed.
    """

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class EventCategory(str, Enum):
    """Categories subscribers can register for."""

    ISSUE = "issue"
    COMMENT = "comment"


class ChangeEvent(BaseModel):
    """Notification for a single journal cache mutation.

    Attributes:
        type: The kind of change.
        object: The record after the change (or the removed record for
                DELETED events).

    Example:
        >>> event = ChangeEvent(type=ChangeType.ADDED, object=issue)
        >>> event.category
        <EventCategory.ISSUE: 'issue'>
    """

    model_config = ConfigDict(frozen=True)

    type: ChangeType = Field(..., description="The kind of change")
    object: Union[Issue, Comment] = Field(..., description="The affected record")

    @property
    def category(self) -> EventCategory:
        if isinstance(self.object, Issue):
            return EventCategory.ISSUE
        return EventCategory.COMMENT

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert the event to a flat dictionary for structured logging.

        Returns:
            Dict[str, Any]: Event type, category and record identity.
        """
        record = self.object
        log_dict: Dict[str, Any] = {
            "change_type": self.type.value,
            "category": self.category.value,
            "record_id": record.id,
            "namespace": record.namespace,
            "resource_name": record.name,
        }
        if isinstance(record, Issue):
            log_dict["issue_number"] = record.number
        else:
            log_dict["issue_number"] = record.issue_number
        return log_dict
