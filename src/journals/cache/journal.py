"""In-memory journal cache of issues and comments.

The JournalCache is the single owner of the journal state. It is created
empty at startup, repopulated by the reconciliation loader and mutated by
the webhook dispatcher for the rest of the process lifetime.

Every mutation and the change event it produces are applied under one
re-entrant lock, so readers never observe a half-applied mutation and
subscribers receive events in the order the mutations were applied.
Subscribers run on the mutating thread while the lock is held; they may
read the cache but must not block.

Merge rules:
- Inserting an unknown record publishes ADDED.
- Replacing a record publishes MODIFIED only if any field differs.
- Replacing an issue whose resource tag changed publishes DELETED for the
  old record, then ADDED for the new one.
- Removing an absent record is a no-op.
"""

import logging
import threading
from typing import Dict, List, Optional

from src.journals.events.emitter import Subscriber, SubscriberRegistry
from src.journals.events.models import ChangeEvent, ChangeType, EventCategory
from src.journals.models import Comment, Issue


logger = logging.getLogger(__name__)


class JournalCache:
    """Synchronized store of journal issues and their comments.

    Issues are indexed by issue number, which GitHub assigns once and never
    changes, so there is at most one record per ``(namespace, name, number)``
    key. Comments are indexed by ``(issue_number, comment_id)``. Snapshots
    preserve insertion order; replacing a record keeps its position.

    Example:
        >>> cache = JournalCache()
        >>> cache.subscribe(EventCategory.ISSUE, print)
        >>> cache.add_or_update_issue(issue)
        >>> [i.number for i in cache.get_issues()]
        [1]
    """

    def __init__(self, registry: Optional[SubscriberRegistry] = None) -> None:
        """Initialize an empty cache.

        Args:
            registry: Optional subscriber registry. A private registry is
                      created when omitted.
        """
        self._lock = threading.RLock()
        self._issues: Dict[int, Issue] = {}
        self._comments: Dict[int, Dict[int, Comment]] = {}
        self._registry = registry or SubscriberRegistry()

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    def subscribe(self, category: EventCategory, subscriber: Subscriber) -> None:
        """Register a subscriber for issue or comment events.

        Subscribers only see mutations applied after they registered.
        """
        self._registry.subscribe(category, subscriber)

    def unsubscribe(self, category: EventCategory, subscriber: Subscriber) -> bool:
        return self._registry.unsubscribe(category, subscriber)

    def _publish(self, change_type: ChangeType, record: object) -> None:
        self._registry.publish(ChangeEvent(type=change_type, object=record))

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    def add_or_update_issue(self, issue: Issue) -> Issue:
        """Insert or replace an issue.

        Args:
            issue: The issue record to store.

        Returns:
            The record stored in the cache after the call. This is the
            previously stored record when the update was a no-op.
        """
        with self._lock:
            cached = self._issues.get(issue.number)
            if cached is None:
                self._issues[issue.number] = issue
                self._publish(ChangeType.ADDED, issue)
                return issue

            if issue == cached:
                return cached

            if issue.key != cached.key:
                # Moved to another resource; comments stay with the number
                logger.info(
                    "Issue #%s moved from %s/%s to %s/%s",
                    issue.number,
                    cached.namespace,
                    cached.name,
                    issue.namespace,
                    issue.name,
                    extra={"issue_number": issue.number},
                )
                self._issues[issue.number] = issue
                self._publish(ChangeType.DELETED, cached)
                self._publish(ChangeType.ADDED, issue)
                return issue

            self._issues[issue.number] = issue
            self._publish(ChangeType.MODIFIED, issue)
            return issue

    def remove_issue(self, issue: Issue) -> Optional[Issue]:
        """Remove an issue and its cached comments.

        Only the DELETED issue event is published; consumers drop the
        comments of a deleted issue themselves.

        Args:
            issue: The issue to remove (matched by issue number).

        Returns:
            The removed record, or None if the issue was not cached.
        """
        with self._lock:
            removed = self._issues.pop(issue.number, None)
            self._comments.pop(issue.number, None)
            if removed is None:
                return None
            self._publish(ChangeType.DELETED, removed)
            return removed

    def get_issue(self, number: int) -> Optional[Issue]:
        with self._lock:
            return self._issues.get(number)

    def get_issues(self) -> List[Issue]:
        """Get a snapshot of all cached issues in insertion order."""
        with self._lock:
            return list(self._issues.values())

    def get_issue_numbers(self, namespace: str, name: str) -> List[int]:
        """Get the numbers of all cached issues for a managed resource.

        Args:
            namespace: Namespace of the resource.
            name: Name of the resource.

        Returns:
            Issue numbers in insertion order.
        """
        with self._lock:
            return [
                issue.number
                for issue in self._issues.values()
                if issue.namespace == namespace and issue.name == name
            ]

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def add_or_update_comment(self, issue_number: int, comment: Comment) -> Comment:
        """Insert or replace a comment of an issue.

        Comments for issues that are not cached are stored as well; the
        webhook path always upserts the parent issue first.

        Args:
            issue_number: Number of the issue the comment belongs to.
            comment: The comment record to store.

        Returns:
            The record stored in the cache after the call.

        Raises:
            ValueError: If the comment belongs to a different issue.
        """
        if comment.issue_number != issue_number:
            raise ValueError(
                f"Comment {comment.id} belongs to issue #{comment.issue_number}, "
                f"not #{issue_number}"
            )

        with self._lock:
            if issue_number not in self._issues:
                logger.debug(
                    "Caching comment %s for uncached issue #%s",
                    comment.id,
                    issue_number,
                )
            comments = self._comments.setdefault(issue_number, {})
            cached = comments.get(comment.id)
            if cached is None:
                comments[comment.id] = comment
                self._publish(ChangeType.ADDED, comment)
                return comment

            if comment == cached:
                return cached

            comments[comment.id] = comment
            self._publish(ChangeType.MODIFIED, comment)
            return comment

    def remove_comment(self, issue_number: int, comment: Comment) -> Optional[Comment]:
        """Remove a comment of an issue.

        Args:
            issue_number: Number of the issue the comment belongs to.
            comment: The comment to remove (matched by comment id).

        Returns:
            The removed record, or None if the comment was not cached.
        """
        with self._lock:
            comments = self._comments.get(issue_number)
            if not comments:
                return None
            removed = comments.pop(comment.id, None)
            if not comments:
                del self._comments[issue_number]
            if removed is None:
                return None
            self._publish(ChangeType.DELETED, removed)
            return removed

    def get_comments(self, issue_number: int) -> List[Comment]:
        """Get a snapshot of the cached comments of an issue."""
        with self._lock:
            return list(self._comments.get(issue_number, {}).values())

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Drop all issues and comments without publishing events."""
        with self._lock:
            self._issues.clear()
            self._comments.clear()
        logger.info("Journal cache reset")

    def __len__(self) -> int:
        with self._lock:
            return len(self._issues)
