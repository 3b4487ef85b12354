"""GitHub webhook delivery models for the journal.

This module defines the event and action types the webhook dispatcher
understands and the delivery payload shape:

- GitHubEvent: The ``x-github-event`` header values that are handled
- IssueAction / CommentAction: The actions with dedicated handling
- WebhookPayload: The JSON body ``{action, issue, comment?}``

Actions not listed in the enums are still accepted; the dispatcher treats
any issue action other than ``closed`` as an update and any comment action
other than ``deleted`` as an upsert.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.journals.github.models import WireComment, WireIssue


class GitHubEvent(str, Enum):
    """GitHub webhook event types handled by the journal.

    Attributes:
        ISSUES: An issue was opened, edited, closed, reopened, labeled, ...
        ISSUE_COMMENT: A comment was created, edited or deleted.
    """

    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"


class IssueAction(str, Enum):
    """Issue actions with dedicated handling.

    Attributes:
        OPENED: A new issue was created.
        EDITED: Title or body changed.
        CLOSED: The issue was closed; it is evicted from the journal.
        REOPENED: A closed issue was reopened; its comments are backfilled.
    """

    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"


class CommentAction(str, Enum):
    """Comment actions with dedicated handling."""

    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"


class WebhookPayload(BaseModel):
    """Body of an ``issues`` or ``issue_comment`` delivery.

    Attributes:
        action: The action that triggered the delivery.
        issue: The issue the delivery concerns.
        comment: The comment, for ``issue_comment`` deliveries.
    """

    action: str = Field(..., min_length=1, description="The triggering action")
    issue: Optional[WireIssue] = Field(None, description="The affected issue")
    comment: Optional[WireComment] = Field(
        None, description="The affected comment (issue_comment only)"
    )
