"""GitHub webhook handling for the journal.

This module verifies and dispatches GitHub webhook deliveries:
- issues: opened, edited, closed, reopened, labeled, ...
- issue_comment: created, edited, deleted

Deliveries are authenticated with the ``x-hub-signature`` HMAC-SHA1
signature before any payload parsing.
"""

from .handler import WebhookDispatcher
from .models import CommentAction, GitHubEvent, IssueAction, WebhookPayload
from .signature import (
    AuthenticationError,
    ConfigurationError,
    create_hub_signature,
    digests_equal,
    verify_hub_signature,
)

__all__ = [
    "AuthenticationError",
    "CommentAction",
    "ConfigurationError",
    "GitHubEvent",
    "IssueAction",
    "WebhookDispatcher",
    "WebhookPayload",
    "create_hub_signature",
    "digests_equal",
    "verify_hub_signature",
]
