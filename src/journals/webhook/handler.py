"""GitHub webhook dispatcher for the journal cache.

The WebhookDispatcher is the entry point for webhook deliveries. For every
delivery it:

1. Verifies the ``x-hub-signature`` against the raw body
2. Classifies the ``x-github-event`` header and the payload ``action``
3. Translates the payload and applies the matching cache mutation

Issue deliveries:
- ``closed`` evicts the issue from the cache
- ``reopened`` upserts the issue and, if it has comments, schedules a
  comment backfill in the background
- any other action upserts the issue

Comment deliveries always upsert the parent issue first, then:
- ``deleted`` removes the comment
- any other action upserts the comment

Only signature and configuration failures reach the caller. Everything
after verification is handled here and logged, because the delivery has
been accepted at that point.

GitHub Webhook Payload Structure (issue_comment event):
{
  "action": "created",
  "issue": {"id": 1, "number": 42, "title": "[garden-dev/alpha] ...", ...},
  "comment": {"id": 7, "body": "...", "user": {"login": "johndoe"}, ...}
}
"""

import asyncio
import logging
from typing import Optional, Set, Union

from pydantic import ValidationError

from src.journals.cache.journal import JournalCache
from src.journals.events.metrics import JournalMetrics
from src.journals.github.models import WireComment, WireIssue
from src.journals.loader import ReconciliationLoader
from src.journals.models import Issue
from src.journals.translator import comment_from_wire, issue_from_wire
from src.journals.webhook.models import (
    CommentAction,
    GitHubEvent,
    IssueAction,
    WebhookPayload,
)
from src.journals.webhook.signature import (
    AuthenticationError,
    ConfigurationError,
    verify_hub_signature,
)


logger = logging.getLogger(__name__)


class WebhookDispatcher:
    """Applies verified GitHub webhook deliveries to the journal cache.

    Comment backfills for reopened issues run as background tasks on the
    running event loop. They are tracked so they can be awaited with
    drain() on shutdown.

    Attributes:
        cache: The journal cache to mutate.
        loader: Loader used to backfill comments of reopened issues.
        backfill_timeout_seconds: Deadline for a single comment backfill.
    """

    def __init__(
        self,
        cache: JournalCache,
        loader: ReconciliationLoader,
        secret: Optional[Union[str, bytes]],
        backfill_timeout_seconds: float = 30.0,
        metrics: Optional[JournalMetrics] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            cache: The journal cache to mutate.
            loader: Loader used for comment backfills.
            secret: The webhook secret. A missing secret is reported on
                    every delivery as a ConfigurationError.
            backfill_timeout_seconds: Deadline for a comment backfill.
            metrics: Optional metrics container.
        """
        self.cache = cache
        self.loader = loader
        self._secret = secret
        self.backfill_timeout_seconds = backfill_timeout_seconds
        self._metrics = metrics
        self._backfills: Set[asyncio.Task] = set()

    def _record(self, event_name: Optional[str], outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_webhook_delivery(event_name or "unknown", outcome)

    async def handle(
        self,
        event_name: Optional[str],
        signature_header: Optional[str],
        raw_body: bytes,
    ) -> None:
        """Verify and dispatch a webhook delivery.

        Args:
            event_name: Value of the ``x-github-event`` header.
            signature_header: Value of the ``x-hub-signature`` header.
            raw_body: The unparsed request body.

        Raises:
            ConfigurationError: If no webhook secret is configured.
            AuthenticationError: If the signature is missing or invalid.
        """
        try:
            verify_hub_signature(self._secret, signature_header, raw_body)
        except ConfigurationError as e:
            logger.error("Cannot verify webhook delivery: %s", e.message)
            self._record(event_name, "failed")
            raise
        except AuthenticationError as e:
            logger.warning(
                "Rejected webhook delivery: %s",
                e.message,
                extra={"event": event_name},
            )
            self._record(event_name, "rejected")
            raise

        try:
            event = GitHubEvent(event_name)
        except ValueError:
            logger.info("Unhandled event: %s", event_name)
            self._record(event_name, "ignored")
            return

        try:
            payload = WebhookPayload.model_validate_json(raw_body)
        except ValidationError as e:
            logger.warning(
                "Ignoring malformed %s delivery: %s",
                event.value,
                e.error_count(),
                extra={"event": event.value},
            )
            self._record(event_name, "ignored")
            return

        try:
            if event == GitHubEvent.ISSUES:
                await self.handle_issue(payload.action, payload.issue)
            else:
                await self.handle_comment(
                    payload.action, payload.issue, payload.comment
                )
        except Exception as e:
            logger.exception(
                "Failed to apply %s/%s delivery: %s",
                event.value,
                payload.action,
                e,
            )
            self._record(event_name, "failed")
            return

        self._record(event_name, "accepted")

    async def handle_issue(self, action: str, wire_issue: Optional[WireIssue]) -> None:
        """Apply an ``issues`` delivery to the cache.

        Args:
            action: The payload action.
            wire_issue: The issue from the payload.
        """
        if wire_issue is None:
            logger.warning("Issue delivery without issue (action=%s)", action)
            return

        issue = issue_from_wire(wire_issue)
        if issue is None:
            # The resource tag may have been edited away
            cached = self.cache.get_issue(wire_issue.number)
            if cached is not None:
                logger.info(
                    "Issue #%s no longer references a resource, evicting",
                    wire_issue.number,
                )
                self.cache.remove_issue(cached)
            return

        logger.info(
            "Issue #%s %s",
            issue.number,
            action,
            extra={
                "issue_number": issue.number,
                "action": action,
                "namespace": issue.namespace,
                "resource_name": issue.name,
            },
        )

        if action == IssueAction.CLOSED:
            self.cache.remove_issue(issue)
            return

        self.cache.add_or_update_issue(issue)

        if action == IssueAction.REOPENED and issue.comments > 0:
            self._schedule_backfill(issue)

    async def handle_comment(
        self,
        action: str,
        wire_issue: Optional[WireIssue],
        wire_comment: Optional[WireComment],
    ) -> None:
        """Apply an ``issue_comment`` delivery to the cache.

        Args:
            action: The payload action.
            wire_issue: The parent issue from the payload.
            wire_comment: The comment from the payload.
        """
        if wire_issue is None or wire_comment is None:
            logger.warning("Comment delivery without issue or comment (action=%s)", action)
            return

        issue = issue_from_wire(wire_issue)
        if issue is None:
            logger.debug(
                "Ignoring comment %s on untracked issue #%s",
                wire_comment.id,
                wire_issue.number,
            )
            return

        self.cache.add_or_update_issue(issue)

        comment = comment_from_wire(issue.number, issue.namespace, issue.name, wire_comment)
        if action == CommentAction.DELETED:
            self.cache.remove_comment(issue.number, comment)
            return
        self.cache.add_or_update_comment(issue.number, comment)

    def _schedule_backfill(self, issue: Issue) -> None:
        task = asyncio.create_task(
            self._backfill_comments(issue),
            name=f"backfill-comments-{issue.number}",
        )
        self._backfills.add(task)
        task.add_done_callback(self._backfills.discard)

    async def _backfill_comments(self, issue: Issue) -> None:
        """Load the comments of a reopened issue, logging any failure."""
        try:
            await asyncio.wait_for(
                self.loader.load_issue_comments(issue),
                timeout=self.backfill_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Failed to fetch comments for reopened issue %s: %s",
                issue.number,
                e,
                extra={"issue_number": issue.number},
            )
            if self._metrics is not None:
                self._metrics.record_backfill(False)
            return

        if self._metrics is not None:
            self._metrics.record_backfill(True)

    @property
    def pending_backfills(self) -> int:
        return len(self._backfills)

    async def drain(self) -> None:
        """Wait for all scheduled comment backfills to finish."""
        while True:
            pending = [task for task in self._backfills if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
