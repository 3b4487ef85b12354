"""Reconciliation of the journal cache against GitHub.

The ReconciliationLoader performs the trusted pull side of the journal:
- load_open_issues: reset the cache and reload every open issue
- load_issue_comments: fetch and cache the comments of one issue
- list_issues: fetch and cache the open issues of one managed resource

Comments are not fetched during a full reconciliation. They are loaded on
demand (for example when an issue is reopened) to keep a reconciliation
pass within the GitHub API rate limits.
"""

import asyncio
import logging
import time
from typing import List, Optional, Protocol

from src.journals.cache.journal import JournalCache
from src.journals.events.metrics import JournalMetrics
from src.journals.github.client import UpstreamFetchError
from src.journals.github.models import WireComment, WireIssue
from src.journals.models import Comment, Issue
from src.journals.translator import comment_from_wire, issue_from_wire


logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    """The subset of the GitHub client the loader depends on."""

    async def search_open_issues(
        self,
        owner: str,
        repo: str,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[WireIssue]:
        ...

    async def list_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[WireComment]:
        ...


class ReconciliationLoader:
    """Loads journal state from GitHub into the cache.

    Attributes:
        cache: The journal cache to populate.
        source: GitHub client used for searching issues and listing comments.
        owner: Owner of the journal repository.
        repo: Name of the journal repository.
        timeout_seconds: Deadline for each upstream fetch.
    """

    def __init__(
        self,
        cache: JournalCache,
        source: IssueSource,
        owner: str,
        repo: str,
        timeout_seconds: float = 30.0,
        metrics: Optional[JournalMetrics] = None,
    ) -> None:
        self.cache = cache
        self.source = source
        self.owner = owner
        self.repo = repo
        self.timeout_seconds = timeout_seconds
        self._metrics = metrics

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def _fetch(self, coro, what: str):
        """Await an upstream fetch with the configured deadline.

        Raises:
            UpstreamFetchError: On timeout, with the same meaning as any
                                other fetch failure.
        """
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise UpstreamFetchError(
                message=(
                    f"Timed out after {self.timeout_seconds}s fetching {what} "
                    f"from {self.repository}"
                ),
            ) from e

    async def load_open_issues(self) -> int:
        """Reset the cache and reload all open issues.

        The complete result set is fetched before anything is applied, so a
        failed fetch leaves the cache empty rather than partially populated.
        Retrying is up to the caller.

        Returns:
            Number of issues held by the cache after the load.

        Raises:
            UpstreamFetchError: If the search fails or times out.
        """
        started = time.monotonic()
        self.cache.reset()
        logger.info(
            "Reconciling journal cache",
            extra={"repository": self.repository},
        )

        try:
            wire_issues = await self._fetch(
                self.source.search_open_issues(self.owner, self.repo),
                "open issues",
            )
        except UpstreamFetchError as e:
            logger.error(
                "Reconciliation failed: %s",
                e.message,
                extra={"repository": self.repository, "status_code": e.status_code},
            )
            if self._metrics is not None:
                self._metrics.record_reconciliation(False, time.monotonic() - started)
            raise

        skipped = 0
        for wire in wire_issues:
            issue = issue_from_wire(wire)
            if issue is None:
                skipped += 1
                continue
            self.cache.add_or_update_issue(issue)

        count = len(self.cache)
        duration = time.monotonic() - started
        if self._metrics is not None:
            self._metrics.record_reconciliation(True, duration)
        logger.info(
            "Reconciled %d open issues",
            count,
            extra={
                "repository": self.repository,
                "fetched": len(wire_issues),
                "skipped": skipped,
                "duration_seconds": round(duration, 3),
            },
        )
        return count

    async def load_issue_comments(self, issue: Issue) -> List[Comment]:
        """Fetch all comments of an issue and apply them to the cache.

        Args:
            issue: The journal issue whose comments to load.

        Comments are only applied if the issue is still cached once the
        fetch completes. An issue closed in the meantime keeps no comments.

        Returns:
            The comments as stored in the cache, or an empty list when the
            issue was evicted during the fetch.

        Raises:
            UpstreamFetchError: If the fetch fails or times out.
        """
        wire_comments = await self._fetch(
            self.source.list_comments(self.owner, self.repo, issue.number),
            f"comments of issue #{issue.number}",
        )
        if self.cache.get_issue(issue.number) is None:
            logger.info(
                "Issue #%s left the cache while loading comments, dropping %d",
                issue.number,
                len(wire_comments),
                extra={"repository": self.repository, "issue_number": issue.number},
            )
            return []

        comments = [
            self.cache.add_or_update_comment(
                issue.number,
                comment_from_wire(issue.number, issue.namespace, issue.name, wire),
            )
            for wire in wire_comments
        ]
        logger.info(
            "Loaded %d comments for issue #%s",
            len(comments),
            issue.number,
            extra={"repository": self.repository, "issue_number": issue.number},
        )
        return comments

    async def list_issues(self, namespace: str, name: str) -> List[Issue]:
        """Fetch the open issues of one managed resource and cache them.

        Search hits whose tag names a different resource are dropped.

        Args:
            namespace: Namespace of the resource.
            name: Name of the resource.

        Returns:
            The issues as stored in the cache.

        Raises:
            UpstreamFetchError: If the search fails or times out.
        """
        wire_issues = await self._fetch(
            self.source.search_open_issues(
                self.owner, self.repo, namespace=namespace, name=name
            ),
            f"issues of {namespace}/{name}",
        )
        issues = []
        for wire in wire_issues:
            issue = issue_from_wire(wire)
            if issue is None or (issue.namespace, issue.name) != (namespace, name):
                continue
            issues.append(self.cache.add_or_update_issue(issue))
        return issues
