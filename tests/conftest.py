"""Pytest configuration and shared fixtures for the journal tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from src.journals.cache.journal import JournalCache
from src.journals.events.models import ChangeEvent, EventCategory
from src.journals.github.client import UpstreamFetchError
from src.journals.github.models import WireComment, WireIssue
from src.journals.loader import ReconciliationLoader
from src.journals.webhook.handler import WebhookDispatcher


WEBHOOK_SECRET = b"webhookSecret".hex()
OWNER = "gardener"
REPO = "journal-dev"


def format_time(epoch_seconds: int) -> str:
    return (
        datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )


def make_github_issue(
    number: int,
    body: Optional[str] = None,
    comments: int = 0,
    state: str = "open",
    title: Optional[str] = None,
    namespace: str = "garden-dev",
    name: str = "alpha",
    created_at: Optional[str] = None,
    updated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a GitHub issue JSON object tagged with a managed resource."""
    epoch = 1530562712 + number * 60
    return {
        "id": 327883526 + number,
        "number": number,
        "title": title if title is not None else f"[{namespace}/{name}] Bug {number}",
        "state": state,
        "body": body if body is not None else f"This is bug #{number}",
        "comments": comments,
        "created_at": created_at or format_time(epoch),
        "updated_at": updated_at or format_time(epoch),
        "html_url": f"https://github.com/{OWNER}/{REPO}/issues/{number}",
        "user": {
            "id": 21031061,
            "login": "johndoe",
            "avatar_url": "https://avatars1.githubusercontent.com/u/21031061?v=4",
        },
        "labels": [{"id": 949737505, "name": "bug", "color": "d73a4a"}],
    }


def make_github_comment(
    comment_id: int,
    issue_number: int = 1,
    body: Optional[str] = None,
    updated_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a GitHub issue comment JSON object."""
    epoch = 1530562712 + comment_id * 60
    return {
        "id": comment_id,
        "body": body if body is not None else f"Comment {comment_id}",
        "created_at": format_time(epoch),
        "updated_at": updated_at or format_time(epoch),
        "html_url": (
            f"https://github.com/{OWNER}/{REPO}/issues/{issue_number}"
            f"#issuecomment-{comment_id}"
        ),
        "user": {"login": "janedoe", "avatar_url": None},
    }


def later(timestamp: str, minutes: int = 1) -> str:
    """Shift an ISO-8601 ``Z`` timestamp forward."""
    parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    return (parsed + timedelta(minutes=minutes)).isoformat().replace("+00:00", "Z")


class FakeGitHubClient:
    """In-memory stand-in for GitHubClient.

    Attributes:
        issues: Raw issue objects returned by every search.
        comments: Raw comment objects by issue number.
        error: Exception raised by every call when set.
        delay: Seconds each call sleeps before answering.
    """

    def __init__(self, issues: Optional[List[Dict[str, Any]]] = None) -> None:
        self.issues: List[Dict[str, Any]] = list(issues or [])
        self.comments: Dict[int, List[Dict[str, Any]]] = {}
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.search_calls: List[Dict[str, Any]] = []
        self.comment_calls: List[int] = []

    async def _respond(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def search_open_issues(
        self,
        owner: str,
        repo: str,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[WireIssue]:
        self.search_calls.append(
            {"owner": owner, "repo": repo, "namespace": namespace, "name": name}
        )
        await self._respond()
        return [WireIssue.model_validate(issue) for issue in self.issues]

    async def list_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[WireComment]:
        self.comment_calls.append(issue_number)
        await self._respond()
        return [
            WireComment.model_validate(comment)
            for comment in self.comments.get(issue_number, [])
        ]


class EventRecorder:
    """Subscriber collecting every published change event."""

    def __init__(self) -> None:
        self.events: List[ChangeEvent] = []

    def __call__(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def of(self, category: EventCategory) -> List[ChangeEvent]:
        return [event for event in self.events if event.category == category]


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET


@pytest.fixture
def github_issues() -> List[Dict[str, Any]]:
    return [make_github_issue(1), make_github_issue(2, body="The second bug")]


@pytest.fixture
def fake_client(github_issues) -> FakeGitHubClient:
    return FakeGitHubClient(github_issues)


@pytest.fixture
def cache() -> JournalCache:
    return JournalCache()


@pytest.fixture
def recorder(cache) -> EventRecorder:
    recorder = EventRecorder()
    cache.subscribe(EventCategory.ISSUE, recorder)
    cache.subscribe(EventCategory.COMMENT, recorder)
    return recorder


@pytest.fixture
def loader(cache, fake_client) -> ReconciliationLoader:
    return ReconciliationLoader(
        cache=cache,
        source=fake_client,
        owner=OWNER,
        repo=REPO,
        timeout_seconds=1.0,
    )


@pytest.fixture
def dispatcher(cache, loader, webhook_secret) -> WebhookDispatcher:
    return WebhookDispatcher(
        cache=cache,
        loader=loader,
        secret=webhook_secret,
        backfill_timeout_seconds=1.0,
    )
