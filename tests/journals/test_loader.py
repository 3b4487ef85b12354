"""Unit tests for the ReconciliationLoader."""

import asyncio

import pytest
from prometheus_client import CollectorRegistry

from conftest import OWNER, REPO, make_github_comment, make_github_issue
from src.journals.events.metrics import JournalMetrics
from src.journals.events.models import ChangeType, EventCategory
from src.journals.github.client import UpstreamFetchError
from src.journals.loader import ReconciliationLoader
from src.journals.translator import issue_from_wire


def run_async(coro):
    return asyncio.run(coro)


class TestLoadOpenIssues:
    def test_loads_all_open_issues(self, loader, cache, fake_client, recorder):
        count = run_async(loader.load_open_issues())

        assert count == 2
        assert [i.number for i in cache.get_issues()] == [1, 2]
        assert cache.get_issue(2).body == "The second bug"
        assert [e.type for e in recorder.events] == [ChangeType.ADDED, ChangeType.ADDED]
        assert fake_client.search_calls == [
            {"owner": OWNER, "repo": REPO, "namespace": None, "name": None}
        ]

    def test_does_not_fetch_comments(self, loader, fake_client):
        fake_client.issues = [make_github_issue(1, comments=5)]
        run_async(loader.load_open_issues())
        assert fake_client.comment_calls == []

    def test_untagged_issues_are_skipped(self, loader, cache, fake_client):
        fake_client.issues.append(make_github_issue(3, title="No tag", body=""))
        assert run_async(loader.load_open_issues()) == 2
        assert cache.get_issue(3) is None

    def test_resets_previous_state(self, loader, cache, fake_client):
        cache.add_or_update_issue(issue_from_wire(make_github_issue(99)))
        run_async(loader.load_open_issues())
        assert cache.get_issue(99) is None
        assert len(cache) == 2

    def test_fetch_failure_leaves_cache_empty(self, loader, cache, fake_client):
        cache.add_or_update_issue(issue_from_wire(make_github_issue(99)))
        fake_client.error = UpstreamFetchError("boom", status_code=500)

        with pytest.raises(UpstreamFetchError, match="boom"):
            run_async(loader.load_open_issues())

        assert len(cache) == 0

    def test_timeout_is_fetch_error(self, cache, fake_client):
        fake_client.delay = 0.5
        loader = ReconciliationLoader(
            cache=cache,
            source=fake_client,
            owner=OWNER,
            repo=REPO,
            timeout_seconds=0.01,
        )

        with pytest.raises(UpstreamFetchError, match="Timed out"):
            run_async(loader.load_open_issues())

        assert len(cache) == 0

    def test_records_metrics(self, cache, fake_client):
        registry = CollectorRegistry()
        loader = ReconciliationLoader(
            cache=cache,
            source=fake_client,
            owner=OWNER,
            repo=REPO,
            metrics=JournalMetrics(registry=registry),
        )

        run_async(loader.load_open_issues())
        fake_client.error = UpstreamFetchError("boom")
        with pytest.raises(UpstreamFetchError):
            run_async(loader.load_open_issues())

        assert registry.get_sample_value(
            "journal_reconciliations_total", {"result": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "journal_reconciliations_total", {"result": "failure"}
        ) == 1.0


class TestLoadIssueComments:
    def test_applies_comments(self, loader, cache, fake_client, recorder):
        issue = issue_from_wire(make_github_issue(1, comments=2))
        cache.add_or_update_issue(issue)
        fake_client.comments[1] = [make_github_comment(10), make_github_comment(11)]

        comments = run_async(loader.load_issue_comments(issue))

        assert [c.id for c in comments] == [10, 11]
        assert [c.id for c in cache.get_comments(1)] == [10, 11]
        assert all(c.namespace == "garden-dev" for c in comments)
        assert [e.type for e in recorder.of(EventCategory.COMMENT)] == [
            ChangeType.ADDED,
            ChangeType.ADDED,
        ]

    def test_issue_evicted_during_fetch_keeps_no_comments(
        self, loader, cache, fake_client, recorder
    ):
        issue = cache.add_or_update_issue(issue_from_wire(make_github_issue(1, comments=2)))
        fake_client.comments[1] = [make_github_comment(10), make_github_comment(11)]
        fake_client.delay = 0.05

        async def close_while_loading():
            load = asyncio.create_task(loader.load_issue_comments(issue))
            await asyncio.sleep(0)
            cache.remove_issue(issue)
            return await load

        assert run_async(close_while_loading()) == []
        assert cache.get_comments(1) == []
        assert recorder.of(EventCategory.COMMENT) == []

    def test_failure_propagates(self, loader, fake_client):
        fake_client.error = UpstreamFetchError("down")
        issue = issue_from_wire(make_github_issue(1, comments=2))
        with pytest.raises(UpstreamFetchError):
            run_async(loader.load_issue_comments(issue))


class TestListIssues:
    def test_caches_matching_issues(self, loader, cache, fake_client):
        fake_client.issues = [
            make_github_issue(1),
            make_github_issue(2, namespace="garden-prod", name="beta"),
        ]

        issues = run_async(loader.list_issues("garden-dev", "alpha"))

        assert [i.number for i in issues] == [1]
        assert cache.get_issue_numbers("garden-dev", "alpha") == [1]
        assert cache.get_issue(2) is None
        assert fake_client.search_calls[-1]["namespace"] == "garden-dev"
        assert fake_client.search_calls[-1]["name"] == "alpha"
