"""Tests for JournalSettings loading and validation."""

import pytest
from pydantic import ValidationError

from src.journals.config import JournalSettings, get_settings


@pytest.fixture
def required_env(monkeypatch):
    monkeypatch.setenv("JOURNALS_GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("JOURNALS_GITHUB_OWNER", "gardener")
    monkeypatch.setenv("JOURNALS_GITHUB_REPO", "journal-dev")
    monkeypatch.delenv("JOURNALS_GITHUB_WEBHOOK_SECRET", raising=False)


class TestJournalSettings:
    def test_defaults(self, required_env):
        settings = get_settings()

        assert settings.github_token == "ghp_test"
        assert settings.github_owner == "gardener"
        assert settings.github_repo == "journal-dev"
        assert settings.github_webhook_secret is None
        assert settings.github_base_url == "https://api.github.com"
        assert settings.search_page_size == 100
        assert settings.reconcile_timeout_seconds == 30.0
        assert settings.port == 8080

    def test_reads_prefixed_environment(self, required_env, monkeypatch):
        monkeypatch.setenv("JOURNALS_GITHUB_WEBHOOK_SECRET", "s3cret")
        monkeypatch.setenv("JOURNALS_BACKFILL_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("JOURNALS_GITHUB_BASE_URL", "https://github.example.com/api/v3")

        settings = get_settings()

        assert settings.github_webhook_secret == "s3cret"
        assert settings.backfill_timeout_seconds == 2.5
        assert settings.github_base_url == "https://github.example.com/api/v3"

    def test_blank_secret_is_unset(self, required_env, monkeypatch):
        monkeypatch.setenv("JOURNALS_GITHUB_WEBHOOK_SECRET", "   ")
        assert get_settings().github_webhook_secret is None

    def test_missing_token_fails(self, required_env, monkeypatch):
        monkeypatch.delenv("JOURNALS_GITHUB_TOKEN")
        with pytest.raises(ValidationError):
            get_settings()

    def test_empty_repo_fails(self, required_env, monkeypatch):
        monkeypatch.setenv("JOURNALS_GITHUB_REPO", " ")
        with pytest.raises(ValidationError):
            get_settings()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("search_page_size", 0),
            ("search_page_size", 101),
            ("reconcile_timeout_seconds", 0),
            ("backfill_timeout_seconds", -1),
            ("port", 70000),
            ("github_base_url", "api.github.com"),
        ],
    )
    def test_invalid_values(self, required_env, field, value):
        with pytest.raises(ValidationError):
            JournalSettings(**{field: value})
