"""Journal service configuration using pydantic-settings.

This module defines the JournalSettings class that reads configuration
from environment variables with the JOURNALS_ prefix.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JournalSettings(BaseSettings):
    """Journal service configuration from environment variables.

    All environment variables are prefixed with JOURNALS_ (e.g.,
    JOURNALS_GITHUB_TOKEN).

    Required fields (must be set via environment variables):
    - github_token: GitHub API token for searching issues and comments
    - github_owner / github_repo: The journal repository

    The webhook secret is optional at startup. Without it every webhook
    delivery is refused as a configuration error, while reconciliation
    keeps working.
    """

    model_config = SettingsConfigDict(
        env_prefix="JOURNALS_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Secret for validating GitHub webhook signatures
    github_webhook_secret: Optional[str] = None

    # GitHub API token for the search and comments endpoints
    github_token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Repository holding the journal issues
    github_owner: str
    github_repo: str

    # Items per page for search and comment listing (GitHub maximum is 100)
    search_page_size: int = 100

    # -------------------------------------------------------------------------
    # Reconciliation Configuration
    # -------------------------------------------------------------------------
    # Deadline for the open issue search during reconciliation
    reconcile_timeout_seconds: float = 30.0

    # Deadline for the comment backfill of a reopened issue
    backfill_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_webhook_secret")
    @classmethod
    def blank_secret_is_unset(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty webhook secret as not configured."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("github_token", "github_owner", "github_repo")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("github_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that the GitHub API URL is a valid URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v

    @field_validator("search_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("search_page_size must be between 1 and 100")
        return v

    @field_validator("reconcile_timeout_seconds", "backfill_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


def get_settings() -> JournalSettings:
    """Create and return a JournalSettings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return JournalSettings()
