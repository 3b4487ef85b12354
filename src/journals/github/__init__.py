"""GitHub API access for the journal.

This module provides the upstream side of the journal:
- Wire models for GitHub issues and comments
- An async client that searches open issues and lists issue comments,
  with pagination, rate limiting and retry logic
"""

from src.journals.github.client import (
    GitHubClient,
    RateLimitError,
    UpstreamFetchError,
    build_search_query,
)
from src.journals.github.models import WireComment, WireIssue, WireLabel, WireUser

__all__ = [
    "GitHubClient",
    "RateLimitError",
    "UpstreamFetchError",
    "WireComment",
    "WireIssue",
    "WireLabel",
    "WireUser",
    "build_search_query",
]
