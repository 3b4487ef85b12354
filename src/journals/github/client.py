"""GitHub API client for the journal reconciliation.

This module provides an async wrapper around the GitHub API for:
- Searching the open issues of a repository (optionally narrowed to a
  managed resource tag in the title)
- Listing the comments of an issue

Both operations follow GitHub's page links by page number and concatenate
the pages into one result list. Includes rate limiting and retry logic for
API resilience.
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from src.journals.github.models import WireComment, WireIssue


logger = logging.getLogger(__name__)


# GitHub caps per_page at 100 for both endpoints used here
MAX_PAGE_SIZE = 100


class UpstreamFetchError(Exception):
    """Raised when fetching from the GitHub API fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(UpstreamFetchError):
    """Raised when GitHub refuses a request because the quota is used up.

    Rate-limited requests are not retried. The reconciliation or backfill
    that issued them fails and can be repeated once the quota resets.
    """


def build_search_query(
    owner: str,
    repo: str,
    state: Optional[str] = "open",
    namespace: Optional[str] = None,
    name: Optional[str] = None,
) -> str:
    """Build the issue search query for a repository.

    Args:
        owner: Repository owner.
        repo: Repository name.
        state: Issue state filter, or None for all states.
        namespace: Namespace of a managed resource to narrow to.
        name: Name of a managed resource to narrow to.

    Returns:
        The ``q`` parameter for ``GET /search/issues``.
    """
    terms = [f"repo:{owner}/{repo}"]
    if state:
        terms.append(f"state:{state}")
    if namespace and name:
        terms.append(f"[{namespace}/{name}] in:title")
    return " ".join(terms)


class GitHubClient:
    """Async GitHub API client with rate limiting and retry logic.

    This client implements:

    - Automatic retry with exponential backoff for transient failures
    - Rate limit detection (403 with an exhausted quota, or 429)
    - Support for both github.com and GitHub Enterprise Server
    - Page-number pagination concatenated into a single result

    Attributes:
        token: GitHub API token (PAT or GitHub App token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.
        page_size: Number of items requested per page.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     issues = await client.search_open_issues("gardener", "journal")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        page_size: int = MAX_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            page_size: Items per page, capped at 100.
            transport: Optional httpx transport (used by tests).
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "journals-cache/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _backoff(self, attempt: int) -> float:
        """Full-jitter exponential backoff for the given 0-indexed attempt."""
        return random.uniform(0, min(self.base_delay * (2 ** attempt), self.max_delay))

    def _raise_if_rate_limited(self, response: httpx.Response) -> None:
        """Raise RateLimitError for an exhausted primary or a secondary limit.

        GitHub reports an exhausted quota as 403 with
        ``x-ratelimit-remaining: 0`` and secondary limits as 429.
        """
        exhausted = (
            response.status_code == 403
            and response.headers.get("x-ratelimit-remaining") == "0"
        )
        if not exhausted and response.status_code != 429:
            return

        wait = response.headers.get("retry-after") or response.headers.get(
            "x-ratelimit-reset"
        )
        logger.warning(
            "GitHub API rate limit exceeded",
            extra={"status_code": response.status_code, "wait": wait},
        )
        message = "GitHub API rate limit exceeded"
        if response.headers.get("retry-after"):
            message += f", retry after {response.headers['retry-after']}s"
        raise RateLimitError(
            message=message,
            status_code=response.status_code,
            response_body=response.text,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, retrying transport errors and retryable statuses.

        Args:
            method: HTTP method.
            path: API path relative to the base URL.
            params: Optional query parameters.

        Returns:
            The first successful response.

        Raises:
            RateLimitError: If GitHub reports a rate limit.
            UpstreamFetchError: On any other error response, or when the
                                retries are used up.
        """
        failure = "no attempt made"
        for attempt in range(self.max_retries + 1):
            last_attempt = attempt == self.max_retries
            try:
                response = await self.client.request(method, path, params=params)
            except httpx.RequestError as e:
                failure = str(e) or type(e).__name__
            else:
                self._raise_if_rate_limited(response)
                if response.status_code < 400:
                    return response
                if response.status_code not in self.RETRYABLE_STATUS_CODES or last_attempt:
                    logger.error(
                        "GitHub API error %s for %s %s",
                        response.status_code,
                        method,
                        path,
                        extra={"response_body": response.text[:500]},
                    )
                    raise UpstreamFetchError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        response_body=response.text,
                        request_url=str(response.url),
                    )
                failure = f"status {response.status_code}"

            if last_attempt:
                break
            delay = self._backoff(attempt)
            logger.warning(
                "Retrying %s %s after %s (attempt %d of %d)",
                method,
                path,
                failure,
                attempt + 1,
                self.max_retries,
                extra={"delay": delay},
            )
            await asyncio.sleep(delay)

        raise UpstreamFetchError(
            message=f"Request failed after {self.max_retries} retries: {failure}",
            request_url=f"{self.base_url}{path}",
        )

    def _decode_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFetchError(
                message=f"Invalid JSON from GitHub API: {e}",
                status_code=response.status_code,
                request_url=str(response.url),
            ) from e

    async def search_issues(self, query: str) -> List[WireIssue]:
        """Run an issue search and return every page of results.

        Args:
            query: The GitHub search query.

        Returns:
            All matching issues, in the order GitHub returned them.
            Items that do not validate as issues are skipped.

        Raises:
            UpstreamFetchError: If any page fails to load.
        """
        issues: List[WireIssue] = []
        page = 1
        while True:
            response = await self._request(
                method="GET",
                path="/search/issues",
                params={"q": query, "per_page": self.page_size, "page": page},
            )
            data = self._decode_json(response)
            if not isinstance(data, dict):
                raise UpstreamFetchError(
                    message="Unexpected search response shape",
                    status_code=response.status_code,
                    request_url=str(response.url),
                )
            items = data.get("items") or []
            issues.extend(_parse_items(WireIssue, items))

            total_count = data.get("total_count")
            if len(items) < self.page_size:
                break
            if isinstance(total_count, int) and page * self.page_size >= total_count:
                break
            page += 1

        logger.info(
            "Issue search completed",
            extra={"query": query, "pages": page, "issue_count": len(issues)},
        )
        return issues

    async def search_open_issues(
        self,
        owner: str,
        repo: str,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[WireIssue]:
        """Search the open issues of a repository.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            namespace: Optional resource namespace to narrow the search.
            name: Optional resource name to narrow the search.

        Returns:
            All open issues matching the query.

        Raises:
            UpstreamFetchError: If the request fails.
        """
        query = build_search_query(owner, repo, namespace=namespace, name=name)
        return await self.search_issues(query)

    async def list_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[WireComment]:
        """List all comments of an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number whose comments to list.

        Returns:
            All comments of the issue, oldest first.

        Raises:
            UpstreamFetchError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        comments: List[WireComment] = []
        page = 1
        while True:
            response = await self._request(
                method="GET",
                path=path,
                params={"per_page": self.page_size, "page": page},
            )
            items = self._decode_json(response)
            if not isinstance(items, list):
                raise UpstreamFetchError(
                    message="Unexpected comments response shape",
                    status_code=response.status_code,
                    request_url=str(response.url),
                )
            comments.extend(_parse_items(WireComment, items))
            if len(items) < self.page_size:
                break
            page += 1

        logger.debug(
            "Fetched issue comments",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "comment_count": len(comments),
            },
        )
        return comments


def _parse_items(model: Any, items: List[Any]) -> List[Any]:
    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed %s from GitHub API: %s",
                model.__name__,
                e.error_count(),
                extra={"item_id": item.get("id") if isinstance(item, dict) else None},
            )
    return parsed
