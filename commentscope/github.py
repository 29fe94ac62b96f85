"""
GitHub REST API client for Commentscope.

Fetches issue/PR comments page by page.
Uses GITHUB_TOKEN environment variable for authentication.

Supports:
- Server-side "since" filtering
- Rate limit handling (403/429 with Retry-After / X-RateLimit-Reset)
"""

from __future__ import annotations

import os
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

import requests

from . import __version__
from .logs import LogConfig


GITHUB_API_BASE = "https://api.github.com"
DEFAULT_PER_PAGE = 100
MAX_RETRIES = 3
RETRY_DELAY = 1.0
RETRYABLE_STATUS = frozenset({403, 429})

T = TypeVar("T")


class GitHubAPIError(Exception):
    """Error from GitHub API."""
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.headers = dict(headers or {})


class RateLimitError(GitHubAPIError):
    """Rate limit still exceeded after every retry."""
    def __init__(self, label: str, attempts: int, last_error: GitHubAPIError):
        super().__init__(
            f"GitHub API rate limit exceeded for {label} after {attempts} attempts",
            last_error.status_code,
            last_error.headers,
        )
        self.attempts = attempts


@dataclass
class RetryPolicy:
    """Backoff settings for rate-limited calls."""
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    jitter: float = 0.0


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def retry_delay(
    headers: Mapping[str, str],
    attempt: int,
    policy: RetryPolicy,
    now: float | None = None,
) -> float:
    """
    Seconds to wait before retry number `attempt` (1-based).

    Retry-After wins, then X-RateLimit-Reset, then exponential backoff.
    Everything is capped at policy.max_delay.
    """
    retry_after = _header(headers, "Retry-After")
    if retry_after is not None:
        try:
            return min(max(float(retry_after), 0.0), policy.max_delay)
        except ValueError:
            pass

    reset = _header(headers, "X-RateLimit-Reset")
    if reset is not None and reset.isdigit():
        current = time.time() if now is None else now
        wait = int(reset) - current + 1
        if wait > 0:
            return min(wait, policy.max_delay)

    delay = policy.base_delay * (2 ** (attempt - 1))
    if policy.jitter:
        delay += random.uniform(0, policy.jitter)
    return min(delay, policy.max_delay)


def with_retry(
    fn: Callable[[], T],
    label: str,
    policy: RetryPolicy | None = None,
    log_config: LogConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn, retrying on HTTP 403/429.

    Any other GitHubAPIError propagates on the first failure. Running out of
    attempts raises RateLimitError.
    """
    policy = policy or RetryPolicy()
    log = (log_config or LogConfig()).get_logger("github")

    attempt = 1
    while True:
        log.debug(f"{label} (attempt {attempt})")
        try:
            return fn()
        except GitHubAPIError as e:
            if e.status_code not in RETRYABLE_STATUS:
                raise
            if attempt >= policy.max_attempts:
                raise RateLimitError(label, attempt, e) from e
            delay = retry_delay(e.headers, attempt, policy)
            log.warning(f"Rate limited on {label} (HTTP {e.status_code}), retrying in {delay:.1f}s")
            sleep(delay)
            attempt += 1


class GitHubClient:
    """GitHub REST API client for issue comments."""

    def __init__(
        self,
        token: str | None = None,
        api_base: str = GITHUB_API_BASE,
        timeout: float = 30.0,
        retry: RetryPolicy | None = None,
        log_config: LogConfig | None = None,
    ):
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.log_config = log_config or LogConfig()
        self.log = self.log_config.get_logger("github")
        self.session = requests.Session()

        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"

        self.session.headers["Accept"] = "application/vnd.github+json"
        self.session.headers["User-Agent"] = f"commentscope/{__version__}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Make one API request; connection failures are retried, HTTP errors are raised."""
        url = f"{self.api_base}{endpoint}"

        for attempt in range(MAX_RETRIES):
            try:
                response = self.session.request(
                    method, url, params=params, timeout=self.timeout, **kwargs
                )
            except requests.RequestException as e:
                if attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                raise GitHubAPIError(f"Request failed: {e}") from e

            if response.status_code >= 400:
                raise GitHubAPIError(
                    f"GitHub API error: {response.status_code} - {response.text}",
                    response.status_code,
                    response.headers,
                )
            return response

        raise GitHubAPIError("Max retries exceeded")

    def list_issue_comments(
        self,
        owner: str,
        repo: str,
        number: int,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Get one page of comments on an issue or PR.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Issue or PR number
            page: 1-based page index
            per_page: Page size (GitHub max 100)
            since: ISO 8601 timestamp; only comments updated at or after it

        Returns:
            Raw comment dicts as returned by the API
        """
        endpoint = f"/repos/{owner}/{repo}/issues/{number}/comments"
        params: dict[str, Any] = {"per_page": per_page, "page": page}
        if since:
            params["since"] = since

        response = with_retry(
            lambda: self._request("GET", endpoint, params=params),
            label=f"GET {endpoint} (page {page})",
            policy=self.retry,
            log_config=self.log_config,
        )
        try:
            items = response.json()
        except ValueError as e:
            raise GitHubAPIError(f"Invalid JSON in response for {endpoint}: {e}", response.status_code) from e
        if not isinstance(items, list):
            raise GitHubAPIError(f"Unexpected response for {endpoint}: expected a list")
        return items

    def check_rate_limit(self) -> dict[str, Any]:
        """Check current rate limit status."""
        response = self._request("GET", "/rate_limit")
        return response.json()
