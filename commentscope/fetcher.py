"""
Paginated comment fetching.

Walks pages sequentially from page 1 until a short page comes back.
Nothing is pipelined: each page goes through the client's rate-limit
wrapper before the next one is requested.
"""

from __future__ import annotations

from typing import Any, Iterator, Protocol

from .github import DEFAULT_PER_PAGE
from .logs import LogConfig


class CommentSource(Protocol):
    def list_issue_comments(
        self,
        owner: str,
        repo: str,
        number: int,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        since: str | None = None,
    ) -> list[dict[str, Any]]:
        ...


def truncate_after_id(items: list[dict[str, Any]], since_id: int | None) -> list[dict[str, Any]]:
    """
    Drop everything up to and including the comment with since_id.

    Pages that don't contain since_id come back unchanged.
    """
    if since_id is None:
        return items
    for index, item in enumerate(items):
        if item.get("id") == since_id:
            return items[index + 1:]
    return items


class CommentFetcher:
    """Fetches every comment page of an issue."""

    def __init__(
        self,
        client: CommentSource,
        log_config: LogConfig | None = None,
        page_size: int = DEFAULT_PER_PAGE,
    ):
        self.client = client
        self.page_size = page_size
        self.log = (log_config or LogConfig()).get_logger("fetcher")

    def iter_pages(
        self,
        owner: str,
        repo: str,
        number: int,
        since_timestamp: str | None = None,
        since_id: int | None = None,
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Yield one list of raw comments per API page.

        Args:
            since_timestamp: Passed to the API as `since` (server-side filter)
            since_id: Applied client-side with truncate_after_id
        """
        page = 1
        while True:
            items = self.client.list_issue_comments(
                owner,
                repo,
                number,
                page=page,
                per_page=self.page_size,
                since=since_timestamp,
            )
            self.log.debug(f"Page {page}: {len(items)} comments")
            yield truncate_after_id(items, since_id)

            if len(items) < self.page_size:
                break
            page += 1

    def fetch_all(
        self,
        owner: str,
        repo: str,
        number: int,
        since_timestamp: str | None = None,
        since_id: int | None = None,
    ) -> list[dict[str, Any]]:
        """All comments across pages. Errors abort the whole fetch."""
        comments: list[dict[str, Any]] = []
        for page in self.iter_pages(owner, repo, number, since_timestamp, since_id):
            comments.extend(page)
        return comments
