from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from loguru import logger

from commentscope.github import GitHubAPIError
from commentscope.store import Store


BASE_TIME = datetime(2023, 12, 1, tzinfo=timezone.utc)


def _timestamp(comment_id: int) -> str:
    return (BASE_TIME + timedelta(minutes=comment_id)).strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture
def make_comment():
    """Factory for raw API comment dicts."""
    def _make(
        comment_id: int,
        author: str | None = "alice",
        body: str | None = None,
        user_type: str = "User",
        reactions: dict[str, int] | None = None,
        created_at: str | None = None,
    ) -> dict[str, Any]:
        created = created_at or _timestamp(comment_id)
        item: dict[str, Any] = {
            "id": comment_id,
            "node_id": f"IC_{comment_id}",
            "body": body if body is not None else f"Comment number {comment_id}",
            "user": {"login": author, "type": user_type} if author is not None else None,
            "created_at": created,
            "updated_at": created,
            "html_url": f"https://github.com/owner/repo/issues/1#issuecomment-{comment_id}",
        }
        if reactions is not None:
            item["reactions"] = reactions
        return item

    return _make


class FakeCommentSource:
    """Serves canned pages the way GitHubClient.list_issue_comments does."""

    def __init__(self, pages: list[list[dict[str, Any]]], fail_on_page: int | None = None):
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.calls: list[dict[str, Any]] = []

    def list_issue_comments(self, owner, repo, number, page=1, per_page=100, since=None):
        self.calls.append({
            "owner": owner, "repo": repo, "number": number,
            "page": page, "per_page": per_page, "since": since,
        })
        if self.fail_on_page == page:
            raise GitHubAPIError("GitHub API error: 500 - boom", 500)
        if page - 1 < len(self.pages):
            return list(self.pages[page - 1])
        return []


@pytest.fixture
def fake_source():
    return FakeCommentSource


@pytest.fixture
def store(tmp_path):
    return Store(db_path=tmp_path / "cache.db")


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    # CLI tests install sinks on CliRunner's temporary stderr
    logger.remove()
