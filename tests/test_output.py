from __future__ import annotations

import json

import pytest

from commentscope.models import CommentRecord, FetchMetadata, IssueRecord, RepoRecord
from commentscope.output import build_index, calculate_stats, format_comments, format_date, format_reactions
from commentscope.strategy import FetchStrategy
from commentscope.sync import CommentsResult


FETCHED_AT = "2024-02-01T12:00:00Z"


def _comment(comment_id: int, author: str = "alice", reply_to: int | None = None,
             is_bot: bool = False, thumbs: int = 0) -> CommentRecord:
    record = CommentRecord(
        id=comment_id,
        author=author,
        body=f"Body of comment {comment_id}",
        created_at=f"2024-01-0{comment_id}T10:00:00Z",
        updated_at=f"2024-01-0{comment_id}T10:00:00Z",
        is_bot=is_bot,
        reply_to=reply_to,
        html_url=f"https://github.com/owner/repo/issues/7#issuecomment-{comment_id}",
    )
    record.reactions["+1"] = thumbs
    record.reactions["total_count"] = thumbs
    return record


@pytest.fixture
def result() -> CommentsResult:
    comments = [
        _comment(1, thumbs=2),
        _comment(2, author="bob", reply_to=1),
        _comment(3, author="ci[bot]", is_bot=True),
    ]
    return CommentsResult(
        repo=RepoRecord(id=1, owner="owner", name="repo"),
        issue=IssueRecord(
            id=1, repo_id=1, number=7, type="issue", title="#7", body="", state="unknown",
            author="unknown", created_at=None, updated_at=None, closed_at=None, last_fetched=None,
        ),
        strategy=FetchStrategy.FULL,
        comments=comments,
        fetched_new=3,
        total_comments=3,
        metadata=FetchMetadata(issue_id=1, total_comments=3, last_comment_date="2024-01-03T10:00:00Z"),
    )


def test_format_date():
    assert format_date("2024-01-02T03:04:05Z") == "2024-01-02 03:04"
    assert format_date("") == "-"
    assert format_date("garbage") == "-"


def test_format_reactions_skips_zero_counts():
    assert format_reactions({"+1": 2, "heart": 1, "eyes": 0}) == "👍 2 · ❤️ 1"
    assert format_reactions({}) == ""


def test_calculate_stats(result):
    stats = calculate_stats(result.comments, total_in_cache=10)

    assert stats.total == 10
    assert stats.shown == 3
    assert stats.unique_authors == 3
    assert stats.total_reactions == 2
    assert stats.reaction_breakdown == {"+1": 2}
    assert stats.bot_comments == 1
    assert stats.date_start == "2024-01-01T10:00:00Z"
    assert stats.date_end == "2024-01-03T10:00:00Z"


def test_build_index_groups_large_threads():
    comments = [_comment(1 + i % 9) for i in range(25)]
    sections = [entry.section for entry in build_index(comments)]
    assert sections == ["Comments 1-10", "Comments 11-20", "Comments 21-25", "Statistics"]
    assert build_index([]) == []


def test_json_output(result):
    data = json.loads(format_comments(result, "json", fetched_at=FETCHED_AT))

    assert data["owner"] == "owner"
    assert data["repo"] == "repo"
    assert data["number"] == 7
    assert data["url"] == "https://github.com/owner/repo/issues/7"
    assert data["strategy"] == "full"
    assert data["fetched_at"] == FETCHED_AT
    assert data["cache_cursor"] == "2024-01-03T10:00:00Z"
    assert [c["id"] for c in data["comments"]] == [1, 2, 3]
    assert data["comments"][1]["reply_to"] == 1
    assert "issue_id" not in data["comments"][0]
    assert data["stats"]["bot_comments"] == 1


def test_markdown_output(result):
    text = format_comments(result, "md", fetched_at=FETCHED_AT)

    assert text.startswith("# Comments for #7: #7")
    assert "## Index" in text
    assert "## Comments (3 total, showing 3)" in text
    assert "### Comment 1 — @alice" in text
    assert "### Comment 3 — @ci[bot] (bot)" in text
    assert "[replying to comment #1]" in text
    assert "👍 2" in text
    assert "Body of comment 2" in text
    assert "| Bot Comments | 1 |" in text


def test_ai_output(result):
    text = format_comments(result, "ai", fetched_at=FETCHED_AT)

    assert "**Repo:** owner/repo" in text
    assert "**Source:** full" in text
    assert "## Statistics" in text
    assert "| Total Comments | 3 |" in text
    assert "↳ reply to 1" in text
    assert "Body of comment 3" in text


def test_no_index(result):
    assert "## Index" not in format_comments(result, "md", no_index=True)
    assert "## Index" not in format_comments(result, "ai", no_index=True)


def test_empty_result_renders(result):
    result.comments = []
    result.total_comments = 0
    assert "_No comments._" in format_comments(result, "md")


def test_unknown_format_raises(result):
    with pytest.raises(ValueError, match="Unknown output format"):
        format_comments(result, "xml")
