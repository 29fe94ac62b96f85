from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from commentscope.urls import (
    InvalidIssueRefError,
    detect_repo_from_git,
    extract_comment_id,
    parse_issue_ref,
    parse_remote_url,
    parse_repo,
    require_issue_ref,
)


def test_parse_issue_url():
    ref = parse_issue_ref("https://github.com/owner/repo/issues/123")
    assert (ref.owner, ref.repo, ref.number, ref.type, ref.comment_id) == ("owner", "repo", 123, "issue", None)


def test_parse_pull_url_with_comment_anchor():
    ref = parse_issue_ref("https://github.com/owner/repo/pull/456#issuecomment-789")
    assert ref.type == "pr"
    assert ref.number == 456
    assert ref.comment_id == 789
    assert ref.url == "https://github.com/owner/repo/pull/456#issuecomment-789"


def test_parse_short_reference():
    ref = parse_issue_ref("owner/repo#12")
    assert ref.full_name == "owner/repo"
    assert ref.number == 12


@pytest.mark.parametrize("text", ["#5", "5"])
def test_parse_number_with_default_repo(text):
    ref = parse_issue_ref(text, default_repo="owner/repo")
    assert (ref.owner, ref.repo, ref.number) == ("owner", "repo", 5)


def test_parse_number_without_default_repo():
    assert parse_issue_ref("5") is None


def test_require_issue_ref_rejects_garbage():
    with pytest.raises(InvalidIssueRefError, match="Invalid input"):
        require_issue_ref("not a reference")


def test_parse_repo():
    assert parse_repo("owner/repo") == ("owner", "repo")
    assert parse_repo("owner") is None


def test_extract_comment_id():
    assert extract_comment_id("https://github.com/o/r/issues/1#issuecomment-42") == 42
    assert extract_comment_id(" 17 ") == 17
    assert extract_comment_id("abc") is None


@pytest.mark.parametrize(
    "remote",
    [
        "git@github.com:owner/repo.git",
        "https://github.com/owner/repo.git",
        "https://github.com/owner/repo",
    ],
)
def test_parse_remote_url(remote):
    assert parse_remote_url(remote + "\n") == "owner/repo"


def test_parse_remote_url_other_host():
    assert parse_remote_url("git@gitlab.com:owner/repo.git") is None


def test_detect_repo_from_git():
    completed = MagicMock(returncode=0, stdout="git@github.com:owner/repo.git\n")
    with patch("commentscope.urls.subprocess.run", return_value=completed):
        assert detect_repo_from_git() == "owner/repo"


def test_detect_repo_from_git_outside_checkout():
    completed = MagicMock(returncode=128, stdout="")
    with patch("commentscope.urls.subprocess.run", return_value=completed):
        assert detect_repo_from_git() is None
