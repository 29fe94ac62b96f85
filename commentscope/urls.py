"""
GitHub issue reference parsing.

Supported formats:
- https://github.com/owner/repo/issues/123
- https://github.com/owner/repo/pull/456
- https://github.com/owner/repo/issues/123#issuecomment-789
- owner/repo#123
- #123 or 123 (needs a default repo)
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path


_URL_RE = re.compile(
    r"github\.com/([^/\s]+)/([^/\s]+)/(issues|pull)/(\d+)(?:[^#\s]*#issuecomment-(\d+))?"
)
_SHORT_RE = re.compile(r"^([^/\s]+)/([^#\s]+)#(\d+)$")
_NUMBER_RE = re.compile(r"^#?(\d+)$")
_COMMENT_ANCHOR_RE = re.compile(r"#issuecomment-(\d+)")
_REPO_RE = re.compile(r"^([^/\s]+)/([^/\s]+)$")
_SSH_REMOTE_RE = re.compile(r"git@github\.com:([^/]+)/(.+?)(?:\.git)?$")
_HTTPS_REMOTE_RE = re.compile(r"github\.com/([^/]+)/(.+?)(?:\.git)?/?$")


class InvalidIssueRefError(ValueError):
    """Input isn't a recognizable GitHub issue or PR reference."""


@dataclass
class IssueRef:
    owner: str
    repo: str
    number: int
    type: str = "issue"  # issue, pr
    comment_id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        path = "pull" if self.type == "pr" else "issues"
        url = f"https://github.com/{self.owner}/{self.repo}/{path}/{self.number}"
        if self.comment_id:
            url += f"#issuecomment-{self.comment_id}"
        return url


def parse_repo(text: str) -> tuple[str, str] | None:
    """Split 'owner/repo'."""
    match = _REPO_RE.match(text.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def parse_issue_ref(text: str, default_repo: str | None = None) -> IssueRef | None:
    """Parse a URL or short reference. Returns None if nothing matches."""
    text = text.strip()

    match = _URL_RE.search(text)
    if match:
        owner, repo, kind, number, comment_id = match.groups()
        return IssueRef(
            owner=owner,
            repo=repo,
            number=int(number),
            type="pr" if kind == "pull" else "issue",
            comment_id=int(comment_id) if comment_id else None,
        )

    match = _SHORT_RE.match(text)
    if match:
        owner, repo, number = match.groups()
        return IssueRef(owner=owner, repo=repo, number=int(number))

    match = _NUMBER_RE.match(text)
    if match and default_repo:
        parsed = parse_repo(default_repo)
        if parsed:
            return IssueRef(owner=parsed[0], repo=parsed[1], number=int(match.group(1)))

    return None


def require_issue_ref(text: str, default_repo: str | None = None) -> IssueRef:
    ref = parse_issue_ref(text, default_repo)
    if ref is None:
        raise InvalidIssueRefError(
            f"Invalid input: {text!r}. Provide a GitHub issue/PR URL, owner/repo#N, or #N with --repo."
        )
    return ref


def extract_comment_id(text: str) -> int | None:
    """Comment id from a '#issuecomment-N' URL or a bare number."""
    match = _COMMENT_ANCHOR_RE.search(text)
    if match:
        return int(match.group(1))
    if text.strip().isdigit():
        return int(text.strip())
    return None


def parse_remote_url(url: str) -> str | None:
    """'owner/repo' from an ssh or https GitHub remote URL."""
    url = url.strip()
    for pattern in (_SSH_REMOTE_RE, _HTTPS_REMOTE_RE):
        match = pattern.search(url)
        if match:
            return f"{match.group(1)}/{match.group(2)}"
    return None


def detect_repo_from_git(cwd: Path | None = None) -> str | None:
    """Read 'owner/repo' from the origin remote of the git checkout at cwd."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return parse_remote_url(result.stdout)
