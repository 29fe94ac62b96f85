"""
Output rendering for Commentscope.

Formats:
- json: the result as indented JSON
- md:   every comment as markdown (Jinja2 template)
- ai:   compact summary with an index and statistics (Jinja2 template)
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, PackageLoader

from .models import REACTION_KINDS, CommentRecord
from .store import utc_now
from .sync import CommentsResult


OUTPUT_FORMATS = ("ai", "md", "json")
COMMENTS_PER_INDEX_GROUP = 10
# Rough line estimates used by the index table
HEADER_LINES = 8
AVG_LINES_PER_COMMENT = 8

REACTION_EMOJI = {
    "+1": "👍",
    "-1": "👎",
    "laugh": "😄",
    "hooray": "🎉",
    "confused": "😕",
    "heart": "❤️",
    "rocket": "🚀",
    "eyes": "👀",
}


@dataclass
class AuthorCount:
    author: str
    count: int


@dataclass
class CommentStats:
    total: int
    shown: int
    unique_authors: int
    author_breakdown: list[AuthorCount] = field(default_factory=list)
    total_reactions: int = 0
    reaction_breakdown: dict[str, int] = field(default_factory=dict)
    bot_comments: int = 0
    date_start: str = ""
    date_end: str = ""


@dataclass
class IndexEntry:
    section: str
    lines: str
    date_range: str | None = None


def _parse_date(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: str) -> str:
    """'2024-01-02T03:04:05Z' -> '2024-01-02 03:04'."""
    parsed = _parse_date(value)
    return parsed.strftime("%Y-%m-%d %H:%M") if parsed else "-"


def format_date_short(value: str) -> str:
    parsed = _parse_date(value)
    return parsed.strftime("%d.%m.%Y %H:%M") if parsed else "-"


def format_reactions(reactions: dict[str, int]) -> str:
    parts = [
        f"{REACTION_EMOJI[kind]} {reactions[kind]}"
        for kind in REACTION_KINDS
        if reactions.get(kind, 0) > 0
    ]
    return " · ".join(parts)


def calculate_stats(comments: list[CommentRecord], total_in_cache: int = 0) -> CommentStats:
    """Author, reaction and bot statistics for the shown comments."""
    authors = Counter(comment.author for comment in comments)
    reactions: Counter[str] = Counter()
    total_reactions = 0
    for comment in comments:
        total_reactions += comment.reaction_count
        for kind in REACTION_KINDS:
            reactions[kind] += comment.reactions.get(kind, 0)

    return CommentStats(
        total=total_in_cache or len(comments),
        shown=len(comments),
        unique_authors=len(authors),
        author_breakdown=[AuthorCount(author, count) for author, count in authors.most_common()],
        total_reactions=total_reactions,
        reaction_breakdown={kind: count for kind, count in reactions.items() if count},
        bot_comments=sum(1 for comment in comments if comment.is_bot),
        date_start=comments[0].created_at if comments else "",
        date_end=comments[-1].created_at if comments else "",
    )


def build_index(comments: list[CommentRecord]) -> list[IndexEntry]:
    """Approximate line ranges for comment groups, so readers can jump around large threads."""
    index: list[IndexEntry] = []
    start_line = HEADER_LINES
    grouped = len(comments) > COMMENTS_PER_INDEX_GROUP

    for i in range(0, len(comments), COMMENTS_PER_INDEX_GROUP):
        group = comments[i:i + COMMENTS_PER_INDEX_GROUP]
        group_start = start_line + i * AVG_LINES_PER_COMMENT
        group_end = group_start + len(group) * AVG_LINES_PER_COMMENT
        label = f"Comments {i + 1}-{i + len(group)}" if grouped else "Comments"
        index.append(IndexEntry(
            section=label,
            lines=f"{group_start}-{group_end}",
            date_range=f"{format_date_short(group[0].created_at)} → {format_date_short(group[-1].created_at)}",
        ))

    if comments:
        index.append(IndexEntry(section="Statistics", lines="end"))
    return index


def get_template_env() -> Environment:
    """Get Jinja2 environment with template loaders."""
    # Try package loader first, fall back to file loader
    try:
        env = Environment(
            loader=PackageLoader("commentscope", "templates"),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    except ValueError:
        template_dir = Path(__file__).parent / "templates"
        env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    env.filters["date"] = format_date
    env.filters["date_short"] = format_date_short
    env.filters["reactions"] = format_reactions
    return env


def build_output_data(result: CommentsResult, fetched_at: str | None = None) -> dict[str, Any]:
    """Plain-data view of a result, shared by every format."""
    issue = result.issue
    path = "pull" if issue.type == "pr" else "issues"
    metadata = result.metadata
    return {
        "owner": result.repo.owner,
        "repo": result.repo.name,
        "number": issue.number,
        "title": issue.title,
        "url": f"https://github.com/{result.repo.full_name}/{path}/{issue.number}",
        "strategy": result.strategy.value,
        "comments": [comment.to_dict() for comment in result.comments],
        "stats": asdict(calculate_stats(result.comments, result.total_comments)),
        "fetched_at": fetched_at or utc_now(),
        "cache_cursor": metadata.last_comment_date if metadata else None,
        "since_id": result.since_id,
    }


def format_comments(
    result: CommentsResult,
    fmt: str = "ai",
    no_index: bool = False,
    fetched_at: str | None = None,
) -> str:
    """Render a sync result in one of OUTPUT_FORMATS."""
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"Unknown output format: {fmt} (expected one of {', '.join(OUTPUT_FORMATS)})")

    data = build_output_data(result, fetched_at)
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False)

    template_name = "summary.md.j2" if fmt == "ai" else "comments.md.j2"
    template = get_template_env().get_template(template_name)
    return template.render(
        data=data,
        comments=result.comments,
        stats=calculate_stats(result.comments, result.total_comments),
        index=[] if no_index else build_index(result.comments),
    ).rstrip() + "\n"
