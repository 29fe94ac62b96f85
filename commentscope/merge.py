"""
Merge, dedup and filtering of comment lists.

The same CommentFilter is applied to the final list whatever strategy
produced it, so --author/--no-bots/--min-reactions/--since behave the
same on fresh and cached data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .models import CommentRecord


@dataclass
class ReconcileResult:
    to_persist: list[CommentRecord] = field(default_factory=list)
    final: list[CommentRecord] = field(default_factory=list)


def reconcile(
    newly_fetched: Iterable[CommentRecord],
    already_cached: Iterable[CommentRecord],
) -> ReconcileResult:
    """
    Keep only fetched comments whose id isn't cached yet.

    GitHub's `since` filter is on updated_at, so edited old comments come
    back in incremental fetches. Returns the new records and the combined
    list (cached first, then new), each id appearing once.
    """
    cached = list(already_cached)
    seen = {record.id for record in cached}
    to_persist = []
    for record in newly_fetched:
        if record.id in seen:
            continue
        seen.add(record.id)
        to_persist.append(record)
    return ReconcileResult(to_persist=to_persist, final=cached + to_persist)


@dataclass
class CommentFilter:
    since_id: int | None = None
    min_reactions: int | None = None
    author: str | None = None
    exclude_bots: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.since_id is None
            and self.min_reactions is None
            and not self.author
            and not self.exclude_bots
        )

    def matches(self, record: CommentRecord) -> bool:
        if self.since_id is not None and record.id <= self.since_id:
            return False
        if self.min_reactions is not None and record.reaction_count < self.min_reactions:
            return False
        if self.author and record.author.lower() != self.author.lower():
            return False
        if self.exclude_bots and record.is_bot:
            return False
        return True


def apply_filters(records: Iterable[CommentRecord], comment_filter: CommentFilter | None) -> list[CommentRecord]:
    if comment_filter is None or comment_filter.is_empty:
        return list(records)
    return [record for record in records if comment_filter.matches(record)]


def slice_comments(
    records: list[CommentRecord],
    first: int | None = None,
    last: int | None = None,
) -> list[CommentRecord]:
    """Apply --first / --last. --first wins when both are given."""
    if first and first < len(records):
        return records[:first]
    if last and last < len(records):
        return records[-last:]
    return records
