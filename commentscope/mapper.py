"""
Maps raw GitHub comment payloads onto cached CommentRecords.

Bot detection and reply inference are heuristics: a miss leaves the
default (not a bot, no reply target) rather than failing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .logs import LogConfig
from .models import CommentRecord, RawComment
from .quotes import MAX_QUOTE_LINES, find_reply_target, first_quoted_line, process_quotes


KNOWN_BOTS = (
    "dependabot",
    "renovate",
    "github-actions",
    "vercel",
    "netlify",
    "codecov",
    "stale",
    "linear",
    "mergify",
    "semantic-release-bot",
    "greenkeeper",
    "snyk-bot",
)


@dataclass
class ReplyCandidate:
    """A comment that later comments may quote. Body is the unprocessed text."""
    id: int
    body: str


def is_bot(username: str, user_type: str | None = None, known_bots: Iterable[str] = KNOWN_BOTS) -> bool:
    """Best-effort bot check: API type flag, '[bot]' suffix, or a known bot name inside the login."""
    if user_type == "Bot":
        return True
    if username.endswith("[bot]"):
        return True
    lower_name = username.lower()
    return any(bot in lower_name for bot in known_bots)


class RecordMapper:
    """Converts raw comments to CommentRecords, resolving reply targets within a candidate pool."""

    def __init__(
        self,
        log_config: LogConfig | None = None,
        known_bots: Iterable[str] = KNOWN_BOTS,
        max_quote_lines: int = MAX_QUOTE_LINES,
    ):
        self.log = (log_config or LogConfig()).get_logger("mapper")
        self.known_bots = tuple(dict.fromkeys(bot.lower() for bot in known_bots))
        self.max_quote_lines = max_quote_lines

    def to_record(
        self,
        raw: RawComment | dict[str, Any],
        candidate_pool: Iterable[ReplyCandidate] = (),
    ) -> CommentRecord:
        """
        Convert one raw comment.

        Args:
            raw: API payload item (dict or parsed RawComment)
            candidate_pool: Comments this one may be replying to, oldest first.
                Callers decide its scope; map_batch passes the comments seen
                earlier in the same fetch.
        """
        comment = RawComment.from_api(raw)
        author = comment.author
        processed_body, _ = process_quotes(comment.body, self.max_quote_lines)

        reply_to = None
        quoted = first_quoted_line(comment.body)
        if quoted:
            reply_to = find_reply_target(quoted, candidate_pool)
            if reply_to is not None:
                self.log.debug(f"Comment {comment.id} looks like a reply to {reply_to}")

        return CommentRecord(
            id=comment.id,
            author=author,
            body=processed_body,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            is_bot=is_bot(author, comment.user_type, self.known_bots),
            reactions=comment.reactions.as_dict(),
            reply_to=reply_to,
            node_id=comment.node_id,
            html_url=comment.html_url,
        )

    def map_batch(
        self,
        raws: Iterable[RawComment | dict[str, Any]],
        candidate_pool: list[ReplyCandidate] | None = None,
    ) -> list[CommentRecord]:
        """
        Map comments in order, growing the candidate pool as we go.

        Pass the same pool across calls to let reply inference span several
        pages of one fetch.
        """
        pool = candidate_pool if candidate_pool is not None else []
        records = []
        for raw in raws:
            comment = RawComment.from_api(raw)
            records.append(self.to_record(comment, pool))
            pool.append(ReplyCandidate(id=comment.id, body=comment.body))
        return records
