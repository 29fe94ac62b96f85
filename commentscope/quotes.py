"""
Quote handling for comment bodies.

GitHub "quote reply" copies the quoted comment into the new body as
'>'-prefixed lines. We shorten long quote blocks and use the quoted text
to guess which earlier comment is being answered.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Protocol


MAX_QUOTE_LINES = 5
# First-line fallback only kicks in for lines at least this long
MIN_PARTIAL_MATCH_CHARS = 20

_WHITESPACE = re.compile(r"\s+")
_QUOTE_PREFIX = re.compile(r"^>\s?")
_FIRST_QUOTE = re.compile(r"^>\s*(.+)", re.MULTILINE)


class QuoteCandidate(Protocol):
    id: int
    body: str


@dataclass
class Quote:
    text: str
    start_line: int
    end_line: int


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower()).strip()


def extract_quotes(body: str) -> list[Quote]:
    """Return every contiguous '>' block in the body, with prefixes stripped."""
    lines = body.split("\n")
    quotes: list[Quote] = []
    current: list[str] = []
    start = -1

    for i, line in enumerate(lines):
        if line.startswith(">"):
            if start == -1:
                start = i
            current.append(_QUOTE_PREFIX.sub("", line, count=1))
        elif current:
            quotes.append(Quote("\n".join(current), start, i - 1))
            current = []
            start = -1

    if current:
        quotes.append(Quote("\n".join(current), start, len(lines) - 1))

    return quotes


def first_quoted_line(body: str) -> str | None:
    """Text of the first blockquote line, or None if the body quotes nothing."""
    match = _FIRST_QUOTE.search(body)
    return match.group(1) if match else None


def process_quotes(body: str, max_quote_lines: int = MAX_QUOTE_LINES) -> tuple[str, bool]:
    """
    Shorten quote blocks longer than max_quote_lines.

    Returns:
        Tuple of (processed_body, had_truncated_quotes)
    """
    lines = body.split("\n")
    truncated = False

    # Bottom-up so earlier line numbers stay valid
    for quote in reversed(extract_quotes(body)):
        cut_from = quote.start_line + max_quote_lines
        if cut_from <= quote.end_line:
            lines[cut_from:quote.end_line + 1] = ["> ..."]
            truncated = True

    return "\n".join(lines), truncated


def find_reply_target(quote_text: str, candidates: Iterable[QuoteCandidate]) -> int | None:
    """
    Find the comment a quote was most likely copied from.

    Candidates are searched most recent first. A candidate matches when
    its normalized body contains the whole normalized quote, or contains
    the quote's first line and that line is long enough to be distinctive.
    """
    pool = list(candidates)
    if not quote_text or not pool:
        return None

    normalized_quote = normalize_text(quote_text)
    if not normalized_quote:
        return None
    raw_lines = [line for line in quote_text.split("\n") if line.strip()]
    first_line = normalize_text(raw_lines[0]) if raw_lines else ""

    for candidate in reversed(pool):
        normalized_body = normalize_text(candidate.body)
        if normalized_quote in normalized_body:
            return candidate.id
        if len(first_line) > MIN_PARTIAL_MATCH_CHARS and first_line in normalized_body:
            return candidate.id

    return None
