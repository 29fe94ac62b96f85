from __future__ import annotations

from commentscope.mapper import ReplyCandidate
from commentscope.quotes import (
    extract_quotes,
    find_reply_target,
    first_quoted_line,
    process_quotes,
)


def test_extract_quotes_multiple_blocks():
    body = "> first\n> quote\ntext\n> second"
    quotes = extract_quotes(body)

    assert len(quotes) == 2
    assert quotes[0].text == "first\nquote"
    assert (quotes[0].start_line, quotes[0].end_line) == (0, 1)
    assert quotes[1].text == "second"
    assert (quotes[1].start_line, quotes[1].end_line) == (3, 3)


def test_first_quoted_line():
    assert first_quoted_line("intro\n>  quoted text\nmore") == "quoted text"
    assert first_quoted_line("no quotes here") is None


def test_process_quotes_leaves_short_quotes():
    body = "> short\n\nanswer"
    processed, truncated = process_quotes(body)
    assert processed == body
    assert truncated is False


def test_process_quotes_truncates_trailing_block():
    body = "answer\n" + "\n".join(f"> {i}" for i in range(4))
    processed, truncated = process_quotes(body, max_quote_lines=2)
    assert processed == "answer\n> 0\n> 1\n> ..."
    assert truncated is True


def test_find_reply_target_prefers_most_recent():
    candidates = [
        ReplyCandidate(id=1, body="we need a retry loop"),
        ReplyCandidate(id=2, body="Yes, we need a retry loop here too"),
    ]
    assert find_reply_target("we need a retry loop", candidates) == 2


def test_find_reply_target_whitespace_and_case_insensitive():
    candidates = [ReplyCandidate(id=3, body="Use   the\nCACHE please")]
    assert find_reply_target("use the cache", candidates) == 3


def test_find_reply_target_long_first_line_partial_match():
    candidates = [ReplyCandidate(id=4, body="This is a fairly long first line of text. And more.")]
    quote = "This is a fairly long first line of text\nsomething that was edited away"
    assert find_reply_target(quote, candidates) == 4


def test_find_reply_target_short_first_line_needs_full_match():
    candidates = [ReplyCandidate(id=4, body="short line only")]
    assert find_reply_target("short line\nplus extra text", candidates) is None


def test_find_reply_target_empty_inputs():
    assert find_reply_target("", [ReplyCandidate(id=1, body="x")]) is None
    assert find_reply_target("x", []) is None


def test_process_quotes_truncates_each_long_block():
    body = "\n".join(["> a1", "> a2", "> a3", "middle", "> b1", "> b2", "> b3", "end"])
    processed, truncated = process_quotes(body, max_quote_lines=2)

    assert processed.split("\n") == ["> a1", "> a2", "> ...", "middle", "> b1", "> b2", "> ...", "end"]
    assert truncated is True
