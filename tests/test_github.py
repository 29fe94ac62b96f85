from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from commentscope.github import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
    RetryPolicy,
    retry_delay,
    with_retry,
)


def _response(status_code: int = 200, payload=None, headers=None, text: str = ""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    response.headers = headers or {}
    response.text = text
    return response


def test_retry_delay_prefers_retry_after():
    policy = RetryPolicy(base_delay=1.0, max_delay=60.0)
    headers = {"retry-after": "7", "X-RateLimit-Reset": "1000"}
    assert retry_delay(headers, 1, policy, now=900) == 7.0


def test_retry_delay_uses_reset_header():
    policy = RetryPolicy(max_delay=60.0)
    assert retry_delay({"X-RateLimit-Reset": "1010"}, 1, policy, now=1000) == 11


def test_retry_delay_exponential_backoff_capped():
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
    assert retry_delay({}, 1, policy) == 1.0
    assert retry_delay({}, 3, policy) == 4.0
    assert retry_delay({}, 4, policy) == 5.0


def test_retry_delay_caps_header_values():
    policy = RetryPolicy(max_delay=30.0)
    assert retry_delay({"Retry-After": "3600"}, 1, policy) == 30.0


def test_retry_delay_ignores_past_reset():
    policy = RetryPolicy(base_delay=2.0)
    assert retry_delay({"X-RateLimit-Reset": "10"}, 1, policy, now=1000) == 2.0


def test_with_retry_recovers_after_rate_limit():
    sleeps: list[float] = []
    calls = {"n": 0}

    def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise GitHubAPIError("limited", 429, {"Retry-After": "2"})
        return "ok"

    assert with_retry(flaky, "test", sleep=sleeps.append) == "ok"
    assert calls["n"] == 3
    assert sleeps == [2.0, 2.0]


def test_with_retry_does_not_retry_other_errors():
    sleeps: list[float] = []

    def missing():
        raise GitHubAPIError("not found", 404)

    with pytest.raises(GitHubAPIError) as exc_info:
        with_retry(missing, "test", sleep=sleeps.append)
    assert exc_info.value.status_code == 404
    assert sleeps == []


def test_with_retry_raises_rate_limit_error_when_exhausted():
    sleeps: list[float] = []
    policy = RetryPolicy(max_attempts=3, base_delay=1.0)

    def always_limited():
        raise GitHubAPIError("forbidden", 403)

    with pytest.raises(RateLimitError) as exc_info:
        with_retry(always_limited, "GET /x", policy=policy, sleep=sleeps.append)

    assert exc_info.value.attempts == 3
    assert exc_info.value.status_code == 403
    assert "GET /x" in str(exc_info.value)
    assert sleeps == [1.0, 2.0]


def test_client_sets_auth_header():
    client = GitHubClient(token="secret")
    assert client.session.headers["Authorization"] == "Bearer secret"
    assert client.session.headers["Accept"] == "application/vnd.github+json"


def test_list_issue_comments_request_params():
    client = GitHubClient(token="t")
    with patch.object(client.session, "request", return_value=_response(payload=[{"id": 1}])) as request:
        items = client.list_issue_comments("owner", "repo", 42, page=2, since="2024-01-01T00:00:00Z")

    assert items == [{"id": 1}]
    method, url = request.call_args.args
    assert method == "GET"
    assert url == "https://api.github.com/repos/owner/repo/issues/42/comments"
    assert request.call_args.kwargs["params"] == {
        "per_page": 100,
        "page": 2,
        "since": "2024-01-01T00:00:00Z",
    }


def test_list_issue_comments_omits_empty_since():
    client = GitHubClient(token="t")
    with patch.object(client.session, "request", return_value=_response()) as request:
        client.list_issue_comments("owner", "repo", 1)
    assert "since" not in request.call_args.kwargs["params"]


def test_list_issue_comments_server_error_raises():
    client = GitHubClient(token="t")
    with patch.object(client.session, "request", return_value=_response(500, text="boom")) as request:
        with pytest.raises(GitHubAPIError) as exc_info:
            client.list_issue_comments("owner", "repo", 1)

    assert exc_info.value.status_code == 500
    assert request.call_count == 1


def test_list_issue_comments_retries_rate_limit():
    client = GitHubClient(token="t", retry=RetryPolicy(max_attempts=3))
    responses = [
        _response(403, headers={"Retry-After": "0"}, text="rate limited"),
        _response(payload=[{"id": 7}]),
    ]
    with patch.object(client.session, "request", side_effect=responses) as request:
        items = client.list_issue_comments("owner", "repo", 1)

    assert items == [{"id": 7}]
    assert request.call_count == 2


def test_list_issue_comments_rejects_non_list():
    client = GitHubClient(token="t")
    with patch.object(client.session, "request", return_value=_response(payload={"message": "odd"})):
        with pytest.raises(GitHubAPIError, match="expected a list"):
            client.list_issue_comments("owner", "repo", 1)


def test_check_rate_limit():
    client = GitHubClient(token="t")
    payload = {"resources": {"core": {"remaining": 4999}}}
    with patch.object(client.session, "request", return_value=_response(payload=payload)) as request:
        assert client.check_rate_limit() == payload
    assert request.call_args.args[1] == "https://api.github.com/rate_limit"


def test_list_issue_comments_invalid_json_raises_api_error():
    client = GitHubClient(token="t")
    response = _response(text="<html>")
    response.json.side_effect = ValueError("Expecting value")
    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(GitHubAPIError, match="Invalid JSON"):
            client.list_issue_comments("owner", "repo", 1)
