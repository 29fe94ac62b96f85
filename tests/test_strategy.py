from __future__ import annotations

import pytest

from commentscope.models import FetchMetadata
from commentscope.strategy import FetchStrategy, select_strategy


FULLY_FETCHED = FetchMetadata(
    issue_id=1,
    last_full_fetch="2024-01-01T00:00:00Z",
    total_comments=3,
    last_comment_date="2024-01-01T00:00:00Z",
)
NEVER_FULLY_FETCHED = FetchMetadata(issue_id=1, total_comments=2, last_comment_date="2024-01-01T00:00:00Z")
NO_LAST_COMMENT = FetchMetadata(issue_id=1, last_full_fetch="2024-01-01T00:00:00Z")


@pytest.mark.parametrize(
    "full, refresh, metadata, expected",
    [
        (False, False, None, FetchStrategy.FULL),
        (False, True, None, FetchStrategy.FULL),
        (True, False, None, FetchStrategy.FULL),
        (True, True, FULLY_FETCHED, FetchStrategy.FULL),
        (True, False, FULLY_FETCHED, FetchStrategy.FULL),
        (False, True, NEVER_FULLY_FETCHED, FetchStrategy.FULL),
        (False, False, NEVER_FULLY_FETCHED, FetchStrategy.FULL),
        (False, True, FULLY_FETCHED, FetchStrategy.INCREMENTAL),
        (False, False, FULLY_FETCHED, FetchStrategy.CACHE_ONLY),
        (False, True, NO_LAST_COMMENT, FetchStrategy.CACHE_ONLY),
        (False, False, NO_LAST_COMMENT, FetchStrategy.CACHE_ONLY),
    ],
)
def test_select_strategy(full, refresh, metadata, expected):
    assert select_strategy(full, refresh, metadata) is expected

