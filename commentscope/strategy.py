"""
Fetch strategy selection.

    full flag / never fully fetched  -> FULL
    refresh flag + known last comment -> INCREMENTAL
    anything else                     -> CACHE_ONLY
"""

from __future__ import annotations

from enum import Enum

from .models import FetchMetadata


class FetchStrategy(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    CACHE_ONLY = "cache_only"


def select_strategy(full: bool, refresh: bool, metadata: FetchMetadata | None) -> FetchStrategy:
    """Pick exactly one strategy. --full beats --refresh."""
    if full or metadata is None or not metadata.last_full_fetch:
        return FetchStrategy.FULL
    if refresh and metadata.last_comment_date:
        return FetchStrategy.INCREMENTAL
    return FetchStrategy.CACHE_ONLY
