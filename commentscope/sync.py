"""
Comment sync for one issue: choose a strategy, fetch what's missing,
persist page by page, and return the filtered, sliced comment list.

    START -> select_strategy -> FULL | INCREMENTAL | CACHE_ONLY
          -> fetch + map + merge (network strategies only)
          -> filter -> slice -> result
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .fetcher import CommentFetcher
from .logs import LogConfig
from .mapper import RecordMapper, ReplyCandidate
from .merge import CommentFilter, apply_filters, reconcile, slice_comments
from .models import CommentRecord, FetchMetadata, IssueRecord, RepoRecord
from .store import CACHE_SCAN_LIMIT, Store, utc_now
from .strategy import FetchStrategy, select_strategy


@dataclass
class CommentsRequest:
    """What the caller wants for one issue."""
    owner: str
    repo: str
    number: int
    since_id: int | None = None
    first: int | None = None
    last: int | None = None
    min_reactions: int | None = None
    author: str | None = None
    exclude_bots: bool = False
    full: bool = False
    refresh: bool = False

    @property
    def comment_filter(self) -> CommentFilter:
        return CommentFilter(
            since_id=self.since_id,
            min_reactions=self.min_reactions,
            author=self.author,
            exclude_bots=self.exclude_bots,
        )


@dataclass
class CommentsResult:
    repo: RepoRecord
    issue: IssueRecord
    strategy: FetchStrategy
    comments: list[CommentRecord] = field(default_factory=list)
    fetched_new: int = 0
    total_comments: int = 0
    metadata: FetchMetadata | None = None
    since_id: int | None = None

    def status_label(self) -> str:
        if self.strategy is FetchStrategy.FULL:
            return "(full fetch)"
        if self.strategy is FetchStrategy.INCREMENTAL:
            return f"(+{self.fetched_new} new)" if self.fetched_new else "(up to date)"
        return "(cached)"


class CommentSyncService:
    """Keeps the comment cache of an issue in step with GitHub."""

    def __init__(
        self,
        store: Store,
        fetcher: CommentFetcher,
        mapper: RecordMapper,
        log_config: LogConfig | None = None,
        scan_limit: int = CACHE_SCAN_LIMIT,
    ):
        self.store = store
        self.fetcher = fetcher
        self.mapper = mapper
        self.scan_limit = scan_limit
        self.log = (log_config or LogConfig()).get_logger("sync")

    def fetch_comments(self, request: CommentsRequest) -> CommentsResult:
        repo = self.store.get_or_create_repo(request.owner, request.repo)
        issue = self.store.ensure_issue(repo.id, request.number)
        metadata = self.store.get_fetch_metadata(issue.id)

        strategy = select_strategy(request.full, request.refresh, metadata)
        self.log.debug(f"{repo.full_name}#{request.number}: strategy={strategy.value}")

        if strategy is FetchStrategy.FULL:
            comments, fetched_new = self._full_fetch(repo, issue, request.since_id)
        elif strategy is FetchStrategy.INCREMENTAL and metadata is not None:
            comments, fetched_new = self._incremental_fetch(repo, issue, metadata)
        else:
            self.log.debug("Using cached comments (no fetch)")
            comments = self.store.get_comments(issue.id, limit=self.scan_limit)
            fetched_new = 0

        metadata = self.store.get_fetch_metadata(issue.id)
        total = metadata.total_comments if metadata and metadata.total_comments else len(comments)

        comments = apply_filters(comments, request.comment_filter)
        comments = slice_comments(comments, first=request.first, last=request.last)

        return CommentsResult(
            repo=repo,
            issue=issue,
            strategy=strategy,
            comments=comments,
            fetched_new=fetched_new,
            total_comments=total,
            metadata=metadata,
            since_id=request.since_id,
        )

    def _full_fetch(
        self,
        repo: RepoRecord,
        issue: IssueRecord,
        since_id: int | None,
    ) -> tuple[list[CommentRecord], int]:
        """Fetch every page, committing each one with a running metadata delta."""
        self.log.debug(
            f"Full fetch of {repo.full_name}#{issue.number}"
            + (f" since comment {since_id}" if since_id else "")
        )
        pool: list[ReplyCandidate] = []
        comments: list[CommentRecord] = []

        for page in self.fetcher.iter_pages(repo.owner, repo.name, issue.number, since_id=since_id):
            records = self.mapper.map_batch(page, pool)
            if not records:
                continue
            comments.extend(records)
            self.store.commit_page(
                issue.id,
                records,
                total_comments=len(comments),
                last_comment_date=records[-1].created_at,
            )

        if not comments:
            # No metadata for an empty thread, so the next call fetches in full again
            self.log.debug("No comments fetched, leaving fetch metadata unset")
            return comments, 0

        # Both stamps share one value so the incremental stamp never predates the full one
        now = utc_now()
        self.store.update_fetch_metadata(
            issue.id,
            last_full_fetch=now,
            last_incremental_fetch=now,
            total_comments=len(comments),
        )
        self.log.debug(f"Fetched and cached {len(comments)} comments")
        return comments, len(comments)

    def _incremental_fetch(
        self,
        repo: RepoRecord,
        issue: IssueRecord,
        metadata: FetchMetadata,
    ) -> tuple[list[CommentRecord], int]:
        """Fetch comments updated since the last seen comment and add the unseen ones."""
        self.log.debug(f"Incremental fetch since {metadata.last_comment_date}")
        cached = self.store.get_comments(issue.id, limit=self.scan_limit)
        pool: list[ReplyCandidate] = []
        fetched = 0
        new_count = 0

        for page in self.fetcher.iter_pages(
            repo.owner, repo.name, issue.number, since_timestamp=metadata.last_comment_date
        ):
            records = self.mapper.map_batch(page, pool)
            fetched += len(records)
            result = reconcile(records, cached)
            cached = result.final
            if not result.to_persist:
                continue
            new_count += len(result.to_persist)
            self.store.commit_page(
                issue.id,
                result.to_persist,
                total_comments=metadata.total_comments + new_count,
                last_comment_date=result.to_persist[-1].created_at,
            )

        self.store.update_fetch_metadata(issue.id, last_incremental_fetch=utc_now())
        self.log.debug(f"Fetched {fetched} from API, {new_count} are new")

        comments = self.store.get_comments(issue.id, limit=self.scan_limit)
        self.log.debug(f"Retrieved {len(comments)} total comments from cache")
        return comments, new_count
