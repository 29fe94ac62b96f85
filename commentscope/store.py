"""
SQLite cache for Commentscope.

Schema:
- repos: owner/name pairs
- issues: issues and PRs per repo (placeholder rows until fetched in full)
- comments: cached comments, unique per (issue_id, comment_id)
- fetch_metadata: per-issue fetch bookkeeping

Comment rows keep the seq they were first inserted with, so reads come
back in fetch order and re-upserting an id never duplicates or reorders it.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generator, Iterable

from .config import get_commentscope_dir
from .logs import LogConfig
from .models import (
    METADATA_FIELDS,
    CommentRecord,
    FetchMetadata,
    IssueRecord,
    RepoRecord,
    empty_reactions,
)

if TYPE_CHECKING:
    from .merge import CommentFilter


DB_FILENAME = "cache.db"
CURRENT_SCHEMA_VERSION = 1
CACHE_SCAN_LIMIT = 10000

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS repos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner TEXT NOT NULL,
    name TEXT NOT NULL,
    UNIQUE(owner, name)
);

CREATE TABLE IF NOT EXISTS issues (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id INTEGER NOT NULL,
    number INTEGER NOT NULL,
    type TEXT NOT NULL DEFAULT 'issue',
    title TEXT,
    body TEXT,
    state TEXT,
    author TEXT,
    created_at TEXT,
    updated_at TEXT,
    closed_at TEXT,
    last_fetched TEXT,
    FOREIGN KEY (repo_id) REFERENCES repos(id),
    UNIQUE(repo_id, number)
);

-- seq preserves first-insertion order
CREATE TABLE IF NOT EXISTS comments (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id INTEGER NOT NULL,
    comment_id INTEGER NOT NULL,
    node_id TEXT,
    author TEXT NOT NULL,
    body TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT,
    reaction_count INTEGER NOT NULL DEFAULT 0,
    reactions_json TEXT,
    is_bot INTEGER NOT NULL DEFAULT 0,
    reply_to INTEGER,
    html_url TEXT,
    FOREIGN KEY (issue_id) REFERENCES issues(id),
    UNIQUE(issue_id, comment_id)
);

CREATE TABLE IF NOT EXISTS fetch_metadata (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id INTEGER UNIQUE NOT NULL,
    last_full_fetch TEXT,
    last_incremental_fetch TEXT,
    total_comments INTEGER NOT NULL DEFAULT 0,
    last_comment_date TEXT,
    FOREIGN KEY (issue_id) REFERENCES issues(id)
);

CREATE INDEX IF NOT EXISTS idx_issues_repo ON issues(repo_id);
CREATE INDEX IF NOT EXISTS idx_comments_issue ON comments(issue_id);
CREATE INDEX IF NOT EXISTS idx_comments_created ON comments(created_at);
"""


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string with a Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class StoreError(Exception):
    """Cache database could not be opened, read or written."""


class Store:
    """SQLite cache manager for Commentscope."""

    def __init__(self, db_path: Path | None = None, log_config: LogConfig | None = None):
        if db_path is None:
            db_path = get_commentscope_dir() / DB_FILENAME
        self.db_path = Path(db_path)
        self.log = (log_config or LogConfig()).get_logger("store")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Ensure database schema exists."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create cache directory {self.db_path.parent}: {e}") from e
        self.log.debug(f"Opening cache at {self.db_path}")
        with self._connect() as conn:
            conn.executescript(SCHEMA)
            self._stamp_schema_version(conn)

    def _get_schema_version(self, conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1").fetchone()
        if row is None:
            return 0
        value = row[0]
        return int(value) if value is not None else 0

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute("DELETE FROM schema_version")
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))

    def _stamp_schema_version(self, conn: sqlite3.Connection) -> None:
        current = self._get_schema_version(conn)
        if current > CURRENT_SCHEMA_VERSION:
            raise StoreError(
                f"Cache database {self.db_path} has schema version {current}, "
                f"newer than supported version {CURRENT_SCHEMA_VERSION}"
            )
        if current < CURRENT_SCHEMA_VERSION:
            self._set_schema_version(conn, CURRENT_SCHEMA_VERSION)

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Connection that commits on success; sqlite errors surface as StoreError."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open cache database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"Cache database error: {e}") from e
        finally:
            conn.close()

    def _now(self) -> str:
        """Get current timestamp in ISO format."""
        return utc_now()

    # =========================================================================
    # Repos
    # =========================================================================

    def get_or_create_repo(self, owner: str, name: str) -> RepoRecord:
        """Insert or get a repo."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO repos (owner, name) VALUES (?, ?)",
                (owner, name)
            )
            row = conn.execute(
                "SELECT * FROM repos WHERE owner = ? AND name = ?",
                (owner, name)
            ).fetchone()
            return RepoRecord(**dict(row))

    # =========================================================================
    # Issues
    # =========================================================================

    def get_issue(self, repo_id: int, number: int) -> IssueRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM issues WHERE repo_id = ? AND number = ?",
                (repo_id, number)
            ).fetchone()
            return IssueRecord(**dict(row)) if row else None

    def upsert_issue(
        self,
        repo_id: int,
        number: int,
        type: str = "issue",
        title: str = "",
        body: str = "",
        state: str = "unknown",
        author: str = "unknown",
        created_at: str | None = None,
        updated_at: str | None = None,
        closed_at: str | None = None,
        last_fetched: str | None = None,
    ) -> IssueRecord:
        """Insert or update an issue."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO issues
                    (repo_id, number, type, title, body, state, author,
                     created_at, updated_at, closed_at, last_fetched)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(repo_id, number) DO UPDATE SET
                    type = excluded.type,
                    title = excluded.title,
                    body = excluded.body,
                    state = excluded.state,
                    author = excluded.author,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at,
                    closed_at = excluded.closed_at,
                    last_fetched = excluded.last_fetched
                """,
                (repo_id, number, type, title, body, state, author,
                 created_at, updated_at, closed_at, last_fetched)
            )
            row = conn.execute(
                "SELECT * FROM issues WHERE repo_id = ? AND number = ?",
                (repo_id, number)
            ).fetchone()
            return IssueRecord(**dict(row))

    def ensure_issue(self, repo_id: int, number: int) -> IssueRecord:
        """Get an issue, creating a minimal placeholder if it isn't cached yet."""
        existing = self.get_issue(repo_id, number)
        if existing:
            return existing
        self.log.debug(f"Creating placeholder issue #{number} for repo {repo_id}")
        now = self._now()
        return self.upsert_issue(
            repo_id=repo_id,
            number=number,
            title=f"#{number}",
            created_at=now,
            updated_at=now,
            last_fetched=now,
        )

    # =========================================================================
    # Comments
    # =========================================================================

    def _row_to_comment(self, row: sqlite3.Row) -> CommentRecord:
        reactions = empty_reactions()
        if row["reactions_json"]:
            reactions.update(json.loads(row["reactions_json"]))
        return CommentRecord(
            id=int(row["comment_id"]),
            author=row["author"],
            body=row["body"],
            created_at=row["created_at"] or "",
            updated_at=row["updated_at"] or "",
            is_bot=bool(row["is_bot"]),
            reactions=reactions,
            reply_to=row["reply_to"],
            node_id=row["node_id"] or "",
            html_url=row["html_url"] or "",
            issue_id=row["issue_id"],
        )

    def _filter_clause(self, comment_filter: "CommentFilter | None") -> tuple[str, list[Any]]:
        if comment_filter is None:
            return "", []
        clauses = []
        params: list[Any] = []
        if comment_filter.since_id is not None:
            clauses.append("comment_id > ?")
            params.append(comment_filter.since_id)
        if comment_filter.min_reactions is not None:
            clauses.append("reaction_count >= ?")
            params.append(comment_filter.min_reactions)
        if comment_filter.author:
            clauses.append("LOWER(author) = LOWER(?)")
            params.append(comment_filter.author)
        if comment_filter.exclude_bots:
            clauses.append("is_bot = 0")
        sql = "".join(f" AND {clause}" for clause in clauses)
        return sql, params

    def get_comments(
        self,
        issue_id: int,
        comment_filter: "CommentFilter | None" = None,
        limit: int | None = CACHE_SCAN_LIMIT,
        offset: int = 0,
    ) -> list[CommentRecord]:
        """Cached comments in insertion order, optionally filtered."""
        where, params = self._filter_clause(comment_filter)
        sql = f"SELECT * FROM comments WHERE issue_id = ?{where} ORDER BY seq ASC"
        args: list[Any] = [issue_id, *params]
        if limit:
            sql += " LIMIT ? OFFSET ?"
            args.extend([limit, offset])
        with self._connect() as conn:
            rows = conn.execute(sql, args).fetchall()
            return [self._row_to_comment(row) for row in rows]

    def get_last_n(
        self,
        issue_id: int,
        n: int,
        comment_filter: "CommentFilter | None" = None,
    ) -> list[CommentRecord]:
        """Last n matching comments, returned oldest first."""
        where, params = self._filter_clause(comment_filter)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM comments WHERE issue_id = ?{where} ORDER BY seq DESC LIMIT ?",
                [issue_id, *params, n]
            ).fetchall()
            return [self._row_to_comment(row) for row in reversed(rows)]

    def get_comment_ids(self, issue_id: int, limit: int = CACHE_SCAN_LIMIT) -> set[int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT comment_id FROM comments WHERE issue_id = ? ORDER BY seq ASC LIMIT ?",
                (issue_id, limit)
            ).fetchall()
            return {int(row[0]) for row in rows}

    def get_comment_count(self, issue_id: int, exclude_bots: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM comments WHERE issue_id = ?"
        if exclude_bots:
            sql += " AND is_bot = 0"
        with self._connect() as conn:
            return int(conn.execute(sql, (issue_id,)).fetchone()[0])

    def _upsert_comment_rows(
        self,
        conn: sqlite3.Connection,
        issue_id: int,
        records: Iterable[CommentRecord],
    ) -> int:
        count = 0
        for record in records:
            conn.execute(
                """
                INSERT INTO comments
                    (issue_id, comment_id, node_id, author, body, created_at, updated_at,
                     reaction_count, reactions_json, is_bot, reply_to, html_url)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(issue_id, comment_id) DO UPDATE SET
                    node_id = excluded.node_id,
                    author = excluded.author,
                    body = excluded.body,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at,
                    reaction_count = excluded.reaction_count,
                    reactions_json = excluded.reactions_json,
                    is_bot = excluded.is_bot,
                    reply_to = excluded.reply_to,
                    html_url = excluded.html_url
                """,
                (issue_id, record.id, record.node_id, record.author, record.body,
                 record.created_at, record.updated_at, record.reaction_count,
                 json.dumps(record.reactions), int(record.is_bot), record.reply_to,
                 record.html_url)
            )
            record.issue_id = issue_id
            count += 1
        return count

    def upsert_comments(self, issue_id: int, records: Iterable[CommentRecord]) -> int:
        """Insert or replace comments by (issue_id, comment_id). Returns rows written."""
        with self._connect() as conn:
            return self._upsert_comment_rows(conn, issue_id, records)

    # =========================================================================
    # Fetch metadata
    # =========================================================================

    def get_fetch_metadata(self, issue_id: int) -> FetchMetadata | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM fetch_metadata WHERE issue_id = ?",
                (issue_id,)
            ).fetchone()
            if row is None:
                return None
            data = dict(row)
            data.pop("id", None)
            return FetchMetadata(**data)

    def _merge_metadata(self, conn: sqlite3.Connection, issue_id: int, fields: dict[str, Any]) -> None:
        unknown = set(fields) - set(METADATA_FIELDS)
        if unknown:
            raise ValueError(f"Unknown fetch metadata fields: {', '.join(sorted(unknown))}")

        conn.execute(
            "INSERT OR IGNORE INTO fetch_metadata (issue_id, total_comments) VALUES (?, 0)",
            (issue_id,)
        )
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        conn.execute(
            f"UPDATE fetch_metadata SET {assignments} WHERE issue_id = ?",
            [*fields.values(), issue_id]
        )

    def update_fetch_metadata(self, issue_id: int, **fields: Any) -> FetchMetadata:
        """Merge the given fields into the issue's metadata, creating it if absent."""
        with self._connect() as conn:
            self._merge_metadata(conn, issue_id, fields)
        metadata = self.get_fetch_metadata(issue_id)
        if metadata is None:
            raise StoreError(f"Fetch metadata for issue {issue_id} missing after update")
        return metadata

    def commit_page(self, issue_id: int, records: Iterable[CommentRecord], **metadata_fields: Any) -> int:
        """
        Write one page of comments and its metadata delta in a single transaction.

        An interrupted fetch keeps every page committed before the interruption.
        """
        with self._connect() as conn:
            count = self._upsert_comment_rows(conn, issue_id, records)
            if metadata_fields:
                self._merge_metadata(conn, issue_id, metadata_fields)
            return count

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear(self) -> None:
        """Delete every cached row."""
        with self._connect() as conn:
            conn.executescript(
                """
                DELETE FROM comments;
                DELETE FROM fetch_metadata;
                DELETE FROM issues;
                DELETE FROM repos;
                """
            )

    def stats(self) -> dict[str, int]:
        """Row counts per table."""
        with self._connect() as conn:
            return {
                table: int(conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
                for table in ("repos", "issues", "comments", "fetch_metadata")
            }
