"""
Commentscope CLI - Fetch and cache GitHub issue/PR comments.

Commands:
    comments     - Fetch comments for an issue or PR (cache-aware)
    cache stats  - Show cached row counts
    cache clear  - Delete the cache contents
"""

from __future__ import annotations

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from . import __version__
from .config import CommentscopeConfig, get_repo_root
from .fetcher import CommentFetcher
from .github import GitHubAPIError, GitHubClient, RetryPolicy
from .logs import LogConfig
from .mapper import KNOWN_BOTS, RecordMapper
from .models import PayloadError
from .output import OUTPUT_FORMATS, format_comments
from .store import Store, StoreError
from .sync import CommentsRequest, CommentSyncService
from .urls import InvalidIssueRefError, detect_repo_from_git, extract_comment_id, require_issue_ref


def _load_env() -> None:
    """Load .env from the current directory and the repo root (for GITHUB_TOKEN)."""
    load_dotenv()
    load_dotenv(Path.cwd() / ".env")
    repo_env = get_repo_root() / ".env"
    if repo_env.exists():
        load_dotenv(repo_env)


def _log_config(config: CommentscopeConfig, verbose: bool) -> LogConfig:
    log_file = Path(config.logging.file).expanduser() if config.logging.file else None
    return LogConfig(verbose=verbose or config.logging.verbose, log_file=log_file)


def build_service(config: CommentscopeConfig, log_config: LogConfig) -> CommentSyncService:
    """Wire store, client, fetcher and mapper from configuration."""
    store = Store(db_path=config.cache.get_db_path(), log_config=log_config)
    client = GitHubClient(
        api_base=config.github.api_base,
        timeout=config.github.timeout,
        retry=RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
        ),
        log_config=log_config,
    )
    fetcher = CommentFetcher(client, log_config=log_config, page_size=config.github.per_page)
    mapper = RecordMapper(
        log_config=log_config,
        known_bots=(*KNOWN_BOTS, *config.bots.extra),
        max_quote_lines=config.output.max_quote_lines,
    )
    return CommentSyncService(store, fetcher, mapper, log_config=log_config, scan_limit=config.cache.scan_limit)


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main():
    """Commentscope - Fetch and cache GitHub issue/PR comments."""
    pass


@main.command()
@click.argument("url")
@click.option("-r", "--repo", "repo_name", help="Repository (owner/repo) for bare issue numbers")
@click.option("--since", "since", help="Start after a specific comment (id or #issuecomment URL)")
@click.option("--first", type=click.IntRange(min=1), help="First N comments")
@click.option("--last", type=click.IntRange(min=1), help="Last N comments")
@click.option("--min-reactions", type=click.IntRange(min=0), help="Only comments with at least N reactions")
@click.option("--author", help="Only comments by this user")
@click.option("--no-bots", is_flag=True, help="Exclude bots")
@click.option("--full", is_flag=True, help="Force full refetch (ignore cache)")
@click.option("--refresh", is_flag=True, help="Fetch new comments since the last fetch")
@click.option("-f", "--format", "fmt", type=click.Choice(OUTPUT_FORMATS), default=None,
              help="Output format (default from config: ai)")
@click.option("-o", "--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write output to a file")
@click.option("--no-index", is_flag=True, help="Exclude index from output")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
def comments(
    url: str,
    repo_name: str | None,
    since: str | None,
    first: int | None,
    last: int | None,
    min_reactions: int | None,
    author: str | None,
    no_bots: bool,
    full: bool,
    refresh: bool,
    fmt: str | None,
    output_path: Path | None,
    no_index: bool,
    verbose: bool,
):
    """Fetch comments from a GitHub issue/PR.

    The first call fetches everything and caches it. Later calls read the
    cache unless --refresh (new comments only) or --full is given.

    Examples:

        commentscope comments https://github.com/owner/repo/issues/42
        commentscope comments owner/repo#42 --refresh --no-bots
        commentscope comments 42 -r owner/repo --last 10 -f md
    """
    _load_env()
    config = CommentscopeConfig.load(get_repo_root())
    log_config = _log_config(config, verbose)
    log_config.configure()
    log = log_config.get_logger("cli")

    try:
        default_repo = repo_name or detect_repo_from_git()
        ref = require_issue_ref(url, default_repo)
    except InvalidIssueRefError as e:
        _fail(str(e))
        return

    since_id = ref.comment_id
    if since:
        extracted = extract_comment_id(since)
        if extracted is None:
            _fail(f"Invalid --since value: {since!r} (expected a comment id or #issuecomment URL)")
            return
        since_id = extracted

    log.debug(f"Parsed: owner={ref.owner}, repo={ref.repo}, number={ref.number}, since_id={since_id or 'none'}")
    click.echo(click.style(f"Fetching comments for {ref.full_name}#{ref.number}...", dim=True), err=True)

    request = CommentsRequest(
        owner=ref.owner,
        repo=ref.repo,
        number=ref.number,
        since_id=since_id,
        first=first,
        last=last,
        min_reactions=min_reactions,
        author=author,
        exclude_bots=no_bots,
        full=full,
        refresh=refresh,
    )

    try:
        service = build_service(config, log_config)
        result = service.fetch_comments(request)
    except (GitHubAPIError, PayloadError, StoreError) as e:
        log.opt(exception=e).debug("comments command failed")
        _fail(str(e))
        return

    try:
        rendered = format_comments(result, fmt or config.output.format, no_index=no_index)
    except ValueError as e:
        _fail(str(e))
        return

    if output_path:
        output_path.write_text(rendered, encoding="utf-8")
        click.echo(click.style(f"✔ Output written to {output_path}", fg="green"), err=True)
    else:
        click.echo(rendered, nl=False)

    since_note = f" (since comment {since_id})" if since_id else ""
    click.echo(
        click.style(f"\nFetched: {len(result.comments)} comments {result.status_label()}{since_note}", dim=True),
        err=True,
    )


@main.group()
def cache():
    """Inspect or reset the local comment cache."""
    pass


def _open_store(verbose: bool = False) -> Store:
    config = CommentscopeConfig.load(get_repo_root())
    log_config = _log_config(config, verbose)
    log_config.configure()
    return Store(db_path=config.cache.get_db_path(), log_config=log_config)


@cache.command("stats")
def cache_stats():
    """Show cached row counts."""
    try:
        store = _open_store()
        counts = store.stats()
    except StoreError as e:
        _fail(str(e))
        return

    click.echo(f"Cache: {store.db_path}")
    for table, count in counts.items():
        click.echo(f"  {table}: {count}")


@cache.command("clear")
@click.option("--yes", is_flag=True, help="Don't ask for confirmation")
def cache_clear(yes: bool):
    """Delete every cached repo, issue and comment."""
    try:
        store = _open_store()
        if not yes:
            click.confirm(f"Clear the comment cache at {store.db_path}?", abort=True)
        store.clear()
    except StoreError as e:
        _fail(str(e))
        return
    click.echo("Cache cleared.")


if __name__ == "__main__":
    main()
