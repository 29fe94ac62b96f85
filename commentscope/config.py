"""
Configuration management for Commentscope.

Loads and validates commentscope.yml from the repository root, falling
back to config.yml inside the Commentscope home directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "commentscope.yml"
HOME_CONFIG_FILENAME = "config.yml"
HOME_ENV_VAR = "COMMENTSCOPE_HOME"


@dataclass
class GitHubConfig:
    """GitHub API settings."""
    api_base: str = "https://api.github.com"
    per_page: int = 100
    timeout: float = 30.0


@dataclass
class RetryConfig:
    """Backoff settings for rate-limited requests (HTTP 403/429)."""
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0


@dataclass
class CacheConfig:
    """Local cache settings."""
    path: str | None = None  # Defaults to <home>/cache.db
    scan_limit: int = 10000  # Max comments read per issue

    def get_db_path(self) -> Path:
        if self.path:
            return Path(self.path).expanduser().resolve()
        return get_commentscope_dir() / "cache.db"


@dataclass
class BotsConfig:
    """Extra bot account names on top of the built-in list."""
    extra: list[str] = field(default_factory=list)


@dataclass
class OutputConfig:
    format: str = "ai"  # ai, md, json
    max_quote_lines: int = 5


@dataclass
class LoggingConfig:
    verbose: bool = False
    file: str | None = None


@dataclass
class CommentscopeConfig:
    """Complete Commentscope configuration."""
    github: GitHubConfig = field(default_factory=GitHubConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    bots: BotsConfig = field(default_factory=BotsConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, repo_root: Path | None = None) -> "CommentscopeConfig":
        """Load configuration from the repo root, then the home directory."""
        candidates = []
        if repo_root is not None:
            candidates.append(repo_root / CONFIG_FILENAME)
        candidates.append(get_commentscope_dir() / HOME_CONFIG_FILENAME)

        for path in candidates:
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
                return cls._parse(data)

        return cls()

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "CommentscopeConfig":
        """Parse configuration dictionary."""
        config = cls()

        github_data = data.get("github") or {}
        config.github = GitHubConfig(
            api_base=github_data.get("api_base", "https://api.github.com").rstrip("/"),
            per_page=int(github_data.get("per_page", 100)),
            timeout=float(github_data.get("timeout", 30.0)),
        )

        retry_data = data.get("retry") or {}
        config.retry = RetryConfig(
            max_attempts=int(retry_data.get("max_attempts", 5)),
            base_delay=float(retry_data.get("base_delay", 1.0)),
            max_delay=float(retry_data.get("max_delay", 60.0)),
        )

        cache_data = data.get("cache") or {}
        config.cache = CacheConfig(
            path=cache_data.get("path"),
            scan_limit=int(cache_data.get("scan_limit", 10000)),
        )

        bots_data = data.get("bots") or {}
        extra = bots_data.get("extra") or []
        if isinstance(extra, str):
            extra = [extra]
        config.bots = BotsConfig(extra=[str(name).lower() for name in extra])

        output_data = data.get("output") or {}
        config.output = OutputConfig(
            format=output_data.get("format", "ai"),
            max_quote_lines=int(output_data.get("max_quote_lines", 5)),
        )

        logging_data = data.get("logging") or {}
        config.logging = LoggingConfig(
            verbose=bool(logging_data.get("verbose", False)),
            file=logging_data.get("file"),
        )

        return config


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()


def get_commentscope_dir() -> Path:
    """Get the Commentscope home directory ($COMMENTSCOPE_HOME or ~/.commentscope)."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".commentscope"
