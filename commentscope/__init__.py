"""
Commentscope - Fetch and cache GitHub issue/PR comments.

A CLI tool that:
1. Fetches comment threads from GitHub issues and pull requests
2. Caches them in a local SQLite database
3. Refreshes the cache incrementally instead of refetching everything
4. Renders comments as markdown, a compact AI summary, or JSON

Usage:
    commentscope comments <url>              # First run fetches, later runs read cache
    commentscope comments <url> --refresh    # Fetch only new comments
    commentscope comments <url> --full       # Refetch everything
    commentscope cache stats                 # Show cache size
"""

__version__ = "0.1.0"
