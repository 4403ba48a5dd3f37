"""
Directory configuration
"""

import os
from typing import Optional

# GitHub API settings
GITHUB_API_BASE = os.environ.get("GITHUB_API_BASE", "https://api.github.com").rstrip("/")
USER_AGENT = "repo-directory"
REQUEST_TIMEOUT = 30  # Seconds per request

# Commit stats endpoint answers 202 while GitHub computes the series
STATS_PENDING_STATUS = 202
STATS_RETRY_DELAY = 3.0  # Seconds to wait before the single retry
STATS_MAX_ATTEMPTS = 2

# Parallelism
DEFAULT_CONCURRENCY = 4  # Entries enriched at once
DEFAULT_WORKERS = 4  # Validation threads

# Dataset rules
MIN_NOTES_LENGTH = 20

# Paths (relative to the working directory)
DATASET_PATH = os.path.join("data", "repos.yaml")
SNAPSHOT_PATH = os.path.join("generated", "repos.json")
PUBLIC_SNAPSHOT_PATH = os.path.join("public", "repos.json")

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean-like environment variable."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


def github_token() -> Optional[str]:
    """Return the GitHub token from the environment, or None."""
    return os.environ.get("GITHUB_TOKEN") or None


def api_headers(token: Optional[str] = None) -> dict:
    """Headers shared by every GitHub API request."""
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
