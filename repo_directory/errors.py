"""Exceptions raised by the directory pipeline."""

from typing import Optional


class DirectoryError(Exception):
    """Base exception for directory failures."""


class DatasetError(DirectoryError):
    """Raised when the curated dataset cannot be read or has the wrong shape."""


class SnapshotError(DirectoryError):
    """Raised when an enriched record does not match the snapshot schema."""


class GitHubAPIError(DirectoryError):
    """Raised when GitHub refuses a repository metadata request."""

    def __init__(self, slug: str, status: Optional[int], message: str):
        self.slug = slug
        self.status = status
        self.message = message
        if status is None:
            super().__init__(f"GitHub API error for {slug}: {message}")
        else:
            super().__init__(f"GitHub API error for {slug}: {status} {message}")
