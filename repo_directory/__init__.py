# Repository Directory
# Enriches a curated list of GitHub repositories and queries the snapshot

from .activity import ActivityStatus, classify_activity, compute_commit_pace
from .dataset import CuratedEntry, load_dataset, load_entries
from .enrich import EnrichmentPipeline, build_entry, write_snapshot
from .github_client import GitHubClient, PendingRetryPolicy
from .query import Criteria
from .validate import RepoChecker, ValidationResult

__all__ = [
    'ActivityStatus', 'classify_activity', 'compute_commit_pace',
    'CuratedEntry', 'load_dataset', 'load_entries',
    'EnrichmentPipeline', 'build_entry', 'write_snapshot',
    'GitHubClient', 'PendingRetryPolicy',
    'Criteria',
    'RepoChecker', 'ValidationResult',
]
