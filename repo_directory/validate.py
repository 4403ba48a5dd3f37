"""
Dataset validation gate
Checks every curated entry and collects all violations before failing.

Checks:
  1. No duplicate slugs
  2. Slug has the owner/repo shape
  3. Category is present
  4. Notes are at least 20 characters
  5. Repository exists, is public, and is not archived
  6. Optionally rejects forks (REJECT_FORKS=true)
"""

import argparse
import logging
import re
import sys
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests

from .config import (
    DATASET_PATH,
    DEFAULT_WORKERS,
    GITHUB_API_BASE,
    MIN_NOTES_LENGTH,
    REQUEST_TIMEOUT,
    api_headers,
    env_flag,
    github_token,
)
from .dataset import load_dataset
from .errors import DatasetError

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'[^/]+/[^/]+')


@dataclass
class ValidationResult:
    violations: List[str] = field(default_factory=list)
    checked: int = 0

    @property
    def ok(self) -> bool:
        return not self.violations

    def report(self) -> str:
        if self.ok:
            return f"All {self.checked} entries passed validation."
        lines = ["Validation failed:", ""]
        lines.extend(f"  - {violation}" for violation in self.violations)
        return '\n'.join(lines)


class RepoChecker:
    """
    Check that a repository can be listed in the directory.

    Checks run on worker threads, so each thread gets its own
    requests.Session unless one is passed in.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        reject_forks: bool = False,
        api_base: str = GITHUB_API_BASE,
        session: Optional[requests.Session] = None,
    ):
        self.reject_forks = reject_forks
        self.api_base = api_base.rstrip('/')
        self.headers = api_headers(token)
        self._shared = session
        if session is not None:
            session.headers.update(self.headers)
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._shared is not None:
            return self._shared
        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
        return session

    def check(self, slug: str) -> Optional[str]:
        """Return a violation message, or None if the repository is acceptable"""
        try:
            response = self.session.get(f"{self.api_base}/repos/{slug}", timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            return f'Request failed for "{slug}": {e}'

        if response.status_code == 404:
            return f'Repository "{slug}" does not exist'
        if not response.ok:
            return f'GitHub API error for "{slug}": {response.status_code}'

        try:
            data = response.json()
        except ValueError:
            return f'GitHub API returned invalid JSON for "{slug}"'
        if not isinstance(data, dict):
            return f'GitHub API returned unexpected data for "{slug}"'

        if data.get('private'):
            return f'"{slug}" is a private repository'
        if data.get('archived'):
            return f'"{slug}" is archived'
        if self.reject_forks and data.get('fork'):
            return f'"{slug}" is a fork'
        return None


def is_valid_slug(slug) -> bool:
    return isinstance(slug, str) and bool(SLUG_PATTERN.fullmatch(slug))


def duplicate_violations(items: Sequence[dict]) -> List[str]:
    """One violation per occurrence of every repeated slug"""
    slugs = [item.get('slug') if isinstance(item.get('slug'), str) else None for item in items]
    counts = Counter(slug for slug in slugs if slug)
    seen = Counter()
    violations = []
    for slug in slugs:
        if not slug or counts[slug] < 2:
            continue
        seen[slug] += 1
        violations.append(f'Duplicate slug: "{slug}" (occurrence {seen[slug]} of {counts[slug]})')
    return violations


def structural_violations(item: dict) -> List[str]:
    """Checks that need no network access"""
    slug = item.get('slug')
    if not is_valid_slug(slug):
        return [f'Invalid slug format: "{slug}" (expected owner/repo)']

    violations = []
    category = item.get('category')
    if not isinstance(category, str) or not category.strip():
        violations.append(f'Missing or invalid category for "{slug}"')

    notes = item.get('notes')
    notes = notes.strip() if isinstance(notes, str) else ''
    if len(notes) < MIN_NOTES_LENGTH:
        violations.append(
            f'Notes for "{slug}" are too short ({len(notes)} chars, minimum {MIN_NOTES_LENGTH})'
        )
    return violations


def validate(
    items: Sequence[dict],
    checker: Optional[RepoChecker] = None,
    reject_forks: bool = False,
    workers: int = DEFAULT_WORKERS,
) -> ValidationResult:
    """Validate raw dataset items, reporting every violation found"""
    checker = checker or RepoChecker(token=github_token(), reject_forks=reject_forks)
    result = ValidationResult(checked=len(items))
    result.violations.extend(duplicate_violations(items))

    structural = [structural_violations(item) for item in items]
    lookups = [item.get('slug') if is_valid_slug(item.get('slug')) else None for item in items]

    def live_check(slug):
        return checker.check(slug) if slug else None

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        live = list(executor.map(live_check, lookups))

    for found, remote in zip(structural, live):
        result.violations.extend(found)
        if remote:
            result.violations.append(remote)

    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Validate the curated repository dataset')
    parser.add_argument('--dataset', default=DATASET_PATH, help='Curated dataset YAML')
    parser.add_argument('--token', help='GitHub API token (or set GITHUB_TOKEN env var)')
    parser.add_argument('--reject-forks', action='store_true', default=env_flag('REJECT_FORKS'),
                        help='Reject forked repositories (or set REJECT_FORKS=true)')
    parser.add_argument('--workers', '-w', type=int, default=DEFAULT_WORKERS, help='Concurrent API checks')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    try:
        items = load_dataset(args.dataset)
    except DatasetError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Validating {len(items)} entries...")
    checker = RepoChecker(token=args.token or github_token(), reject_forks=args.reject_forks)
    result = validate(items, checker=checker, workers=args.workers)

    if result.ok:
        print(result.report())
        return 0
    print(result.report(), file=sys.stderr)
    return 1


if __name__ == '__main__':
    sys.exit(main())
