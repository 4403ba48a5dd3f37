"""
Catalog query engine
Filters, searches and sorts an already-loaded snapshot. Pure functions only;
the caller passes a fresh Criteria on every change.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .activity import parse_timestamp
from .config import PUBLIC_SNAPSHOT_PATH

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ('name', 'slug', 'description', 'notes')
SORT_KEYS = ('stars', 'last_commit', 'name')

EMPTY_CATALOG_MESSAGE = "No tools listed yet. Entries are curated by contributors."
NO_MATCH_MESSAGE = "No tools match the current filters."

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Criteria:
    search: str = ""
    category: Optional[str] = None
    status: Optional[str] = None
    language: Optional[str] = None
    sort_by: Optional[str] = None

    @classmethod
    def from_mapping(cls, values: dict) -> "Criteria":
        """Build criteria from loose form input; blank values mean no constraint."""
        def clean(key):
            value = values.get(key)
            return value if isinstance(value, str) and value else None

        return cls(
            search=clean('search') or "",
            category=clean('category'),
            status=clean('status'),
            language=clean('language'),
            sort_by=clean('sort_by') or clean('sortBy'),
        )


def _matches_search(repo: dict, term: str) -> bool:
    if not term:
        return True
    return any(term in str(repo.get(key) or '').lower() for key in SEARCH_FIELDS)


def _matches(repo: dict, criteria: Criteria, term: str) -> bool:
    if criteria.category and repo.get('category') != criteria.category:
        return False
    if criteria.status and repo.get('activity_status') != criteria.status:
        return False
    if criteria.language and repo.get('language') != criteria.language:
        return False
    return _matches_search(repo, term)


def _commit_time(repo: dict) -> datetime:
    try:
        return parse_timestamp(repo.get('last_commit'))
    except ValueError:
        return _OLDEST


def _name_key(repo: dict):
    # Alphabetical first, case only breaks ties
    name = str(repo.get('name') or '')
    return name.casefold(), name


def _stars(repo: dict):
    stars = repo.get('stars')
    return stars if isinstance(stars, (int, float)) else 0


def query(snapshot: Sequence[dict], criteria: Criteria = Criteria()) -> List[dict]:
    """Return the entries matching criteria, sorted as requested"""
    term = criteria.search.strip().lower() if isinstance(criteria.search, str) else ""
    repos = [repo for repo in snapshot if _matches(repo, criteria, term)]

    # sorted() is stable, including with reverse=True
    if criteria.sort_by == 'stars':
        return sorted(repos, key=_stars, reverse=True)
    if criteria.sort_by == 'last_commit':
        return sorted(repos, key=_commit_time, reverse=True)
    if criteria.sort_by == 'name':
        return sorted(repos, key=_name_key)
    return repos


def filter_options(snapshot: Sequence[dict]) -> dict:
    """Distinct categories and languages for the filter drop-downs"""
    return {
        'categories': sorted({repo['category'] for repo in snapshot if repo.get('category')}),
        'languages': sorted({repo['language'] for repo in snapshot if repo.get('language')}),
    }


def result_count_label(count: int) -> str:
    return f"{count} tool{'' if count == 1 else 's'}"


def empty_state_message(snapshot: Sequence[dict], results: Sequence[dict]) -> Optional[str]:
    """Message to show instead of results, or None when there is something to show"""
    if not snapshot:
        return EMPTY_CATALOG_MESSAGE
    if not results:
        return NO_MATCH_MESSAGE
    return None


def time_ago(timestamp, now: Optional[datetime] = None) -> str:
    """
    Human friendly age of a timestamp.

    Examples:
        same day       -> "today"
        45 days ago    -> "1 month ago"
        800 days ago   -> "2 years ago"
    """
    now = now or datetime.now(timezone.utc)
    days = int((now - parse_timestamp(timestamp)).total_seconds() // 86400)
    if days < 1:
        return "today"
    if days == 1:
        return "1 day ago"
    if days < 30:
        return f"{days} days ago"
    months = days // 30
    if months < 12:
        return f"{months} month{'s' if months > 1 else ''} ago"
    years = days // 365
    return f"{years} year{'s' if years > 1 else ''} ago"


def format_number(n) -> str:
    """1234 -> "1.2k", 1000 -> "1k", 999 -> "999" """
    if n >= 1000:
        short = f"{n / 1000:.1f}"
        if short.endswith('.0'):
            short = short[:-2]
        return f"{short}k"
    return str(n)


def load_snapshot(path: Union[str, Path] = PUBLIC_SNAPSHOT_PATH) -> List[dict]:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def summary_line(repo: dict) -> str:
    return (
        f"{repo.get('slug')} [{repo.get('activity_status')}] "
        f"stars {format_number(repo.get('stars') or 0)}, "
        f"{repo.get('commit_pace')}/wk, "
        f"{repo.get('language')}, {repo.get('category')}"
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Search the generated repository snapshot')
    parser.add_argument('--snapshot', default=PUBLIC_SNAPSHOT_PATH, help='Snapshot JSON file')
    parser.add_argument('--search', '-q', default='', help='Search name, slug, description and notes')
    parser.add_argument('--category', help='Exact category')
    parser.add_argument('--status', help='Exact activity status')
    parser.add_argument('--language', help='Exact primary language')
    parser.add_argument('--sort', choices=SORT_KEYS, help='Sort order')
    parser.add_argument('--json', action='store_true', help='Print matching entries as JSON')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    try:
        snapshot = load_snapshot(args.snapshot)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load repository data. {e}")
        return 1

    criteria = Criteria(
        search=args.search,
        category=args.category,
        status=args.status,
        language=args.language,
        sort_by=args.sort,
    )
    results = query(snapshot, criteria)

    if args.json:
        print(json.dumps(results, indent=2, ensure_ascii=False))
        return 0

    print(result_count_label(len(results)))
    message = empty_state_message(snapshot, results)
    if message:
        print(message)
        return 0
    for repo in results:
        print(f"  {summary_line(repo)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
