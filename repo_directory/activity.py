"""
Activity classification
Turns repository age, push recency, archive flag and commit velocity
into one of a fixed set of activity statuses.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

STALE_AFTER_DAYS = 540  # ~18 months without a push
NEW_WITHIN_DAYS = 365
IN_DEVELOPMENT_PACE = 5  # Commits per week, strictly greater
PACE_WINDOW_WEEKS = 13

SECONDS_PER_DAY = 86400


class ActivityStatus(str, Enum):
    ARCHIVED = "archived"
    STALE = "stale"
    NEW = "new"
    IN_DEVELOPMENT = "in-development"
    STABLE = "stable"


def parse_timestamp(value) -> datetime:
    """
    Parse a GitHub ISO-8601 timestamp into an aware datetime.

    Examples:
        "2024-01-05T10:00:00Z" -> datetime(2024, 1, 5, 10, 0, tzinfo=UTC)
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


def classify_activity(
    created_at: datetime,
    pushed_at: datetime,
    archived: bool,
    commit_pace: float,
    now: Optional[datetime] = None,
) -> ActivityStatus:
    """
    Classify a repository. First matching rule wins:

    1. archived on GitHub              -> archived
    2. last push more than 540 days ago -> stale
    3. created less than 365 days ago   -> new
    4. more than 5 commits/week         -> in-development
    5. anything else                    -> stable
    """
    if archived:
        return ActivityStatus.ARCHIVED

    now = now or datetime.now(timezone.utc)

    if _days_between(pushed_at, now) > STALE_AFTER_DAYS:
        return ActivityStatus.STALE
    if _days_between(created_at, now) < NEW_WITHIN_DAYS:
        return ActivityStatus.NEW
    if commit_pace > IN_DEVELOPMENT_PACE:
        return ActivityStatus.IN_DEVELOPMENT
    return ActivityStatus.STABLE


def is_weekly_bucket(week) -> bool:
    """A commit_activity bucket with a usable numeric total"""
    if not isinstance(week, dict):
        return False
    total = week.get('total')
    return isinstance(total, (int, float)) and not isinstance(total, bool) and total >= 0


def compute_commit_pace(weekly_series: Optional[Sequence[dict]]) -> float:
    """Average weekly commits over the most recent 13 weeks, one decimal."""
    if not weekly_series or not isinstance(weekly_series, list):
        return 0.0

    recent = [week for week in weekly_series if is_weekly_bucket(week)][-PACE_WINDOW_WEEKS:]
    if not recent:
        return 0.0
    total = sum(week['total'] for week in recent)
    # Round half up, matching what the client displays
    return math.floor(total / len(recent) * 10 + 0.5) / 10
