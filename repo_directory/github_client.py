"""
GitHub API client
Async access to repository metadata and weekly commit activity
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import aiohttp

from .activity import is_weekly_bucket
from .config import (
    GITHUB_API_BASE,
    REQUEST_TIMEOUT,
    STATS_MAX_ATTEMPTS,
    STATS_PENDING_STATUS,
    STATS_RETRY_DELAY,
    api_headers,
)
from .errors import GitHubAPIError

logger = logging.getLogger(__name__)

Response = Tuple[int, Any, str]


@dataclass(frozen=True)
class PendingRetryPolicy:
    """
    Bounded retry for endpoints that answer "still computing".

    The request is repeated after a fixed pause while it keeps returning
    the pending status, up to max_attempts calls in total.
    """

    max_attempts: int = STATS_MAX_ATTEMPTS
    delay: float = STATS_RETRY_DELAY
    pending_status: int = STATS_PENDING_STATUS
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    async def call(self, request: Callable[[], Awaitable[Response]]) -> Response:
        response = await request()
        attempt = 1
        while response[0] == self.pending_status and attempt < self.max_attempts:
            await self.sleep(self.delay)
            response = await request()
            attempt += 1
        return response


def _rate_limit_note(headers) -> str:
    if headers.get('X-RateLimit-Remaining') != '0':
        return ""
    reset = headers.get('X-RateLimit-Reset')
    if not reset or not reset.isdigit():
        return " (rate limit exhausted)"
    reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
    return f" (rate limit exhausted, resets at {reset_at.isoformat()})"


class GitHubClient:
    """Fetch repository data from the GitHub REST API"""

    def __init__(
        self,
        token: Optional[str] = None,
        api_base: str = GITHUB_API_BASE,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[PendingRetryPolicy] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.token = token
        self.headers = api_headers(token)
        self.api_base = api_base.rstrip('/')
        self.retry_policy = retry_policy or PendingRetryPolicy()
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session
        self._owns_session = session is None

        if self.token:
            logger.info("Using authenticated GitHub API")
        else:
            logger.warning("No GitHub token provided, rate limits will be strict")

    async def __aenter__(self) -> "GitHubClient":
        if self.session is None:
            self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    async def _get(self, path: str) -> Response:
        """GET an API path and return (status, decoded body, message)."""
        if self.session is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")

        url = f"{self.api_base}{path}"
        async with self.session.get(url, headers=self.headers, timeout=self.timeout) as resp:
            message = resp.reason or ""
            if resp.status == 204:
                return resp.status, None, message
            try:
                body = await resp.json(content_type=None)
            except ValueError:
                body = None
            if resp.status >= 400:
                if isinstance(body, dict) and body.get('message'):
                    message = body['message']
                message += _rate_limit_note(resp.headers)
            return resp.status, body, message

    async def fetch_repo(self, slug: str) -> dict:
        """Fetch repository metadata. Any failure is raised as GitHubAPIError."""
        try:
            status, body, message = await self._get(f"/repos/{slug}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GitHubAPIError(slug, None, f"request failed: {e!r}") from e

        if not 200 <= status < 300 or not isinstance(body, dict):
            raise GitHubAPIError(slug, status, message)
        return body

    async def fetch_commit_activity(self, slug: str) -> List[dict]:
        """
        Fetch the weekly commit series, oldest week first.

        Best effort: a series that is still being computed after the retry,
        an error status, or a transport failure all yield an empty list.
        """
        try:
            status, body, message = await self.retry_policy.call(
                lambda: self._get(f"/repos/{slug}/stats/commit_activity")
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Commit activity request failed for {slug}: {e!r}")
            return []

        if status == self.retry_policy.pending_status:
            logger.warning(f"Commit activity for {slug} still being computed, using empty series")
            return []
        if not 200 <= status < 300:
            logger.warning(f"Commit activity unavailable for {slug}: {status} {message}")
            return []
        if not isinstance(body, list):
            return []
        series = [week for week in body if is_weekly_bucket(week)]
        if len(series) != len(body):
            logger.warning(f"Dropped {len(body) - len(series)} malformed commit activity weeks for {slug}")
        return series
