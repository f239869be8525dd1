"""Rate-limit oracle — remaining quota and reset time from the remote API."""

from __future__ import annotations

import logging

from repo_loc_counter.domain.entities import RateLimitStatus
from repo_loc_counter.domain.ports.repo_fetcher import RepoFetcher

logger = logging.getLogger(__name__)


class RateLimitOracle:
    """Single read-through quota query; the last answer is kept for display.

    It never gates requests: callers poll it after expensive work.
    Failures propagate as :class:`NetworkError` / :class:`FetchError`
    without retry.
    """

    def __init__(self, fetcher: RepoFetcher) -> None:
        self._fetcher = fetcher
        self.last_status: RateLimitStatus | None = None

    async def check_remaining(self) -> RateLimitStatus:
        status = await self._fetcher.fetch_rate_limit()
        self.last_status = status
        logger.info(
            "GitHub quota: %d/%d remaining, resets at %s",
            status.remaining,
            status.limit,
            status.reset_at.isoformat(),
        )
        return status
