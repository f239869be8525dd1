"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the walker decides which ones are terminal for a
run and which are absorbed at file granularity.
"""

from __future__ import annotations

from datetime import datetime, timezone


class LocCounterError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidRepositoryError(LocCounterError):
    """The supplied owner / repo pair does not name a valid GitHub repository."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class FetchError(LocCounterError):
    """A GitHub API call returned a non-2xx status or could not be made."""

    def __init__(self, status: int | None, context: str, message: str | None = None) -> None:
        self.status = status
        self.context = context
        if message is None:
            if status is None:
                message = f"Could not fetch {context}"
            else:
                message = f"GitHub API returned HTTP {status} for {context}"
        super().__init__(message)


class NetworkError(FetchError):
    """The request never produced a response (DNS, TLS, timeout, ...)."""

    def __init__(self, context: str, cause: str) -> None:
        super().__init__(None, context, f"Network error fetching {context}: {cause}")


class RateLimitExceededError(LocCounterError):
    """GitHub API rate limit exceeded (403 with zero remaining quota, or 429)."""

    def __init__(self, reset_at: datetime | None) -> None:
        self.reset_at = reset_at
        if reset_at is None:
            reset_str = "unknown"
        else:
            reset_str = reset_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        super().__init__(
            f"GitHub API rate limit exceeded. Resets at {reset_str}. "
            "Provide a GitHub token to increase the limit."
        )


# ── Processing errors ───────────────────────────────────────────────────────


class DecodeError(LocCounterError):
    """Blob content could not be decoded into text."""


class CacheWriteRejectedError(LocCounterError):
    """The cache could not make room for a new entry."""


class TruncatedTreeWarning(LocCounterError):
    """The tree listing was truncated by GitHub; the walk sees a partial tree.

    Never raised: instances are handed to the reporter as an advisory.
    """

    def __init__(self, repo: str, branch: str) -> None:
        self.repo = repo
        self.branch = branch
        super().__init__(
            f"Repository {repo} is too large: the tree for '{branch}' was "
            "truncated and the results will be partial."
        )
