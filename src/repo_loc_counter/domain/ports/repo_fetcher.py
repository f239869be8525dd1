"""Port: repository fetcher — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Protocol

from repo_loc_counter.domain.entities import RateLimitStatus, RepoMetadata, RepoTree
from repo_loc_counter.domain.value_objects import RepoRef


class RepoFetcher(Protocol):
    """Abstract contract for fetching GitHub repository data."""

    async def fetch_metadata(self, ref: RepoRef) -> RepoMetadata:
        """Return high-level repository metadata."""
        ...

    async def fetch_tree(self, ref: RepoRef, branch: str) -> RepoTree:
        """Return the recursive file tree for the given branch."""
        ...

    async def fetch_blob(self, ref: RepoRef, sha: str) -> str:
        """Return the decoded text content of a blob."""
        ...

    async def fetch_rate_limit(self) -> RateLimitStatus:
        """Return the current core quota."""
        ...

    def with_token(self, token: str) -> RepoFetcher:
        """Return a fetcher whose requests carry *token*, leaving this one unchanged."""
        ...
