"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone

import pytest

from repo_loc_counter.domain.entities import RateLimitStatus, RepoMetadata, RepoTree, TreeNode
from repo_loc_counter.domain.value_objects import RepoRef
from repo_loc_counter.infrastructure.auth import AuthContext
from repo_loc_counter.infrastructure.key_value_stores import InMemoryKeyValueStore
from repo_loc_counter.services.count_lines import CountLinesUseCase
from repo_loc_counter.services.rate_limit import RateLimitOracle
from repo_loc_counter.services.reporting import CollectingReporter
from repo_loc_counter.services.ttl_cache import PersistentTtlCache


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def text_with_lines(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(count))


def blob(path: str, sha: str | None = None, size: int = 100) -> TreeNode:
    return TreeNode(path=path, type="blob", size=size, sha=sha or f"sha-{path}")


class FakeFetcher:
    """In-memory RepoFetcher that records calls and tracks concurrency."""

    def __init__(
        self,
        nodes: list[TreeNode] | None = None,
        blobs: dict[str, str | Exception] | None = None,
        truncated: bool = False,
        branch: str = "main",
    ) -> None:
        self.nodes = list(nodes or [])
        self.blobs = dict(blobs or {})
        self.truncated = truncated
        self.branch = branch
        self.metadata_error: Exception | None = None
        self.tree_error: Exception | None = None
        self.rate_limit_error: Exception | None = None
        self.calls: list[tuple[str, ...]] = []
        self.token: str | None = None
        self.tokens_sent: list[str | None] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_metadata(self, ref: RepoRef) -> RepoMetadata:
        self.calls.append(("metadata", ref.full_name))
        self.tokens_sent.append(self.token)
        if self.metadata_error is not None:
            raise self.metadata_error
        return RepoMetadata(owner=ref.owner, repo=ref.repo, default_branch=self.branch)

    async def fetch_tree(self, ref: RepoRef, branch: str) -> RepoTree:
        self.calls.append(("tree", ref.full_name, branch))
        self.tokens_sent.append(self.token)
        if self.tree_error is not None:
            raise self.tree_error
        return RepoTree(nodes=tuple(self.nodes), truncated=self.truncated)

    async def fetch_blob(self, ref: RepoRef, sha: str) -> str:
        self.calls.append(("blob", sha))
        self.tokens_sent.append(self.token)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            value = self.blobs[sha]
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.in_flight -= 1

    async def fetch_rate_limit(self) -> RateLimitStatus:
        self.calls.append(("rate_limit",))
        self.tokens_sent.append(self.token)
        if self.rate_limit_error is not None:
            raise self.rate_limit_error
        return RateLimitStatus(
            remaining=42,
            limit=60,
            reset_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def with_token(self, token: str) -> FakeFetcher:
        # Shares the call log and configured responses with the original.
        scoped = copy.copy(self)
        scoped.token = token
        return scoped

    def blob_calls(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "blob"]

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store: InMemoryKeyValueStore, clock: FakeClock) -> PersistentTtlCache:
    return PersistentTtlCache(store, clock=clock)


@pytest.fixture
def auth(clock: FakeClock) -> AuthContext:
    return AuthContext(lifetime_seconds=3600.0, clock=clock)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def reporter() -> CollectingReporter:
    return CollectingReporter()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def use_case(
    fetcher: FakeFetcher,
    cache: PersistentTtlCache,
    auth: AuthContext,
    sleep: RecordingSleep,
    reporter: CollectingReporter,
) -> CountLinesUseCase:
    return CountLinesUseCase(
        repo_fetcher=fetcher,
        cache=cache,
        auth=auth,
        rate_limit_oracle=RateLimitOracle(fetcher),
        reporter=reporter,
        sleep=sleep,
    )
