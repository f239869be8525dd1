"""Count-lines use case — the batch tree walker and aggregator.

A run fetches repository metadata, then the recursive tree of the default
branch, then every blob in small concurrent batches with a pacing delay
between batches. All three kinds of fetch go through the cache first.

Failures while fetching metadata or the tree end the run. Failures for a
single blob are absorbed: the file is recorded as skipped and the walk
goes on.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Iterable, Sequence

from repo_loc_counter.domain.entities import (
    RepoMetadata,
    RepoTree,
    RunState,
    SkipReason,
    Stats,
    TreeNode,
)
from repo_loc_counter.domain.exceptions import (
    DecodeError,
    LocCounterError,
    TruncatedTreeWarning,
)
from repo_loc_counter.domain.ports.progress_reporter import ProgressReporter
from repo_loc_counter.domain.ports.repo_fetcher import RepoFetcher
from repo_loc_counter.domain.value_objects import RepoRef
from repo_loc_counter.infrastructure.auth import AuthContext
from repo_loc_counter.services.exclusions import ExclusionStore
from repo_loc_counter.services.file_filter import (
    MAX_FILE_SIZE_BYTES,
    count_lines,
    get_file_extension,
    normalize_extensions,
    skip_reason,
)
from repo_loc_counter.services.rate_limit import RateLimitOracle
from repo_loc_counter.services.reporting import LoggingReporter
from repo_loc_counter.services.ttl_cache import PersistentTtlCache

logger = logging.getLogger(__name__)


class CountLinesUseCase:
    """Orchestrates the full repo → per-extension line counts pipeline.

    Parameters
    ----------
    repo_fetcher:
        Adapter that can fetch metadata, trees and blobs from GitHub.
    cache:
        Persistent cache consulted before, and filled after, every fetch.
    auth:
        Credential holder; decides the pacing delay between batches.
    rate_limit_oracle:
        Polled every ``quota_refresh_every`` batches.
    reporter:
        Default reporting collaborator, overridable per run.
    exclusions:
        Source of the persisted exclusion list when a run names none.
    sleep:
        Awaitable used for the pacing delay.
    """

    def __init__(
        self,
        repo_fetcher: RepoFetcher,
        cache: PersistentTtlCache,
        auth: AuthContext,
        rate_limit_oracle: RateLimitOracle,
        reporter: ProgressReporter | None = None,
        exclusions: ExclusionStore | None = None,
        batch_size: int = 4,
        authenticated_delay_ms: int = 50,
        unauthenticated_delay_ms: int = 100,
        quota_refresh_every: int = 5,
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._fetcher = repo_fetcher
        self._cache = cache
        self._auth = auth
        self._oracle = rate_limit_oracle
        self._reporter: ProgressReporter = reporter or LoggingReporter()
        self._exclusions = exclusions
        self._batch_size = batch_size
        self._auth_delay = authenticated_delay_ms / 1000
        self._unauth_delay = unauthenticated_delay_ms / 1000
        self._quota_refresh_every = quota_refresh_every
        self._max_size = max_file_size_bytes
        self._sleep = sleep
        self.state = RunState.IDLE

    # ── Public entry points ─────────────────────────────────────────────

    async def analyze(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        *,
        excluded_extensions: Iterable[str] | None = None,
        reporter: ProgressReporter | None = None,
    ) -> Stats:
        """Validate the target and run, sending *token* for this run only.

        The shared credential is neither used nor replaced when *token* is
        given.
        """
        try:
            ref = RepoRef.of(owner, repo)
        except LocCounterError as exc:
            (reporter or self._reporter).report_error(str(exc))
            raise
        if not token or not token.strip():
            return await self.execute(
                ref, excluded_extensions=excluded_extensions, reporter=reporter
            )

        run = self._with_token(token)
        try:
            return await run.execute(
                ref, excluded_extensions=excluded_extensions, reporter=reporter
            )
        finally:
            self.state = run.state

    async def execute(
        self,
        ref: RepoRef,
        *,
        excluded_extensions: Iterable[str] | None = None,
        reporter: ProgressReporter | None = None,
    ) -> Stats:
        """Run one analysis and return the final stats.

        Terminal failures are reported to the collaborator and re-raised.
        """
        reporter = reporter or self._reporter
        excluded = await self._resolve_exclusions(excluded_extensions)
        logger.info("Counting lines of code in %s", ref.full_name)

        try:
            self._enter(RunState.FETCHING_REPO_META)
            metadata = await self._load_metadata(ref)

            self._enter(RunState.FETCHING_TREE)
            tree = await self._load_tree(ref, metadata.default_branch)
        except LocCounterError as exc:
            self._enter(RunState.FAILED)
            reporter.report_error(f"Error counting lines of code: {exc}")
            raise

        if tree.truncated:
            warning = TruncatedTreeWarning(ref.full_name, metadata.default_branch)
            logger.warning("%s", warning)
            reporter.report_warning(str(warning))

        self._enter(RunState.WALKING_FILES)
        stats = Stats()
        await self._walk(ref, tree.blobs, excluded, stats, reporter)

        self._enter(RunState.DONE)
        reporter.report_stats(stats)
        return stats

    # ── Walk ────────────────────────────────────────────────────────────

    async def _walk(
        self,
        ref: RepoRef,
        files: Sequence[TreeNode],
        excluded: frozenset[str],
        stats: Stats,
        reporter: ProgressReporter,
    ) -> None:
        total = len(files)
        batches = [
            files[i : i + self._batch_size] for i in range(0, total, self._batch_size)
        ]
        logger.info("Walking %d files in %d batches", total, len(batches))

        processed = 0
        refreshes: list[asyncio.Task[None]] = []
        for index, batch in enumerate(batches, start=1):
            await asyncio.gather(
                *(self._count_file(ref, node, excluded, stats) for node in batch)
            )
            processed += len(batch)
            reporter.report_progress(processed, total)

            if self._quota_refresh_every and index % self._quota_refresh_every == 0:
                refreshes.append(asyncio.create_task(self._refresh_quota()))

            if index < len(batches):
                await self._sleep(self._pacing_delay())

        if refreshes:
            await asyncio.gather(*refreshes)

    async def _count_file(
        self,
        ref: RepoRef,
        node: TreeNode,
        excluded: frozenset[str],
        stats: Stats,
    ) -> None:
        reason = skip_reason(node, excluded, self._max_size)
        if reason is not None:
            logger.debug("Skipping %s (%s)", node.path, reason.value)
            stats.record_skipped(node.path, reason)
            return

        try:
            text = await self._load_blob(ref, node.sha)
        except DecodeError as exc:
            logger.warning("Could not decode file %s: %s", node.path, exc)
            stats.record_skipped(node.path, SkipReason.DECODE_FAILED, str(exc))
            return
        except LocCounterError as exc:
            logger.warning("Could not process file %s: %s", node.path, exc)
            stats.record_skipped(node.path, SkipReason.FETCH_FAILED, str(exc))
            return

        stats.record_processed(get_file_extension(node.path), count_lines(text))

    def _pacing_delay(self) -> float:
        return self._auth_delay if self._auth.is_authenticated else self._unauth_delay

    async def _refresh_quota(self) -> None:
        try:
            await self._oracle.check_remaining()
        except LocCounterError as exc:
            logger.warning("Quota refresh failed: %s", exc)

    # ── Cached fetches ──────────────────────────────────────────────────

    async def _load_metadata(self, ref: RepoRef) -> RepoMetadata:
        async def load() -> dict[str, Any]:
            return (await self._fetcher.fetch_metadata(ref)).to_payload()

        return RepoMetadata.from_payload(await self._read_through(ref.metadata_key(), load))

    async def _load_tree(self, ref: RepoRef, branch: str) -> RepoTree:
        async def load() -> dict[str, Any]:
            return (await self._fetcher.fetch_tree(ref, branch)).to_payload()

        return RepoTree.from_payload(await self._read_through(ref.tree_key(branch), load))

    async def _load_blob(self, ref: RepoRef, sha: str) -> str:
        async def load() -> str:
            return await self._fetcher.fetch_blob(ref, sha)

        return await self._read_through(ref.content_key(sha), load)

    async def _read_through(self, key: str, load: Callable[[], Awaitable[Any]]) -> Any:
        cached = await self._cache.get(key)
        if cached is not None:
            return cached
        value = await load()
        # A rejected write is logged by the cache; the value is still used.
        await self._cache.set(key, value)
        return value

    # ── Helpers ─────────────────────────────────────────────────────────

    def _with_token(self, token: str) -> CountLinesUseCase:
        """A copy of this use case whose collaborators send *token*."""
        fetcher = self._fetcher.with_token(token)
        run = copy.copy(self)
        run._fetcher = fetcher
        run._auth = self._auth.scoped(token)
        run._oracle = RateLimitOracle(fetcher)
        return run

    async def _resolve_exclusions(self, requested: Iterable[str] | None) -> frozenset[str]:
        if requested is not None:
            return normalize_extensions(requested)
        if self._exclusions is not None:
            return await self._exclusions.load()
        return frozenset()

    def _enter(self, state: RunState) -> None:
        logger.debug("Run state: %s → %s", self.state.value, state.value)
        self.state = state
