"""FastAPI dependency injection wiring."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TypeVar

import httpx

from repo_loc_counter.domain.ports.key_value_store import KeyValueStore
from repo_loc_counter.infrastructure.auth import AuthContext, CredentialStore
from repo_loc_counter.infrastructure.config import Settings, get_settings
from repo_loc_counter.infrastructure.github_rest_adapter import GitHubRestAdapter
from repo_loc_counter.infrastructure.key_value_stores import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from repo_loc_counter.services.count_lines import CountLinesUseCase
from repo_loc_counter.services.exclusions import ExclusionStore
from repo_loc_counter.services.periodic import PeriodicTask
from repo_loc_counter.services.rate_limit import RateLimitOracle
from repo_loc_counter.services.ttl_cache import PersistentTtlCache

logger = logging.getLogger(__name__)

_http_client: httpx.AsyncClient | None = None
_auth: AuthContext | None = None
_cache: PersistentTtlCache | None = None
_exclusions: ExclusionStore | None = None
_credentials: CredentialStore | None = None
_oracle: RateLimitOracle | None = None
_fetcher: GitHubRestAdapter | None = None
_timers: list[PeriodicTask] = []

T = TypeVar("T")


def _build_store(settings: Settings) -> KeyValueStore:
    if settings.cache_path is not None:
        return JsonFileKeyValueStore(settings.cache_path)
    return InMemoryKeyValueStore()


async def startup() -> None:
    """Initialise shared resources (called from the lifespan context manager)."""
    global _http_client, _auth, _cache, _exclusions, _credentials, _oracle, _fetcher  # noqa: PLW0603

    settings = get_settings()
    store = _build_store(settings)

    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
    _auth = AuthContext(lifetime_seconds=settings.credential_lifetime_seconds)
    _credentials = CredentialStore(store, _auth)
    if not await _credentials.load() and settings.github_token:
        _auth.set_credential(settings.github_token.get_secret_value())

    _cache = PersistentTtlCache(
        store,
        expiration_seconds=settings.cache_expiration_seconds,
        storage_limit=settings.cache_storage_limit_bytes,
        enabled=settings.cache_enabled,
    )
    await _cache.recalculate_size()

    _exclusions = ExclusionStore(store, defaults=settings.excluded_extensions)
    _fetcher = GitHubRestAdapter(_http_client, _auth, base_url=settings.github_api_url)
    _oracle = RateLimitOracle(_fetcher)

    _timers.extend(
        [
            PeriodicTask("cache-sweep", settings.cache_sweep_interval_seconds, _cache.sweep_expired),
            PeriodicTask(
                "credential-check",
                settings.credential_check_interval_seconds,
                _credentials.check_expiration,
            ),
        ]
    )
    for timer in _timers:
        timer.start()


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _auth, _cache, _exclusions, _credentials, _oracle, _fetcher  # noqa: PLW0603

    for timer in _timers:
        await timer.stop()
    _timers.clear()

    if _http_client:
        await _http_client.aclose()
        _http_client = None
    _auth = _cache = _exclusions = _credentials = _oracle = _fetcher = None


@lru_cache(maxsize=1)
def _settings() -> Settings:
    return get_settings()


def _require(resource: T | None, name: str) -> T:
    if resource is None:
        raise RuntimeError(f"{name} is not available: startup() was not called")
    return resource


def get_auth() -> AuthContext:
    return _require(_auth, "auth context")


def get_cache() -> PersistentTtlCache:
    return _require(_cache, "cache")


def get_rate_limit_oracle() -> RateLimitOracle:
    return _require(_oracle, "rate-limit oracle")


def get_credential_store() -> CredentialStore:
    return _require(_credentials, "credential store")


def get_exclusion_store() -> ExclusionStore:
    return _require(_exclusions, "exclusion store")


def get_use_case() -> CountLinesUseCase:
    """Build a use case for one request around the shared adapters."""
    settings = _settings()

    return CountLinesUseCase(
        repo_fetcher=_require(_fetcher, "GitHub adapter"),
        cache=get_cache(),
        auth=get_auth(),
        rate_limit_oracle=get_rate_limit_oracle(),
        exclusions=get_exclusion_store(),
        batch_size=settings.batch_size,
        authenticated_delay_ms=settings.authenticated_delay_ms,
        unauthenticated_delay_ms=settings.unauthenticated_delay_ms,
        quota_refresh_every=settings.quota_refresh_every,
        max_file_size_bytes=settings.max_file_size_bytes,
    )
