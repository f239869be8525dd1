"""API routes — thin controllers that delegate to the services."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from repo_loc_counter.infrastructure.auth import AuthContext, CredentialStore
from repo_loc_counter.interface.dependencies import (
    get_auth,
    get_cache,
    get_credential_store,
    get_exclusion_store,
    get_rate_limit_oracle,
    get_use_case,
)
from repo_loc_counter.interface.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    AuthStatusResponse,
    ClearCacheResponse,
    ExclusionsBody,
    RateLimitResponse,
    TokenRequest,
)
from repo_loc_counter.services.count_lines import CountLinesUseCase
from repo_loc_counter.services.exclusions import ExclusionStore
from repo_loc_counter.services.rate_limit import RateLimitOracle
from repo_loc_counter.services.reporting import CollectingReporter
from repo_loc_counter.services.ttl_cache import PersistentTtlCache

router = APIRouter()


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        422: {"description": "Invalid owner / repo"},
        403: {"description": "Repository is private"},
        404: {"description": "Repository or branch not found"},
        429: {"description": "GitHub API rate limit exceeded"},
        502: {"description": "GitHub API unreachable or failing"},
    },
)
async def analyze(
    body: AnalyzeRequest,
    use_case: CountLinesUseCase = Depends(get_use_case),
) -> AnalyzeResponse:
    """Count lines of code per extension in a GitHub repository."""
    reporter = CollectingReporter()
    stats = await use_case.analyze(
        body.owner,
        body.repo,
        body.token.get_secret_value() if body.token else None,
        excluded_extensions=body.excluded_extensions,
        reporter=reporter,
    )
    return AnalyzeResponse.from_run(stats, reporter)


@router.get("/rate-limit", response_model=RateLimitResponse)
async def rate_limit(
    oracle: RateLimitOracle = Depends(get_rate_limit_oracle),
    auth: AuthContext = Depends(get_auth),
) -> RateLimitResponse:
    """Current GitHub quota for the active credential (or anonymous)."""
    status = await oracle.check_remaining()
    return RateLimitResponse(
        remaining=status.remaining,
        limit=status.limit,
        reset_at=status.reset_at,
        authenticated=auth.is_authenticated,
    )


@router.delete("/cache", response_model=ClearCacheResponse)
async def clear_cache(
    cache: PersistentTtlCache = Depends(get_cache),
) -> ClearCacheResponse:
    """Drop every cached API response."""
    return ClearCacheResponse(removed=await cache.clear())


@router.put("/token", response_model=AuthStatusResponse)
async def save_token(
    body: TokenRequest,
    credentials: CredentialStore = Depends(get_credential_store),
) -> AuthStatusResponse:
    """Persist the shared GitHub token used by runs that bring none."""
    saved = await credentials.save(body.token.get_secret_value())
    return AuthStatusResponse(authenticated=saved)


@router.delete("/token", response_model=AuthStatusResponse)
async def clear_token(
    credentials: CredentialStore = Depends(get_credential_store),
) -> AuthStatusResponse:
    """Forget the shared GitHub token."""
    await credentials.clear()
    return AuthStatusResponse(authenticated=False)


@router.get("/exclusions", response_model=ExclusionsBody)
async def get_exclusions(
    exclusions: ExclusionStore = Depends(get_exclusion_store),
) -> ExclusionsBody:
    return ExclusionsBody(excluded_extensions=sorted(await exclusions.load()))


@router.put("/exclusions", response_model=ExclusionsBody)
async def save_exclusions(
    body: ExclusionsBody,
    exclusions: ExclusionStore = Depends(get_exclusion_store),
) -> ExclusionsBody:
    """Replace the extensions skipped by runs that name none."""
    saved = await exclusions.save(body.excluded_extensions)
    return ExclusionsBody(excluded_extensions=sorted(saved))
