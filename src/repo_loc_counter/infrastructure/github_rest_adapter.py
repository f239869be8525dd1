"""GitHub REST API adapter — implements the RepoFetcher port."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from repo_loc_counter.domain.entities import RateLimitStatus, RepoMetadata, RepoTree
from repo_loc_counter.domain.exceptions import (
    DecodeError,
    FetchError,
    NetworkError,
    RateLimitExceededError,
)
from repo_loc_counter.domain.value_objects import RepoRef
from repo_loc_counter.infrastructure.auth import AuthContext

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"


def parse_reset_header(raw: str | None) -> datetime | None:
    """Turn an ``x-ratelimit-reset`` epoch-seconds header into a UTC datetime."""
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _json_object(resp: httpx.Response, context: str) -> dict[str, Any]:
    """Decode a 2xx body; anything but a JSON object raises :class:`FetchError`."""
    try:
        data = resp.json()
    except ValueError as exc:
        raise FetchError(resp.status_code, context, f"Response for {context} is not JSON") from exc
    if not isinstance(data, dict):
        raise FetchError(
            resp.status_code, context, f"Response for {context} is not a JSON object"
        )
    return data


class GitHubRestAdapter:
    """Concrete RepoFetcher backed by the GitHub v3 REST API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        auth: AuthContext,
        base_url: str = _GITHUB_API,
    ) -> None:
        self._client = client
        self._auth = auth
        self._base_url = base_url.rstrip("/")

    def with_token(self, token: str) -> GitHubRestAdapter:
        """Adapter sharing this HTTP client whose requests carry *token*."""
        return GitHubRestAdapter(self._client, self._auth.scoped(token), self._base_url)

    async def fetch_metadata(self, ref: RepoRef) -> RepoMetadata:
        """GET /repos/{owner}/{repo} → RepoMetadata."""
        context = f"repository metadata of {ref.full_name}"
        resp = await self._api_get(f"/repos/{ref.owner}/{ref.repo}", context)
        data = _json_object(resp, context)
        return RepoMetadata(
            owner=ref.owner,
            repo=ref.repo,
            default_branch=data.get("default_branch") or "main",
            description=data.get("description"),
        )

    async def fetch_tree(self, ref: RepoRef, branch: str) -> RepoTree:
        """GET /repos/{owner}/{repo}/git/trees/{branch}?recursive=1 → RepoTree."""
        context = f"tree of {ref.full_name}@{branch}"
        resp = await self._api_get(
            f"/repos/{ref.owner}/{ref.repo}/git/trees/{branch}",
            context,
            params={"recursive": "1"},
        )
        try:
            return RepoTree.from_payload(_json_object(resp, context))
        except (KeyError, TypeError, AttributeError) as exc:
            raise FetchError(resp.status_code, context, f"Malformed {context}: {exc}") from exc

    async def fetch_blob(self, ref: RepoRef, sha: str) -> str:
        """GET /repos/{owner}/{repo}/git/blobs/{sha} → decoded text."""
        resp = await self._api_get(
            f"/repos/{ref.owner}/{ref.repo}/git/blobs/{sha}",
            context=f"blob {sha} of {ref.full_name}",
        )
        try:
            data = _json_object(resp, f"blob {sha}")
        except FetchError as exc:
            raise DecodeError(f"Blob {sha} is not a JSON object") from exc
        content = data.get("content")
        if not isinstance(content, str):
            raise DecodeError(f"Blob {sha} has no content field")

        if data.get("encoding", "base64") == "base64":
            try:
                raw = base64.b64decode(content)
            except (binascii.Error, ValueError) as exc:
                raise DecodeError(f"Blob {sha} is not valid base64: {exc}") from exc
        else:
            raw = content.encode("utf-8")

        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Blob {sha} is not UTF-8 text: {exc}") from exc

    async def fetch_rate_limit(self) -> RateLimitStatus:
        """GET /rate_limit → RateLimitStatus (core resource)."""
        url = f"{self._base_url}/rate_limit"
        try:
            resp = await self._client.get(url, headers=self._auth.build_headers())
        except httpx.HTTPError as exc:
            raise NetworkError("rate limit", str(exc)) from exc

        if resp.status_code != 200:
            raise FetchError(resp.status_code, "rate limit")

        data = _json_object(resp, "rate limit")
        try:
            core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
            reset_at = parse_reset_header(str(core.get("reset", "")))
            return RateLimitStatus(
                remaining=int(core.get("remaining", 0)),
                limit=int(core.get("limit", 0)),
                reset_at=reset_at or datetime.now(timezone.utc),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise FetchError(resp.status_code, "rate limit", f"Malformed rate limit: {exc}") from exc

    async def _api_get(
        self,
        endpoint: str,
        context: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform a GitHub API GET request with error translation."""
        url = f"{self._base_url}{endpoint}"
        try:
            resp = await self._client.get(
                url, headers=self._auth.build_headers(), params=params
            )
        except httpx.HTTPError as exc:
            raise NetworkError(context, str(exc)) from exc

        if 200 <= resp.status_code < 300:
            return resp

        if resp.status_code == 403:
            remaining = resp.headers.get("x-ratelimit-remaining", "")
            if remaining == "0":
                raise RateLimitExceededError(
                    parse_reset_header(resp.headers.get("x-ratelimit-reset"))
                )

        if resp.status_code == 429:
            raise RateLimitExceededError(
                parse_reset_header(resp.headers.get("x-ratelimit-reset"))
            )

        logger.debug("GitHub API returned HTTP %d for %s", resp.status_code, url)
        raise FetchError(resp.status_code, context)
