"""Authenticated request layer — credential state and request headers.

:class:`AuthContext` replaces process-wide auth globals: one instance is
built at startup and handed to every component that issues requests.
:class:`CredentialStore` persists the credential record in the key-value
store so it survives restarts until it expires.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from repo_loc_counter.domain.entities import Credential
from repo_loc_counter.domain.ports.key_value_store import KeyValueStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "github_token"

_BASE_HEADERS: dict[str, str] = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
    "User-Agent": "repo-loc-counter/1.0",
}


class AuthContext:
    """Holds zero-or-one :class:`Credential`.

    An expired credential is treated exactly like an absent one and is
    dropped the next time it is read.
    """

    def __init__(
        self,
        lifetime_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lifetime = lifetime_seconds
        self._clock = clock
        self._credential: Credential | None = None

    def now(self) -> float:
        return self._clock()

    @property
    def credential(self) -> Credential | None:
        if self._credential is not None and self._credential.is_expired(self._clock()):
            logger.info("GitHub token expired, authentication disabled")
            self._credential = None
        return self._credential

    @property
    def is_authenticated(self) -> bool:
        return self.credential is not None

    def set_credential(
        self,
        token: str | None,
        *,
        acquired_at: float | None = None,
        expires_at: float | None = None,
    ) -> bool:
        """Install *token*; a blank token clears auth mode and returns False."""
        if not token or not token.strip():
            self._credential = None
            logger.info("GitHub authentication disabled")
            return False
        now = self._clock()
        acquired = now if acquired_at is None else acquired_at
        self._credential = Credential(
            token=token.strip(),
            acquired_at=acquired,
            expires_at=acquired + self._lifetime if expires_at is None else expires_at,
        )
        logger.info("GitHub authentication enabled")
        return True

    def scoped(self, token: str) -> AuthContext:
        """A separate context holding only *token*, with the same lifetime and clock.

        Installing or expiring the scoped credential leaves this context alone.
        """
        scoped = AuthContext(self._lifetime, self._clock)
        scoped.set_credential(token)
        return scoped

    def clear_credential(self) -> None:
        self._credential = None
        logger.info("GitHub authentication disabled")

    def check_expiration(self) -> bool:
        """Drop an expired credential; return True when one was dropped."""
        had_credential = self._credential is not None
        return had_credential and self.credential is None

    def build_headers(self) -> dict[str, str]:
        headers = dict(_BASE_HEADERS)
        credential = self.credential
        if credential is not None:
            headers["Authorization"] = f"token {credential.token}"
        return headers


class CredentialStore:
    """Persists the credential record ``{value, timestamp, expires}``."""

    def __init__(self, store: KeyValueStore, auth: AuthContext) -> None:
        self._store = store
        self._auth = auth

    async def save(self, token: str) -> bool:
        if not self._auth.set_credential(token):
            await self.clear()
            return False
        credential = self._auth.credential
        if credential is None:
            return False
        await self._store.set(
            CREDENTIAL_KEY,
            {
                "value": credential.token,
                "timestamp": credential.acquired_at,
                "expires": credential.expires_at,
            },
        )
        logger.info("Token saved")
        return True

    async def load(self) -> bool:
        """Restore a persisted, unexpired credential into the auth context."""
        record = await self._store.get(CREDENTIAL_KEY)
        if not isinstance(record, dict) or not record.get("value"):
            return False
        try:
            acquired_at = float(record.get("timestamp", 0))
            expires_at = float(record["expires"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed persisted token record")
            await self.clear()
            return False
        credential = Credential(str(record["value"]), acquired_at, expires_at)
        if credential.is_expired(self._auth.now()):
            logger.info("Token expired, clearing...")
            await self.clear()
            return False
        return self._auth.set_credential(
            credential.token, acquired_at=acquired_at, expires_at=expires_at
        )

    async def clear(self) -> None:
        await self._store.remove([CREDENTIAL_KEY])
        self._auth.clear_credential()
        logger.info("Token cleared")

    async def check_expiration(self) -> bool:
        """Periodic check: forget an expired credential both in memory and on disk."""
        if self._auth.check_expiration():
            logger.info("Token expired during session check")
            await self._store.remove([CREDENTIAL_KEY])
            return True
        return False
