"""Size-bounded, time-expiring cache persisted in a key-value store.

Every entry lives under a key starting with :data:`CACHE_PREFIX`; keys
outside the prefix (credential, exclusion list) are never touched.

Sizes are estimates: the JSON length of ``{"timestamp", "data"}`` times two
bytes per character. Each record stores its own estimate, and the tracked
total moves by exactly that amount on insert and delete, so the tracked
total always equals the sum over live records. ``recalculate_size`` rebuilds
it from a full scan when the store was changed behind the cache's back.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from repo_loc_counter.domain.entities import CacheEntry
from repo_loc_counter.domain.exceptions import CacheWriteRejectedError
from repo_loc_counter.domain.ports.key_value_store import KeyValueStore
from repo_loc_counter.domain.value_objects import CACHE_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_EXPIRATION_SECONDS = 3600.0
DEFAULT_STORAGE_LIMIT = 5 * 1024 * 1024
BYTES_PER_CHAR = 2


def estimate_size(value: Any, timestamp: float) -> int:
    """Approximate stored size of *value* in bytes."""
    serialized = json.dumps({"timestamp": timestamp, "data": value}, separators=(",", ":"))
    return len(serialized) * BYTES_PER_CHAR


class PersistentTtlCache:
    """Read-through / write-through cache in front of every network call."""

    def __init__(
        self,
        store: KeyValueStore,
        expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS,
        storage_limit: int = DEFAULT_STORAGE_LIMIT,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.expiration_seconds = expiration_seconds
        self.storage_limit = storage_limit
        self.enabled = enabled
        self._clock = clock
        self.tracked_size = 0

    # ── Lookup ──────────────────────────────────────────────────────────

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` when missing or expired.

        An expired entry is deleted before returning.
        """
        if not self.enabled:
            return None
        entry = CacheEntry.from_record(key, await self._store.get(key))
        if entry is None:
            return None

        age = self._clock() - entry.created_at
        if age > self.expiration_seconds:
            logger.debug("Cache expired: %s (age %.0fs)", key, age)
            await self.remove(key)
            return None

        logger.debug("Cache hit: %s", key)
        return entry.payload

    # ── Mutation ────────────────────────────────────────────────────────

    async def set(self, key: str, value: Any) -> bool:
        """Persist *value*; False when the write was rejected for lack of room.

        A rejected write does not persist *value* (an older record under
        the same key is already gone); callers keep using the value they
        already hold.
        """
        if not self.enabled:
            return False
        if not key.startswith(CACHE_PREFIX):
            raise ValueError(f"Cache keys must start with {CACHE_PREFIX!r}: {key!r}")

        now = self._clock()
        size = estimate_size(value, now)
        try:
            await self._reserve(key, size)
        except CacheWriteRejectedError as exc:
            logger.warning("%s Not caching: %s", exc, key)
            return False

        entry = CacheEntry(
            key=key,
            payload=value,
            created_at=now,
            expires_at=now + self.expiration_seconds,
            size_bytes=size,
        )
        await self._store.set(key, entry.to_record())
        self.tracked_size += size
        logger.debug("Cached: %s (size: %.2fKB)", key, size / 1024)
        return True

    async def make_room(self, needed_bytes: int) -> bool:
        """Evict oldest-first until at least *needed_bytes* are freed.

        Returns False, and evicts nothing, when all cache entries together
        are smaller than *needed_bytes*.
        """
        entries = await self._entries()
        entries.sort(key=lambda entry: entry.created_at)

        if sum(entry.size_bytes for entry in entries) < needed_bytes:
            return False

        victims: list[CacheEntry] = []
        freed = 0
        for entry in entries:
            if freed >= needed_bytes:
                break
            victims.append(entry)
            freed += entry.size_bytes

        if victims:
            await self._delete(victims)
            logger.info("Evicted %d oldest cache items to free up space", len(victims))
        return True

    async def remove(self, key: str) -> bool:
        entry = CacheEntry.from_record(key, await self._store.get(key))
        if entry is None:
            return False
        await self._delete([entry])
        logger.debug("Cache removed: %s", key)
        return True

    async def clear(self) -> bool:
        """Drop every cache entry; False when there was nothing to drop."""
        items = await self._store.get_all()
        keys = [key for key in items if key.startswith(CACHE_PREFIX)]
        if not keys:
            return False
        await self._store.remove(keys)
        self.tracked_size = 0
        logger.info("Cache cleared: %d items removed", len(keys))
        return True

    # ── Maintenance ─────────────────────────────────────────────────────

    async def sweep_expired(self) -> int:
        """Delete every entry older than the expiration window."""
        now = self._clock()
        expired = [
            entry
            for entry in await self._entries()
            if now - entry.created_at > self.expiration_seconds
        ]
        if expired:
            await self._delete(expired)
            logger.info("Auto-cleaned %d expired cache items", len(expired))
        return len(expired)

    async def recalculate_size(self) -> int:
        self.tracked_size = sum(entry.size_bytes for entry in await self._entries())
        logger.info("Cache size: %.2fMB", self.tracked_size / 1024 / 1024)
        return self.tracked_size

    def is_storage_full(self, additional_bytes: int = 0) -> bool:
        return self.tracked_size + additional_bytes > self.storage_limit

    # ── Internals ───────────────────────────────────────────────────────

    async def _reserve(self, key: str, size: int) -> None:
        if size > self.storage_limit:
            raise CacheWriteRejectedError(
                f"Entry of {size} bytes exceeds the cache limit of {self.storage_limit} bytes."
            )
        # An overwrite releases the old record's share first.
        await self.remove(key)
        if not self.is_storage_full(size):
            return
        if not await self.make_room(size) or self.is_storage_full(size):
            raise CacheWriteRejectedError(
                f"Cache storage limit ({self.storage_limit / 1024 / 1024:.2f}MB) "
                "would be exceeded."
            )

    async def _entries(self) -> list[CacheEntry]:
        items = await self._store.get_all()
        entries: list[CacheEntry] = []
        for key, record in items.items():
            if not key.startswith(CACHE_PREFIX):
                continue
            entry = CacheEntry.from_record(key, record)
            if entry is not None:
                entries.append(entry)
        return entries

    async def _delete(self, entries: list[CacheEntry]) -> None:
        await self._store.remove([entry.key for entry in entries])
        freed = sum(entry.size_bytes for entry in entries)
        if freed > self.tracked_size:
            logger.debug(
                "Tracked cache size drifted: freeing %d bytes from %d tracked; clamping to 0",
                freed,
                self.tracked_size,
            )
        self.tracked_size = max(0, self.tracked_size - freed)
