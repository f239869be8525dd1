"""Persisted user exclusion list (extensions never fetched)."""

from __future__ import annotations

import logging
from typing import Iterable

from repo_loc_counter.domain.ports.key_value_store import KeyValueStore
from repo_loc_counter.services.file_filter import normalize_extensions

logger = logging.getLogger(__name__)

EXCLUSIONS_KEY = "excluded_extensions"


class ExclusionStore:
    """Reads and writes the exclusion record, falling back to *defaults*."""

    def __init__(self, store: KeyValueStore, defaults: Iterable[str] = ()) -> None:
        self._store = store
        self._defaults = normalize_extensions(defaults)

    async def load(self) -> frozenset[str]:
        record = await self._store.get(EXCLUSIONS_KEY)
        if not isinstance(record, list):
            return self._defaults
        return normalize_extensions(str(item) for item in record)

    async def save(self, extensions: Iterable[str]) -> frozenset[str]:
        normalized = normalize_extensions(extensions)
        await self._store.set(EXCLUSIONS_KEY, sorted(normalized))
        logger.info("Saved %d excluded extension(s)", len(normalized))
        return normalized
