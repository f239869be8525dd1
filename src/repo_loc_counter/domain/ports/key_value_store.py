"""Port: persistent key-value store backing the cache, credential and exclusions."""

from __future__ import annotations

from typing import Any, Protocol, Sequence


class KeyValueStore(Protocol):
    """Async store of JSON-compatible values under opaque string keys.

    ``get_all`` enumerates in a stable order (insertion order for the
    bundled implementations); eviction tie-breaks rely on it.
    """

    async def get(self, key: str) -> Any | None:
        ...

    async def get_all(self) -> dict[str, Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, keys: Sequence[str]) -> None:
        ...
