"""Key-value store adapters — in-memory and JSON-file backed."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Sequence

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """Dict-backed store; enumeration follows insertion order."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._items: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        return self._items.get(key)

    async def get_all(self) -> dict[str, Any]:
        return dict(self._items)

    async def set(self, key: str, value: Any) -> None:
        self._items[key] = value

    async def remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self._items.pop(key, None)


class JsonFileKeyValueStore:
    """Whole-document JSON store persisted at *path*.

    The file is read on first use and rewritten after every mutation; file
    I/O runs in a worker thread so the event loop is never blocked. A
    missing or unreadable file starts the store empty.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._items: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        items = await self._loaded()
        return items.get(key)

    async def get_all(self) -> dict[str, Any]:
        items = await self._loaded()
        return dict(items)

    async def set(self, key: str, value: Any) -> None:
        items = await self._loaded()
        items[key] = value
        await self._flush(items)

    async def remove(self, keys: Sequence[str]) -> None:
        items = await self._loaded()
        removed = False
        for key in keys:
            if key in items:
                del items[key]
                removed = True
        if removed:
            await self._flush(items)

    # ── File plumbing ───────────────────────────────────────────────────

    async def _loaded(self) -> dict[str, Any]:
        if self._items is None:
            async with self._lock:
                if self._items is None:
                    self._items = await asyncio.to_thread(self._read, self._path)
        return self._items

    async def _flush(self, items: dict[str, Any]) -> None:
        text = json.dumps(items, separators=(",", ":"))
        async with self._lock:
            await asyncio.to_thread(self._write, self._path, text)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError):
            logger.warning("Could not read key-value store %s, starting empty", path)
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    @staticmethod
    def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)
