"""Tests for the key-value store adapters and the exclusion record."""

import pytest

from repo_loc_counter.infrastructure.key_value_stores import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from repo_loc_counter.services.exclusions import EXCLUSIONS_KEY, ExclusionStore


class TestInMemory:
    @pytest.mark.asyncio
    async def test_basic_operations(self):
        store = InMemoryKeyValueStore()
        await store.set("b", 1)
        await store.set("a", {"x": [1]})
        assert await store.get("a") == {"x": [1]}
        assert list(await store.get_all()) == ["b", "a"]

        await store.remove(["b", "missing"])
        assert await store.get("b") is None
        assert await store.get_all() == {"a": {"x": [1]}}

    @pytest.mark.asyncio
    async def test_get_all_returns_a_copy(self):
        store = InMemoryKeyValueStore({"a": 1})
        snapshot = await store.get_all()
        snapshot["b"] = 2
        assert await store.get("b") is None


class TestJsonFile:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state" / "store.json"
        first = JsonFileKeyValueStore(path)
        await first.set("cache_a", {"created_at": 1.0, "data": "x"})
        await first.set("github_token", {"value": "t"})
        await first.remove(["github_token"])

        second = JsonFileKeyValueStore(path)
        assert await second.get_all() == {"cache_a": {"created_at": 1.0, "data": "x"}}

    @pytest.mark.asyncio
    async def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "nope.json")
        assert await store.get_all() == {}

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileKeyValueStore(path)
        assert await store.get("anything") is None
        await store.set("k", "v")
        assert await JsonFileKeyValueStore(path).get("k") == "v"


class TestExclusionStore:
    @pytest.mark.asyncio
    async def test_defaults_until_saved(self):
        store = InMemoryKeyValueStore()
        exclusions = ExclusionStore(store, defaults=[".LOCK"])
        assert await exclusions.load() == frozenset({"lock"})

        saved = await exclusions.save([" .Md", "json", ""])
        assert saved == frozenset({"md", "json"})
        assert await store.get(EXCLUSIONS_KEY) == ["json", "md"]
        assert await exclusions.load() == frozenset({"md", "json"})
