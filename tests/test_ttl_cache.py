"""Tests for the persistent TTL cache."""

import logging

import pytest

from repo_loc_counter.infrastructure.key_value_stores import InMemoryKeyValueStore
from repo_loc_counter.services.ttl_cache import PersistentTtlCache, estimate_size

from conftest import FakeClock


async def _live_sizes(store: InMemoryKeyValueStore) -> int:
    items = await store.get_all()
    return sum(record["size_bytes"] for key, record in items.items() if key.startswith("cache_"))


class TestGetSet:
    @pytest.mark.asyncio
    async def test_round_trip_within_window(self, cache, clock):
        value = {"default_branch": "main", "nested": [1, 2, {"a": None}]}
        assert await cache.set("cache_repo_o_r", value) is True

        clock.advance(3599)
        assert await cache.get("cache_repo_o_r") == value

    @pytest.mark.asyncio
    async def test_missing_key_is_absent(self, cache):
        assert await cache.get("cache_nope") is None

    @pytest.mark.asyncio
    async def test_expired_entry_is_absent_and_removed(self, cache, store, clock):
        await cache.set("cache_content_o_r_abc", "hello")
        size_before = cache.tracked_size
        assert size_before > 0

        clock.advance(3600.5)
        assert await cache.get("cache_content_o_r_abc") is None
        assert await store.get("cache_content_o_r_abc") is None
        assert cache.tracked_size == 0

    @pytest.mark.asyncio
    async def test_entry_exactly_at_window_is_still_valid(self, cache, clock):
        await cache.set("cache_x", "v")
        clock.advance(3600)
        assert await cache.get("cache_x") == "v"

    @pytest.mark.asyncio
    async def test_empty_string_payload_is_a_hit(self, cache):
        await cache.set("cache_content_o_r_empty", "")
        assert await cache.get("cache_content_o_r_empty") == ""

    @pytest.mark.asyncio
    async def test_record_layout(self, cache, store, clock):
        await cache.set("cache_x", [1, 2])
        record = await store.get("cache_x")
        assert record["created_at"] == clock.now
        assert record["expires_at"] == clock.now + 3600
        assert record["size_bytes"] == estimate_size([1, 2], clock.now)
        assert record["data"] == [1, 2]

    @pytest.mark.asyncio
    async def test_overwrite_does_not_double_count(self, cache, store):
        await cache.set("cache_x", "a" * 50)
        await cache.set("cache_x", "b" * 10)
        assert cache.tracked_size == await _live_sizes(store)
        assert await cache.get("cache_x") == "b" * 10

    @pytest.mark.asyncio
    async def test_rejects_keys_outside_prefix(self, cache):
        with pytest.raises(ValueError):
            await cache.set("github_token", "secret")

    @pytest.mark.asyncio
    async def test_disabled_cache_never_hits(self, store, clock):
        cache = PersistentTtlCache(store, enabled=False, clock=clock)
        assert await cache.set("cache_x", "v") is False
        assert await store.get("cache_x") is None
        assert await cache.get("cache_x") is None


class TestCapacity:
    @pytest.mark.asyncio
    async def test_entry_larger_than_limit_is_rejected(self, store, clock):
        cache = PersistentTtlCache(store, storage_limit=100, clock=clock)
        assert await cache.set("cache_big", "x" * 500) is False
        assert await store.get("cache_big") is None
        assert cache.tracked_size == 0

    @pytest.mark.asyncio
    async def test_set_evicts_oldest_when_full(self, store, clock):
        one = estimate_size("x" * 100, clock.now)
        cache = PersistentTtlCache(store, storage_limit=one * 2, clock=clock)

        await cache.set("cache_a", "x" * 100)
        clock.advance(1)
        await cache.set("cache_b", "x" * 100)
        clock.advance(1)
        assert await cache.set("cache_c", "x" * 100) is True

        assert await store.get("cache_a") is None
        assert await store.get("cache_b") is not None
        assert await store.get("cache_c") is not None
        assert cache.tracked_size == await _live_sizes(store)
        assert not cache.is_storage_full()

    @pytest.mark.asyncio
    async def test_rejected_write_when_room_cannot_be_made(self, clock):
        store = InMemoryKeyValueStore()
        big = estimate_size("x" * 100, clock.now)
        cache = PersistentTtlCache(store, storage_limit=big + 10, clock=clock)
        await cache.set("cache_a", "x")
        # Tracked size drifted above reality; the small entry cannot cover it.
        cache.tracked_size = big * 5

        assert await cache.set("cache_b", "x" * 100) is False
        assert await store.get("cache_a") is not None
        assert await store.get("cache_b") is None


class TestMakeRoom:
    async def _fill(self, cache: PersistentTtlCache, clock: FakeClock, keys: list[str]) -> int:
        for key in keys:
            await cache.set(key, "x" * 100)
            clock.advance(1)
        return estimate_size("x" * 100, clock.now)

    @pytest.mark.asyncio
    async def test_evicts_in_ascending_creation_order(self, cache, store, clock):
        # Insert out of chronological order to make enumeration order differ.
        clock.now = 1003.0
        await cache.set("cache_c", "x" * 100)
        clock.now = 1001.0
        await cache.set("cache_a", "x" * 100)
        clock.now = 1002.0
        await cache.set("cache_b", "x" * 100)
        size = estimate_size("x" * 100, 1001.0)

        assert await cache.make_room(size + 1) is True

        assert await store.get("cache_a") is None
        assert await store.get("cache_b") is None
        assert await store.get("cache_c") is not None

    @pytest.mark.asyncio
    async def test_stops_as_soon_as_enough_is_freed(self, cache, store, clock):
        size = await self._fill(cache, clock, ["cache_a", "cache_b", "cache_c"])

        assert await cache.make_room(size) is True
        remaining = sorted(k for k in (await store.get_all()))
        assert remaining == ["cache_b", "cache_c"]

    @pytest.mark.asyncio
    async def test_equal_timestamps_follow_enumeration_order(self, cache, store, clock):
        await cache.set("cache_first", "x" * 100)
        await cache.set("cache_second", "x" * 100)
        size = estimate_size("x" * 100, clock.now)

        assert await cache.make_room(size) is True
        assert await store.get("cache_first") is None
        assert await store.get("cache_second") is not None

    @pytest.mark.asyncio
    async def test_reports_failure_when_everything_is_not_enough(self, cache, store, clock):
        size = await self._fill(cache, clock, ["cache_a", "cache_b"])

        assert await cache.make_room(size * 10) is False
        assert await store.get("cache_a") is not None
        assert await store.get("cache_b") is not None

    @pytest.mark.asyncio
    async def test_ignores_foreign_keys(self, cache, store, clock):
        await store.set("github_token", {"value": "t", "timestamp": 0, "expires": 1})
        await store.set("excluded_extensions", ["md"])
        await self._fill(cache, clock, ["cache_a"])

        assert await cache.make_room(10**9) is False
        assert await cache.make_room(1) is True
        assert await store.get("github_token") is not None
        assert await store.get("excluded_extensions") == ["md"]


class TestRemoveClear:
    @pytest.mark.asyncio
    async def test_remove(self, cache, store):
        await cache.set("cache_a", "v")
        assert await cache.remove("cache_a") is True
        assert await cache.remove("cache_a") is False
        assert cache.tracked_size == 0

    @pytest.mark.asyncio
    async def test_removing_untracked_entry_logs_drift(self, cache, store, clock, caplog):
        # Written by another cache instance, so this one never tracked it.
        await PersistentTtlCache(store, clock=clock).set("cache_a", "v")
        assert cache.tracked_size == 0

        with caplog.at_level(logging.DEBUG, logger="repo_loc_counter.services.ttl_cache"):
            assert await cache.remove("cache_a") is True

        assert cache.tracked_size == 0
        assert "Tracked cache size drifted" in caplog.text

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, cache, store):
        await store.set("github_token", {"value": "t"})
        await cache.set("cache_a", "v")
        await cache.set("cache_b", "w")

        assert await cache.clear() is True
        assert await cache.clear() is False
        assert cache.tracked_size == 0
        assert await store.get_all() == {"github_token": {"value": "t"}}


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self, cache, store, clock):
        await cache.set("cache_old", "v")
        clock.advance(3000)
        await cache.set("cache_new", "w")
        clock.advance(1000)

        assert await cache.sweep_expired() == 1
        assert await store.get("cache_old") is None
        assert await store.get("cache_new") is not None
        assert cache.tracked_size == await _live_sizes(store)

    @pytest.mark.asyncio
    async def test_get_after_sweep_is_a_clean_miss(self, cache, clock):
        await cache.set("cache_a", "v")
        clock.advance(4000)
        await cache.sweep_expired()
        assert await cache.get("cache_a") is None
        assert cache.tracked_size == 0

    @pytest.mark.asyncio
    async def test_recalculate_size_matches_store(self, store, clock):
        writer = PersistentTtlCache(store, clock=clock)
        await writer.set("cache_a", "x" * 10)
        await writer.set("cache_b", {"k": [1, 2, 3]})

        fresh = PersistentTtlCache(store, clock=clock)
        assert fresh.tracked_size == 0
        assert await fresh.recalculate_size() == writer.tracked_size
        assert fresh.tracked_size == await _live_sizes(store)

    @pytest.mark.asyncio
    async def test_damaged_records_are_ignored(self, cache, store):
        await store.set("cache_broken", "not a record")
        assert await cache.get("cache_broken") is None
        assert await cache.recalculate_size() == 0
