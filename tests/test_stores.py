"""Tests for cache stores."""
import json
import pytest

from cacheable_request import (
    CacheStore,
    MappingCacheStore,
    MemoryCacheStore,
    StoredEntry,
    create_memory_cache_store,
    ensure_cache_store,
)
from helpers import RecordingStore


def create_entry(key: str, body_size: int = 0) -> StoredEntry:
    """Create a test entry."""
    body = json.dumps({"key": key}).encode() + b"x" * body_size
    return StoredEntry(
        cache_policy={"version": 1},
        url=f"https://example.com/{key}",
        status_code=200,
        body=body,
    )


@pytest.fixture
async def store():
    """Create a MemoryCacheStore for testing."""
    s = MemoryCacheStore(
        max_size=1024 * 1024,  # 1MB
        max_entries=100,
        max_entry_size=100 * 1024,  # 100KB
    )
    yield s
    await s.close()


class TestGetSet:
    @pytest.mark.asyncio
    async def test_store_and_retrieve(self, store):
        await store.set("key1", create_entry("test"))

        retrieved = await store.get("key1")
        assert retrieved is not None
        assert retrieved.url == "https://example.com/test"
        assert retrieved.body == json.dumps({"key": "test"}).encode()

    @pytest.mark.asyncio
    async def test_return_none_for_nonexistent(self, store):
        assert await store.get("non-existent") is None

    @pytest.mark.asyncio
    async def test_overwrite_existing_key(self, store):
        await store.set("key1", create_entry("first"))
        await store.set("key1", create_entry("second"))

        retrieved = await store.get("key1")
        assert retrieved.body == json.dumps({"key": "second"}).encode()
        assert len(store) == 1


class TestDeleteClear:
    @pytest.mark.asyncio
    async def test_delete_existing(self, store):
        await store.set("key1", create_entry("test"))
        assert await store.delete("key1") is True
        assert "key1" not in store

    @pytest.mark.asyncio
    async def test_delete_nonexistent(self, store):
        assert await store.delete("non-existent") is False

    @pytest.mark.asyncio
    async def test_remove_all_entries(self, store):
        await store.set("key1", create_entry("test1"))
        await store.set("key2", create_entry("test2"))

        await store.clear()

        assert await store.size() == 0
        assert store.get_stats().size_bytes == 0


class TestKeys:
    @pytest.mark.asyncio
    async def test_return_all_keys(self, store):
        await store.set("key1", create_entry("test1"))
        await store.set("key2", create_entry("test2"))
        await store.set("key3", create_entry("test3"))

        keys = await store.keys()
        assert sorted(keys) == ["key1", "key2", "key3"]


class TestExpiration:
    @pytest.mark.asyncio
    async def test_return_none_for_expired(self, store):
        await store.set("expired", create_entry("test"), ttl=-1)
        assert await store.get("expired") is None
        assert "expired" not in store

    @pytest.mark.asyncio
    async def test_size_skips_expired(self, store):
        await store.set("expired", create_entry("test"), ttl=-1)
        await store.set("live", create_entry("test"), ttl=60)
        assert await store.size() == 1

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(self, store):
        await store.set("key1", create_entry("test"))
        await store.set("key2", create_entry("test"), ttl=0)
        assert await store.get("key1") is not None
        assert await store.get("key2") is not None


class TestLRUEviction:
    @pytest.mark.asyncio
    async def test_evict_oldest_when_max_entries_reached(self):
        small_store = MemoryCacheStore(max_entries=3)

        await small_store.set("key1", create_entry("test1"))
        await small_store.set("key2", create_entry("test2"))
        await small_store.set("key3", create_entry("test3"))
        await small_store.set("key4", create_entry("test4"))

        assert await small_store.get("key1") is None
        assert await small_store.get("key4") is not None

    @pytest.mark.asyncio
    async def test_get_marks_entry_as_recent(self):
        small_store = MemoryCacheStore(max_entries=3)

        await small_store.set("key1", create_entry("test1"))
        await small_store.set("key2", create_entry("test2"))
        await small_store.set("key3", create_entry("test3"))
        await small_store.get("key1")
        await small_store.set("key4", create_entry("test4"))

        assert await small_store.get("key1") is not None
        assert await small_store.get("key2") is None

    @pytest.mark.asyncio
    async def test_evict_by_size(self):
        small_store = MemoryCacheStore(max_size=1000, max_entry_size=1000)

        await small_store.set("key1", create_entry("test1", body_size=400))
        await small_store.set("key2", create_entry("test2", body_size=400))
        await small_store.set("key3", create_entry("test3", body_size=400))

        assert await small_store.get("key1") is None
        assert await small_store.get("key3") is not None

    @pytest.mark.asyncio
    async def test_skip_oversized_entries(self):
        small_store = MemoryCacheStore(max_entry_size=100)

        await small_store.set("big", create_entry("big", body_size=200))

        assert await small_store.get("big") is None


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self):
        s = create_memory_cache_store(max_size=10000, max_entries=10)
        await s.set("key1", create_entry("test1"))

        stats = s.get_stats()
        assert stats.entries == 1
        assert stats.size_bytes > 0
        assert stats.max_size_bytes == 10000
        assert stats.max_entries == 10
        assert 0 < stats.utilization_percent < 100


class TestMappingCacheStore:
    @pytest.mark.asyncio
    async def test_dict_backend_holds_json_compatible_entries(self):
        backend = {}
        s = MappingCacheStore(backend)
        await s.set("key1", create_entry("test"))

        assert json.loads(json.dumps(backend["key1"]))["url"] == "https://example.com/test"
        retrieved = await s.get("key1")
        assert retrieved == create_entry("test")

    @pytest.mark.asyncio
    async def test_reads_json_text(self):
        backend = {"key1": json.dumps(create_entry("test").to_dict())}
        retrieved = await MappingCacheStore(backend).get("key1")
        assert retrieved.body == create_entry("test").body

    @pytest.mark.asyncio
    async def test_malformed_entry_raises(self):
        backend = {"key1": {"url": "https://example.com"}}
        with pytest.raises(ValueError):
            await MappingCacheStore(backend).get("key1")

    @pytest.mark.asyncio
    async def test_delete_and_clear(self):
        backend = {}
        s = MappingCacheStore(backend)
        await s.set("key1", create_entry("test"))

        assert await s.delete("key1") is True
        assert await s.delete("key1") is False
        await s.set("key2", create_entry("test"))
        await s.clear()
        assert backend == {}

    @pytest.mark.asyncio
    async def test_get_set_delete_backend_receives_ttl(self):
        backend = RecordingStore()
        s = MappingCacheStore(backend)
        await s.set("key1", create_entry("test"), 30)

        assert backend.ttls == [30]
        assert (await s.get("key1")).url == "https://example.com/test"
        assert await s.delete("key1") is True


class TestEnsureCacheStore:
    def test_none_gives_memory_store(self):
        assert isinstance(ensure_cache_store(None), MemoryCacheStore)

    def test_cache_store_passes_through(self):
        s = MemoryCacheStore()
        assert ensure_cache_store(s) is s

    def test_mapping_is_wrapped(self):
        backend = {}
        s = ensure_cache_store(backend)
        assert isinstance(s, MappingCacheStore)
        assert isinstance(s, CacheStore)
        assert s.backend is backend

    def test_get_set_delete_object_is_wrapped(self):
        assert isinstance(ensure_cache_store(RecordingStore()), MappingCacheStore)

    def test_rejects_other_objects(self):
        with pytest.raises(TypeError):
            ensure_cache_store("redis://localhost")
