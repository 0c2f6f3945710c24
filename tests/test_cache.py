"""
Tests for the cache backends.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis

from app.core import config
from app.core.cache import CACHE_PERMANENT, CacheBackendError, CacheClient, MemoryCacheBackend
from app.core.cache.redis_cache import RedisCacheBackend


class TestMemoryCacheBackend:

    @pytest.fixture
    def cache(self):
        return MemoryCacheBackend()

    async def test_miss_returns_none(self, cache):
        assert await cache.get("nope") is None

    async def test_empty_value_is_a_hit(self, cache):
        await cache.set("empty", {})

        item = await cache.get("empty")

        assert item is not None
        assert item.data == {}
        assert item.ttl == CACHE_PERMANENT

    async def test_values_are_copied(self, cache):
        value = {"role": ["view"]}
        await cache.set("k", value)
        value["role"].append("edit")

        item = await cache.get("k")
        item.data["role"].append("delete")

        assert (await cache.get("k")).data == {"role": ["view"]}

    async def test_invalidate_tags_removes_tagged_entries_only(self, cache):
        await cache.set("a", 1, tags=["group:1", "group_permission:9"])
        await cache.set("b", 2, tags=["group:2"])
        await cache.set("c", 3)

        removed = await cache.invalidate_tags(["group_permission:9"])

        assert removed == 1
        assert await cache.get("a") is None
        assert (await cache.get("b")).data == 2
        assert (await cache.get("c")).data == 3

    async def test_overwrite_drops_old_tags(self, cache):
        await cache.set("a", 1, tags=["old"])
        await cache.set("a", 2, tags=["new"])

        assert await cache.invalidate_tags(["old"]) == 0
        assert (await cache.get("a")).data == 2

    async def test_expired_entry_is_a_miss(self, cache):
        await cache.set("short", "x", ttl=0)

        assert await cache.get("short") is None

    async def test_delete(self, cache):
        await cache.set("a", 1, tags=["t"])
        await cache.delete("a")

        assert await cache.get("a") is None
        assert await cache.invalidate_tags(["t"]) == 0

    async def test_expired_entries_are_swept_on_write(self, cache):
        await cache.set("short", "x", ttl=0, tags=["group:1"])
        await cache.set("long", "y", tags=["group:2"])

        assert "short" not in cache._items
        assert "group:1" not in cache._tags
        assert cache._tags == {"group:2": {"long"}}

    async def test_expired_entries_are_swept_on_invalidation(self, cache):
        await cache.set("short", "x", ttl=0, tags=["group:1"])

        assert await cache.invalidate_tags(["group:9"]) == 0
        assert cache._items == {}
        assert cache._tags == {}


class FakePipeline:
    """Transactional pipeline double: queued commands are plain calls, I/O is awaited."""

    def __init__(self):
        self.set = MagicMock()
        self.sadd = MagicMock()
        self.delete = MagicMock()
        self.multi = MagicMock()
        self.watch = AsyncMock()
        self.smembers = AsyncMock(return_value=set())
        self.execute = AsyncMock(return_value=[])

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class TestRedisCacheBackend:

    @pytest.fixture
    def pipe(self):
        return FakePipeline()

    @pytest.fixture
    def client(self, pipe):
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.delete = AsyncMock(return_value=0)
        client.pipeline.return_value = pipe
        return client

    @pytest.fixture
    def cache(self, client):
        return RedisCacheBackend("redis://test", prefix="gp:", client=client)

    async def test_miss(self, cache, client):
        assert await cache.get("custom_group_permissions:1") is None
        client.get.assert_awaited_once_with("gp:custom_group_permissions:1")

    async def test_hit(self, cache, client):
        client.get.return_value = json.dumps({"data": {}, "tags": ["group:1"], "ttl": -1})

        item = await cache.get("custom_group_permissions:1")

        assert item.data == {}
        assert item.tags == ["group:1"]

    async def test_set_writes_entry_and_tag_sets_in_one_transaction(self, cache, client, pipe):
        await cache.set("k", {"r": ["view"]}, tags=["group:1", "group_permission:2"])

        client.pipeline.assert_called_once_with(transaction=True)
        key, payload = pipe.set.call_args.args
        assert key == "gp:k"
        assert json.loads(payload)["data"] == {"r": ["view"]}
        assert pipe.set.call_args.kwargs == {"ex": None}
        pipe.sadd.assert_any_call("gp:tag:group:1", "gp:k")
        pipe.sadd.assert_any_call("gp:tag:group_permission:2", "gp:k")
        pipe.execute.assert_awaited_once()

    async def test_set_with_ttl(self, cache, pipe):
        await cache.set("k", 1, ttl=30)

        assert pipe.set.call_args.kwargs == {"ex": 30}

    async def test_failed_set_writes_nothing_outside_the_transaction(self, cache, client, pipe):
        pipe.execute.side_effect = redis.ConnectionError("connection reset")

        with pytest.raises(CacheBackendError) as exc_info:
            await cache.set("custom_group_permissions:1", {"r": ["view"]}, tags=["group:1"])

        assert exc_info.value.operation == "set"
        client.set.assert_not_called()
        client.sadd.assert_not_called()

    async def test_invalidate_tags(self, cache, pipe):
        pipe.smembers.return_value = {"gp:a"}
        pipe.execute.return_value = [1, 1]

        removed = await cache.invalidate_tags(["group:1"])

        assert removed == 1
        pipe.watch.assert_awaited_once_with("gp:tag:group:1")
        pipe.multi.assert_called_once()
        pipe.delete.assert_any_call("gp:a")
        pipe.delete.assert_any_call("gp:tag:group:1")

    async def test_invalidate_empty_tag(self, cache, pipe):
        pipe.execute.return_value = [0]

        assert await cache.invalidate_tags(["group:9"]) == 0
        pipe.delete.assert_called_once_with("gp:tag:group:9")

    async def test_invalidate_retries_when_tag_changes(self, cache, pipe):
        pipe.smembers.side_effect = [{"gp:a"}, {"gp:a", "gp:b"}]
        pipe.execute.side_effect = [redis.WatchError("tag set changed"), [2, 1]]

        removed = await cache.invalidate_tags(["group:1"])

        assert removed == 2
        assert pipe.watch.await_count == 2
        assert pipe.execute.await_count == 2
        assert set(pipe.delete.call_args_list[-2].args) == {"gp:a", "gp:b"}

    async def test_redis_errors_propagate(self, cache, client):
        client.get.side_effect = redis.ConnectionError("connection refused")

        with pytest.raises(CacheBackendError) as exc_info:
            await cache.get("k")

        assert exc_info.value.operation == "get"

    async def test_corrupt_entry(self, cache, client):
        client.get.return_value = "{not json"

        with pytest.raises(CacheBackendError):
            await cache.get("k")


class TestCacheClient:

    async def test_unknown_backend(self, monkeypatch):
        await CacheClient.reset()
        monkeypatch.setattr(config, "CACHE_BACKEND", "memcached")

        with pytest.raises(ValueError):
            CacheClient.get_backend()

    async def test_memory_backend_is_shared(self, monkeypatch):
        await CacheClient.reset()
        monkeypatch.setattr(config, "CACHE_BACKEND", "memory")

        assert CacheClient.get_backend() is CacheClient.get_backend()
        assert isinstance(CacheClient.get_backend(), MemoryCacheBackend)
        await CacheClient.reset()
