"""
Redis cache backend.

Each entry is a JSON document under ``<prefix><cid>``. Every tag is a Redis
set ``<prefix>tag:<tag>`` listing the keys that carry it.
"""
import json
from typing import Any, Iterable, Optional

import redis.asyncio as redis

from app.core.cache.backend import CACHE_PERMANENT, CacheBackend, CacheBackendError, CacheItem
from app.utils import get_logger


log = get_logger(__name__)


class RedisCacheBackend(CacheBackend):
    """Tag-aware cache stored in Redis."""

    def __init__(self, redis_url: str, prefix: str = "", client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.prefix = prefix
        self.redis = client or redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )

    def _key(self, cid: str) -> str:
        return f"{self.prefix}{cid}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}tag:{tag}"

    async def get(self, cid: str) -> Optional[CacheItem]:
        try:
            raw = await self.redis.get(self._key(cid))
        except redis.RedisError as e:
            log.error("Redis get failed for %s: %s", cid, e)
            raise CacheBackendError("get", str(e)) from e

        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheBackendError("get", f"corrupt entry {cid}: {e}") from e

        return CacheItem(
            cid=cid,
            data=payload["data"],
            tags=payload.get("tags", []),
            ttl=payload.get("ttl", CACHE_PERMANENT),
        )

    async def set(
        self,
        cid: str,
        data: Any,
        ttl: int = CACHE_PERMANENT,
        tags: Iterable[str] = (),
    ) -> None:
        key = self._key(cid)
        tag_list = sorted(set(tags))
        payload = json.dumps({"data": data, "tags": tag_list, "ttl": ttl})
        try:
            # Entry and tag links are written in one MULTI/EXEC
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, payload, ex=None if ttl == CACHE_PERMANENT else ttl)
                for tag in tag_list:
                    pipe.sadd(self._tag_key(tag), key)
                await pipe.execute()
        except redis.RedisError as e:
            log.error("Redis set failed for %s: %s", cid, e)
            raise CacheBackendError("set", str(e)) from e

    async def delete(self, cid: str) -> None:
        try:
            await self.redis.delete(self._key(cid))
        except redis.RedisError as e:
            raise CacheBackendError("delete", str(e)) from e

    async def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        try:
            for tag in tags:
                removed += await self._invalidate_tag(self._tag_key(tag))
        except redis.RedisError as e:
            log.error("Redis tag invalidation failed: %s", e)
            raise CacheBackendError("invalidate_tags", str(e)) from e

        if removed:
            log.info("Invalidated %d cache entries", removed)
        return removed

    async def _invalidate_tag(self, tag_key: str) -> int:
        """
        Delete a tag set and its member keys atomically.

        The tag set is WATCHed; a concurrent write that links a new key to
        the tag aborts the transaction and the read is retried.
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(tag_key)
                    keys = await pipe.smembers(tag_key)
                    pipe.multi()
                    if keys:
                        pipe.delete(*keys)
                    pipe.delete(tag_key)
                    results = await pipe.execute()
                except redis.WatchError:
                    log.debug("Tag %s changed during invalidation, retrying", tag_key)
                    continue
                return results[0] if keys else 0

    async def close(self) -> None:
        await self.redis.aclose()
