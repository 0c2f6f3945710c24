"""
Cache store used in front of group permission lookups.
"""
from typing import Optional

from app.core import config
from app.core.cache.backend import CACHE_PERMANENT, CacheBackend, CacheBackendError, CacheItem
from app.core.cache.memory_cache import MemoryCacheBackend


class CacheClient:
    """Process-wide cache backend, selected by CACHE_BACKEND."""

    _instance: Optional[CacheBackend] = None

    @classmethod
    def get_backend(cls) -> CacheBackend:
        if cls._instance is None:
            if config.CACHE_BACKEND == "redis":
                from app.core.cache.redis_cache import RedisCacheBackend
                cls._instance = RedisCacheBackend(config.REDIS_URL, prefix=config.CACHE_KEY_PREFIX)
            elif config.CACHE_BACKEND == "memory":
                cls._instance = MemoryCacheBackend()
            else:
                raise ValueError(f"Unknown CACHE_BACKEND {config.CACHE_BACKEND!r}")
        return cls._instance

    @classmethod
    async def reset(cls) -> None:
        if cls._instance is not None:
            await cls._instance.close()
        cls._instance = None


def get_cache_backend() -> CacheBackend:
    """FastAPI dependency returning the shared cache backend."""
    return CacheClient.get_backend()


__all__ = [
    "CACHE_PERMANENT",
    "CacheBackend",
    "CacheBackendError",
    "CacheClient",
    "CacheItem",
    "MemoryCacheBackend",
    "get_cache_backend",
]
