"""
Tag-aware cache backend contract.

Entries are stored under a cache id with a list of tags. Invalidating a tag
removes every entry that carries it, so writers only need to know which
entities changed, not which cache ids were derived from them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional


# Entry lives until one of its tags is invalidated
CACHE_PERMANENT = -1


class CacheBackendError(Exception):
    """Raised when the cache store cannot be reached or returns garbage."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


@dataclass
class CacheItem:
    """A cache hit. ``data`` may legitimately be empty."""
    cid: str
    data: Any
    tags: list[str] = field(default_factory=list)
    ttl: int = CACHE_PERMANENT


class CacheBackend(ABC):
    """Interface every cache store implements."""

    @abstractmethod
    async def get(self, cid: str) -> Optional[CacheItem]:
        """Return the entry for ``cid`` or None on a miss."""

    @abstractmethod
    async def set(
        self,
        cid: str,
        data: Any,
        ttl: int = CACHE_PERMANENT,
        tags: Iterable[str] = (),
    ) -> None:
        """Store ``data`` under ``cid``; ``ttl`` is in seconds."""

    @abstractmethod
    async def delete(self, cid: str) -> None:
        ...

    @abstractmethod
    async def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Drop every entry carrying any of ``tags``. Returns the number removed."""

    async def close(self) -> None:
        return None
