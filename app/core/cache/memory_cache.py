"""
In-process cache backend.
"""
import copy
import time
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from app.core.cache.backend import CACHE_PERMANENT, CacheBackend, CacheItem
from app.utils import get_logger


log = get_logger(__name__)


class MemoryCacheBackend(CacheBackend):
    """
    Dict-backed cache with a tag index.

    Values are deep-copied on the way in and out so callers cannot mutate
    what other readers see. Expired entries are dropped when read and swept
    on every write and invalidation.
    """

    def __init__(self):
        self._items: Dict[str, Tuple[CacheItem, Optional[float]]] = {}
        self._tags: Dict[str, Set[str]] = {}

    async def get(self, cid: str) -> Optional[CacheItem]:
        entry = self._items.get(cid)
        if entry is None:
            return None

        item, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._remove(cid)
            return None

        return CacheItem(cid=item.cid, data=copy.deepcopy(item.data), tags=list(item.tags), ttl=item.ttl)

    async def set(
        self,
        cid: str,
        data: Any,
        ttl: int = CACHE_PERMANENT,
        tags: Iterable[str] = (),
    ) -> None:
        self._purge_expired()
        self._remove(cid)
        tag_list = sorted(set(tags))
        expires_at = None if ttl == CACHE_PERMANENT else time.monotonic() + ttl
        self._items[cid] = (CacheItem(cid=cid, data=copy.deepcopy(data), tags=tag_list, ttl=ttl), expires_at)
        for tag in tag_list:
            self._tags.setdefault(tag, set()).add(cid)

    async def delete(self, cid: str) -> None:
        self._remove(cid)

    async def invalidate_tags(self, tags: Iterable[str]) -> int:
        self._purge_expired()
        removed = 0
        for tag in tags:
            for cid in self._tags.pop(tag, set()):
                if cid in self._items:
                    self._remove(cid)
                    removed += 1
        if removed:
            log.debug("Invalidated %d cache entries", removed)
        return removed

    def _purge_expired(self) -> None:
        now = time.monotonic()
        expired = [
            cid for cid, (_, expires_at) in self._items.items()
            if expires_at is not None and expires_at <= now
        ]
        for cid in expired:
            self._remove(cid)

    def _remove(self, cid: str) -> None:
        entry = self._items.pop(cid, None)
        if entry is None:
            return
        for tag in entry[0].tags:
            cids = self._tags.get(tag)
            if cids is not None:
                cids.discard(cid)
                if not cids:
                    del self._tags[tag]
