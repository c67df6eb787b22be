"""LRU-K cache for decoded SST blocks."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

_Key = tuple[int, int]


@dataclass
class CacheItem:
    """A cached block and how often it has been accessed."""

    sst_id: int
    block_id: int
    block: Any
    access_count: int = 1


class BlockCache:
    """Thread-safe LRU-K cache keyed by ``(sst_id, block_id)``.

    Entries accessed fewer than ``k`` times are kept in a separate list and
    are evicted before entries that reached ``k`` accesses.
    """

    def __init__(self, capacity: int, k: int) -> None:
        if capacity < 1:
            raise ValueError("cache capacity must be at least 1")
        self._capacity = capacity
        self._k = k
        self._lock = threading.Lock()
        # Most recently used entries sit at the end of each ordered dict.
        self._less_k: OrderedDict[_Key, CacheItem] = OrderedDict()
        self._greater_k: OrderedDict[_Key, CacheItem] = OrderedDict()
        self._total_requests = 0
        self._hit_requests = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._less_k) + len(self._greater_k)

    def _find(self, key: _Key) -> CacheItem | None:
        return self._less_k.get(key) or self._greater_k.get(key)

    def _touch(self, key: _Key, item: CacheItem) -> None:
        self._less_k.pop(key, None)
        self._greater_k.pop(key, None)
        item.access_count += 1
        target = self._less_k if item.access_count < self._k else self._greater_k
        target[key] = item

    def _evict(self) -> None:
        if self._less_k:
            self._less_k.popitem(last=False)
        elif self._greater_k:
            self._greater_k.popitem(last=False)

    def get(self, sst_id: int, block_id: int) -> Any | None:
        """Return the cached block, or None on a miss."""
        key = (sst_id, block_id)
        with self._lock:
            self._total_requests += 1
            item = self._find(key)
            if item is None:
                return None
            self._hit_requests += 1
            self._touch(key, item)
            return item.block

    def put(self, sst_id: int, block_id: int, block: Any) -> None:
        """Insert or replace a block, evicting the least valuable entry if full."""
        key = (sst_id, block_id)
        with self._lock:
            item = self._find(key)
            if item is not None:
                item.block = block
                self._touch(key, item)
                return
            if len(self._less_k) + len(self._greater_k) >= self._capacity:
                self._evict()
            self._less_k[key] = CacheItem(sst_id, block_id, block)

    def hit_rate(self) -> float:
        """Return the fraction of ``get`` calls that were hits."""
        with self._lock:
            if self._total_requests == 0:
                return 0.0
            return self._hit_requests / self._total_requests