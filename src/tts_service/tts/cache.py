"""
In-Memory TTL Cache for voice lists.

Each adapter owns one cache instance. Voice lists change rarely for local
and cloud backends, so caching them saves a process spawn or an API call
per request. The gwent daemon defaults to no caching (TTL 0) because the
daemon's voice set can change while the service runs.

Features:
    - TTL expiration checked on access
    - LRU eviction when capacity is reached
    - Thread-safe operations
    - Hit/miss/expiration statistics

Nothing is persisted; the cache lives as long as the adapter.

Example:
    >>> cache = TTLCache(ttl_seconds=3600)
    >>> cache.set("voices", listing)
    >>> cache.get("voices")
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from tts_service.core.logging import debug, get_logger

_LOG = get_logger("tts-service.cache")

V = TypeVar("V")


@dataclass
class CacheItem(Generic[V]):
    """
    A cached value.

    Attributes:
        value: The stored object.
        created_at: Monotonic clock reading when the item was stored.
    """
    value: V
    created_at: float


class TTLCache(Generic[V]):
    """
    Thread-safe LRU cache with TTL support.

    A ``ttl_seconds`` of 0 disables the cache entirely: ``get`` always
    misses and ``set`` stores nothing.

    Attributes:
        max_items: Maximum number of items to store.
        ttl_seconds: Item lifetime in seconds.
    """

    def __init__(self, ttl_seconds: float = 0.0, max_items: int = 16, name: str = "cache"):
        self.ttl_seconds = float(ttl_seconds)
        self.max_items = int(max_items)
        self.name = name

        self._d: "OrderedDict[str, CacheItem[V]]" = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._expirations = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: str) -> Optional[V]:
        """
        Get a value, or None if absent, expired, or caching is disabled.

        A hit refreshes the item's LRU position but not its age.
        """
        if not self.enabled:
            with self._lock:
                self._misses += 1
            return None

        with self._lock:
            item = self._d.get(key)
            if item is None:
                self._misses += 1
                return None

            age = time.monotonic() - item.created_at
            if age > self.ttl_seconds:
                del self._d[key]
                self._expirations += 1
                self._misses += 1
                expired = True
            else:
                self._d.move_to_end(key)
                self._hits += 1
                expired = False

        if expired:
            debug(_LOG, "cache_expired", cache=self.name, key=key, age=round(age, 1))
            return None
        return item.value

    def set(self, key: str, value: V) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._d[key] = CacheItem(value=value, created_at=time.monotonic())
            self._d.move_to_end(key)
            while len(self._d) > self.max_items:
                self._d.popitem(last=False)
        debug(_LOG, "cache_set", cache=self.name, key=key)

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._d:
                del self._d[key]
                return True
            return False

    def clear(self) -> int:
        """
        Clear all items.

        Returns:
            Number of items that were cleared.
        """
        with self._lock:
            count = len(self._d)
            self._d.clear()
            return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._d),
                "max_items": self.max_items,
                "ttl_seconds": self.ttl_seconds,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def __contains__(self, key: str) -> bool:
        """Membership test; does NOT check TTL expiration."""
        with self._lock:
            return key in self._d
