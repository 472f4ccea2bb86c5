"""
In-memory caching for rendered output and lookups.

Entries carry their own time-to-live on top of a cachetools ``TLRUCache``,
so LRU eviction still applies when the cache is full. Keys can be grouped
under tags and invalidated together.

Note: Each process holds its own cache. Multi-instance deployments see
stale entries until the TTL runs out.
"""

from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from cachetools import TLRUCache

from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its time-to-live in seconds."""

    value: Any
    ttl: float


def _time_to_use(key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


class CmsCacheService:
    """
    Thread-safe key/value cache with per-entry TTL and tag invalidation.

    Attributes:
        max_size: Maximum number of entries
        default_ttl: TTL in seconds used when ``set`` gets none
    """

    def __init__(self, max_size: Optional[int] = None, default_ttl: Optional[int] = None) -> None:
        self.max_size = max_size or settings.CACHE_MAX_SIZE
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_DEFAULT_TTL
        self._cache: TLRUCache = TLRUCache(maxsize=self.max_size, ttu=_time_to_use)
        self._tags: Dict[str, Set[str]] = {}
        self._lock = RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Args:
            key: Cache key
            default: Returned on a miss

        Returns:
            Cached value, or ``default`` if missing or expired
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return default
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds; 0 or less skips caching
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        with self._lock:
            self._cache[key] = CacheEntry(value=value, ttl=ttl)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def delete(self, key: str) -> bool:
        with self._lock:
            for keys in self._tags.values():
                keys.discard(key)
            self._prune_tags()
            return self._cache.pop(key, None) is not None

    def remember(self, key: str, ttl: Optional[int], callback: Callable[[], Any]) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        ``None`` results are not cached.
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                self._hits += 1
                return entry.value
            self._misses += 1

        value = callback()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def tags(self, tags: Iterable[str]) -> "TaggedCache":
        return TaggedCache(self, list(tags))

    def expire(self) -> int:
        """Drop expired entries and forget them in their tags; returns how many expired."""
        with self._lock:
            expired = self._cache.expire()
            self._prune_tags()
            return len(expired)

    def clear(self) -> None:
        """Clear all entries and tags."""
        with self._lock:
            self._cache.clear()
            self._tags.clear()
        logger.info("Cache cleared")

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with size, hits, misses and hit rate
        """
        with self._lock:
            self.expire()
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate_percent": round(hit_rate, 2),
                "tags": len(self._tags),
            }

    # ==================== TAGS ====================

    def _tag_key(self, tag: str, key: str) -> None:
        with self._lock:
            if key in self._cache:
                self._tags.setdefault(tag, set()).add(key)

    def _prune_tags(self) -> None:
        """Forget tagged keys that expired or were evicted, and empty tags."""
        for tag in list(self._tags):
            keys = {key for key in self._tags[tag] if key in self._cache}
            if keys:
                self._tags[tag] = keys
            else:
                del self._tags[tag]

    def _flush_tag(self, tag: str) -> int:
        with self._lock:
            keys = self._tags.pop(tag, set())
            removed = sum(1 for key in keys if self._cache.pop(key, None) is not None)
            self._prune_tags()
            return removed


class TaggedCache:
    """View on the cache that records keys under a set of tags."""

    def __init__(self, cache: CmsCacheService, tags: List[str]) -> None:
        self.cache = cache
        self.tag_names = tags

    def get(self, key: str, default: Any = None) -> Any:
        return self.cache.get(key, default)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.cache.set(key, value, ttl)
        for tag in self.tag_names:
            self.cache._tag_key(tag, key)

    def remember(self, key: str, ttl: Optional[int], callback: Callable[[], Any]) -> Any:
        if self.cache.has(key):
            return self.cache.get(key)
        value = callback()
        if value is not None:
            self.set(key, value, ttl)
        return value

    def clear(self) -> int:
        """
        Invalidate every key stored under these tags.

        Returns:
            Number of keys invalidated
        """
        removed = sum(self.cache._flush_tag(tag) for tag in self.tag_names)
        logger.debug(
            "Cache tags cleared",
            extra={"extra_fields": {"tags": self.tag_names, "keys": removed}},
        )
        return removed


cache_service = CmsCacheService()


def get_cache() -> CmsCacheService:
    """Process-wide cache instance."""
    return cache_service
