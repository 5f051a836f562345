"""
In-memory cache store with LRU eviction and per-entry TTL.
"""
import json
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..types import CacheStore, StoredEntry


@dataclass
class LruEntry:
    """LRU cache entry."""

    entry: StoredEntry
    size: int
    expires_at: Optional[float] = None


@dataclass
class MemoryCacheStats:
    """Memory cache statistics."""

    entries: int
    size_bytes: int
    max_size_bytes: int
    max_entries: int
    utilization_percent: float


class MemoryCacheStore(CacheStore):
    """
    In-memory cache store with LRU eviction.

    A falsy ``ttl`` (``None`` or ``0``) keeps the entry until it is evicted.
    """

    def __init__(
        self,
        max_size: int = 100 * 1024 * 1024,  # 100MB default
        max_entries: int = 1000,
        max_entry_size: int = 5 * 1024 * 1024,  # 5MB default
    ) -> None:
        self._cache: Dict[str, LruEntry] = {}
        self._current_size: int = 0
        self._max_size = max_size
        self._max_entries = max_entries
        self._max_entry_size = max_entry_size

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def _is_expired(self, entry: LruEntry, now: Optional[float] = None) -> bool:
        if entry.expires_at is None:
            return False
        return entry.expires_at <= (now if now is not None else time.time())

    def _cleanup(self) -> None:
        """Remove expired entries."""
        now = time.time()
        expired_keys = [
            key for key, entry in self._cache.items() if self._is_expired(entry, now)
        ]
        for key in expired_keys:
            self._delete_entry(key)

    def _delete_entry(self, key: str) -> bool:
        """Delete an entry and update size tracking."""
        entry = self._cache.get(key)
        if entry:
            self._current_size -= entry.size
            del self._cache[key]
            return True
        return False

    def _calculate_entry_size(self, key: str, entry: StoredEntry) -> int:
        """Calculate the size of a cache entry in bytes."""
        size = len(entry.body) + len(key) + len(entry.url)
        # Policy size (rough estimate)
        size += len(json.dumps(entry.cache_policy, default=str))
        return size

    def _evict_if_needed(self, required_size: int) -> None:
        """Evict entries if needed to make room."""
        # Evict by size
        while self._current_size + required_size > self._max_size and self._cache:
            oldest_key = next(iter(self._cache))
            self._delete_entry(oldest_key)

        # Evict by entry count
        while len(self._cache) >= self._max_entries:
            oldest_key = next(iter(self._cache))
            self._delete_entry(oldest_key)

    def _move_to_end(self, key: str) -> None:
        """Move an entry to the end of the LRU queue."""
        if key in self._cache:
            entry = self._cache.pop(key)
            self._cache[key] = entry

    async def get(self, key: str) -> Optional[StoredEntry]:
        """Get a cache entry by key."""
        entry = self._cache.get(key)
        if not entry:
            return None

        if self._is_expired(entry):
            self._delete_entry(key)
            return None

        self._move_to_end(key)

        return entry.entry

    async def set(
        self, key: str, value: StoredEntry, ttl: Optional[float] = None
    ) -> None:
        """Store a cache entry."""
        size = self._calculate_entry_size(key, value)

        # Don't cache if entry is too large
        if size > self._max_entry_size:
            return

        if key in self._cache:
            self._delete_entry(key)

        self._evict_if_needed(size)

        expires_at = time.time() + ttl if ttl else None
        self._cache[key] = LruEntry(entry=value, size=size, expires_at=expires_at)
        self._current_size += size

    async def delete(self, key: str) -> bool:
        """Delete a cache entry."""
        return self._delete_entry(key)

    async def clear(self) -> None:
        """Clear all cache entries."""
        self._cache.clear()
        self._current_size = 0

    async def size(self) -> int:
        """Get current number of live entries."""
        self._cleanup()
        return len(self._cache)

    async def keys(self) -> List[str]:
        """Get all live keys."""
        self._cleanup()
        return list(self._cache.keys())

    async def close(self) -> None:
        """Close the store and release resources."""
        await self.clear()

    def get_stats(self) -> MemoryCacheStats:
        """Get cache statistics."""
        return MemoryCacheStats(
            entries=len(self._cache),
            size_bytes=self._current_size,
            max_size_bytes=self._max_size,
            max_entries=self._max_entries,
            utilization_percent=(self._current_size / self._max_size) * 100
            if self._max_size > 0
            else 0,
        )


def create_memory_cache_store(
    max_size: int = 100 * 1024 * 1024,
    max_entries: int = 1000,
    max_entry_size: int = 5 * 1024 * 1024,
) -> MemoryCacheStore:
    """Create a memory cache store."""
    return MemoryCacheStore(
        max_size=max_size,
        max_entries=max_entries,
        max_entry_size=max_entry_size,
    )
