"""
Cache store implementations.
"""
from .memory import (
    MemoryCacheStore,
    MemoryCacheStats,
    create_memory_cache_store,
)
from .mapping import MappingCacheStore, ensure_cache_store

__all__ = [
    "MemoryCacheStore",
    "MemoryCacheStats",
    "create_memory_cache_store",
    "MappingCacheStore",
    "ensure_cache_store",
]
