"""
Store adapter for plain mappings and get/set/delete objects.
"""
import inspect
import json
from collections.abc import MutableMapping
from typing import Any, Optional

from ..types import CacheStore, StoredEntry
from .memory import MemoryCacheStore


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class MappingCacheStore(CacheStore):
    """
    Adapts a ``dict``-like mapping, or any object exposing ``get``,
    ``set`` and ``delete`` (sync or async), to ``CacheStore``.

    Entries are written as JSON-compatible dicts. Reads accept dicts,
    JSON text or bytes, and ``StoredEntry`` instances. Mappings ignore
    the TTL; other backends receive it as a third ``set`` argument.

    Example:
        cache = {}
        cacheable = CacheableRequest(request, MappingCacheStore(cache))
    """

    def __init__(self, backend: Any) -> None:
        self._backend = backend
        self._is_mapping = isinstance(backend, MutableMapping)

    @property
    def backend(self) -> Any:
        return self._backend

    async def get(self, key: str) -> Optional[StoredEntry]:
        value = await _maybe_await(self._backend.get(key))
        if value is None:
            return None
        if isinstance(value, StoredEntry):
            return value
        if isinstance(value, (bytes, bytearray, str)):
            value = json.loads(value)
        return StoredEntry.from_dict(value)

    async def set(
        self, key: str, value: StoredEntry, ttl: Optional[float] = None
    ) -> None:
        if self._is_mapping:
            self._backend[key] = value.to_dict()
            return
        await _maybe_await(self._backend.set(key, value.to_dict(), ttl))

    async def delete(self, key: str) -> bool:
        if self._is_mapping:
            return self._backend.pop(key, None) is not None
        return bool(await _maybe_await(self._backend.delete(key)))

    async def clear(self) -> None:
        await _maybe_await(self._backend.clear())


def ensure_cache_store(store: Any = None) -> CacheStore:
    """Coerce ``store`` to a ``CacheStore``. ``None`` gives a memory store."""
    if store is None:
        return MemoryCacheStore()
    if isinstance(store, CacheStore):
        return store
    if isinstance(store, MutableMapping) or all(
        callable(getattr(store, name, None)) for name in ("get", "set", "delete")
    ):
        return MappingCacheStore(store)
    raise TypeError(
        f"Cache store must be a CacheStore, a mapping or expose get/set/delete, "
        f"got {type(store).__name__}"
    )
