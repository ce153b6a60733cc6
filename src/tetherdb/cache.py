"""Process-wide cache of relation snapshots.

Relations are cached as hashes keyed ``relations:<collection>``, each mapping
field name to the JSON form of its relation. Invalidation works at two
granularities:

- ``set_hash_full(key, False)`` marks a whole collection stale.
- ``clear_relations_for_field`` marks a single field stale.

Readers treat a stale marker as "reload from the database". Any object that
implements ``SystemCache`` can be plugged in; ``MemoryCache`` is the default.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Literal, Protocol

logger = logging.getLogger(__name__)

# Value of a hash field whose relation must be reloaded
STALE: Literal[False] = False

HashValue = dict[str, Any] | Literal[False]


def relations_key(collection: str) -> str:
    """Cache key of the relations owned by ``collection``."""
    return f"relations:{collection}"


class SystemCache(Protocol):
    """The hash operations TetherDB needs from a cache backend."""

    def get_hash(self, key: str) -> HashValue | None:
        """Return the hash at ``key``, ``False`` if stale, None if missing."""
        ...

    def set_hash_full(self, key: str, value: HashValue) -> None:
        """Replace the whole hash at ``key``."""
        ...

    def set_hash_field(self, key: str, field: str, value: Any) -> None:
        """Set one field of the hash at ``key``, creating it if missing."""
        ...

    def delete_hash_field(self, key: str, field: str) -> None:
        """Remove one field of the hash at ``key``."""
        ...


class MemoryCache:
    """Thread-safe in-process ``SystemCache``."""

    def __init__(self) -> None:
        self._data: dict[str, HashValue] = {}
        self._lock = threading.Lock()

    def get_hash(self, key: str) -> HashValue | None:
        with self._lock:
            value = self._data.get(key)
            if value is None or value is STALE:
                return value
            return dict(value)

    def set_hash_full(self, key: str, value: HashValue) -> None:
        with self._lock:
            self._data[key] = dict(value) if value is not STALE else STALE

    def set_hash_field(self, key: str, field: str, value: Any) -> None:
        with self._lock:
            current = self._data.get(key)
            if current is STALE:
                # Reloaded in full on next read
                return
            if current is None:
                current = self._data[key] = {}
            current[field] = value

    def delete_hash_field(self, key: str, field: str) -> None:
        with self._lock:
            current = self._data.get(key)
            if current:
                current.pop(field, None)

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._data.clear()


def clear_relations_for_field(cache: SystemCache, collection: str, field: str) -> None:
    """Mark the cached relation of ``collection.field`` stale.

    When the collection's hash is itself missing or stale there is nothing
    to mark; the next read reloads the whole collection.
    """
    key = relations_key(collection)
    current = cache.get_hash(key)
    if current is None or current is STALE:
        return
    cache.set_hash_field(key, field, STALE)
    logger.debug(f"Invalidated cached relation {collection}.{field}")


_cache: MemoryCache | None = None


def get_cache() -> MemoryCache:
    """Return the process-wide default cache."""
    global _cache
    if _cache is None:
        _cache = MemoryCache()
    return _cache
