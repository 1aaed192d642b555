"""
Unified caching for dbwrapper.

Holds the per-record-type field descriptor lists built by the mapper so
record types are introspected once, not once per row. Uses cachetools for
bounded storage.
"""
import functools
import logging
import threading
from collections.abc import Callable
from typing import Any

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Unified cache manager for the dbwrapper package.

    Thread-safe singleton that manages all named caches.
    """

    _instance = None
    _caches: dict[str, cachetools.Cache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 256, ttl: int | None = None) -> cachetools.Cache:
        """Get or create a cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds, None for a plain LRU cache

        Returns
            cachetools cache instance
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    if ttl is None:
                        self._caches[name] = cachetools.LRUCache(maxsize=maxsize)
                    else:
                        self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()


def cached_by_type(cache_name: str, maxsize: int = 256) -> Callable:
    """Cache a single-argument function keyed on the type it receives.

    Usage:
        @cached_by_type('record_fields')
        def describe(record_type):
            ...
    """
    def decorator(func: Callable[[type], Any]) -> Callable[[type], Any]:
        @functools.wraps(func)
        def wrapper(record_type: type) -> Any:
            if not isinstance(record_type, type):
                return func(record_type)
            cache = Cache.get_instance().get_cache(cache_name, maxsize=maxsize)
            try:
                return cache[record_type]
            except KeyError:
                pass
            result = func(record_type)
            with Cache._lock:
                cache[record_type] = result
            logger.debug(f'Cached {cache_name} for {record_type.__qualname__}')
            return result
        return wrapper
    return decorator
