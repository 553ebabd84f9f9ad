"""In-process key/value store with per-entry TTL and pattern invalidation.

Entries carry their own timestamp and TTL. An entry is valid while
``now - timestamp <= ttl``; stale entries are removed lazily when read and
eagerly by ``cleanup()``, which ``CacheCleanupTask`` runs on a fixed
interval so keys that are never read again do not pile up.

Keys built with ``make_cache_key`` have the form ``"{name}-{params}"`` with
a canonical (sorted-key) JSON rendering of the parameters, which is what
makes substring invalidation work: ``invalidate("invoices")`` reaches every
cached invoices list regardless of page, filter or search.

The store is process-wide shared state. All access happens synchronously on
the event loop thread, so no locking is needed.
"""

import asyncio
import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import orjson
from cachetools import LRUCache
from loguru import logger

from src.core.config import get_settings
from src.core.constants import MILLISECONDS_PER_MINUTE, MILLISECONDS_PER_SECOND
from src.core.types import CacheKey, EpochMillis

DEFAULT_TTL_MINUTES = 5


def _epoch_millis() -> EpochMillis:
    return time.time() * MILLISECONDS_PER_SECOND


def make_cache_key(name: str, params: dict[str, Any] | None = None) -> CacheKey:
    """Build a deterministic cache key from an operation name and its params.

    Args:
        name: Operation or entity name, e.g. ``"invoices"``.
        params: Query parameters. ``None`` is treated as no parameters.

    Returns:
        CacheKey: ``"{name}-{json}"`` with keys sorted.

    Example:
        >>> make_cache_key("invoices", {"page": 2, "search": "acme"})
        'invoices-{"page":2,"search":"acme"}'
    """
    serialized = orjson.dumps(params or {}, option=orjson.OPT_SORT_KEYS, default=str)
    return f"{name}-{serialized.decode()}"


@dataclass(slots=True)
class CacheEntry[T]:
    """A cached value with the time it was stored and its time-to-live."""

    key: CacheKey
    data: T
    timestamp: EpochMillis
    ttl: float

    def is_expired(self, now: EpochMillis) -> bool:
        """Return True once more than ``ttl`` milliseconds have elapsed."""
        return now - self.timestamp > self.ttl

    def remaining_ms(self, now: EpochMillis) -> float:
        """Milliseconds left before the entry expires (negative once stale)."""
        return self.ttl - (now - self.timestamp)


class _EvictionLoggingLRU(LRUCache):
    """LRU map that reports capacity evictions back to the store."""

    def __init__(self, maxsize: int, on_evict: Callable[[CacheKey], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self) -> tuple[CacheKey, CacheEntry[Any]]:
        key, entry = super().popitem()
        self._on_evict(key)
        return key, entry


class TTLCacheStore:
    """Key/value store with per-entry expiration and substring invalidation.

    Args:
        max_entries: Upper bound of live entries. The least recently used
            entry is evicted when the bound is reached.
        debug_logging: Emit hit/miss/expiry events at DEBUG level.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        max_entries: int = 10_000,
        *,
        debug_logging: bool = False,
        clock: Callable[[], EpochMillis] = _epoch_millis,
    ) -> None:
        self._entries = _EvictionLoggingLRU(max_entries, self._log_eviction)
        self._debug = debug_logging
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _trace(self, message: str, *args: object, **fields: object) -> None:
        if self._debug:
            logger.debug(message, *args, **fields)

    def _log_eviction(self, key: CacheKey) -> None:
        self._trace("Cache EVICT: {}", key, cache_key=key)

    def set(self, key: CacheKey, data: object, ttl_minutes: float | None = None) -> None:
        """Store ``data`` under ``key``, replacing any existing entry.

        Args:
            key: Cache key.
            data: Value to cache.
            ttl_minutes: Time-to-live in minutes. Defaults to 5 minutes.
        """
        minutes = ttl_minutes if ttl_minutes else DEFAULT_TTL_MINUTES
        self._entries[key] = CacheEntry(
            key=key,
            data=data,
            timestamp=self._clock(),
            ttl=minutes * MILLISECONDS_PER_MINUTE,
        )
        self._trace("Cache SET: {} (TTL: {}min)", key, minutes, cache_key=key)

    def get(self, key: CacheKey) -> Any:  # noqa: ANN401 - stores arbitrary values
        """Return the cached value, or None if missing or expired.

        Expired entries are deleted as a side effect.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._trace("Cache MISS: {}", key, cache_key=key)
            return None

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            self._trace("Cache EXPIRED: {}", key, cache_key=key)
            return None

        self._trace(
            "Cache HIT: {} ({}s remaining)",
            key,
            round(entry.remaining_ms(now) / MILLISECONDS_PER_SECOND),
            cache_key=key,
        )
        return entry.data

    def has(self, key: CacheKey) -> bool:
        """Return True if ``key`` holds a valid entry."""
        return self.get(key) is not None

    def delete(self, key: CacheKey) -> bool:
        """Remove one entry.

        Returns:
            bool: True if an entry was removed.
        """
        removed = self._entries.pop(key, None) is not None
        if removed:
            self._trace("Cache DELETE: {}", key, cache_key=key)
        return removed

    def invalidate(self, pattern: str) -> int:
        """Delete every entry whose key contains ``pattern``.

        Returns:
            int: Number of entries removed.
        """
        matching = [key for key in self._entries if pattern in key]
        for key in matching:
            del self._entries[key]

        if matching:
            self._trace(
                'Cache INVALIDATE: {} items matching "{}"', len(matching), pattern
            )
        return len(matching)

    def clear(self) -> None:
        """Remove all entries."""
        size = len(self._entries)
        # MutableMapping.clear() goes through popitem(), which reports evictions
        self._entries = _EvictionLoggingLRU(self._entries.maxsize, self._log_eviction)
        self._trace("Cache CLEAR: {} items removed", size)

    def cleanup(self) -> int:
        """Delete all expired entries.

        Returns:
            int: Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            self._trace("Cache CLEANUP: {} expired items removed", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Describe the current content of the store.

        Returns:
            dict[str, Any]: ``size``, ``keys`` and per-item ``age``, ``ttl``
                and ``remaining_time`` in seconds.
        """
        now = self._clock()
        return {
            "size": len(self._entries),
            "keys": list(self._entries.keys()),
            "items": [
                {
                    "key": entry.key,
                    "age": round((now - entry.timestamp) / MILLISECONDS_PER_SECOND),
                    "ttl": round(entry.ttl / MILLISECONDS_PER_SECOND),
                    "remaining_time": round(
                        entry.remaining_ms(now) / MILLISECONDS_PER_SECOND
                    ),
                }
                for entry in self._entries.values()
            ],
        }


class CacheCleanupTask:
    """Periodically runs ``TTLCacheStore.cleanup`` on the event loop.

    Args:
        store: The store to sweep.
        interval_seconds: Delay between sweeps.
    """

    def __init__(self, store: TTLCacheStore, interval_seconds: float) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop. Calling it twice is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="cache-cleanup")
        logger.debug("Cache cleanup scheduled every {}s", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.store.cleanup()


class _CacheManager:
    """Holds the process-wide store without module-level globals."""

    def __init__(self) -> None:
        self._store: TTLCacheStore | None = None

    def get(self) -> TTLCacheStore:
        if self._store is None:
            cache_config = get_settings().cache_config
            self._store = TTLCacheStore(
                cache_config.max_entries,
                debug_logging=bool(cache_config.debug_logging),
            )
        return self._store

    def reset(self) -> None:
        self._store = None


_cache_manager = _CacheManager()


def get_app_cache() -> TTLCacheStore:
    """Return the process-wide cache store, creating it on first use."""
    return _cache_manager.get()


def reset_app_cache() -> None:
    """Drop the process-wide store; the next ``get_app_cache`` builds a new one."""
    _cache_manager.reset()
