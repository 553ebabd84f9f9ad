"""Read-through binding of an async fetch operation to a cache key.

``CachedFetch`` keeps ``data``, ``loading`` and ``error`` state for one
query. ``fetch_cached()`` serves a valid cache entry when there is one and
otherwise calls the fetcher and stores the result; ``refetch()`` always
calls the fetcher and overwrites the entry. A failed fetch records the
error, re-raises it and leaves the cache untouched.

Example:
    >>> binding = CachedFetch(
    ...     key=lambda: keys.invoices({"page": page}),
    ...     fetcher=lambda: api.list_invoices(page=page),
    ...     ttl_minutes=5,
    ... )
    >>> invoices = await binding.fetch_cached()
"""

from collections.abc import Awaitable, Callable, Hashable
from typing import Any

from loguru import logger

from src.cache.store import TTLCacheStore, get_app_cache
from src.core.types import CacheKey

type KeySource = CacheKey | Callable[[], CacheKey]
type StateListener[T] = Callable[["CachedFetch[T]"], None]

DEFAULT_ERROR_MESSAGE = "An error occurred"


class CachedFetch[T]:
    """Reactive state for one cached query.

    Args:
        key: Cache key, or a zero-argument callable computing it from the
            current dependency values.
        fetcher: Coroutine function producing fresh data.
        ttl_minutes: TTL for stored results. ``None`` uses the store default.
        dependencies: Initial dependency values; see ``set_dependencies``.
        store: Cache store. Defaults to the process-wide cache.
    """

    def __init__(
        self,
        key: KeySource,
        fetcher: Callable[[], Awaitable[T]],
        ttl_minutes: float | None = None,
        dependencies: tuple[Hashable, ...] = (),
        store: TTLCacheStore | None = None,
    ) -> None:
        self._key = key
        self._fetcher = fetcher
        self.ttl_minutes = ttl_minutes
        self.dependencies = tuple(dependencies)
        self.store = store if store is not None else get_app_cache()

        self.data: T | None = None
        self.loading = False
        self.error: str | None = None
        self._listeners: list[StateListener[T]] = []

    @property
    def key(self) -> CacheKey:
        """The cache key for the current dependency values."""
        return self._key() if callable(self._key) else self._key

    def subscribe(self, listener: StateListener[T]) -> Callable[[], None]:
        """Register a callback invoked after every state change.

        Returns:
            Callable[[], None]: Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    async def fetch_cached(self) -> T:
        """Return cached data if valid, otherwise fetch and cache it."""
        return await self._fetch(use_cache=True)

    async def refetch(self) -> T:
        """Bypass the cache, fetch fresh data and overwrite the entry."""
        return await self._fetch(use_cache=False)

    async def set_dependencies(self, *values: Hashable) -> T | None:
        """Update dependency values and re-run ``fetch_cached`` if any changed.

        Returns:
            T | None: The fetched data, or None when nothing changed.
        """
        if values == self.dependencies:
            return None
        self.dependencies = values
        return await self.fetch_cached()

    async def _fetch(self, *, use_cache: bool) -> T:
        key = self.key
        if use_cache:
            cached = self.store.get(key)
            if cached is not None:
                self.data = cached
                self.error = None
                self._notify()
                return cached

        self.loading = True
        self.error = None
        self._notify()
        try:
            result = await self._fetcher()
        except Exception as e:
            self.error = str(e) or DEFAULT_ERROR_MESSAGE
            logger.warning("Fetch for {} failed: {}", key, self.error, cache_key=key)
            raise
        else:
            self.data = result
            self.store.set(key, result, self.ttl_minutes)
            return result
        finally:
            self.loading = False
            self._notify()

    def __repr__(self) -> str:
        state: dict[str, Any] = {
            "key": self.key,
            "loading": self.loading,
            "error": self.error,
        }
        return f"CachedFetch({state})"
