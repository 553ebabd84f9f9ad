"""Unit tests for src/cache/binding.py."""

import pytest
import pytest_check

from src.cache.binding import CachedFetch
from src.cache.store import TTLCacheStore


class CountingFetcher:
    """Fetcher returning an incrementing value and counting its calls."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def __call__(self) -> dict[str, int]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {"call": self.calls}


@pytest.mark.unit
@pytest.mark.asyncio
class TestCachedFetch:
    """Tests for the read-through binding."""

    async def test_miss_then_hit_calls_fetcher_once(self) -> None:
        """The second read is served from the cache."""
        store = TTLCacheStore()
        fetcher = CountingFetcher()
        binding = CachedFetch("invoices-{}", fetcher, ttl_minutes=5, store=store)

        first = await binding.fetch_cached()
        second = await binding.fetch_cached()

        with pytest_check.check:
            assert fetcher.calls == 1
        with pytest_check.check:
            assert first == second == {"call": 1}
        with pytest_check.check:
            assert store.get("invoices-{}") == {"call": 1}

    async def test_refetch_bypasses_cache_and_overwrites(self) -> None:
        """refetch() always calls the fetcher and stores the new value."""
        store = TTLCacheStore()
        fetcher = CountingFetcher()
        binding = CachedFetch("invoices-{}", fetcher, store=store)

        await binding.fetch_cached()
        result = await binding.refetch()

        assert fetcher.calls == 2
        assert result == {"call": 2}
        assert store.get("invoices-{}") == {"call": 2}
        assert binding.data == {"call": 2}

    async def test_failure_is_recorded_and_not_cached(self) -> None:
        """A failed fetch sets error, re-raises and leaves the cache empty."""
        store = TTLCacheStore()
        binding = CachedFetch(
            "invoices-{}", CountingFetcher(RuntimeError("boom")), store=store
        )

        with pytest.raises(RuntimeError, match="boom"):
            await binding.fetch_cached()

        with pytest_check.check:
            assert binding.error == "boom"
        with pytest_check.check:
            assert binding.loading is False
        with pytest_check.check:
            assert store.has("invoices-{}") is False

    async def test_failure_without_message_uses_default(self) -> None:
        """An exception without text is reported with a generic message."""
        binding = CachedFetch(
            "k", CountingFetcher(RuntimeError()), store=TTLCacheStore()
        )

        with pytest.raises(RuntimeError):
            await binding.fetch_cached()

        assert binding.error == "An error occurred"

    async def test_success_clears_previous_error(self) -> None:
        """A later successful fetch resets the error."""
        fetcher = CountingFetcher(RuntimeError("boom"))
        binding = CachedFetch("k", fetcher, store=TTLCacheStore())
        with pytest.raises(RuntimeError):
            await binding.fetch_cached()

        fetcher.error = None
        await binding.fetch_cached()

        assert binding.error is None
        assert binding.data == {"call": 2}

    async def test_listeners_see_loading_transitions(self) -> None:
        """Listeners observe loading going up on a miss and down afterwards."""
        binding = CachedFetch("k", CountingFetcher(), store=TTLCacheStore())
        states: list[bool] = []
        unsubscribe = binding.subscribe(lambda b: states.append(b.loading))

        await binding.fetch_cached()
        await binding.fetch_cached()
        unsubscribe()
        await binding.refetch()

        assert states == [True, False, False]

    async def test_callable_key_follows_dependencies(self) -> None:
        """Changing dependencies re-fetches under the new key."""
        store = TTLCacheStore()
        fetcher = CountingFetcher()
        binding: CachedFetch[dict[str, int]] = CachedFetch(
            lambda: f"invoices-page-{binding.dependencies[0]}",
            fetcher,
            dependencies=(1,),
            store=store,
        )

        await binding.fetch_cached()
        unchanged = await binding.set_dependencies(1)
        changed = await binding.set_dependencies(2)

        with pytest_check.check:
            assert unchanged is None
        with pytest_check.check:
            assert changed == {"call": 2}
        with pytest_check.check:
            assert binding.key == "invoices-page-2"
        with pytest_check.check:
            assert store.stats()["keys"] == ["invoices-page-1", "invoices-page-2"]

    async def test_falsy_cached_value_is_a_hit(self) -> None:
        """Only None counts as a miss."""
        store = TTLCacheStore()
        store.set("k", [])
        fetcher = CountingFetcher()
        binding = CachedFetch("k", fetcher, store=store)

        assert await binding.fetch_cached() == []
        assert fetcher.calls == 0
