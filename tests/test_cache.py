"""Tests for VolatileCache, SuggestionCache and the two-tier CatalogCache."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from concierge.cache.catalog import CatalogCache
from concierge.cache.suggestions import SuggestionCache, pending_build_key
from concierge.cache.volatile import CacheError, VolatileCache
from concierge.models.agent import Suggestion


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Item(BaseModel):
    id: str
    label: str = ""


class CountingLoader:
    """Loader that returns a fixed list, counts calls and can be made to fail."""

    def __init__(self, *ids: str) -> None:
        self.items = [Item(id=i) for i in ids]
        self.calls = 0
        self.error: Exception | None = None

    async def __call__(self) -> list[Item]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


class TestVolatileCache:
    async def test_set_get_delete(self, volatile):
        await volatile.set("k", "v", 60)
        assert await volatile.get("k") == "v"
        await volatile.delete("k")
        assert await volatile.get("k") is None

    async def test_ttl(self, volatile, fake_redis):
        await volatile.set("k", "v", 60)
        remaining = await volatile.ttl("k")
        assert remaining is not None
        assert 0 < remaining <= 60
        assert await volatile.ttl("missing") is None

    async def test_take_hands_out_value_once(self, volatile):
        await volatile.set("k", "v", 60)
        assert await volatile.take("k") == "v"
        assert await volatile.take("k") is None

    async def test_key_prefix(self, fake_redis):
        cache = VolatileCache(fake_redis, key_prefix="concierge:")
        await cache.set("k", "v", 60)
        assert await fake_redis.get("concierge:k") == "v"
        assert await cache.get("k") == "v"

    async def test_redis_errors_become_cache_errors(self, volatile, redis_server):
        redis_server.connected = False
        with pytest.raises(CacheError, match="get 'k' failed"):
            await volatile.get("k")
        with pytest.raises(CacheError):
            await volatile.set("k", "v", 60)
        with pytest.raises(CacheError):
            await volatile.take("k")

    async def test_close(self, volatile, fake_redis, monkeypatch):
        closed: list[bool] = []

        async def record_close() -> None:
            closed.append(True)

        monkeypatch.setattr(fake_redis, "aclose", record_close)
        await volatile.close()
        assert closed == [True]


class TestSuggestionCache:
    async def test_put_and_get(self, suggestion_cache, volatile):
        suggestion = Suggestion(id="sug_1", plugin_id="dca", title="Weekly DCA", description="d")
        await suggestion_cache.put(suggestion)
        assert await suggestion_cache.get("sug_1") == suggestion
        assert await volatile.ttl("sug_1") <= 3600

    async def test_unknown_suggestion(self, suggestion_cache):
        assert await suggestion_cache.get("sug_missing") is None

    async def test_expired_suggestion(self, suggestion_cache, fake_redis):
        await suggestion_cache.put(Suggestion(id="sug_1", plugin_id="p", title="t", description="d"))
        await fake_redis.pexpire("sug_1", 1)
        await asyncio.sleep(0.05)
        assert await suggestion_cache.get("sug_1") is None

    async def test_corrupt_entry_raises(self, suggestion_cache, volatile):
        await volatile.set("sug_bad", "{not json", 60)
        with pytest.raises(CacheError, match="corrupt"):
            await suggestion_cache.get("sug_bad")

    async def test_pending_build_marker(self, suggestion_cache, volatile):
        """The marker is keyed by conversation and consumed exactly once."""
        await suggestion_cache.store_pending_build("conv_1", "sug_1")
        assert await volatile.get(pending_build_key("conv_1")) == "sug_1"
        assert await volatile.ttl(pending_build_key("conv_1")) > 0
        assert await suggestion_cache.take_pending_build("conv_1") == "sug_1"
        assert await suggestion_cache.take_pending_build("conv_1") is None


class TestCatalogCache:
    def make(self, loader, volatile=None, clock=None, ttl=300):
        return CatalogCache(
            "test:catalog", Item, loader, ttl=ttl, volatile=volatile, clock=clock or FakeClock()
        )

    async def test_serves_in_process_copy_until_expiry(self):
        clock = FakeClock()
        loader = CountingLoader("a", "b")
        catalog = self.make(loader, clock=clock)

        assert [i.id for i in await catalog.get_or_refresh()] == ["a", "b"]
        clock.advance(299)
        await catalog.get_or_refresh()
        assert loader.calls == 1

        clock.advance(2)
        await catalog.get_or_refresh()
        assert loader.calls == 2

    async def test_shared_tier_feeds_other_processes(self, volatile):
        """A second instance reads the shared tier instead of calling its loader."""
        first_loader = CountingLoader("a")
        await self.make(first_loader, volatile=volatile).get_or_refresh()

        second_loader = CountingLoader("zzz")
        items = await self.make(second_loader, volatile=volatile).get_or_refresh()

        assert [i.id for i in items] == ["a"]
        assert second_loader.calls == 0

    async def test_loader_failure_serves_stale_copy(self):
        clock = FakeClock()
        loader = CountingLoader("a")
        catalog = self.make(loader, clock=clock)
        await catalog.get_or_refresh()

        clock.advance(301)
        loader.error = RuntimeError("verifier down")
        items = await catalog.get_or_refresh()

        assert [i.id for i in items] == ["a"]
        assert loader.calls == 2

    async def test_loader_failure_with_nothing_cached(self):
        loader = CountingLoader()
        loader.error = RuntimeError("down")
        assert await self.make(loader).get_or_refresh() == []

    async def test_empty_result_is_not_treated_as_fresh(self):
        loader = CountingLoader()
        catalog = self.make(loader)
        await catalog.get_or_refresh()
        await catalog.get_or_refresh()
        assert loader.calls == 2

    async def test_invalidate_forces_reload(self, volatile):
        loader = CountingLoader("a")
        catalog = self.make(loader, volatile=volatile)
        await catalog.get_or_refresh()

        loader.items = [Item(id="b")]
        await catalog.invalidate()
        items = await catalog.get_or_refresh()

        assert [i.id for i in items] == ["b"]
        assert loader.calls == 2

    async def test_unreachable_shared_tier_falls_through_to_loader(self, volatile, redis_server):
        redis_server.connected = False
        loader = CountingLoader("a")
        items = await self.make(loader, volatile=volatile).get_or_refresh()
        assert [i.id for i in items] == ["a"]
        assert loader.calls == 1

    async def test_corrupt_shared_entry_is_ignored(self, volatile):
        await volatile.set("test:catalog", "[{\"nope\": 1}]", 60)
        loader = CountingLoader("a")
        items = await self.make(loader, volatile=volatile).get_or_refresh()
        assert [i.id for i in items] == ["a"]
        assert await volatile.get("test:catalog") == '[{"id":"a","label":""}]'
