"""
Tests for the observable query cache.
"""

import asyncio

import pytest

from seo_dashboard.query_cache import CacheEvent, QueryCache, key_matches, normalize_key


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _counting_fetcher(value="v"):
    calls = {"n": 0}

    async def _fetch():
        calls["n"] += 1
        return f"{value}{calls['n']}"

    return _fetch, calls


class TestKeys:

    @pytest.mark.unit
    def test_normalize_key(self):
        assert normalize_key("projects") == ("projects",)
        assert normalize_key(["audits", "p1"]) == ("audits", "p1")
        assert normalize_key(("a",)) == ("a",)

    @pytest.mark.unit
    def test_key_matches_prefix(self):
        assert key_matches(("audits", "p1", "a1"), ("audits", "p1"))
        assert not key_matches(("audits", "p2"), ("audits", "p1"))
        assert key_matches(("anything",), ())


class TestFetch:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fetch_stores_value(self):
        cache = QueryCache(stale_time=60)
        fetch, calls = _counting_fetcher()
        assert await cache.fetch("projects", fetch) == "v1"
        assert cache.get_data(("projects",)) == "v1"
        assert calls["n"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fresh_value_served_from_cache(self):
        clock = FakeClock()
        cache = QueryCache(stale_time=30, clock=clock)
        fetch, calls = _counting_fetcher()

        await cache.fetch("k", fetch)
        clock.now += 10
        assert await cache.fetch("k", fetch) == "v1"
        assert calls["n"] == 1

        clock.now += 30
        assert await cache.fetch("k", fetch) == "v2"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_stale_time_always_refetches(self):
        cache = QueryCache(stale_time=0)
        fetch, calls = _counting_fetcher()
        await cache.fetch("k", fetch)
        await cache.fetch("k", fetch)
        assert calls["n"] == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_force_bypasses_freshness(self):
        cache = QueryCache(stale_time=300)
        fetch, calls = _counting_fetcher()
        await cache.fetch("k", fetch)
        await cache.fetch("k", fetch, force=True)
        assert calls["n"] == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_request(self):
        cache = QueryCache()
        gate = asyncio.Event()
        calls = {"n": 0}

        async def _slow():
            calls["n"] += 1
            await gate.wait()
            return "shared"

        first = asyncio.ensure_future(cache.fetch("k", _slow))
        second = asyncio.ensure_future(cache.fetch("k", _slow))
        await asyncio.sleep(0)
        assert cache.get_entry("k").is_fetching
        gate.set()

        assert await asyncio.gather(first, second) == ["shared", "shared"]
        assert calls["n"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_keeps_previous_data(self):
        cache = QueryCache()
        cache.set_data("k", "old")
        events = []
        cache.subscribe("k", lambda key, event, entry: events.append(event))

        async def _boom():
            raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            await cache.fetch("k", _boom)

        entry = cache.get_entry("k")
        assert entry.data == "old"
        assert isinstance(entry.error, RuntimeError)
        assert entry.is_fetching is False
        assert events == [CacheEvent.ERROR]


class TestInvalidation:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalidate_prefix_marks_stale(self):
        cache = QueryCache(stale_time=300)
        fetch, calls = _counting_fetcher()
        await cache.fetch(("audits", "p1", "list"), fetch)
        await cache.fetch(("audits", "p2", "list"), fetch)

        affected = cache.invalidate(("audits", "p1"))
        assert affected == [("audits", "p1", "list")]

        await cache.fetch(("audits", "p1", "list"), fetch)
        await cache.fetch(("audits", "p2", "list"), fetch)
        assert calls["n"] == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalidation_during_fetch_leaves_entry_stale(self):
        cache = QueryCache(stale_time=300)
        gate = asyncio.Event()

        async def _slow():
            await gate.wait()
            return "maybe old"

        task = asyncio.ensure_future(cache.fetch("k", _slow))
        await asyncio.sleep(0)
        cache.invalidate("k")
        gate.set()
        await task

        assert cache.get_entry("k").invalidated is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remove_cancels_in_flight(self):
        cache = QueryCache()
        gate = asyncio.Event()

        async def _never():
            await gate.wait()

        task = asyncio.ensure_future(cache.fetch("k", _never))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert cache.remove("k") == [("k",)]
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(cache) == 0

    @pytest.mark.unit
    def test_set_data_clears_invalidation(self):
        cache = QueryCache()
        cache.set_data("k", 1)
        cache.invalidate("k")
        cache.set_data("k", 2)
        entry = cache.get_entry("k")
        assert entry.data == 2
        assert entry.invalidated is False


class TestSubscriptions:

    @pytest.mark.unit
    def test_subscribers_filtered_by_prefix(self):
        cache = QueryCache()
        seen = []
        unsubscribe = cache.subscribe(("projects",), lambda key, event, entry: seen.append((key, event)))

        cache.set_data(("projects", "p1"), "x")
        cache.set_data(("audits", "p1"), "y")
        cache.invalidate(("projects",))
        unsubscribe()
        cache.set_data(("projects", "p2"), "z")

        assert seen == [
            (("projects", "p1"), CacheEvent.UPDATED),
            (("projects", "p1"), CacheEvent.INVALIDATED),
        ]

    @pytest.mark.unit
    def test_failing_listener_does_not_break_others(self):
        cache = QueryCache()
        seen = []

        def _bad(key, event, entry):
            raise RuntimeError("listener bug")

        cache.subscribe((), _bad)
        cache.subscribe((), lambda key, event, entry: seen.append(key))
        cache.set_data("k", 1)
        assert seen == [("k",)]
