"""Tests for OpportunityCache.

Tests cover:
- TTL expiry and invalidation
- Status reporting
- Single-flight refresh across threads and across tasks
- Failed refreshes
"""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from tradewise.signals import OpportunityCache


# =============================================================================
# Basic Behavior
# =============================================================================


class TestOpportunityCache:
    """Tests for get/set/invalidate."""

    def test_empty(self, cache):
        assert cache.get() is None

    def test_fresh_value(self, cache, clock):
        cache.set(["AAPL"])
        clock.advance(299)
        assert cache.get() == ["AAPL"]

    def test_expiry(self, cache, clock):
        cache.set(["AAPL"])
        clock.advance(300)
        assert cache.get() is None

    def test_invalidate(self, cache):
        cache.set(["AAPL"])
        cache.invalidate()
        assert cache.get() is None

    def test_zero_ttl_never_serves(self, clock):
        cache = OpportunityCache(ttl_seconds=0, clock=clock)
        cache.set(["AAPL"])
        assert cache.get() is None

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError):
            OpportunityCache(ttl_seconds=-1)


class TestStatus:
    """Tests for status reporting."""

    def test_not_cached(self, cache):
        assert cache.status() == {"isCached": False, "expiresAt": None, "remainingMs": None}

    def test_cached(self, cache, clock):
        cache.set(["AAPL"])
        clock.advance(100)

        status = cache.status()

        assert status["isCached"] is True
        assert status["expiresAt"] == "1970-01-01T00:21:40+00:00"
        assert status["remainingMs"] == 200_000

    def test_expired(self, cache, clock):
        cache.set(["AAPL"])
        clock.advance(301)
        assert cache.status()["isCached"] is False


# =============================================================================
# Single-Flight Refresh
# =============================================================================


class TestGetOrCompute:
    """Tests for the thread-safe refresh."""

    def test_computes_once_then_serves(self, cache):
        calls = []

        def compute():
            calls.append(1)
            return ["AAPL"]

        assert cache.get_or_compute(compute) == (["AAPL"], False)
        assert cache.get_or_compute(compute) == (["AAPL"], True)
        assert len(calls) == 1

    def test_recomputes_after_expiry(self, cache, clock):
        cache.get_or_compute(lambda: ["OLD"])
        clock.advance(301)
        assert cache.get_or_compute(lambda: ["NEW"]) == (["NEW"], False)

    def test_concurrent_threads_share_refresh(self):
        cache = OpportunityCache(ttl_seconds=300)
        calls = []
        lock = threading.Lock()

        def compute():
            with lock:
                calls.append(1)
            time.sleep(0.05)
            return ["AAPL"]

        with ThreadPoolExecutor(max_workers=5) as pool:
            results = list(pool.map(lambda _: cache.get_or_compute(compute), range(5)))

        assert len(calls) == 1
        assert all(value == ["AAPL"] for value, _ in results)
        assert sorted(cached for _, cached in results) == [False, True, True, True, True]

    def test_failure_stores_nothing(self, cache):
        def broken():
            raise RuntimeError("feed down")

        with pytest.raises(RuntimeError):
            cache.get_or_compute(broken)

        assert cache.get() is None
        assert cache.get_or_compute(lambda: ["AAPL"]) == (["AAPL"], False)


class TestGetOrComputeAsync:
    """Tests for the event-loop refresh."""

    @pytest.mark.asyncio
    async def test_concurrent_tasks_share_refresh(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return ["AAPL"]

        results = await asyncio.gather(*(cache.get_or_compute_async(compute) for _ in range(5)))

        assert len(calls) == 1
        assert all(value == ["AAPL"] for value, _ in results)
        assert sorted(cached for _, cached in results) == [False, True, True, True, True]

    @pytest.mark.asyncio
    async def test_serves_fresh_value(self, cache):
        cache.set(["AAPL"])

        async def compute():
            raise AssertionError("should not run")

        assert await cache.get_or_compute_async(compute) == (["AAPL"], True)

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self, cache):
        async def broken():
            await asyncio.sleep(0.01)
            raise RuntimeError("feed down")

        results = await asyncio.gather(
            cache.get_or_compute_async(broken),
            cache.get_or_compute_async(broken),
            return_exceptions=True,
        )

        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache.get() is None

        async def compute():
            return ["AAPL"]

        assert await cache.get_or_compute_async(compute) == (["AAPL"], False)
