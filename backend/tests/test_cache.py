from __future__ import annotations

import asyncio
import gc

import pytest

from backend.discovery.cache import DiscoveryCache, make_key
from backend.discovery.errors import APIError
from backend.discovery.models import Candidate


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _candidate(place_id: str) -> Candidate:
    return Candidate(place_id=place_id, name=place_id, rating=4.0, user_ratings_total=50, lat=1.0, lng=2.0)


def _counting_compute(value: list[Candidate], delay: float = 0.0):
    calls = {"count": 0}

    async def compute():
        calls["count"] += 1
        if delay:
            await asyncio.sleep(delay)
        return value

    return compute, calls


KEY = make_key(52.52, 13.40, 1500, "test-key")


def test_key_holds_a_digest_not_the_credential():
    key = make_key(52.52, 13.40, 1500, "super-secret")
    assert "super-secret" not in repr(key)
    assert key == make_key(52.52, 13.40, 1500, "super-secret")
    assert key != make_key(52.52, 13.40, 1500, "other-key")
    assert key != make_key(52.52, 13.40, 2000, "super-secret")


def test_second_get_within_ttl_is_a_hit():
    cache = DiscoveryCache(capacity=10, ttl_seconds=300, clock=FakeClock())
    compute, calls = _counting_compute([_candidate("a"), _candidate("b")])

    async def run():
        first = await cache.get(KEY, compute)
        second = await cache.get(KEY, compute)
        return first, second

    first, second = asyncio.run(run())

    assert first == second
    assert calls["count"] == 1
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0


def test_expired_entry_triggers_exactly_one_recompute():
    clock = FakeClock()
    cache = DiscoveryCache(capacity=10, ttl_seconds=300, clock=clock)
    compute, calls = _counting_compute([_candidate("a")])

    async def run():
        await cache.get(KEY, compute)
        clock.now += 299
        await cache.get(KEY, compute)
        assert calls["count"] == 1
        clock.now += 1
        assert not cache.is_fresh(KEY)
        await cache.get(KEY, compute)
        await cache.get(KEY, compute)

    asyncio.run(run())
    assert calls["count"] == 2


def test_concurrent_misses_share_one_computation():
    cache = DiscoveryCache()
    compute, calls = _counting_compute([_candidate("a")], delay=0.02)

    async def run():
        return await asyncio.gather(*(cache.get(KEY, compute) for _ in range(5)))

    results = asyncio.run(run())

    assert calls["count"] == 1
    assert all(r == results[0] for r in results)
    assert cache.is_fresh(KEY)


def test_errors_are_returned_but_not_cached():
    cache = DiscoveryCache()
    outcomes = [APIError("Places API error: UNKNOWN_ERROR"), [_candidate("a")]]
    calls = {"count": 0}

    async def compute():
        calls["count"] += 1
        return outcomes.pop(0)

    async def run():
        first = await cache.get(KEY, compute)
        second = await cache.get(KEY, compute)
        return first, second

    first, second = asyncio.run(run())

    assert isinstance(first, APIError)
    assert [c.place_id for c in second] == ["a"]
    assert calls["count"] == 2


def test_least_recently_used_entry_is_evicted():
    cache = DiscoveryCache(capacity=2)
    k1, k2, k3 = (make_key(float(i), 0.0, 1500, "k") for i in range(3))

    async def run():
        for key in (k1, k2):
            await cache.get(key, _counting_compute([_candidate(str(key.lat))])[0])
        await cache.get(k1, _counting_compute([])[0])
        await cache.get(k3, _counting_compute([_candidate("3")])[0])

    asyncio.run(run())

    assert len(cache) == 2
    assert cache.is_fresh(k1)
    assert not cache.is_fresh(k2)
    assert cache.is_fresh(k3)
    assert cache.stats()["evictions"] == 1


def test_cancelled_caller_does_not_cancel_shared_computation():
    cache = DiscoveryCache()
    compute, calls = _counting_compute([_candidate("a")], delay=0.05)

    async def run():
        impatient = asyncio.create_task(cache.get(KEY, compute))
        patient = asyncio.create_task(cache.get(KEY, compute))
        await asyncio.sleep(0.01)
        impatient.cancel()
        with pytest.raises(asyncio.CancelledError):
            await impatient
        return await patient

    result = asyncio.run(run())

    assert [c.place_id for c in result] == ["a"]
    assert calls["count"] == 1
    assert cache.is_fresh(KEY)


def test_last_cancelled_caller_cancels_the_computation():
    cache = DiscoveryCache()
    progress = {"started": 0, "finished": 0}

    async def compute():
        progress["started"] += 1
        await asyncio.sleep(0.05)
        progress["finished"] += 1
        return [_candidate("a")]

    async def run():
        caller = asyncio.create_task(cache.get(KEY, compute))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)

    asyncio.run(run())

    assert progress == {"started": 1, "finished": 0}
    assert len(cache) == 0
    assert not cache.is_fresh(KEY)


def test_abandoned_failing_computation_reports_nothing_to_the_loop():
    cache = DiscoveryCache()
    unhandled: list[dict] = []

    async def compute():
        await asyncio.sleep(0.05)
        raise RuntimeError("upstream exploded")

    async def run():
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: unhandled.append(context))
        caller = asyncio.create_task(cache.get(KEY, compute))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.1)
        gc.collect()

    asyncio.run(run())

    assert unhandled == []
    assert len(cache) == 0


def test_computation_is_recomputed_after_being_abandoned():
    cache = DiscoveryCache()
    compute, calls = _counting_compute([_candidate("a")], delay=0.05)

    async def run():
        caller = asyncio.create_task(cache.get(KEY, compute))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        return await cache.get(KEY, compute)

    result = asyncio.run(run())

    assert [c.place_id for c in result] == ["a"]
    assert calls["count"] == 2
    assert cache.is_fresh(KEY)


def test_hits_return_independent_lists():
    cache = DiscoveryCache()
    compute, _ = _counting_compute([_candidate("a")])

    async def run():
        await cache.get(KEY, compute)
        hit = await cache.get(KEY, compute)
        hit.clear()
        return await cache.get(KEY, compute)

    assert len(asyncio.run(run())) == 1


def test_clear_resets_entries_and_counters():
    cache = DiscoveryCache()
    compute, _ = _counting_compute([_candidate("a")])
    asyncio.run(cache.get(KEY, compute))

    cache.clear()

    assert len(cache) == 0
    assert cache.stats() == {
        "size": 0, "capacity": 100, "hits": 0, "misses": 0, "evictions": 0, "hit_rate": 0.0,
    }


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        DiscoveryCache(capacity=0)
