from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable

from .errors import DiscoveryError
from .models import Candidate

logger = logging.getLogger(__name__)

ComputeFn = Callable[[], Awaitable["list[Candidate] | DiscoveryError"]]


def credential_scope(credential: str) -> str:
    """Short digest of the credential, so keys never hold the key itself."""
    return hashlib.sha256(credential.encode()).hexdigest()[:16]


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks a failure as seen when every waiter left before it finished.
    if not task.cancelled():
        task.exception()


@dataclass(frozen=True)
class CacheKey:
    lat: float
    lng: float
    radius: int
    scope: str


def make_key(lat: float, lng: float, radius: int, credential: str) -> CacheKey:
    return CacheKey(lat=lat, lng=lng, radius=radius, scope=credential_scope(credential))


@dataclass(frozen=True)
class CacheEntry:
    value: tuple[Candidate, ...]
    created_at: float


class DiscoveryCache:
    """
    Capacity-bounded, TTL-expiring store of filtered candidate lists.

    - An entry is live while ``now - created_at < ttl_seconds``.
    - A miss runs ``compute_fn`` once per key; concurrent callers for the
      same key await that single computation (single-flight).
    - Only successful results are stored. Errors reach every waiter and
      the next caller computes again.
    - Beyond ``capacity`` the least-recently-used entry is evicted.
    - A computation whose every waiter has been cancelled is cancelled
      too, and stores nothing.

    All bookkeeping happens synchronously between awaits on the event
    loop, which serialises it without an explicit lock. Build one cache
    per profile per process and hand it to the engine.
    """

    def __init__(
        self,
        capacity: int = 100,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._inflight: dict[CacheKey, asyncio.Task] = {}
        self._waiters: dict[asyncio.Task, int] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _live_entry(self, key: CacheKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.created_at < self.ttl_seconds:
            return entry
        del self._entries[key]
        logger.debug("Cache entry expired for %s", key)
        return None

    def is_fresh(self, key: CacheKey) -> bool:
        """True when ``get`` would answer from storage without computing."""
        return self._live_entry(key) is not None

    async def get(self, key: CacheKey, compute_fn: ComputeFn) -> list[Candidate] | DiscoveryError:
        entry = self._live_entry(key)
        if entry is not None:
            self._entries.move_to_end(key)
            self._hits += 1
            logger.debug("Cache hit for %s", key)
            return list(entry.value)

        self._misses += 1
        task = self._inflight.get(key)
        if task is None:
            logger.debug("Cache miss for %s, computing", key)
            task = asyncio.create_task(self._compute(key, compute_fn))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        else:
            logger.debug("Cache miss for %s, joining in-flight computation", key)

        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            # A cancelled caller must not cancel the computation other callers share.
            return await asyncio.shield(task)
        finally:
            self._release(key, task)

    def _release(self, key: CacheKey, task: asyncio.Task) -> None:
        remaining = self._waiters[task] - 1
        if remaining > 0:
            self._waiters[task] = remaining
            return
        del self._waiters[task]
        if not task.done():
            logger.debug("No callers left waiting for %s, cancelling computation", key)
            if self._inflight.get(key) is task:
                del self._inflight[key]
            task.cancel()

    async def _compute(self, key: CacheKey, compute_fn: ComputeFn) -> list[Candidate] | DiscoveryError:
        try:
            result = await compute_fn()
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        if not isinstance(result, DiscoveryError):
            self._store(key, result)
        return result

    def _store(self, key: CacheKey, value: list[Candidate]) -> None:
        self._entries[key] = CacheEntry(value=tuple(value), created_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted least-recently-used entry %s", evicted)

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
