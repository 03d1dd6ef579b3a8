"""In-memory TTL cache that keeps stale entries around as a fallback.

Note: Each uvicorn worker has its own cache instance and its own rate
limiter. With --workers 2 the daily budget is effectively doubled, so run
a single worker.
"""

import asyncio
import enum
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    fetched_at: float


class Source(enum.Enum):
    FRESH = "fresh"          # fresh hit, no upstream call
    REFRESHED = "refreshed"  # just fetched from upstream
    STALE = "stale"          # refresh failed, serving an expired entry
    MISSING = "missing"      # refresh failed and nothing cached


@dataclass(frozen=True)
class Lookup(Generic[V]):
    entry: CacheEntry[V] | None
    source: Source

    @property
    def value(self) -> V | None:
        return self.entry.value if self.entry else None


class TTLCache(Generic[V]):
    """Maps keys to the last successfully fetched value.

    Entries are never dropped for being old, only replaced on refresh or
    evicted least-recently-used once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()
        self._inflight: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> CacheEntry[V] | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is not None:
                self._store.move_to_end(key)
            return entry

    def put(self, key: str, value: V) -> CacheEntry[V]:
        entry = CacheEntry(value=value, fetched_at=self._clock())
        with self._lock:
            self._store[key] = entry
            self._store.move_to_end(key)
            if self.max_entries is not None:
                while len(self._store) > self.max_entries:
                    self._store.popitem(last=False)
        return entry

    def is_fresh(self, entry: CacheEntry[Any], ttl_seconds: float | None = None) -> bool:
        ttl = self.ttl if ttl_seconds is None else ttl_seconds
        return self._clock() - entry.fetched_at < ttl

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    async def lookup(self, key: str, refresh: Callable[[], Awaitable[V | None]]) -> Lookup[V]:
        """Serve a fresh entry, else refresh it, else fall back to stale.

        ``refresh`` returns None when it could not fetch (rate limited,
        upstream down, not configured). Concurrent callers for the same key
        share one in-flight refresh.
        """
        entry = self.get(key)
        if entry is not None and self.is_fresh(entry):
            return Lookup(entry, Source.FRESH)

        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, refresh))
            self._inflight[key] = pending
            pending.add_done_callback(lambda done: self._forget(key, done))

        refreshed = await asyncio.shield(pending)
        if refreshed is not None:
            return Lookup(refreshed, Source.REFRESHED)
        if entry is not None:
            return Lookup(entry, Source.STALE)
        return Lookup(None, Source.MISSING)

    async def _refresh(self, key: str, refresh: Callable[[], Awaitable[V | None]]) -> CacheEntry[V] | None:
        value = await refresh()
        if value is None:
            return None
        return self.put(key, value)

    def _forget(self, key: str, done: asyncio.Future) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
