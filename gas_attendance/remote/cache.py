from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

"""Time-boxed request cache with in-flight coalescing.

Lookup order for ``get_or_fetch(key, fetch)``:
1. cached value younger than the TTL -> returned, no fetch
2. a request for ``key`` already in flight -> awaited, no new fetch
3. otherwise ``fetch()`` runs as a task registered in flight; on success the
   value is cached, the in-flight entry is removed either way

Failures are never cached and reach every caller awaiting that task.
A stale entry is dropped when it is next read.

The maps are plain dicts mutated between suspension points of a single event
loop, so no lock is taken. Sharing one instance across OS threads is not
supported.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CacheEntry",
    "RequestCache",
]

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    timestamp: float
    value: T


def _consume_exception(task: asyncio.Task) -> None:
    # every awaiter may have been cancelled; mark the failure as retrieved
    if not task.cancelled():
        task.exception()


class RequestCache(Generic[T]):
    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._inflight: dict[str, asyncio.Task[T]] = {}
        self.fetch_count = 0

    def _fresh(self, key: str) -> CacheEntry[T] | None:
        """Fresh entry for ``key``; a stale one is dropped on the way."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry

    def peek(self, key: str) -> T | None:
        """Cached value for ``key`` if still fresh, else None."""
        entry = self._fresh(key)
        return entry.value if entry is not None else None

    def in_flight(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._entries)

    async def _run(self, key: str, fetch: Callable[[], Awaitable[T]]) -> T:
        try:
            value = await fetch()
            if self.ttl_seconds > 0:
                self._entries[key] = CacheEntry(timestamp=self._clock(), value=value)
            return value
        finally:
            self._inflight.pop(key, None)

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[T]]) -> T:
        entry = self._fresh(key)
        if entry is not None:
            logger.debug("%s cache hit key=%s", self.name, key)
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            self.fetch_count += 1
            logger.debug("%s fetch key=%s", self.name, key)
            task = asyncio.ensure_future(self._run(key, fetch))
            task.add_done_callback(_consume_exception)
            self._inflight[key] = task
        else:
            logger.debug("%s joined in-flight key=%s", self.name, key)
        # a cancelled caller must not cancel the shared request
        return await asyncio.shield(task)
