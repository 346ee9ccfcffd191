"""Per-topic write serialization.

The lifecycle engine and the admission controller are the only writers of a
topic; both hold the topic's lock for the whole read-validate-write
transaction. Inside the transaction the topic row is additionally read
``FOR UPDATE`` and its version column is checked on write, which covers
writers in other processes.

Lock order is always topic first, then students in sorted order.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator
from uuid import UUID


class TopicLockRegistry:
    """Keyed asyncio locks for topics and students.

    A key's lock exists only while some task holds or waits on it, so the
    map stays bounded by the number of in-flight writers.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def _acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold(self, topic_id: UUID, *student_ids: UUID) -> AsyncIterator[None]:
        """Hold the topic lock and, after it, the given students' locks."""
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self._acquire(f"topic:{topic_id}"))
            for student_id in sorted({str(s) for s in student_ids}):
                await stack.enter_async_context(self._acquire(f"student:{student_id}"))
            yield


@lru_cache
def get_topic_locks() -> TopicLockRegistry:
    """Process-wide registry shared by every service instance."""
    return TopicLockRegistry()
