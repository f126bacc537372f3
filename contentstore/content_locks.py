"""Per-content mutual exclusion for ledger mutations."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional


class _ContentLock:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.owner: Optional[asyncio.Task] = None
        self.depth = 0
        self.users = 0


class ContentLockRegistry:
    """
    Arena of locks keyed by content_id.

    A lock exists only while some task holds or waits on it, so the arena
    stays proportional to in-flight work. The scope is re-entrant for the
    task that owns it: a service holding a content's scope can call ledger
    operations that enter the same scope again. Different content ids never
    contend.
    """

    def __init__(self):
        self._locks: Dict[str, _ContentLock] = {}

    @asynccontextmanager
    async def exclusive(self, content_id: str) -> AsyncIterator[None]:
        task = asyncio.current_task()
        entry = self._locks.get(content_id)
        if entry is None:
            entry = _ContentLock()
            self._locks[content_id] = entry
        entry.users += 1

        try:
            if task is not None and entry.owner is task:
                entry.depth += 1
                try:
                    yield
                finally:
                    entry.depth -= 1
            else:
                await entry.lock.acquire()
                entry.owner = task
                entry.depth = 1
                try:
                    yield
                finally:
                    entry.depth = 0
                    entry.owner = None
                    entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(content_id) is entry:
                del self._locks[content_id]

    def is_locked(self, content_id: str) -> bool:
        entry = self._locks.get(content_id)
        return entry is not None and entry.lock.locked()

    def active_count(self) -> int:
        return len(self._locks)
