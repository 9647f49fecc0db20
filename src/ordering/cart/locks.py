"""Per-actor mutation locks.

Cart writes for one actor are serialized in-process: an add racing a merge
would otherwise read the same cart version and lose one of the writes.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager


class ActorLocks:
    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, *actor_keys: str):
        """Acquire the locks for ``actor_keys`` in sorted order, release in reverse."""
        keys = sorted(set(actor_keys))
        acquired: list[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._locks[key]
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, actor_key: str) -> bool:
        return actor_key in self._locks and self._locks[actor_key].locked()

    def clear(self) -> None:
        self._locks.clear()


actor_locks = ActorLocks()
