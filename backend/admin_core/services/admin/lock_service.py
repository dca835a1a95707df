import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


def entity_lock_key(kind: str, entity_id: str) -> str:
    return f"entity:{kind}:{entity_id}"


class EntityLockRegistry:
    """In-process per-entity locks.

    One ``asyncio.Lock`` per key while at least one task holds or waits on
    it; the entry is dropped when the last holder leaves so the registry does
    not grow with every entity ever touched.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        entity_lock = self._locks.get(key)
        if entity_lock is None:
            entity_lock = self._locks[key] = asyncio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with entity_lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
