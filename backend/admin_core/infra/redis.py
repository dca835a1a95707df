import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis import RedisError
from redis.asyncio import Redis as AsyncRedis

from ..errors import ConcurrentModificationError

logger = logging.getLogger("admin_core.redis")

# Deletes KEYS[1] only while it still holds ARGV[1].
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def get_async_redis_client(redis_url: str | None = None) -> AsyncRedis:
    """Create an async Redis client from the given URL or REDIS_URL."""
    redis_url = redis_url or os.getenv("REDIS_URL")
    if not redis_url:
        raise ValueError("REDIS_URL environment variable must be set")
    return AsyncRedis.from_url(redis_url, decode_responses=True)


class DistributedLock:
    """
    Distributed lock using Redis SET NX EX.
    Ensures only one worker across the cluster holds the lock for a key.
    """

    def __init__(self, redis_client: AsyncRedis, lock_key: str, ttl_seconds: int = 30):
        """
        Args:
            redis_client: Async Redis client
            lock_key: Unique key for this lock
            ttl_seconds: Lock TTL (auto-release on crash)
        """
        self._redis = redis_client
        self._lock_key = f"lock:{lock_key}"
        self._ttl = ttl_seconds
        self._token = uuid.uuid4().hex
        self._acquired = False
        self._release_script = redis_client.register_script(_RELEASE_SCRIPT)

    @property
    def key(self) -> str:
        return self._lock_key

    async def acquire(self) -> bool:
        """
        Attempt to acquire the lock.
        Returns True if acquired, False otherwise.
        """
        try:
            result = await self._redis.set(self._lock_key, self._token, nx=True, ex=self._ttl)
            self._acquired = bool(result)
            if self._acquired:
                logger.debug("Acquired lock: %s (TTL=%ds)", self._lock_key, self._ttl)
            return self._acquired
        except RedisError as exc:
            logger.error(
                "Redis operation failed operation=SET key=%s error=%s",
                self._lock_key,
                exc,
            )
            return False

    async def release(self) -> bool:
        """
        Release the lock if this instance still owns it.
        Returns True if released, False otherwise.
        """
        if not self._acquired:
            return False
        try:
            deleted = await self._release_script(keys=[self._lock_key], args=[self._token])
            self._acquired = False
            if not deleted:
                # The TTL expired and another worker may hold the key now.
                logger.warning("Lock lost before release: %s", self._lock_key)
                return False
            logger.debug("Released lock: %s", self._lock_key)
            return True
        except RedisError as exc:
            logger.error(
                "Redis operation failed operation=RELEASE key=%s error=%s",
                self._lock_key,
                exc,
            )
            return False


class RedisEntityLocks:
    """Per-entity locks shared by every worker, built on DistributedLock.

    Waiting is a poll loop bounded by ``wait_seconds``; a lock that cannot be
    taken in time means another worker is mid-transition on the same entity.
    """

    def __init__(
        self,
        redis_client: AsyncRedis,
        *,
        ttl_seconds: int = 30,
        wait_seconds: float = 5.0,
        poll_interval: float = 0.05,
    ):
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._wait = wait_seconds
        self._poll = poll_interval

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = DistributedLock(self._redis, key, ttl_seconds=self._ttl)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait
        while not await lock.acquire():
            if loop.time() >= deadline:
                logger.warning("Entity lock timeout key=%s wait_seconds=%s", key, self._wait)
                raise ConcurrentModificationError(
                    "Entity is being modified by another request",
                    details={"lock": key},
                )
            await asyncio.sleep(self._poll)
        try:
            yield
        finally:
            await lock.release()
