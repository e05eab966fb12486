"""Per-driver pass locks so a slow pass never overlaps the next tick."""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from bumpdispatch.core.config import settings
from bumpdispatch.core.redis import get_redis

logger = logging.getLogger(__name__)


class PassLock:
    """
    Mutual exclusion for one driver's run_once.

    Always holds a non-blocking in-process asyncio.Lock. When a Redis getter is
    supplied the lock is also taken in Redis with SET NX EX and an owner token,
    so several engine instances never run the same driver at once. While the
    pass runs the key is renewed every third of ``ttl_seconds``; it only
    expires when its holder dies mid-pass.
    """

    def __init__(
        self,
        name: str,
        redis_getter: Optional[Callable[[], Awaitable]] = None,
        ttl_seconds: Optional[int] = None
    ):
        self.name = name
        self.key = f"pass_lock:{name}"
        self.ttl_seconds = ttl_seconds or settings.pass_lock_ttl_seconds
        self._redis_getter = redis_getter
        self._local = asyncio.Lock()

    @classmethod
    def for_driver(cls, name: str) -> "PassLock":
        """Build the lock for a driver using the configured backend."""
        return cls(name, redis_getter=get_redis if settings.use_redis_locks else None)

    @property
    def locked(self) -> bool:
        return self._local.locked()

    async def _acquire_redis(self, token: str):
        """Returns (redis, acquired). redis is None when Redis is unusable."""
        try:
            redis = await self._redis_getter()
            acquired = await redis.set(self.key, token, nx=True, ex=self.ttl_seconds)
            return redis, bool(acquired)
        except Exception as e:
            logger.warning(
                f"Redis unavailable for pass lock {self.name}, using in-process lock only: {e}"
            )
            return None, True

    async def _renew_redis(self, redis, token: str) -> bool:
        """Push the key's expiry out again if this pass still owns it."""
        current = await redis.get(self.key)
        if current != token:
            return False
        await redis.expire(self.key, self.ttl_seconds)
        return True

    async def _keep_alive(self, redis, token: str):
        interval = max(self.ttl_seconds / 3, 0.1)
        while True:
            await asyncio.sleep(interval)
            try:
                if not await self._renew_redis(redis, token):
                    logger.error(f"Pass lock {self.name} was lost before the pass finished")
                    return
            except Exception as e:
                logger.warning(f"Failed to renew pass lock {self.name}: {e}")

    async def _release_redis(self, redis, token: str):
        try:
            current = await redis.get(self.key)
            if current == token:
                await redis.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to release pass lock {self.name} (expires in {self.ttl_seconds}s): {e}")

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """
        Try to take the lock without waiting.

        Yields True when this caller owns the pass, False when another pass is
        already running (the caller should skip its work).
        """
        if self._local.locked():
            logger.warning(f"Pass {self.name} already running in this process, skipping tick")
            yield False
            return

        async with self._local:
            redis = None
            token = uuid.uuid4().hex
            if self._redis_getter is not None:
                redis, acquired = await self._acquire_redis(token)
                if not acquired:
                    logger.warning(f"Pass {self.name} is held by another instance, skipping tick")
                    yield False
                    return

            keep_alive = None
            if redis is not None:
                keep_alive = asyncio.create_task(self._keep_alive(redis, token))

            try:
                yield True
            finally:
                if keep_alive is not None:
                    keep_alive.cancel()
                    try:
                        await keep_alive
                    except asyncio.CancelledError:
                        pass
                if redis is not None:
                    await self._release_redis(redis, token)
