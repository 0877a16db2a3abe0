"""
Keyed mutual exclusion for player state.

Every write path that touches a player's balances holds ``resources_key``;
summons additionally hold ``session_key`` for their (user, banner) pair.
Keys are always acquired in sorted order so two callers asking for
overlapping sets cannot deadlock.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Callable

from redis.exceptions import LockError

from oden.core.config import settings

logger = logging.getLogger(__name__)


def resources_key(user_id: str) -> str:
    return f"lock:user:{user_id}:resources"


def session_key(user_id: str, banner_id: str) -> str:
    return f"lock:user:{user_id}:summon:{banner_id}"


class LockTimeout(RuntimeError):
    pass


class KeyedLock:
    """``async with locks.hold(k1, k2): ...``

    ``local`` keeps one ``asyncio.Lock`` per key inside this process.
    ``redis`` takes redis-py locks so several API workers share them.
    """

    def __init__(self, backend: str = "local", timeout: float = 10.0, redis_factory: Callable | None = None):
        self.backend = backend
        self.timeout = timeout
        self._redis_factory = redis_factory
        self._local: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @classmethod
    def from_settings(cls) -> "KeyedLock":
        factory = None
        if settings.LOCK_BACKEND == "redis":
            from oden.core.redis_client import get_redis

            factory = get_redis
        return cls(backend=settings.LOCK_BACKEND, timeout=settings.LOCK_TIMEOUT_SEC, redis_factory=factory)

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                if self.backend == "redis":
                    await stack.enter_async_context(self._redis_lock(key))
                else:
                    await stack.enter_async_context(self._local_lock(key))
            yield

    @asynccontextmanager
    async def _local_lock(self, key: str) -> AsyncIterator[None]:
        lock = self._local.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._local[key] = lock
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise LockTimeout(f"Timed out waiting for {key}") from None
        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def _redis_lock(self, key: str) -> AsyncIterator[None]:
        client = self._redis_factory()
        lock = client.lock(key, timeout=self.timeout, blocking_timeout=self.timeout)
        acquired = await lock.acquire()
        if not acquired:
            raise LockTimeout(f"Timed out waiting for {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # lock expired while held; the transaction itself already finished
                logger.warning("redis lock %s expired before release", key)


_locks: KeyedLock | None = None


def get_locks() -> KeyedLock:
    global _locks
    if _locks is None:
        _locks = KeyedLock.from_settings()
    return _locks
