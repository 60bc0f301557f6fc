from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import LockError

from backend.app.domain.errors import ReservationBusy

logger = logging.getLogger(__name__)


def restaurant_lock_key(restaurant_id: str) -> str:
    return f"lock:restaurant:{restaurant_id}"


class LockProvider(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class LocalLockProvider:
    """One asyncio.Lock per key; serialises writers inside a single process."""

    def __init__(self, wait_seconds: float) -> None:
        self._wait_seconds = wait_seconds
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks[key]
        try:
            # A cancelled pending acquire never leaves the lock held.
            async with asyncio.timeout(self._wait_seconds):
                await lock.acquire()
        except TimeoutError as exc:
            logger.info("Gave up waiting for %s after %ss", key, self._wait_seconds)
            raise ReservationBusy() from exc
        try:
            yield
        finally:
            lock.release()


class RedisLockProvider:
    """Distributed lock via redis-py's ``Lock`` (SET NX PX plus a token-checked release)."""

    def __init__(self, client: redis.Redis, *, timeout_seconds: float, wait_seconds: float) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._wait_seconds = wait_seconds

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            key,
            timeout=self._timeout_seconds,
            blocking_timeout=self._wait_seconds,
        )
        if not await lock.acquire():
            raise ReservationBusy()
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease ran out mid-transaction; the exclusion constraint still guards the write.
                logger.warning("Lock %s expired before release", key)
