from collections.abc import Callable
from datetime import datetime

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.core import redis_client as redis_module
from backend.app.core.config import settings
from backend.app.db.session import SessionLocal
from backend.app.engine.calendar import utcnow
from backend.app.services.bookings import BookingService
from backend.app.services.locking import LocalLockProvider, LockProvider, RedisLockProvider
from backend.app.services.notifications import DeliveryNotifier, Notifier
from backend.app.services.waitlist import WaitlistService

_local_locks: LocalLockProvider | None = None


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return SessionLocal


def get_lock_provider() -> LockProvider:
    global _local_locks
    if settings.LOCK_BACKEND == "local":
        if _local_locks is None:
            _local_locks = LocalLockProvider(settings.LOCK_WAIT_SECONDS)
        return _local_locks

    if redis_module.redis_client is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable")
    return RedisLockProvider(
        redis_module.redis_client,
        timeout_seconds=settings.LOCK_TIMEOUT_SECONDS,
        wait_seconds=settings.LOCK_WAIT_SECONDS,
    )


def get_notifier() -> Notifier:
    return DeliveryNotifier(settings)


def get_booking_service(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    locks: LockProvider = Depends(get_lock_provider),
    notifier: Notifier = Depends(get_notifier),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingService:
    return BookingService(
        sessions,
        locks,
        notifier,
        clock=clock,
        default_duration_minutes=settings.DEFAULT_BOOKING_DURATION_MINUTES,
        max_party_size=settings.MAX_PARTY_SIZE,
        notification_timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        public_base_url=settings.PUBLIC_BASE_URL,
    )


def get_waitlist_service(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    notifier: Notifier = Depends(get_notifier),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> WaitlistService:
    return WaitlistService(
        sessions,
        notifier,
        clock=clock,
        require_notify_before_seat=settings.WAITLIST_REQUIRE_NOTIFY_BEFORE_SEAT,
        max_party_size=settings.MAX_PARTY_SIZE,
        notification_timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
    )
