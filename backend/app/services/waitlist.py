from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db import queries
from backend.app.db.models import WaitlistRow
from backend.app.domain.errors import InvalidPartySize, NotFound
from backend.app.domain.models import WaitlistEntry, WaitlistStatus
from backend.app.engine.calendar import utcnow
from backend.app.engine.transitions import advance_waitlist
from backend.app.services.notifications import Notice, NoticeKind, Notifier, deliver

logger = logging.getLogger(__name__)


class WaitlistService:
    """Queue of walk-in parties. Entries never hold a table."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] = utcnow,
        require_notify_before_seat: bool = False,
        max_party_size: int = 50,
        notification_timeout: float = 5.0,
    ) -> None:
        self._sessions = sessions
        self._notifier = notifier
        self._clock = clock
        self._require_notify_before_seat = require_notify_before_seat
        self._max_party_size = max_party_size
        self._notification_timeout = notification_timeout

    async def join(
        self,
        restaurant_id: str,
        *,
        guest_name: str,
        guest_phone: str,
        party_size: int,
        guest_email: str | None = None,
        notes: str | None = None,
    ) -> WaitlistEntry:
        if not 1 <= party_size <= self._max_party_size:
            raise InvalidPartySize(f"Party size must be between 1 and {self._max_party_size}")
        async with self._sessions() as session:
            if await queries.get_restaurant(session, restaurant_id) is None:
                raise NotFound("Restaurant not found")
            row = WaitlistRow(
                restaurant_id=restaurant_id,
                guest_name=guest_name,
                guest_phone=guest_phone,
                guest_email=guest_email,
                party_size=party_size,
                notes=notes,
                status=WaitlistStatus.WAITING.value,
                created_at=self._clock(),
            )
            session.add(row)
            await session.commit()
            return row.to_domain()

    async def queue(self, restaurant_id: str) -> list[WaitlistEntry]:
        async with self._sessions() as session:
            rows = await queries.list_open_waitlist(session, restaurant_id)
            return [row.to_domain() for row in rows]

    async def notify(self, entry_id: str) -> WaitlistEntry:
        entry = await self._advance(entry_id, WaitlistStatus.NOTIFIED)

        async with self._sessions() as session:
            restaurant = await queries.get_restaurant(session, entry.restaurant_id)
        notice = Notice(
            kind=NoticeKind.WAITLIST_READY,
            restaurant_id=entry.restaurant_id,
            restaurant_name=restaurant.name if restaurant else "",
            subject_id=entry.id,
            guest_name=entry.guest_name,
            phone=entry.guest_phone,
            email=entry.guest_email,
            party_size=entry.party_size,
        )
        await deliver(self._notifier, notice, self._sessions, timeout=self._notification_timeout)
        return entry

    async def seat(self, entry_id: str) -> WaitlistEntry:
        return await self._advance(entry_id, WaitlistStatus.SEATED)

    async def cancel(self, entry_id: str) -> WaitlistEntry:
        return await self._advance(entry_id, WaitlistStatus.CANCELLED)

    async def _advance(self, entry_id: str, target: WaitlistStatus) -> WaitlistEntry:
        async with self._sessions() as session:
            row = await queries.get_waitlist_row(session, entry_id, for_update=True)
            if row is None:
                raise NotFound("Waitlist entry not found")

            entry = advance_waitlist(
                row.to_domain(),
                target,
                self._clock(),
                require_notify_before_seat=self._require_notify_before_seat,
            )
            row.status = entry.status.value
            row.notified_at = entry.notified_at
            row.seated_at = entry.seated_at
            await session.commit()

        logger.info("Waitlist entry %s is now %s", entry.id, entry.status.value)
        return entry
