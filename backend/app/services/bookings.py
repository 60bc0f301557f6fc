"""Booking lifecycle: create, edit, cancel and administrative status changes.

Create and Edit share one reserve step: under the per-restaurant lock, a
fresh session reads the active bookings of the candidate tables, runs the
assignment engine and writes the result before anything else can look.
On PostgreSQL the ``booking_no_overlap`` exclusion constraint backs the
lock; a write it rejects is retried once against fresh data.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import NamedTuple

from asyncpg import exceptions as asyncpg_exc
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db import queries
from backend.app.db.models import BookingRow
from backend.app.domain.errors import (
    Closed,
    InvalidPartySize,
    NoAvailability,
    NotFound,
    ReservationConflict,
    error_for,
)
from backend.app.domain.models import Booking, BookingStatus, Guest, GuestInfo, Restaurant
from backend.app.engine.advance import check_advance_window
from backend.app.engine.assignment import Assignment, assign_table
from backend.app.engine.calendar import interval_end, require_aware, to_local, utcnow
from backend.app.engine.hours import is_within_opening_hours
from backend.app.engine.transitions import check_booking_transition
from backend.app.services.locking import LockProvider, restaurant_lock_key
from backend.app.services.notifications import Notice, NoticeKind, Notifier, deliver

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MAX_RESERVE_ATTEMPTS = 2
REMINDER_LEAD_MIN = timedelta(hours=23)
REMINDER_LEAD_MAX = timedelta(hours=24)
OVERLAP_CONSTRAINT = "booking_no_overlap"


def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", exc)
    # The asyncpg adapter wraps the driver error; the original is chained as __cause__.
    cause = getattr(orig, "__cause__", None)
    return isinstance(cause, asyncpg_exc.ExclusionViolationError) or OVERLAP_CONSTRAINT in str(orig)


class ReminderSweep(NamedTuple):
    due: int
    sent: int


class BookingService:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        locks: LockProvider,
        notifier: Notifier,
        *,
        clock: Clock = utcnow,
        default_duration_minutes: int = 120,
        max_party_size: int = 50,
        notification_timeout: float = 5.0,
        public_base_url: str | None = None,
    ) -> None:
        self._sessions = sessions
        self._locks = locks
        self._notifier = notifier
        self._clock = clock
        self._default_duration = default_duration_minutes
        self._max_party_size = max_party_size
        self._notification_timeout = notification_timeout
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    async def create(
        self,
        restaurant_id: str,
        guest: GuestInfo,
        start: datetime,
        party_size: int,
        *,
        duration_minutes: int | None = None,
        special_requests: str | None = None,
    ) -> Booking:
        duration = duration_minutes or self._default_duration
        self._check_party_size(party_size)
        restaurant = await self._load_restaurant(restaurant_id)
        self._validate_interval(restaurant, start, duration)

        for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
            try:
                booking, guest_record, table_name = await self._reserve_new(
                    restaurant, guest, start, duration, party_size, special_requests
                )
                break
            except ReservationConflict as exc:
                logger.info(
                    "Lost table race for restaurant %s at %s (attempt %d): %s",
                    restaurant.id, start.isoformat(), attempt, exc,
                )
        else:
            raise NoAvailability()

        logger.info("Booking %s confirmed on table %s", booking.id, booking.table_id)
        notice = self._notice(NoticeKind.CONFIRMED, restaurant, booking, guest_record, table_name)
        if await deliver(self._notifier, notice, self._sessions, timeout=self._notification_timeout):
            await self._mark_sent(booking.id, confirmation_sent=True)
            booking = replace(booking, confirmation_sent=True)
        return booking

    async def edit(self, token: str, new_start: datetime, new_party_size: int) -> Booking:
        """Move a booking, re-running assignment as if it were a fresh request.

        The booking's own interval is excluded from the conflict snapshot, so
        the old interval is released and the new one acquired in the same
        transaction. Changing the start time puts the booking back to PENDING.
        """
        self._check_party_size(new_party_size)
        async with self._sessions() as session:
            row = await queries.get_booking_row_by_token(session, token)
            if row is None or not BookingStatus(row.status).is_active:
                raise NotFound("Booking not found or already closed")
            restaurant_id, duration = row.restaurant_id, row.duration_minutes

        restaurant = await self._load_restaurant(restaurant_id)
        self._validate_interval(restaurant, new_start, duration)

        for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
            try:
                booking, guest_record, table_name = await self._reserve_edit(
                    restaurant, token, new_start, new_party_size
                )
                break
            except ReservationConflict as exc:
                logger.info("Lost table race editing booking %s (attempt %d): %s", token, attempt, exc)
        else:
            raise NoAvailability()

        notice = self._notice(NoticeKind.CHANGED, restaurant, booking, guest_record, table_name)
        await deliver(self._notifier, notice, self._sessions, timeout=self._notification_timeout)
        return booking

    async def cancel(self, token: str) -> Booking:
        async with self._sessions() as session:
            row = await queries.get_booking_row_by_token(session, token, for_update=True)
            if row is None:
                raise NotFound("Booking not found")

            current = BookingStatus(row.status)
            if current is BookingStatus.CANCELLED:
                return row.to_domain()
            check_booking_transition(current, BookingStatus.CANCELLED)

            row.status = BookingStatus.CANCELLED.value
            await session.commit()
            booking = row.to_domain()
            guest_row = await queries.get_guest(session, row.guest_id)
            restaurant = await queries.get_restaurant(session, row.restaurant_id)

        logger.info("Booking %s cancelled; table %s released", booking.id, booking.table_id)
        if restaurant is not None and guest_row is not None:
            notice = self._notice(NoticeKind.CANCELLED, restaurant, booking, guest_row.to_domain(), None)
            await deliver(self._notifier, notice, self._sessions, timeout=self._notification_timeout)
        return booking

    async def transition(self, booking_id: str, target: BookingStatus) -> Booking:
        """Staff-driven status change.

        No allowed transition turns an inactive booking back into an active
        one, so none of them needs the reserve step.
        """
        async with self._sessions() as session:
            row = await queries.get_booking_row(session, booking_id, for_update=True)
            if row is None:
                raise NotFound("Booking not found")

            check_booking_transition(BookingStatus(row.status), target)
            row.status = target.value
            if target is BookingStatus.NO_SHOW:
                guest_row = await queries.get_guest(session, row.guest_id)
                if guest_row is not None:
                    guest_row.no_show_count += 1
            await session.commit()
            return row.to_domain()

    async def get_by_token(self, token: str) -> Booking:
        async with self._sessions() as session:
            row = await queries.get_booking_row_by_token(session, token)
            if row is None:
                raise NotFound("Booking not found")
            return row.to_domain()

    async def send_due_reminders(self) -> ReminderSweep:
        """Remind guests whose PENDING or CONFIRMED booking starts 23 to 24 hours from now.

        Meant to be run hourly. A booking is flagged ``reminder_sent`` only
        once its reminder went out; failures stay in the event log.
        """
        now = self._clock()
        async with self._sessions() as session:
            due = await queries.bookings_due_for_reminder(
                session, now + REMINDER_LEAD_MIN, now + REMINDER_LEAD_MAX
            )
            restaurants: dict[str, Restaurant] = {}
            batch = []
            for row, guest_row, table_row in due:
                if row.restaurant_id not in restaurants:
                    restaurants[row.restaurant_id] = await queries.get_restaurant(session, row.restaurant_id)
                batch.append(
                    (
                        row.to_domain(),
                        restaurants[row.restaurant_id],
                        guest_row.to_domain() if guest_row is not None else None,
                        table_row.name if table_row is not None else None,
                    )
                )

        sent = 0
        for booking, restaurant, guest, table_name in batch:
            notice = self._notice(NoticeKind.REMINDER, restaurant, booking, guest, table_name)
            if await deliver(self._notifier, notice, self._sessions, timeout=self._notification_timeout):
                await self._mark_sent(booking.id, reminder_sent=True)
                sent += 1

        logger.info("Reminder sweep at %s: %d due, %d sent", now.isoformat(), len(batch), sent)
        return ReminderSweep(due=len(batch), sent=sent)

    # -- reserve step ---------------------------------------------------

    async def _reserve_new(
        self,
        restaurant: Restaurant,
        guest: GuestInfo,
        start: datetime,
        duration: int,
        party_size: int,
        special_requests: str | None,
    ) -> tuple[Booking, Guest, str]:
        async with self._locks.hold(restaurant_lock_key(restaurant.id)):
            async with self._sessions() as session:
                assignment = await self._assign(session, restaurant, start, duration, party_size)
                # Guest bookkeeping happens only once a table is won.
                guest_row = await queries.record_guest_booking(session, restaurant.id, guest)
                row = BookingRow(
                    restaurant_id=restaurant.id,
                    guest_id=guest_row.id,
                    table_id=assignment.table.id,
                    start_ts=start,
                    end_ts=interval_end(start, duration),
                    duration_minutes=duration,
                    party_size=party_size,
                    status=BookingStatus.CONFIRMED.value,
                    special_requests=special_requests,
                )
                session.add(row)
                await self._commit(session)
                return row.to_domain(), guest_row.to_domain(), assignment.table.name

    async def _reserve_edit(
        self,
        restaurant: Restaurant,
        token: str,
        new_start: datetime,
        new_party_size: int,
    ) -> tuple[Booking, Guest | None, str]:
        async with self._locks.hold(restaurant_lock_key(restaurant.id)):
            async with self._sessions() as session:
                row = await queries.get_booking_row_by_token(session, token, for_update=True)
                if row is None or not BookingStatus(row.status).is_active:
                    raise NotFound("Booking not found or already closed")

                assignment = await self._assign(
                    session, restaurant, new_start, row.duration_minutes, new_party_size,
                    exclude_booking_id=row.id,
                )
                time_changed = row.start_ts != new_start
                row.table_id = assignment.table.id
                row.start_ts = new_start
                row.end_ts = interval_end(new_start, row.duration_minutes)
                row.party_size = new_party_size
                if time_changed and row.status != BookingStatus.SEATED.value:
                    row.status = BookingStatus.PENDING.value

                guest_row = await queries.get_guest(session, row.guest_id)
                await self._commit(session)
                guest = guest_row.to_domain() if guest_row is not None else None
                return row.to_domain(), guest, assignment.table.name

    async def _assign(
        self,
        session: AsyncSession,
        restaurant: Restaurant,
        start: datetime,
        duration: int,
        party_size: int,
        *,
        exclude_booking_id: str | None = None,
    ) -> Assignment:
        tables = await queries.list_tables(session, restaurant.id)
        bookings = await queries.active_bookings_by_table(
            session,
            restaurant.id,
            start,
            interval_end(start, duration),
            exclude_booking_id=exclude_booking_id,
        )
        assignment = assign_table(restaurant, tables, bookings, start, duration, party_size)
        if not assignment.ok:
            logger.debug("No table for %s at %s: %s", restaurant.id, start.isoformat(), assignment.reason.value)
            raise error_for(assignment.reason)
        return assignment

    async def _commit(self, session: AsyncSession) -> None:
        try:
            await session.flush()
        except IntegrityError as exc:
            await session.rollback()
            if _is_overlap_violation(exc):
                raise ReservationConflict(str(exc.orig)) from exc
            raise

        # Once the commit is under way it must finish even if the caller goes away.
        commit = asyncio.ensure_future(session.commit())
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            await commit
            raise
        except IntegrityError as exc:
            if _is_overlap_violation(exc):
                raise ReservationConflict(str(exc.orig)) from exc
            raise

    # -- helpers --------------------------------------------------------

    async def _load_restaurant(self, restaurant_id: str) -> Restaurant:
        async with self._sessions() as session:
            restaurant = await queries.get_restaurant(session, restaurant_id)
        if restaurant is None:
            raise NotFound("Restaurant not found")
        return restaurant

    def _check_party_size(self, party_size: int) -> None:
        if not 1 <= party_size <= self._max_party_size:
            raise InvalidPartySize(f"Party size must be between 1 and {self._max_party_size}")

    def _validate_interval(self, restaurant: Restaurant, start: datetime, duration: int) -> None:
        require_aware(start, "start")
        ok, reason = check_advance_window(restaurant, start, self._clock())
        if not ok:
            raise error_for(reason)
        if not is_within_opening_hours(restaurant, start, duration):
            raise Closed()

    async def _mark_sent(self, booking_id: str, **flags: bool) -> None:
        async with self._sessions() as session:
            await session.execute(
                update(BookingRow).where(BookingRow.id == booking_id).values(**flags)
            )
            await session.commit()

    def _notice(
        self,
        kind: NoticeKind,
        restaurant: Restaurant,
        booking: Booking,
        guest: Guest | None,
        table_name: str | None,
    ) -> Notice:
        manage_url = None
        if self._public_base_url and booking.cancel_token:
            manage_url = f"{self._public_base_url}/booking/edit/{booking.cancel_token}"
        return Notice(
            kind=kind,
            restaurant_id=restaurant.id,
            restaurant_name=restaurant.name,
            subject_id=booking.id,
            guest_name=guest.full_name if guest else "",
            phone=guest.phone if guest else None,
            email=guest.email if guest else None,
            party_size=booking.party_size,
            starts_at=to_local(booking.start, restaurant.zone),
            table_name=table_name,
            special_requests=booking.special_requests,
            manage_url=manage_url,
        )
