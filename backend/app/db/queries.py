"""Store access for the reservation core.

Plain async functions over an ``AsyncSession``. Callers own the
transaction; nothing here commits.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import (
    BookingRow,
    EventLogRow,
    GuestRow,
    RestaurantRow,
    TableRow,
    WaitlistRow,
)
from backend.app.domain.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    GuestInfo,
    Restaurant,
    Table,
    WaitlistStatus,
)

_ACTIVE = [status.value for status in ACTIVE_BOOKING_STATUSES]


async def get_restaurant(session: AsyncSession, restaurant_id: str) -> Restaurant | None:
    row = await session.get(RestaurantRow, restaurant_id)
    return row.to_domain() if row is not None else None


async def list_tables(session: AsyncSession, restaurant_id: str) -> list[Table]:
    result = await session.execute(
        select(TableRow)
        .where(TableRow.restaurant_id == restaurant_id)
        .order_by(TableRow.capacity, TableRow.id)
    )
    return [row.to_domain() for row in result.scalars()]


async def active_bookings_by_table(
    session: AsyncSession,
    restaurant_id: str,
    window_start: datetime,
    window_end: datetime,
    *,
    exclude_booking_id: str | None = None,
) -> dict[str, list[Booking]]:
    """Active, table-bound bookings whose occupancy touches ``[window_start, window_end)``."""
    query = (
        select(BookingRow)
        .where(
            BookingRow.restaurant_id == restaurant_id,
            BookingRow.status.in_(_ACTIVE),
            BookingRow.table_id.is_not(None),
            BookingRow.start_ts < window_end,
            BookingRow.end_ts > window_start,
        )
        .order_by(BookingRow.start_ts)
    )
    if exclude_booking_id is not None:
        query = query.where(BookingRow.id != exclude_booking_id)

    result = await session.execute(query)
    by_table: dict[str, list[Booking]] = defaultdict(list)
    for row in result.scalars():
        by_table[row.table_id].append(row.to_domain())
    return dict(by_table)


async def record_guest_booking(session: AsyncSession, restaurant_id: str, info: GuestInfo) -> GuestRow:
    """Find the guest by phone within the restaurant (or create it) and count one booking."""
    result = await session.execute(
        select(GuestRow).where(GuestRow.restaurant_id == restaurant_id, GuestRow.phone == info.phone)
    )
    guest = result.scalar_one_or_none()
    if guest is None:
        guest = GuestRow(
            restaurant_id=restaurant_id,
            first_name=info.first_name,
            last_name=info.last_name,
            phone=info.phone,
            email=info.email or None,
            total_bookings=0,
            no_show_count=0,
        )
        session.add(guest)
    guest.total_bookings += 1
    await session.flush()
    return guest


async def get_guest(session: AsyncSession, guest_id: str | None) -> GuestRow | None:
    if guest_id is None:
        return None
    return await session.get(GuestRow, guest_id)


async def get_booking_row(
    session: AsyncSession, booking_id: str, *, for_update: bool = False
) -> BookingRow | None:
    query = select(BookingRow).where(BookingRow.id == booking_id)
    if for_update:
        query = query.with_for_update()
    return (await session.execute(query)).scalar_one_or_none()


async def get_booking_row_by_token(
    session: AsyncSession, token: str, *, for_update: bool = False
) -> BookingRow | None:
    query = select(BookingRow).where(BookingRow.cancel_token == token)
    if for_update:
        query = query.with_for_update()
    return (await session.execute(query)).scalar_one_or_none()


async def bookings_due_for_reminder(
    session: AsyncSession, window_start: datetime, window_end: datetime
) -> list[tuple[BookingRow, GuestRow | None, TableRow | None]]:
    """PENDING or CONFIRMED bookings starting in ``[window_start, window_end]`` without a reminder yet."""
    result = await session.execute(
        select(BookingRow, GuestRow, TableRow)
        .outerjoin(GuestRow, GuestRow.id == BookingRow.guest_id)
        .outerjoin(TableRow, TableRow.id == BookingRow.table_id)
        .where(
            BookingRow.status.in_([BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]),
            BookingRow.reminder_sent == false(),
            BookingRow.start_ts >= window_start,
            BookingRow.start_ts <= window_end,
        )
        .order_by(BookingRow.start_ts, BookingRow.id)
    )
    return [tuple(row) for row in result.all()]


async def get_waitlist_row(
    session: AsyncSession, entry_id: str, *, for_update: bool = False
) -> WaitlistRow | None:
    query = select(WaitlistRow).where(WaitlistRow.id == entry_id)
    if for_update:
        query = query.with_for_update()
    return (await session.execute(query)).scalar_one_or_none()


async def list_open_waitlist(session: AsyncSession, restaurant_id: str) -> list[WaitlistRow]:
    """Entries still in the queue, oldest first."""
    result = await session.execute(
        select(WaitlistRow)
        .where(
            WaitlistRow.restaurant_id == restaurant_id,
            WaitlistRow.status.in_([WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value]),
        )
        .order_by(WaitlistRow.created_at, WaitlistRow.id)
    )
    return list(result.scalars())


async def record_event(
    session: AsyncSession,
    *,
    kind: str,
    restaurant_id: str | None = None,
    subject_id: str | None = None,
    detail: str | None = None,
) -> None:
    session.add(EventLogRow(kind=kind, restaurant_id=restaurant_id, subject_id=subject_id, detail=detail))
    await session.flush()
