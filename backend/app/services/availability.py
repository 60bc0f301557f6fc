from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db import queries
from backend.app.domain.errors import InvalidPartySize, NotFound
from backend.app.domain.models import AvailabilityDay
from backend.app.engine.availability import iter_slots
from backend.app.engine.calendar import interval_end, local_day_bounds


async def get_availability(
    session: AsyncSession,
    restaurant_id: str,
    day: date,
    party_size: int,
    *,
    now: datetime,
    duration_minutes: int,
    max_party_size: int = 50,
) -> AvailabilityDay:
    """Read-only snapshot of a day's slots; a later create re-validates everything."""
    if not 1 <= party_size <= max_party_size:
        raise InvalidPartySize(f"Party size must be between 1 and {max_party_size}")

    restaurant = await queries.get_restaurant(session, restaurant_id)
    if restaurant is None:
        raise NotFound("Restaurant not found")

    tables = await queries.list_tables(session, restaurant.id)
    day_start, day_end = local_day_bounds(day, restaurant.zone)
    bookings = await queries.active_bookings_by_table(
        session,
        restaurant.id,
        day_start,
        interval_end(day_end, duration_minutes),
    )

    slots = list(
        iter_slots(
            restaurant,
            tables,
            bookings,
            day,
            party_size,
            now=now,
            duration_minutes=duration_minutes,
        )
    )
    return AvailabilityDay(
        restaurant_id=restaurant.id,
        date=day,
        party_size=party_size,
        slot_duration_minutes=restaurant.slot_duration_minutes,
        slots=slots,
    )
