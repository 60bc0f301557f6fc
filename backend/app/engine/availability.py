from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime, time

from backend.app.domain.models import Restaurant, Slot, Table
from backend.app.engine.advance import check_advance_window
from backend.app.engine.assignment import BookingsByTable, assign_table, suitable_tables
from backend.app.engine.calendar import slot_starts
from backend.app.engine.hours import is_within_opening_hours


def iter_slots(
    restaurant: Restaurant,
    tables: Iterable[Table],
    active_bookings_by_table: BookingsByTable,
    day: date,
    party_size: int,
    *,
    now: datetime,
    duration_minutes: int,
) -> Iterator[Slot]:
    """Yield every bookable-in-principle slot of ``day`` with its availability.

    Slots outside the advance window or the opening hours are skipped
    entirely; the rest are probed against the assignment engine without
    committing anything. Calling again with the same inputs yields the
    same sequence.
    """
    tables = suitable_tables(tables, party_size)
    for wall_time, starts_at in slot_starts(day, restaurant.zone, restaurant.slot_duration_minutes):
        ok, _ = check_advance_window(restaurant, starts_at, now)
        if not ok:
            continue
        if not is_within_opening_hours(restaurant, starts_at, duration_minutes):
            continue

        assignment = assign_table(
            restaurant,
            tables,
            active_bookings_by_table,
            starts_at,
            duration_minutes,
            party_size,
        )
        yield Slot(time=wall_time, available=assignment.ok, starts_at=starts_at)


def list_available_slots(
    restaurant: Restaurant,
    tables: Iterable[Table],
    active_bookings_by_table: BookingsByTable,
    day: date,
    party_size: int,
    *,
    now: datetime,
    duration_minutes: int,
) -> list[time]:
    return [
        slot.time
        for slot in iter_slots(
            restaurant,
            tables,
            active_bookings_by_table,
            day,
            party_size,
            now=now,
            duration_minutes=duration_minutes,
        )
        if slot.available
    ]
