from collections.abc import Iterable
from datetime import datetime

from backend.app.domain.models import Booking, Table


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap: ``[18:00, 20:00)`` and ``[20:00, 22:00)`` do not overlap."""
    return a_start < b_end and b_start < a_end


def table_has_conflict(
    table: Table,
    candidate_start: datetime,
    candidate_end: datetime,
    active_bookings: Iterable[Booking],
) -> bool:
    for booking in active_bookings:
        # Snapshots are keyed by table, but a stray or inactive row must never block.
        if booking.table_id != table.id or not booking.is_active:
            continue
        if overlaps(candidate_start, candidate_end, booking.start, booking.end):
            return True
    return False
