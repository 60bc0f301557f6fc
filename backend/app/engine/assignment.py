"""Smallest-fit table assignment.

``assign_table`` is a pure function of its arguments: it never reads the
store and never mutates the snapshot, so it can be probed freely by the
slot generator and called concurrently without coordination. Committing
the result is the lifecycle controller's job.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import NamedTuple

from backend.app.domain.errors import FailureReason
from backend.app.domain.models import Booking, Restaurant, Table
from backend.app.engine.calendar import interval_end
from backend.app.engine.overlap import table_has_conflict

BookingsByTable = Mapping[str, Sequence[Booking]]


class Assignment(NamedTuple):
    table: Table | None
    reason: FailureReason | None

    @property
    def ok(self) -> bool:
        return self.table is not None


def suitable_tables(tables: Iterable[Table], party_size: int) -> list[Table]:
    """Active tables that seat ``party_size``, smallest first, ties broken by id."""
    return sorted(
        (t for t in tables if t.active and t.capacity >= party_size),
        key=lambda t: (t.capacity, t.id),
    )


def assign_table(
    restaurant: Restaurant,
    tables: Iterable[Table],
    active_bookings_by_table: BookingsByTable,
    candidate_start: datetime,
    duration_minutes: int,
    party_size: int,
) -> Assignment:
    if party_size < 1:
        return Assignment(None, FailureReason.INVALID_PARTY_SIZE)

    candidates = suitable_tables(
        (t for t in tables if t.restaurant_id == restaurant.id),
        party_size,
    )
    if not candidates:
        return Assignment(None, FailureReason.NO_SUITABLE_TABLE)

    candidate_end = interval_end(candidate_start, duration_minutes)
    for table in candidates:
        existing = active_bookings_by_table.get(table.id, ())
        if not table_has_conflict(table, candidate_start, candidate_end, existing):
            return Assignment(table, None)

    return Assignment(None, FailureReason.NO_AVAILABILITY)
