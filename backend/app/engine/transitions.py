from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from backend.app.domain.errors import InvalidTransition
from backend.app.domain.models import BookingStatus, WaitlistEntry, WaitlistStatus

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.SEATED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.SEATED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.SEATED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def check_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    if target not in BOOKING_TRANSITIONS[current]:
        raise InvalidTransition(f"Booking cannot move from {current.value} to {target.value}")


WAITLIST_TERMINAL = frozenset({WaitlistStatus.SEATED, WaitlistStatus.CANCELLED})


def waitlist_transitions(*, require_notify_before_seat: bool = False) -> dict[WaitlistStatus, frozenset[WaitlistStatus]]:
    waiting = {WaitlistStatus.NOTIFIED, WaitlistStatus.CANCELLED}
    if not require_notify_before_seat:
        # Hosts may seat a walk-in straight from the queue.
        waiting.add(WaitlistStatus.SEATED)
    return {
        WaitlistStatus.WAITING: frozenset(waiting),
        WaitlistStatus.NOTIFIED: frozenset({WaitlistStatus.SEATED, WaitlistStatus.CANCELLED}),
        WaitlistStatus.SEATED: frozenset(),
        WaitlistStatus.CANCELLED: frozenset(),
    }


def advance_waitlist(
    entry: WaitlistEntry,
    target: WaitlistStatus,
    at: datetime,
    *,
    require_notify_before_seat: bool = False,
) -> WaitlistEntry:
    """Return ``entry`` moved to ``target``, stamping notified_at / seated_at."""
    allowed = waitlist_transitions(require_notify_before_seat=require_notify_before_seat)
    if target not in allowed[entry.status]:
        raise InvalidTransition(f"Waitlist entry cannot move from {entry.status.value} to {target.value}")

    if target is WaitlistStatus.NOTIFIED:
        return replace(entry, status=target, notified_at=at)
    if target is WaitlistStatus.SEATED:
        return replace(entry, status=target, seated_at=at)
    return replace(entry, status=target)
