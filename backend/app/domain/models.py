"""Plain value types shared by the engine, the store and the services.

The engine never sees ORM rows; the store converts rows into these
frozen dataclasses so that a snapshot cannot be mutated mid-computation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum, IntEnum
from zoneinfo import ZoneInfo


class Weekday(IntEnum):
    # Matches date.weekday()
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SEATED = "SEATED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_BOOKING_STATUSES


ACTIVE_BOOKING_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.SEATED}
)


class WaitlistStatus(str, Enum):
    WAITING = "WAITING"
    NOTIFIED = "NOTIFIED"
    SEATED = "SEATED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class DayHours:
    opens_at: time
    closes_at: time
    closed: bool = False


@dataclass(frozen=True)
class WeeklySchedule:
    """Seven entries indexed by Weekday; ``None`` means no hours configured."""

    days: tuple[DayHours | None, ...]

    def __post_init__(self) -> None:
        if len(self.days) != 7:
            raise ValueError("a weekly schedule needs exactly 7 days")

    def for_day(self, weekday: Weekday) -> DayHours | None:
        return self.days[weekday]


@dataclass(frozen=True)
class Restaurant:
    id: str
    name: str
    timezone: str
    slot_duration_minutes: int
    min_advance_hours: int
    max_advance_days: int
    opening_hours: WeeklySchedule
    address: str | None = None

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def min_advance(self) -> timedelta:
        return timedelta(hours=self.min_advance_hours)

    @property
    def max_advance(self) -> timedelta:
        return timedelta(days=self.max_advance_days)


@dataclass(frozen=True)
class Table:
    id: str
    restaurant_id: str
    name: str
    capacity: int
    active: bool = True
    location: str | None = None


@dataclass(frozen=True)
class Booking:
    id: str
    restaurant_id: str
    table_id: str | None
    start: datetime
    duration_minutes: int
    party_size: int
    status: BookingStatus
    guest_id: str | None = None
    cancel_token: str | None = None
    special_requests: str | None = None
    confirmation_sent: bool = False
    reminder_sent: bool = False

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass(frozen=True)
class GuestInfo:
    first_name: str
    last_name: str
    phone: str
    email: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Guest:
    id: str
    restaurant_id: str
    first_name: str
    last_name: str
    phone: str
    email: str | None = None
    total_bookings: int = 0
    no_show_count: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class WaitlistEntry:
    id: str
    restaurant_id: str
    guest_name: str
    guest_phone: str
    party_size: int
    status: WaitlistStatus
    created_at: datetime
    guest_email: str | None = None
    notes: str | None = None
    notified_at: datetime | None = None
    seated_at: datetime | None = None


@dataclass(frozen=True)
class Slot:
    time: time
    available: bool
    starts_at: datetime = field(compare=False)


@dataclass(frozen=True)
class AvailabilityDay:
    restaurant_id: str
    date: date
    party_size: int
    slot_duration_minutes: int
    slots: list[Slot]

    @property
    def available_times(self) -> list[time]:
        return [slot.time for slot in self.slots if slot.available]
