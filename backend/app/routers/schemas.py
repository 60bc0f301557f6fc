from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from backend.app.domain.models import AvailabilityDay, Booking, BookingStatus, WaitlistEntry, WaitlistStatus


class SlotOut(BaseModel):
    time: str  # "HH:MM" in the restaurant's local time
    available: bool


class AvailabilityOut(BaseModel):
    restaurant_id: str
    date: date
    party_size: int
    slot_duration_minutes: int
    available_slots: list[str]
    all_slots: list[SlotOut]

    @classmethod
    def from_domain(cls, day: AvailabilityDay) -> AvailabilityOut:
        return cls(
            restaurant_id=day.restaurant_id,
            date=day.date,
            party_size=day.party_size,
            slot_duration_minutes=day.slot_duration_minutes,
            available_slots=[t.strftime("%H:%M") for t in day.available_times],
            all_slots=[SlotOut(time=s.time.strftime("%H:%M"), available=s.available) for s in day.slots],
        )


class GuestIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=6, max_length=32)
    email: str | None = Field(default=None, max_length=254)


class CreateBookingIn(BaseModel):
    restaurant_id: str
    guest: GuestIn
    # ISO 8601 with offset, e.g. "2025-11-05T19:00:00+01:00"
    start_ts: datetime
    party_size: int = Field(ge=1)
    duration_minutes: int | None = Field(default=None, ge=15, le=480)
    special_requests: str | None = Field(default=None, max_length=1024)


class EditBookingIn(BaseModel):
    start_ts: datetime
    party_size: int = Field(ge=1)


class StatusChangeIn(BaseModel):
    status: BookingStatus


class BookingOut(BaseModel):
    id: str
    restaurant_id: str
    table_id: str | None
    start_ts: datetime
    end_ts: datetime
    duration_minutes: int
    party_size: int
    status: BookingStatus
    cancel_token: str | None
    special_requests: str | None
    confirmation_sent: bool
    reminder_sent: bool

    @classmethod
    def from_domain(cls, booking: Booking) -> BookingOut:
        return cls(
            id=booking.id,
            restaurant_id=booking.restaurant_id,
            table_id=booking.table_id,
            start_ts=booking.start,
            end_ts=booking.end,
            duration_minutes=booking.duration_minutes,
            party_size=booking.party_size,
            status=booking.status,
            cancel_token=booking.cancel_token,
            special_requests=booking.special_requests,
            confirmation_sent=booking.confirmation_sent,
            reminder_sent=booking.reminder_sent,
        )


class WaitlistJoinIn(BaseModel):
    restaurant_id: str
    guest_name: str = Field(min_length=1, max_length=200)
    guest_phone: str = Field(min_length=6, max_length=32)
    guest_email: str | None = Field(default=None, max_length=254)
    party_size: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=1024)


class WaitlistEntryOut(BaseModel):
    id: str
    restaurant_id: str
    guest_name: str
    guest_phone: str
    guest_email: str | None
    party_size: int
    notes: str | None
    status: WaitlistStatus
    created_at: datetime
    notified_at: datetime | None
    seated_at: datetime | None

    @classmethod
    def from_domain(cls, entry: WaitlistEntry) -> WaitlistEntryOut:
        return cls(
            id=entry.id,
            restaurant_id=entry.restaurant_id,
            guest_name=entry.guest_name,
            guest_phone=entry.guest_phone,
            guest_email=entry.guest_email,
            party_size=entry.party_size,
            notes=entry.notes,
            status=entry.status,
            created_at=entry.created_at,
            notified_at=entry.notified_at,
            seated_at=entry.seated_at,
        )


class ReminderSweepOut(BaseModel):
    due: int
    sent: int
