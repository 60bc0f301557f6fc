from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from backend.app.domain.models import (
    Booking,
    BookingStatus,
    Guest,
    Restaurant,
    Table,
    WaitlistEntry,
    WaitlistStatus,
)
from backend.app.engine.hours import parse_opening_hours


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores aware datetimes as UTC and always hands back aware UTC values.

    SQLite drops the offset on the way out; PostgreSQL keeps it.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetimes cannot be stored")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class RestaurantRow(Base):
    __tablename__ = "restaurant"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    address: Mapped[str | None] = mapped_column(String(300))
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    min_advance_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    max_advance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    opening_hours: Mapped[str | None] = mapped_column(Text)

    def to_domain(self) -> Restaurant:
        return Restaurant(
            id=self.id,
            name=self.name,
            timezone=self.timezone,
            slot_duration_minutes=self.slot_duration_minutes,
            min_advance_hours=self.min_advance_hours,
            max_advance_days=self.max_advance_days,
            opening_hours=parse_opening_hours(self.opening_hours),
            address=self.address,
        )


class TableRow(Base):
    __tablename__ = "dining_table"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    restaurant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("restaurant.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_domain(self) -> Table:
        return Table(
            id=self.id,
            restaurant_id=self.restaurant_id,
            name=self.name,
            capacity=self.capacity,
            active=self.is_active,
            location=self.location,
        )


class GuestRow(Base):
    __tablename__ = "guest"
    __table_args__ = (UniqueConstraint("restaurant_id", "phone", name="uq_guest_restaurant_phone"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    restaurant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254))
    total_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    no_show_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_domain(self) -> Guest:
        return Guest(
            id=self.id,
            restaurant_id=self.restaurant_id,
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            email=self.email,
            total_bookings=self.total_bookings,
            no_show_count=self.no_show_count,
        )


class BookingRow(Base):
    __tablename__ = "booking"
    __table_args__ = (Index("ix_booking_table_window", "table_id", "start_ts", "end_ts"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    restaurant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("guest.id"))
    table_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("dining_table.id"))
    start_ts: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_ts: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BookingStatus.CONFIRMED.value)
    special_requests: Mapped[str | None] = mapped_column(Text)
    cancel_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, default=lambda: uuid4().hex)
    confirmation_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now, onupdate=_now)

    def to_domain(self) -> Booking:
        return Booking(
            id=self.id,
            restaurant_id=self.restaurant_id,
            table_id=self.table_id,
            start=self.start_ts,
            duration_minutes=self.duration_minutes,
            party_size=self.party_size,
            status=BookingStatus(self.status),
            guest_id=self.guest_id,
            cancel_token=self.cancel_token,
            special_requests=self.special_requests,
            confirmation_sent=self.confirmation_sent,
            reminder_sent=self.reminder_sent,
        )


class WaitlistRow(Base):
    __tablename__ = "waitlist_entry"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    restaurant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("restaurant.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    guest_email: Mapped[str | None] = mapped_column(String(254))
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=WaitlistStatus.WAITING.value)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
    notified_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    seated_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    def to_domain(self) -> WaitlistEntry:
        return WaitlistEntry(
            id=self.id,
            restaurant_id=self.restaurant_id,
            guest_name=self.guest_name,
            guest_phone=self.guest_phone,
            guest_email=self.guest_email,
            party_size=self.party_size,
            notes=self.notes,
            status=WaitlistStatus(self.status),
            created_at=self.created_at,
            notified_at=self.notified_at,
            seated_at=self.seated_at,
        )


class EventLogRow(Base):
    """Append-only record of side effects that need an external retrier."""

    __tablename__ = "event_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    restaurant_id: Mapped[str | None] = mapped_column(String(36))
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36))
    detail: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_now)
