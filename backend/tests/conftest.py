import os

# Settings are read at import time; point them at throwaway backends first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-bootstrap.db")
os.environ.setdefault("LOCK_BACKEND", "local")

from datetime import datetime, time, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio

from backend.app.db.models import Base, RestaurantRow, TableRow
from backend.app.db.session import build_engine, build_sessionmaker
from backend.app.domain.models import (
    Booking,
    BookingStatus,
    DayHours,
    Restaurant,
    Table,
    Weekday,
    WeeklySchedule,
)
from backend.app.engine.hours import dump_opening_hours
from backend.app.services.bookings import BookingService
from backend.app.services.locking import LocalLockProvider
from backend.app.services.waitlist import WaitlistService

# Monday 3 June 2030, 09:10 UTC
NOW = datetime(2030, 6, 3, 9, 10, tzinfo=timezone.utc)

OPEN_11_TO_22 = WeeklySchedule(days=tuple(DayHours(time(11, 0), time(22, 0)) for _ in Weekday))


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent = []
        self.fail_with: Exception | None = None

    async def send(self, notice) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(notice)

    def kinds(self) -> list[str]:
        return [notice.kind.value for notice in self.sent]


@pytest.fixture
def make_restaurant():
    def _make(**overrides) -> Restaurant:
        fields = dict(
            id="r1",
            name="Demo Bistro",
            timezone="UTC",
            slot_duration_minutes=30,
            min_advance_hours=2,
            max_advance_days=60,
            opening_hours=OPEN_11_TO_22,
        )
        fields.update(overrides)
        return Restaurant(**fields)

    return _make


@pytest.fixture
def make_table():
    def _make(table_id: str, capacity: int, **overrides) -> Table:
        fields = dict(id=table_id, restaurant_id="r1", name=table_id.upper(), capacity=capacity)
        fields.update(overrides)
        return Table(**fields)

    return _make


@pytest.fixture
def make_booking():
    def _make(table_id: str, start: datetime, minutes: int = 120, **overrides) -> Booking:
        fields = dict(
            id=str(uuid4()),
            restaurant_id="r1",
            table_id=table_id,
            start=start,
            duration_minutes=minutes,
            party_size=2,
            status=BookingStatus.CONFIRMED,
        )
        fields.update(overrides)
        return Booking(**fields)

    return _make


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def seed_restaurant(sessions):
    async def _seed(
        tables: list[tuple[str, int]] = (("t4", 4),),
        *,
        restaurant_id: str | None = None,
        timezone_name: str = "UTC",
        schedule: WeeklySchedule = OPEN_11_TO_22,
        inactive: tuple[str, ...] = (),
        **overrides,
    ) -> str:
        restaurant_id = restaurant_id or str(uuid4())
        async with sessions() as session:
            session.add(
                RestaurantRow(
                    id=restaurant_id,
                    name=overrides.pop("name", "Demo Bistro"),
                    timezone=timezone_name,
                    slot_duration_minutes=overrides.pop("slot_duration_minutes", 30),
                    min_advance_hours=overrides.pop("min_advance_hours", 2),
                    max_advance_days=overrides.pop("max_advance_days", 60),
                    opening_hours=dump_opening_hours(schedule),
                )
            )
            for name, capacity in tables:
                session.add(
                    TableRow(
                        id=f"{restaurant_id}-{name}",
                        restaurant_id=restaurant_id,
                        name=name.upper(),
                        capacity=capacity,
                        is_active=name not in inactive,
                    )
                )
            await session.commit()
        return restaurant_id

    return _seed


@pytest.fixture
def locks() -> LocalLockProvider:
    return LocalLockProvider(wait_seconds=2.0)


@pytest.fixture
def booking_service(sessions, locks, notifier, clock) -> BookingService:
    return BookingService(
        sessions,
        locks,
        notifier,
        clock=clock,
        public_base_url="https://book.example.com",
        notification_timeout=0.5,
    )


@pytest.fixture
def waitlist_service(sessions, notifier, clock) -> WaitlistService:
    return WaitlistService(sessions, notifier, clock=clock, notification_timeout=0.5)
