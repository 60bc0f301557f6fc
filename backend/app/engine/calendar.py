from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from backend.app.domain.models import Weekday

MINUTES_PER_DAY = 24 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_aware(instant: datetime, name: str = "datetime") -> datetime:
    if instant.tzinfo is None or instant.tzinfo.utcoffset(instant) is None:
        raise ValueError(f"{name} must include timezone information")
    return instant


def to_local(instant: datetime, zone: ZoneInfo) -> datetime:
    return require_aware(instant).astimezone(zone)


def weekday_of(instant: datetime, zone: ZoneInfo) -> Weekday:
    return Weekday(to_local(instant, zone).weekday())


def minutes_of_day(value: time | datetime) -> int:
    return value.hour * 60 + value.minute


def parse_hhmm(value: str) -> time:
    """Parse ``"HH:MM"``; ``"24:00"`` is read as midnight at the end of the day."""
    hours, _, minutes = value.strip().partition(":")
    h, m = int(hours), int(minutes or 0)
    if (h, m) == (24, 0):
        return time(0, 0)
    return time(h, m)


def close_minutes(value: time) -> int:
    # A closing time of 00:00 means midnight at the end of the day.
    return minutes_of_day(value) or MINUTES_PER_DAY


def interval_end(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes)


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at the start and end of ``day``."""
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def slot_starts(day: date, zone: ZoneInfo, step_minutes: int) -> Iterator[tuple[time, datetime]]:
    """Yield ``(local wall time, UTC instant)`` for every multiple of ``step_minutes`` in ``day``.

    Durations are added to the UTC instant, so a booking interval spans real minutes
    across DST changes. Wall times skipped by a spring-forward gap are not
    yielded; an ambiguous fall-back time resolves to its first occurrence.
    """
    if step_minutes <= 0:
        raise ValueError("slot duration must be positive")
    for offset in range(0, MINUTES_PER_DAY, step_minutes):
        wall = datetime.combine(day, time(offset // 60, offset % 60))
        instant = wall.replace(tzinfo=zone).astimezone(timezone.utc)
        if instant.astimezone(zone).replace(tzinfo=None) != wall:
            continue
        yield wall.time(), instant
