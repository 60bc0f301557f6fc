from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, time
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from backend.app.domain.models import DayHours, Restaurant, Weekday, WeeklySchedule
from backend.app.engine.calendar import close_minutes, minutes_of_day, parse_hhmm, to_local

logger = logging.getLogger(__name__)

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_SCHEDULE = WeeklySchedule(
    days=tuple(DayHours(opens_at=time(11, 0), closes_at=time(22, 0)) for _ in Weekday)
)


class _DayHoursIn(BaseModel):
    open: str | None = None
    close: str | None = None
    closed: bool = False


_ScheduleIn = TypeAdapter(dict[str, _DayHoursIn])


def parse_opening_hours(raw: str | Mapping[str, Any] | None) -> WeeklySchedule:
    """Parse the stored ``{"monday": {"open", "close", "closed"}, ...}`` document.

    Days absent from the document are treated as closed. A document that
    cannot be parsed at all is a configuration error: it is logged and the
    default 11:00-22:00 schedule is used so availability is not silently empty.
    """
    if raw is None or raw == "":
        logger.warning("Opening hours not configured; using default schedule")
        return DEFAULT_SCHEDULE

    try:
        data = json.loads(raw) if isinstance(raw, str) else dict(raw)
        parsed = _ScheduleIn.validate_python({k.lower(): v for k, v in data.items()})
        days: list[DayHours | None] = []
        for name in DAY_NAMES:
            entry = parsed.get(name)
            if entry is None:
                days.append(None)
            elif entry.closed or not entry.open or not entry.close:
                days.append(DayHours(opens_at=time(0, 0), closes_at=time(0, 0), closed=True))
            else:
                days.append(DayHours(opens_at=parse_hhmm(entry.open), closes_at=parse_hhmm(entry.close)))
    except (ValueError, TypeError, AttributeError, ValidationError) as exc:
        logger.warning("Invalid opening hours %r (%s); using default schedule", raw, exc)
        return DEFAULT_SCHEDULE

    return WeeklySchedule(days=tuple(days))


def dump_opening_hours(schedule: WeeklySchedule) -> str:
    doc: dict[str, dict[str, Any]] = {}
    for name, day in zip(DAY_NAMES, schedule.days):
        if day is None:
            continue
        doc[name] = {
            "open": day.opens_at.strftime("%H:%M"),
            "close": day.closes_at.strftime("%H:%M"),
            "closed": day.closed,
        }
    return json.dumps(doc)


def is_within_opening_hours(restaurant: Restaurant, start: datetime, duration_minutes: int) -> bool:
    """True iff ``[start, start+duration)`` fits inside that weekday's open window.

    Windows that cross midnight (e.g. 18:00-02:00) are not supported.
    """
    local_start = to_local(start, restaurant.zone)
    day = restaurant.opening_hours.for_day(Weekday(local_start.weekday()))
    if day is None or day.closed:
        return False

    start_minutes = minutes_of_day(local_start)
    return (
        minutes_of_day(day.opens_at) <= start_minutes
        and start_minutes + duration_minutes <= close_minutes(day.closes_at)
    )
