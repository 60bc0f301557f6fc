from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.deps import get_clock
from backend.app.db.session import get_session
from backend.app.domain.errors import ReservationError
from backend.app.routers.errors import http_error
from backend.app.routers.schemas import AvailabilityOut
from backend.app.services.availability import get_availability

router = APIRouter()


@router.get("/availability", response_model=AvailabilityOut)
async def check_availability(
    restaurant_id: str,
    day: date = Query(alias="date"),
    party_size: int = Query(ge=1),
    duration_minutes: int | None = Query(default=None, ge=15, le=480),
    session: AsyncSession = Depends(get_session),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityOut:
    try:
        availability = await get_availability(
            session,
            restaurant_id,
            day,
            party_size,
            now=clock(),
            duration_minutes=duration_minutes or settings.DEFAULT_BOOKING_DURATION_MINUTES,
            max_party_size=settings.MAX_PARTY_SIZE,
        )
    except ReservationError as exc:
        raise http_error(exc) from exc

    return AvailabilityOut.from_domain(availability)
