from fastapi import APIRouter, Depends, status

from backend.app.core.deps import get_waitlist_service
from backend.app.domain.errors import ReservationError
from backend.app.routers.errors import http_error
from backend.app.routers.schemas import WaitlistEntryOut, WaitlistJoinIn
from backend.app.services.waitlist import WaitlistService


router = APIRouter()


@router.post("/waitlist", response_model=WaitlistEntryOut, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    payload: WaitlistJoinIn,
    service: WaitlistService = Depends(get_waitlist_service),
) -> WaitlistEntryOut:
    try:
        entry = await service.join(
            payload.restaurant_id,
            guest_name=payload.guest_name,
            guest_phone=payload.guest_phone,
            guest_email=payload.guest_email,
            party_size=payload.party_size,
            notes=payload.notes,
        )
    except ReservationError as exc:
        raise http_error(exc) from exc
    return WaitlistEntryOut.from_domain(entry)


@router.get("/waitlist", response_model=list[WaitlistEntryOut])
async def list_waitlist(
    restaurant_id: str,
    service: WaitlistService = Depends(get_waitlist_service),
) -> list[WaitlistEntryOut]:
    """Open entries (waiting or notified), oldest first."""
    return [WaitlistEntryOut.from_domain(entry) for entry in await service.queue(restaurant_id)]


@router.post("/waitlist/{entry_id}/notify", response_model=WaitlistEntryOut)
async def notify_entry(entry_id: str, service: WaitlistService = Depends(get_waitlist_service)) -> WaitlistEntryOut:
    try:
        entry = await service.notify(entry_id)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return WaitlistEntryOut.from_domain(entry)


@router.post("/waitlist/{entry_id}/seat", response_model=WaitlistEntryOut)
async def seat_entry(entry_id: str, service: WaitlistService = Depends(get_waitlist_service)) -> WaitlistEntryOut:
    try:
        entry = await service.seat(entry_id)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return WaitlistEntryOut.from_domain(entry)


@router.post("/waitlist/{entry_id}/cancel", response_model=WaitlistEntryOut)
async def cancel_entry(entry_id: str, service: WaitlistService = Depends(get_waitlist_service)) -> WaitlistEntryOut:
    try:
        entry = await service.cancel(entry_id)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return WaitlistEntryOut.from_domain(entry)
