from fastapi import APIRouter, Depends, status

from backend.app.core.deps import get_booking_service
from backend.app.domain.errors import ReservationError
from backend.app.domain.models import GuestInfo
from backend.app.routers.errors import http_error, require_timezone
from backend.app.routers.schemas import BookingOut, CreateBookingIn, EditBookingIn, StatusChangeIn
from backend.app.services.bookings import BookingService


router = APIRouter()


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: CreateBookingIn,
    service: BookingService = Depends(get_booking_service),
) -> BookingOut:
    require_timezone(payload.start_ts)
    guest = GuestInfo(
        first_name=payload.guest.first_name,
        last_name=payload.guest.last_name,
        phone=payload.guest.phone,
        email=payload.guest.email or None,
    )
    try:
        booking = await service.create(
            payload.restaurant_id,
            guest,
            payload.start_ts,
            payload.party_size,
            duration_minutes=payload.duration_minutes,
            special_requests=payload.special_requests,
        )
    except ReservationError as exc:
        raise http_error(exc) from exc
    return BookingOut.from_domain(booking)


@router.get("/bookings/{token}", response_model=BookingOut)
async def get_booking(token: str, service: BookingService = Depends(get_booking_service)) -> BookingOut:
    try:
        booking = await service.get_by_token(token)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return BookingOut.from_domain(booking)


@router.patch("/bookings/{token}", response_model=BookingOut)
async def edit_booking(
    token: str,
    payload: EditBookingIn,
    service: BookingService = Depends(get_booking_service),
) -> BookingOut:
    require_timezone(payload.start_ts)
    try:
        booking = await service.edit(token, payload.start_ts, payload.party_size)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return BookingOut.from_domain(booking)


@router.post("/bookings/{token}/cancel", response_model=BookingOut)
async def cancel_booking(token: str, service: BookingService = Depends(get_booking_service)) -> BookingOut:
    try:
        booking = await service.cancel(token)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return BookingOut.from_domain(booking)


@router.post("/bookings/{booking_id}/status", response_model=BookingOut)
async def change_status(
    booking_id: str,
    payload: StatusChangeIn,
    service: BookingService = Depends(get_booking_service),
) -> BookingOut:
    try:
        booking = await service.transition(booking_id, payload.status)
    except ReservationError as exc:
        raise http_error(exc) from exc
    return BookingOut.from_domain(booking)
