from fastapi import APIRouter, Depends

from backend.app.core.deps import get_booking_service
from backend.app.routers.schemas import ReminderSweepOut
from backend.app.services.bookings import BookingService


router = APIRouter()


@router.post("/reminders/send", response_model=ReminderSweepOut)
async def send_reminders(service: BookingService = Depends(get_booking_service)) -> ReminderSweepOut:
    """Hourly cron hook: remind guests of bookings starting in 23 to 24 hours."""
    sweep = await service.send_due_reminders()
    return ReminderSweepOut(due=sweep.due, sent=sweep.sent)
