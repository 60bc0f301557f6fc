from datetime import datetime

from backend.app.domain.errors import FailureReason
from backend.app.domain.models import Restaurant
from backend.app.engine.calendar import require_aware


def check_advance_window(
    restaurant: Restaurant,
    start: datetime,
    now: datetime,
) -> tuple[bool, FailureReason | None]:
    """Both bounds are inclusive: a start exactly at ``now + minAdvanceHours`` is accepted."""
    require_aware(start, "start")
    require_aware(now, "now")

    if start < now + restaurant.min_advance:
        return False, FailureReason.TOO_SOON
    if start > now + restaurant.max_advance:
        return False, FailureReason.TOO_FAR_AHEAD
    return True, None
