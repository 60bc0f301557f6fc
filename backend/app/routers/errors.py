from datetime import datetime

from fastapi import HTTPException, status

from backend.app.domain.errors import (
    AvailabilityFailed,
    InvalidTransition,
    NotFound,
    ReservationBusy,
    ReservationError,
    ValidationFailed,
)

_STATUS_BY_ERROR: tuple[tuple[type[ReservationError], int], ...] = (
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (AvailabilityFailed, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ReservationBusy, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: ReservationError) -> HTTPException:
    code = next(
        (http_status for error_type, http_status in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return HTTPException(code, detail={"code": exc.code, "message": str(exc)})


def require_timezone(value: datetime, field: str = "start_ts") -> None:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field} must include timezone information")
