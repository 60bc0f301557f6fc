from enum import Enum


class FailureReason(str, Enum):
    TOO_SOON = "too_soon"
    TOO_FAR_AHEAD = "too_far_ahead"
    CLOSED = "closed"
    INVALID_PARTY_SIZE = "invalid_party_size"
    NO_SUITABLE_TABLE = "no_suitable_table"
    NO_AVAILABILITY = "no_availability"


class ReservationError(Exception):
    """Base class for every error the reservation core reports to callers."""

    code = "reservation_error"
    default_message = "Reservation request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ValidationFailed(ReservationError):
    pass


class TooSoon(ValidationFailed):
    code = FailureReason.TOO_SOON.value
    default_message = "Requested start is inside the minimum advance notice"


class TooFarAhead(ValidationFailed):
    code = FailureReason.TOO_FAR_AHEAD.value
    default_message = "Requested start is beyond the booking horizon"


class Closed(ValidationFailed):
    code = FailureReason.CLOSED.value
    default_message = "Restaurant is closed for the requested interval"


class InvalidPartySize(ValidationFailed):
    code = FailureReason.INVALID_PARTY_SIZE.value
    default_message = "Party size is out of range"


class AvailabilityFailed(ReservationError):
    pass


class NoSuitableTable(AvailabilityFailed):
    code = FailureReason.NO_SUITABLE_TABLE.value
    default_message = "No table can seat this party"


class NoAvailability(AvailabilityFailed):
    code = FailureReason.NO_AVAILABILITY.value
    default_message = "Fully booked for the requested time"


class NotFound(ReservationError):
    code = "not_found"
    default_message = "Record not found"


class InvalidTransition(ReservationError):
    code = "invalid_transition"
    default_message = "Status change not allowed"


class ReservationBusy(ReservationError):
    """The per-restaurant write lock could not be acquired in time."""

    code = "busy"
    default_message = "Reservation system busy, try again"


class ReservationConflict(Exception):
    """The store rejected a write because another booking won the same table.

    Internal to the lifecycle controller, which retries once and then
    reports NoAvailability.
    """


_BY_REASON: dict[FailureReason, type[ReservationError]] = {
    FailureReason.TOO_SOON: TooSoon,
    FailureReason.TOO_FAR_AHEAD: TooFarAhead,
    FailureReason.CLOSED: Closed,
    FailureReason.INVALID_PARTY_SIZE: InvalidPartySize,
    FailureReason.NO_SUITABLE_TABLE: NoSuitableTable,
    FailureReason.NO_AVAILABILITY: NoAvailability,
}


def error_for(reason: FailureReason) -> ReservationError:
    return _BY_REASON[reason]()
