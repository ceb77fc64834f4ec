"""
Reservation error taxonomy

Every error is a per-request outcome; none of them is fatal to the process.
Validation and not-found errors are never retried automatically, an
availability conflict ends the attempt, and idempotency races are
recovered internally.
"""


class BookingError(Exception):
    """Base class for reservation engine errors."""

    code = "booking_error"

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message
        self.details = details


class BookingValidationError(BookingError):
    """Malformed request rejected before any storage write."""

    code = "validation_error"


class AvailabilityConflictError(BookingError):
    """A requested room/date combination is held by another blocking booking."""

    code = "availability_conflict"

    def __init__(self, message: str = "", *, room_ids=None, **details):
        super().__init__(message or "One or more rooms are no longer available for the selected dates", **details)
        self.room_ids = list(room_ids or [])


class IdempotencyConflict(BookingError):
    """Lost an insert race on an idempotency key. Never leaves create_booking."""

    code = "idempotency_conflict"

    def __init__(self, idempotency_key: str):
        super().__init__(f"Idempotency key {idempotency_key!r} was claimed concurrently")
        self.idempotency_key = idempotency_key


class NotFoundError(BookingError):
    """Booking or room missing, or outside the caller's hotel scope."""

    code = "not_found"


class StateTransitionError(BookingError):
    """Illegal status change requested."""

    code = "invalid_transition"


class CancellationNotAllowedError(StateTransitionError):
    """The booking is past its cancellation cutoff."""

    code = "cancellation_not_allowed"
