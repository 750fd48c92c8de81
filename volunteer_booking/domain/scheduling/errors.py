"""Booking domain errors - expected outcomes the API reports as {kind, message}"""

from typing import Optional


class BookingError(Exception):
    """Base class for expected, user-facing booking outcomes"""

    kind = "BOOKING_ERROR"
    status_code = 400
    default_message = "Booking request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class SlotNotFound(BookingError):
    kind = "VALIDATION_ERROR"
    status_code = 404
    default_message = "Slot not found"


class SlotInactive(BookingError):
    kind = "VALIDATION_ERROR"
    status_code = 409
    default_message = "This slot is no longer accepting bookings"


class SlotFull(BookingError):
    kind = "SLOT_FULL"
    status_code = 409
    default_message = "This slot is full. Please choose another time."


class ValidationError(BookingError):
    kind = "VALIDATION_ERROR"
    status_code = 422
    default_message = "Invalid booking details"


class DuplicateBooking(ValidationError):
    default_message = (
        "You already have an active booking close to this date. "
        "Please complete your current session before booking another one."
    )


class BookingNotFound(BookingError):
    kind = "NOT_FOUND"
    status_code = 404
    default_message = "Booking not found"


class AlreadyCancelled(BookingError):
    kind = "ALREADY_CANCELLED"
    status_code = 409
    default_message = "Booking is already cancelled"


class NoHostsAvailable(BookingError):
    """Raised by the host policy; BookingService decides whether it is fatal"""

    kind = "NO_HOST_AVAILABLE"
    status_code = 409
    default_message = "No host is available for this service and date"
