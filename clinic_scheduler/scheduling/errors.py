"""Typed booking failures surfaced to API callers."""


class BookingError(Exception):
    """Base exception for booking failures."""

    code = 'booking_error'
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BookingError):
    """Malformed input, rejected before the store is touched."""

    code = 'validation_error'
    status_code = 400


class ForbiddenError(BookingError):
    code = 'forbidden'
    status_code = 403


class NotFoundError(BookingError):
    """Referenced entity is missing or belongs to another clinic."""

    code = 'not_found'
    status_code = 404


class SlotUnavailableError(BookingError):
    """The practitioner already has a booking overlapping the requested window."""

    code = 'slot_unavailable'
    status_code = 409

    def __init__(self, message: str = 'This time slot is no longer available. Please select another slot.'):
        super().__init__(message)


class InvalidTransitionError(BookingError):
    code = 'invalid_transition'
    status_code = 422
