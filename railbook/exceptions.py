# railbook/exceptions.py
"""
Booking errors.

Each error carries an HTTP status code and a user-facing detail message,
mirroring fastapi.HTTPException so the API layer can render them directly.
"""


class BookingError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidPassengerData(BookingError):
    status_code = 422


class SeatCountMismatch(BookingError):
    status_code = 422


class InvalidPaymentDetails(BookingError):
    status_code = 422


class PaymentDeclined(BookingError):
    status_code = 402


class SeatUnavailable(BookingError):
    status_code = 409


class SeatHoldExpired(BookingError):
    status_code = 409


class InvalidTransition(BookingError):
    status_code = 409


class NotFound(BookingError):
    status_code = 404


class DuplicatePNR(BookingError):
    """Integrity violation: a PNR collided with a committed booking. Not retryable."""
    status_code = 500


class LedgerError(BookingError):
    """The booking store failed to write. Not retryable for this attempt."""
    status_code = 500
