"""
Typed errors for the booking core.

Every error carries an HTTP status, a stable machine-readable `error_code`
and a user-facing message. Precondition failures (eligibility) are
user-correctable; store failures are transient and may be retried by the
caller; CompensationFailed is a data-integrity incident.
"""

from typing import Optional


class BookingError(Exception):
    status_code: int = 400
    error_code: str = "BOOKING_ERROR"
    message: str = "The booking request could not be completed."

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class StoreError(BookingError):
    """Infrastructure failure inside a booking store operation."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    message = "The booking service is temporarily unavailable. Please try again."

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


# Eligibility

class EligibilityError(BookingError):
    pass


class UserNotFound(EligibilityError):
    status_code = 404
    error_code = "USER_NOT_FOUND"
    message = "User not found."


class InsufficientCredits(EligibilityError):
    status_code = 402
    error_code = "INSUFFICIENT_CREDITS"
    message = "You have no credits left. Buy a package to keep booking classes."


class ClassNotFound(EligibilityError):
    status_code = 404
    error_code = "CLASS_NOT_FOUND"
    message = "Class not found."


class AvailabilityCheckFailed(EligibilityError):
    status_code = 503
    error_code = "AVAILABILITY_CHECK_FAILED"
    message = "Could not verify class availability. Please try again."


class ClassFull(EligibilityError):
    status_code = 409
    error_code = "CLASS_FULL"

    def __init__(self, class_title: str):
        self.class_title = class_title
        super().__init__(f'The class "{class_title}" is full. There are no spots left.')

    def to_dict(self) -> dict:
        return {**super().to_dict(), "class_title": self.class_title}


class DuplicateBooking(EligibilityError):
    status_code = 409
    error_code = "DUPLICATE_BOOKING"
    message = "You already have a confirmed booking for this class."


# Commit

class CommitError(BookingError):
    status_code = 503


class BookingInsertFailed(CommitError):
    error_code = "BOOKING_INSERT_FAILED"
    message = "Could not create the booking. Please try again."


class CreditDebitFailed(CommitError):
    error_code = "CREDIT_DEBIT_FAILED"
    message = "Could not debit your credit. The booking was not created."


class CompensationFailed(CommitError):
    """A rollback step failed after a partial write. Needs manual reconciliation."""

    status_code = 500
    error_code = "COMPENSATION_FAILED"
    message = (
        "Your request failed and could not be rolled back cleanly. "
        "It has been flagged for review by the gym staff."
    )

    def __init__(self, step: str, original: BookingError):
        self.step = step
        self.original = original
        super().__init__()


# Cancellation

class CancelError(BookingError):
    status_code = 503


class BookingNotFound(CancelError):
    status_code = 404
    error_code = "BOOKING_NOT_FOUND"
    message = "Booking not found or already cancelled."


class CancellationFailed(CancelError):
    error_code = "CANCELLATION_FAILED"
    message = "Could not cancel the booking. Please try again."


class CreditRefundFailed(CancelError):
    error_code = "CREDIT_REFUND_FAILED"
    message = "Could not refund your credit. The booking is still confirmed."
