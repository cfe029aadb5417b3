"""
Error taxonomy for the booking engine.

Every error carries a stable ``code`` that the request-handling layer
copies into its responses. Validation and conflict errors are raised and
handled inside the orchestrator; sink errors are converted into a degraded
success; store errors are the only ones that escape to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from booking_engine.schemas.booking_schema import BookingRecord


class BookingError(Exception):
    """Base class for all booking engine errors."""

    code: str = "BOOKING_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed or missing input. Recoverable by the caller, never retried."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class SlotUnavailableError(BookingError):
    """The resource already has a confirmed booking overlapping the range."""

    code = "SLOT_UNAVAILABLE"

    def __init__(self, message: str, conflicting_record: Optional[BookingRecord] = None) -> None:
        super().__init__(message)
        self.conflicting_record = conflicting_record


class DuplicateBookingError(BookingError):
    """The customer already holds a confirmed booking overlapping the range."""

    code = "DUPLICATE_BOOKING"

    def __init__(self, message: str, conflicting_record: Optional[BookingRecord] = None) -> None:
        super().__init__(message)
        self.conflicting_record = conflicting_record


class SinkForwardError(BookingError):
    """Submitting to, or reading from, the external job system failed or timed out."""

    code = "SINK_FORWARD_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreUnavailableError(BookingError):
    """The persistence layer could not be reached. Fatal for the request."""

    code = "STORE_UNAVAILABLE"
