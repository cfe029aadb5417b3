from booking_engine.schemas.booking_schema import (
    AvailabilityReport,
    BookingOutcome,
    BookingRecord,
    BookingStatus,
    BusinessHours,
    BusyInterval,
    ConflictResult,
    DuplicateResult,
    JobReceipt,
    NewBookingRecord,
    TimeSlot,
)
from booking_engine.schemas.customer_schema import BookingDetails, CustomerIdentity
from booking_engine.schemas.service_schema import ServiceOffering

__all__ = [
    "AvailabilityReport",
    "BookingDetails",
    "BookingOutcome",
    "BookingRecord",
    "BookingStatus",
    "BusinessHours",
    "BusyInterval",
    "ConflictResult",
    "CustomerIdentity",
    "DuplicateResult",
    "JobReceipt",
    "NewBookingRecord",
    "ServiceOffering",
    "TimeSlot",
]
