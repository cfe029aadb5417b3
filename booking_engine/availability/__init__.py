from booking_engine.availability.business_calendar import BusinessCalendar
from booking_engine.availability.conflicts import (
    ConflictDetector,
    DuplicateGuard,
    find_conflict,
    intervals_overlap,
)
from booking_engine.availability.generator import AvailabilityGenerator

__all__ = [
    "AvailabilityGenerator",
    "BusinessCalendar",
    "ConflictDetector",
    "DuplicateGuard",
    "find_conflict",
    "intervals_overlap",
]
