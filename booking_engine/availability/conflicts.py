"""
Conflict and duplicate detection.

One canonical overlap rule is used everywhere: two half-open intervals
[s1, e1) and [s2, e2) conflict iff ``s1 < e2 and e1 > s2``. Touching
endpoints never conflict.

ConflictDetector: resource-level, is this range already taken on this resource?
DuplicateGuard: customer-level, does this customer already hold an overlapping booking?
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from booking_engine.availability.business_calendar import BusinessCalendar
from booking_engine.config import settings
from booking_engine.schemas.booking_schema import (
    BookingRecord,
    ConflictResult,
    DuplicateResult,
)
from booking_engine.store.record_store import BookingRecordStore
from booking_engine.utils import normalize_email, normalize_time_of_day

logger = logging.getLogger(__name__)


def intervals_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Half-open interval overlap test."""
    return s1 < e2 and e1 > s2


def find_conflict(
    records: Iterable[BookingRecord],
    start: datetime,
    end: datetime,
    excluding_customer_id: Optional[str] = None,
) -> Optional[BookingRecord]:
    """Return the first confirmed record overlapping [start, end), if any."""
    excluded = normalize_email(excluding_customer_id) if excluding_customer_id else None
    for record in records:
        if not record.is_confirmed:
            continue
        if excluded and record.customer_key == excluded:
            continue
        if intervals_overlap(start, end, record.start_instant, record.end_instant):
            return record
    return None


class ConflictDetector:
    """Read-only resource-level conflict checks against the record store."""

    def __init__(self, store: BookingRecordStore, calendar: Optional[BusinessCalendar] = None) -> None:
        self._store = store
        self._calendar = calendar or BusinessCalendar()

    def is_booked(
        self,
        day: date | str,
        time_of_day: str,
        resource_id: str,
        excluding_customer_id: Optional[str] = None,
    ) -> ConflictResult:
        """Exact slot-key check: a confirmed booking starting at this HH:MM on this day."""
        key = normalize_time_of_day(time_of_day)
        excluded = normalize_email(excluding_customer_id) if excluding_customer_id else None
        for record in self._store.find_by_resource_and_date(resource_id, day):
            if record.time_of_day != key:
                continue
            if excluded and record.customer_key == excluded:
                continue
            return ConflictResult(is_booked=True, conflicting_record=record)
        return ConflictResult(is_booked=False)

    def overlaps(
        self,
        start: datetime,
        end: datetime,
        resource_id: str,
        excluding_customer_id: Optional[str] = None,
    ) -> ConflictResult:
        """True interval-overlap check for variable-duration offerings."""
        days = {self._calendar.as_local_date(start), self._calendar.as_local_date(end)}
        records: list[BookingRecord] = []
        for day in sorted(days):
            records.extend(self._store.find_by_resource_and_date(resource_id, day))
        conflict = find_conflict(records, start, end, excluding_customer_id)
        if conflict:
            logger.debug(
                "Resource %s busy %s-%s (booking %s)",
                resource_id, start.isoformat(), end.isoformat(), conflict.id,
            )
        return ConflictResult(is_booked=conflict is not None, conflicting_record=conflict)


class DuplicateGuard:
    """Prevents one customer holding two overlapping bookings, on any resource."""

    def __init__(
        self,
        store: BookingRecordStore,
        calendar: Optional[BusinessCalendar] = None,
        window_hours: Optional[int] = None,
    ) -> None:
        self._store = store
        self._calendar = calendar or BusinessCalendar()
        if window_hours is None:
            window_hours = settings.rules.duplicate_window_hours
        self.window = timedelta(hours=window_hours)

    def has_duplicate(self, customer_email: str, start: datetime, end: datetime) -> DuplicateResult:
        """Scan a window around the candidate and apply the overlap rule."""
        nearby = self._store.find_by_customer_email_in_range(
            customer_email, start - self.window, end + self.window
        )
        conflict = find_conflict(nearby, start, end)
        if conflict:
            logger.info(
                "Duplicate booking detected for %s at %s (existing %s)",
                normalize_email(customer_email), start.isoformat(), conflict.id,
            )
        return DuplicateResult(is_duplicate=conflict is not None, conflicting_record=conflict)

    def has_exact_or_overlapping(
        self,
        customer_email: str,
        day: date | str,
        time_of_day: str,
        duration_minutes: Optional[int] = None,
    ) -> list[BookingRecord]:
        """
        All of the customer's bookings that day at the same time of day or
        overlapping it. Without a duration the time of day is treated as a
        point, which matches any booking whose range contains it.
        """
        key = normalize_time_of_day(time_of_day)
        start = self._calendar.combine_local(day, key)
        end = start + timedelta(minutes=duration_minutes) if duration_minutes else None

        matches = []
        for record in self._store.find_by_customer_email_and_date(customer_email, day):
            if record.time_of_day == key:
                matches.append(record)
            elif end is not None and intervals_overlap(start, end, record.start_instant, record.end_instant):
                matches.append(record)
            elif end is None and record.start_instant <= start < record.end_instant:
                matches.append(record)
        return matches
