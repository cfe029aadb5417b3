"""
Business calendar: the theoretical slot grid for a day.

Pure and deterministic given its inputs and the clock. Knows nothing about
existing bookings; the availability generator subtracts those.

Usage:
    calendar = BusinessCalendar()
    slots = calendar.generate_slots(date(2026, 10, 20), offering, "default")
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from booking_engine.config import BusinessConfig, minutes_of_day, settings
from booking_engine.schemas.booking_schema import BusinessHours, TimeSlot
from booking_engine.schemas.service_schema import ServiceOffering

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]

# How far ahead next_business_dates will look before giving up
SEARCH_HORIZON_DAYS = 14


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BusinessCalendar:
    """Generates bookable candidate slots from business-hour rules."""

    def __init__(self, config: Optional[BusinessConfig] = None) -> None:
        self._config = config or settings.business
        self.tz = ZoneInfo(self._config.timezone)
        self.open_minutes = minutes_of_day(self._config.business_start)
        self.close_minutes = minutes_of_day(self._config.business_end)
        self.closed_weekdays = frozenset(self._config.closed_weekdays)

    # ------------------------------------------------------------------ #
    # Conversions
    # ------------------------------------------------------------------ #

    def as_local_date(self, value: DateLike) -> date:
        """Reduce a date, datetime or ISO string to a business-local calendar day."""
        if isinstance(value, str):
            value = datetime.fromisoformat(value) if "T" in value else date.fromisoformat(value)
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.tz)
            return value.date()
        return value

    def ensure_aware(self, instant: datetime) -> datetime:
        """Interpret naive datetimes as business-local wall-clock time."""
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.tz)
        return instant

    def to_local(self, instant: datetime) -> datetime:
        return self.ensure_aware(instant).astimezone(self.tz)

    def combine_local(self, day: DateLike, time_of_day: str) -> datetime:
        """Build an aware business-local datetime from a day and ``HH:MM``."""
        minutes = minutes_of_day(time_of_day)
        return datetime.combine(
            self.as_local_date(day), time(minutes // 60, minutes % 60), tzinfo=self.tz
        )

    def local_date_and_time(self, instant: datetime) -> tuple[str, str]:
        """Return the business-local (YYYY-MM-DD, HH:MM) pair for an instant."""
        local = self.to_local(instant)
        return local.date().isoformat(), local.strftime("%H:%M")

    # ------------------------------------------------------------------ #
    # Rules
    # ------------------------------------------------------------------ #

    def business_hours(self) -> BusinessHours:
        return BusinessHours(
            start=self._config.business_start,
            end=self._config.business_end,
            timezone=self._config.timezone,
        )

    def is_business_day(self, day: DateLike) -> bool:
        return self.as_local_date(day).weekday() not in self.closed_weekdays

    def day_bounds(self, day: DateLike) -> tuple[datetime, datetime]:
        """Opening and closing instants for a business-local day."""
        local_day = self.as_local_date(day)
        midnight = datetime.combine(local_day, time(0, 0), tzinfo=self.tz)
        return (
            midnight + timedelta(minutes=self.open_minutes),
            midnight + timedelta(minutes=self.close_minutes),
        )

    def within_business_hours(self, start: datetime, end: datetime) -> bool:
        """True if [start, end) sits inside one business day's opening hours."""
        local_start, local_end = self.to_local(start), self.to_local(end)
        if not self.is_business_day(local_start.date()):
            return False
        opens, closes = self.day_bounds(local_start.date())
        return opens <= local_start and local_end <= closes

    @staticmethod
    def meets_notice(start: datetime, now: datetime, minimum_notice_minutes: int) -> bool:
        """Strictly in the future and at least the offering's notice ahead of now."""
        return start > now and start - now >= timedelta(minutes=minimum_notice_minutes)

    # ------------------------------------------------------------------ #
    # Slot generation
    # ------------------------------------------------------------------ #

    def generate_slots(
        self,
        day: DateLike,
        offering: ServiceOffering,
        resource_id: str,
        now: Optional[datetime] = None,
    ) -> list[TimeSlot]:
        """
        Generate the candidate grid for one day, ascending by start.

        Slots advance by the offering duration from opening time. Slots that
        would run past closing, or start too soon, are left out. Closed days
        and fully elapsed days yield an empty list.
        """
        now = self.ensure_aware(now) if now is not None else utc_now()
        local_day = self.as_local_date(day)
        if not self.is_business_day(local_day):
            logger.debug("No slots on %s: closed weekday", local_day)
            return []

        opens, closes = self.day_bounds(local_day)
        step = timedelta(minutes=offering.duration_minutes)
        slots: list[TimeSlot] = []
        start = opens
        while start + step <= closes:
            if self.meets_notice(start, now, offering.minimum_notice_minutes):
                slots.append(TimeSlot(start=start, end=start + step, resource_id=resource_id))
            start += step

        logger.debug(
            "Generated %d candidate slots for %s (%s, %d min)",
            len(slots), local_day, offering.slug, offering.duration_minutes,
        )
        return slots

    def next_business_dates(
        self,
        offering: ServiceOffering,
        resource_id: str,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> list[date]:
        """Return the next ``limit`` days that have at least one candidate slot."""
        now = self.ensure_aware(now) if now is not None else utc_now()
        today = self.to_local(now).date()
        results: list[date] = []
        for offset in range(SEARCH_HORIZON_DAYS + 1):
            day = today + timedelta(days=offset)
            if self.generate_slots(day, offering, resource_id, now=now):
                results.append(day)
            if len(results) >= limit:
                break
        return results
