"""
Availability generator: the read path behind "what can I book that day?".

Combines the business calendar grid with local bookings and, when a job
sink is configured, the busy windows it reports. Strictly conservative:
external busy time is only ever added to local conflicts, and a failed
external check falls back to local data without relaxing it.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from booking_engine.availability.business_calendar import BusinessCalendar, DateLike
from booking_engine.availability.conflicts import find_conflict, intervals_overlap
from booking_engine.config import settings
from booking_engine.errors import SinkForwardError
from booking_engine.schemas.booking_schema import AvailabilityReport, BusyInterval, TimeSlot
from booking_engine.schemas.service_schema import ServiceOffering
from booking_engine.store.record_store import BookingRecordStore
from booking_engine.tools.job_sink import JobSink

logger = logging.getLogger(__name__)


class AvailabilityGenerator:
    """Marks each candidate slot available or not for one resource and day."""

    def __init__(
        self,
        store: BookingRecordStore,
        calendar: Optional[BusinessCalendar] = None,
        job_sink: Optional[JobSink] = None,
        external_timeout_sec: Optional[float] = None,
    ) -> None:
        self._store = store
        self._calendar = calendar or BusinessCalendar()
        self._job_sink = job_sink
        self._external_timeout = external_timeout_sec or settings.job_sink.timeout_sec

    async def _external_busy(self, day: DateLike, resource_id: str) -> Optional[list[BusyInterval]]:
        """Busy windows from the job sink, or None when unavailable."""
        if self._job_sink is None:
            return None
        local_day = self._calendar.as_local_date(day)
        try:
            return await asyncio.wait_for(
                self._job_sink.fetch_busy_intervals(local_day, resource_id),
                timeout=self._external_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Job sink busy lookup timed out for %s on %s; using local bookings only",
                resource_id, local_day,
            )
        except SinkForwardError as exc:
            logger.warning(
                "Job sink busy lookup failed for %s on %s: %s; using local bookings only",
                resource_id, local_day, exc.message,
            )
        except Exception:
            logger.exception(
                "Job sink busy lookup raised for %s on %s; using local bookings only",
                resource_id, local_day,
            )
        return None

    async def get_availability(
        self,
        day: DateLike,
        offering: ServiceOffering,
        resource_id: str,
        now: Optional[datetime] = None,
    ) -> AvailabilityReport:
        """
        Availability for every candidate slot of the day, ascending by start.

        A slot is available only if no confirmed local booking on the resource
        overlaps it and no externally reported busy window overlaps it.
        """
        local_day = self._calendar.as_local_date(day)
        candidates = self._calendar.generate_slots(local_day, offering, resource_id, now=now)

        external = await self._external_busy(local_day, resource_id) if candidates else None
        # Local bookings are read last, after any external round trip.
        local_records = await asyncio.to_thread(
            self._store.find_by_resource_and_date, resource_id, local_day
        )

        slots: list[TimeSlot] = []
        for candidate in candidates:
            taken = find_conflict(local_records, candidate.start, candidate.end) is not None
            if not taken and external:
                taken = any(
                    intervals_overlap(candidate.start, candidate.end, busy.start, busy.end)
                    for busy in external
                )
            slots.append(candidate.model_copy(update={"available": not taken}))

        report = AvailabilityReport(
            date=local_day.isoformat(),
            resource_id=resource_id,
            service_offering_id=offering.id,
            slots=slots,
            business_hours=self._calendar.business_hours(),
            external_checked=external is not None,
        )
        logger.info(
            "Availability for %s on %s (%s): %d/%d free%s",
            resource_id, report.date, offering.slug, report.available_count, report.total,
            "" if report.external_checked else " [local only]",
        )
        return report
