"""
Booking orchestrator: the write path.

Drives one booking attempt through validation, conflict checks, the store's
atomic insert and the job sink forward, recording every step on a
``BookingAttemptStateMachine``. Validation and conflict failures come back
as ERROR outcomes; a failed forward is a degraded SUCCESS that keeps the
local booking; ``StoreUnavailableError`` propagates until the booking is
committed.

Usage:
    orchestrator = BookingOrchestrator(store, job_sink=build_job_sink())
    outcome = await orchestrator.create_booking(customer, "3", start)
    if outcome.succeeded:
        print(outcome.record.id)
"""

import asyncio
from datetime import datetime
from typing import Optional

from booking_engine.availability.business_calendar import BusinessCalendar, utc_now
from booking_engine.availability.conflicts import ConflictDetector, DuplicateGuard
from booking_engine.booking.state_machine import AttemptTrigger, BookingAttemptStateMachine
from booking_engine.booking.validation import validate_email, validate_request
from booking_engine.config import settings
from booking_engine.errors import (
    BookingError,
    DuplicateBookingError,
    SinkForwardError,
    SlotUnavailableError,
    StoreUnavailableError,
    ValidationError,
)
from booking_engine.logging_context import get_request_logger, new_request_id
from booking_engine.schemas.booking_schema import BookingOutcome, BookingRecord, NewBookingRecord
from booking_engine.schemas.customer_schema import BookingDetails, CustomerIdentity
from booking_engine.store.record_store import BookingRecordStore
from booking_engine.tools.job_sink import JobSink

logger = get_request_logger(__name__)


def _conflict_view(exc: BookingError) -> Optional[dict]:
    """Other customers' bookings are shown by name only; a customer's own in full."""
    record: Optional[BookingRecord] = getattr(exc, "conflicting_record", None)
    if record is None:
        return None
    if isinstance(exc, DuplicateBookingError):
        return record.owner_view()
    return record.public_view()


class BookingOrchestrator:
    """Creates and cancels bookings against one record store."""

    def __init__(
        self,
        store: BookingRecordStore,
        calendar: Optional[BusinessCalendar] = None,
        job_sink: Optional[JobSink] = None,
        sink_timeout_sec: Optional[float] = None,
    ) -> None:
        self._store = store
        self._calendar = calendar or BusinessCalendar()
        self._job_sink = job_sink
        self._sink_timeout = sink_timeout_sec or settings.job_sink.timeout_sec
        self._conflicts = ConflictDetector(store, self._calendar)
        self._duplicates = DuplicateGuard(store, self._calendar)

    @staticmethod
    def _rejected(sm: BookingAttemptStateMachine, exc: BookingError) -> BookingOutcome:
        return BookingOutcome(
            status="ERROR",
            code=exc.code,
            message=exc.message,
            conflicting_record=_conflict_view(exc),
            state_trace=sm.get_state_trace(),
        )

    async def create_booking(
        self,
        customer: CustomerIdentity,
        service_offering_id: str,
        start: datetime,
        resource_id: Optional[str] = None,
        details: Optional[BookingDetails] = None,
        now: Optional[datetime] = None,
    ) -> BookingOutcome:
        """
        Run one booking attempt end to end.

        Raises:
            StoreUnavailableError: The record store could not be reached.
        """
        request_id = new_request_id("BOOK")
        sm = BookingAttemptStateMachine()
        now = self._calendar.ensure_aware(now) if now is not None else utc_now()
        resource_id = resource_id or settings.business.default_resource_id
        logger.info(
            "[%s] Booking attempt: %s for offering %s at %s on %s",
            request_id, customer.customer_key, service_offering_id, start, resource_id,
        )

        # 1. Validate
        try:
            offering, start, end, details = validate_request(
                customer, service_offering_id, start, self._calendar, now, details
            )
        except ValidationError as exc:
            sm.transition(AttemptTrigger.INPUT_INVALID)
            logger.info("[%s] Rejected (%s): %s", request_id, exc.field, exc.message)
            return self._rejected(sm, exc)
        sm.transition(AttemptTrigger.INPUT_VALID)

        # 2. Conflict checks; the customer's own bookings are left to the duplicate guard
        conflict = await asyncio.to_thread(
            self._conflicts.overlaps, start, end, resource_id, customer.email
        )
        if conflict.is_booked:
            sm.transition(AttemptTrigger.SLOT_TAKEN)
            logger.info("[%s] Rejected: slot taken by %s", request_id, conflict.conflicting_record.id)
            return self._rejected(sm, SlotUnavailableError(
                f"This time slot is already booked by {conflict.conflicting_record.customer_name}.",
                conflict.conflicting_record,
            ))

        duplicate = await asyncio.to_thread(self._duplicates.has_duplicate, customer.email, start, end)
        if duplicate.is_duplicate:
            sm.transition(AttemptTrigger.DUPLICATE_FOUND)
            logger.info("[%s] Rejected: duplicate of %s", request_id, duplicate.conflicting_record.id)
            return self._rejected(sm, DuplicateBookingError(
                "You already have a booking at this time.", duplicate.conflicting_record
            ))
        sm.transition(AttemptTrigger.NO_CONFLICT)

        # 3. Persist (atomic insert-if-no-conflict)
        day, time_of_day = self._calendar.local_date_and_time(start)
        new_record = NewBookingRecord(
            resource_id=resource_id,
            date=day,
            time_of_day=time_of_day,
            start_instant=start,
            end_instant=end,
            service_offering_id=offering.id,
            customer_name=customer.name.strip(),
            customer_email=customer.email.strip(),
            customer_phone=details.customer_phone,
            service_address=details.service_address,
            notes=details.notes,
        )
        try:
            record = await asyncio.to_thread(self._store.create, new_record)
        except (SlotUnavailableError, DuplicateBookingError) as exc:
            sm.transition(AttemptTrigger.STORE_REJECTED)
            logger.info("[%s] Rejected at insert (%s): %s", request_id, exc.code, exc.message)
            return self._rejected(sm, exc)
        sm.transition(AttemptTrigger.STORED)

        # 4. Forward to the job sink, outside any store transaction
        if self._job_sink is None:
            sm.transition(AttemptTrigger.SINK_SKIPPED)
            logger.info("[%s] Booking %s confirmed (no job sink)", request_id, record.id)
            return BookingOutcome(
                status="SUCCESS",
                message=f"Booking confirmed. Reference number: {record.id}.",
                record=record,
                state_trace=sm.get_state_trace(),
            )

        sink_error: Optional[str] = None
        try:
            receipt = await asyncio.wait_for(
                self._job_sink.submit_job(record), timeout=self._sink_timeout
            )
        except asyncio.TimeoutError:
            sink_error = f"Job sink did not respond within {self._sink_timeout:g}s"
        except SinkForwardError as exc:
            sink_error = exc.message
        except Exception as exc:
            logger.exception("[%s] Job sink raised while forwarding %s", request_id, record.id)
            sink_error = f"Job sink error: {exc}"

        if sink_error is not None:
            sm.transition(AttemptTrigger.SINK_FAILED)
            logger.error(
                "[%s] Booking %s stored but not forwarded; needs reconciliation: %s",
                request_id, record.id, sink_error,
            )
            return BookingOutcome(
                status="SUCCESS",
                message=f"Booking confirmed. Reference number: {record.id}.",
                record=record,
                sink_forwarded=False,
                needs_reconciliation=True,
                sink_error=sink_error,
                state_trace=sm.get_state_trace(),
            )

        sm.transition(AttemptTrigger.SINK_ACCEPTED)
        try:
            updated = await asyncio.to_thread(
                self._store.attach_external_job_id, record.id, receipt.external_id
            )
        except StoreUnavailableError as exc:
            sm.transition(AttemptTrigger.FINALIZED)
            logger.error(
                "[%s] Booking %s forwarded as job %s but the job id was not saved; "
                "needs reconciliation: %s",
                request_id, record.id, receipt.external_id, exc.message,
            )
            return BookingOutcome(
                status="SUCCESS",
                message=f"Booking confirmed. Reference number: {record.id}.",
                record=record.model_copy(update={"external_job_id": receipt.external_id}),
                sink_forwarded=True,
                needs_reconciliation=True,
                sink_error=f"Job id {receipt.external_id} not saved locally: {exc.message}",
                state_trace=sm.get_state_trace(),
            )
        sm.transition(AttemptTrigger.FINALIZED)
        logger.info("[%s] Booking %s confirmed as job %s", request_id, record.id, receipt.external_id)
        return BookingOutcome(
            status="SUCCESS",
            message=f"Booking confirmed. Reference number: {record.id}.",
            record=updated or record,
            sink_forwarded=True,
            state_trace=sm.get_state_trace(),
        )

    async def cancel_booking(self, booking_id: str, requesting_customer_id: str) -> bool:
        """Cancel a booking owned by the requester. Returns whether anything changed."""
        request_id = new_request_id("CANCEL")
        try:
            validate_email(requesting_customer_id)
        except ValidationError:
            logger.info("[%s] Cancel of %s refused: invalid requester", request_id, booking_id)
            return False
        cancelled = await asyncio.to_thread(self._store.cancel, booking_id, requesting_customer_id)
        logger.info("[%s] Cancel %s by %s: %s", request_id, booking_id, requesting_customer_id, cancelled)
        return cancelled
