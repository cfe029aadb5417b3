"""
Request-handling contracts.

Thin adapters between plain JSON-style payloads and the engine: each
handler validates its payload with a pydantic request model, calls the
engine, and returns a plain dict. Rejections are returned, not raised, as
``{"status": "ERROR", "code": ..., "message": ...}``.

Usage:
    handlers = BookingHandlers(BookingRecordStore())
    result = await handlers.query_availability({"date": "2026-10-21", "service_offering_id": "3"})
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from booking_engine.availability.business_calendar import BusinessCalendar, utc_now
from booking_engine.availability.conflicts import ConflictDetector, DuplicateGuard
from booking_engine.availability.generator import AvailabilityGenerator
from booking_engine.booking.orchestrator import BookingOrchestrator
from booking_engine.config import settings
from booking_engine.errors import StoreUnavailableError
from booking_engine.logging_context import get_request_logger, new_request_id
from booking_engine.schemas.customer_schema import BookingDetails, CustomerIdentity
from booking_engine.store.record_store import BookingRecordStore
from booking_engine.tools.job_sink import JobSink
from booking_engine.tools.services import get_service_offering
from booking_engine.utils import normalize_email, normalize_time_of_day

logger = get_request_logger(__name__)

Payload = dict[str, Any]


class AvailabilityRequest(BaseModel):
    date: str
    service_offering_id: str
    resource_id: Optional[str] = None


class AvailableDatesRequest(BaseModel):
    service_offering_id: str
    resource_id: Optional[str] = None
    limit: int = Field(default=5, ge=1, le=14)


class CreateBookingRequest(BaseModel):
    customer_email: str
    customer_name: str
    customer_phone: Optional[str] = None
    service_offering_id: str
    start: datetime
    end: Optional[datetime] = None
    resource_id: Optional[str] = None
    notes: Optional[str] = None
    address: Optional[str] = None


class DuplicateCheckRequest(BaseModel):
    customer_email: str
    start: datetime
    end: datetime


class SlotCheckRequest(BaseModel):
    date: str
    time_of_day: str
    resource_id: Optional[str] = None
    customer_email: Optional[str] = None


class CancelRequest(BaseModel):
    booking_id: str
    customer_email: str


class CustomerBookingsRequest(BaseModel):
    customer_email: str


def error_response(code: str, message: str, **extra: Any) -> Payload:
    return {"status": "ERROR", "code": code, "message": message, **extra}


def _payload_error(exc: PydanticValidationError) -> Payload:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "payload"
    return error_response("VALIDATION_ERROR", f"Invalid {field}: {first['msg']}", field=field)


class BookingHandlers:
    """Entry points for availability, booking, pre-check, slot check and cancel requests."""

    def __init__(
        self,
        store: BookingRecordStore,
        calendar: Optional[BusinessCalendar] = None,
        job_sink: Optional[JobSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._calendar = calendar or BusinessCalendar()
        self._clock = clock
        self._generator = AvailabilityGenerator(store, self._calendar, job_sink)
        self._orchestrator = BookingOrchestrator(store, self._calendar, job_sink)
        self._conflicts = ConflictDetector(store, self._calendar)
        self._duplicates = DuplicateGuard(store, self._calendar)

    def _resource(self, resource_id: Optional[str]) -> str:
        return resource_id or settings.business.default_resource_id

    async def query_availability(self, payload: Payload) -> Payload:
        """Slots for one date and offering, each flagged available or not."""
        request_id = new_request_id("AVAIL")
        try:
            request = AvailabilityRequest.model_validate(payload)
            day = self._calendar.as_local_date(request.date)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        except ValueError:
            return error_response("VALIDATION_ERROR", f"Invalid date: {payload.get('date')}", field="date")

        offering = get_service_offering(request.service_offering_id)
        if offering is None:
            return error_response(
                "VALIDATION_ERROR",
                f"Unknown service offering: {request.service_offering_id}",
                field="service_offering_id",
            )

        try:
            report = await self._generator.get_availability(
                day, offering, self._resource(request.resource_id), now=self._clock()
            )
        except StoreUnavailableError as exc:
            logger.error("[%s] Availability failed: %s", request_id, exc.message)
            return error_response(exc.code, exc.message)

        return {
            "date": report.date,
            "slots": [
                {"start": slot.start.isoformat(), "end": slot.end.isoformat(), "available": slot.available}
                for slot in report.slots
            ],
            "business_hours": report.business_hours.model_dump(),
            "total": report.total,
            "available_count": report.available_count,
            "external_checked": report.external_checked,
        }

    async def available_dates(self, payload: Payload) -> Payload:
        """The next business dates that still have candidate slots."""
        try:
            request = AvailableDatesRequest.model_validate(payload)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        offering = get_service_offering(request.service_offering_id)
        if offering is None:
            return error_response(
                "VALIDATION_ERROR",
                f"Unknown service offering: {request.service_offering_id}",
                field="service_offering_id",
            )
        dates = self._calendar.next_business_dates(
            offering, self._resource(request.resource_id), limit=request.limit, now=self._clock()
        )
        return {"service_offering_id": offering.id, "dates": [day.isoformat() for day in dates]}

    async def create_booking(self, payload: Payload) -> Payload:
        """Book a slot. A supplied ``end`` must match the offering's duration exactly."""
        try:
            request = CreateBookingRequest.model_validate(payload)
        except PydanticValidationError as exc:
            return _payload_error(exc)

        offering = get_service_offering(request.service_offering_id)
        if offering is not None and request.end is not None:
            start = self._calendar.ensure_aware(request.start)
            end = self._calendar.ensure_aware(request.end)
            if end - start != timedelta(minutes=offering.duration_minutes):
                return error_response(
                    "VALIDATION_ERROR",
                    f"{offering.title} lasts {offering.duration_minutes} minutes; "
                    "end does not match start plus duration.",
                    field="end",
                )

        customer = CustomerIdentity(
            email=request.customer_email,
            name=request.customer_name,
            phone=request.customer_phone,
        )
        details = BookingDetails(
            customer_phone=request.customer_phone,
            service_address=request.address,
            notes=request.notes,
        )
        try:
            outcome = await self._orchestrator.create_booking(
                customer,
                request.service_offering_id,
                request.start,
                resource_id=self._resource(request.resource_id),
                details=details,
                now=self._clock(),
            )
        except StoreUnavailableError as exc:
            logger.error("Booking failed, store unavailable: %s", exc.message)
            return error_response(exc.code, exc.message)

        if not outcome.succeeded:
            response = error_response(outcome.code, outcome.message)
            if outcome.conflicting_record is not None:
                response["conflicting_record"] = outcome.conflicting_record
            return response

        response = outcome.record.model_dump(mode="json")
        response["booking_status"] = response.pop("status")
        response.update(
            status="SUCCESS",
            message=outcome.message,
            sink_forwarded=outcome.sink_forwarded,
            needs_reconciliation=outcome.needs_reconciliation,
        )
        if outcome.sink_error:
            response["sink_error"] = outcome.sink_error
        return response

    async def check_duplicate(self, payload: Payload) -> Payload:
        """Does this customer already hold a booking overlapping [start, end)?"""
        new_request_id("DUP")
        try:
            request = DuplicateCheckRequest.model_validate(payload)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        start = self._calendar.ensure_aware(request.start)
        end = self._calendar.ensure_aware(request.end)
        if end <= start:
            return error_response("VALIDATION_ERROR", "end must be after start", field="end")

        try:
            result = await asyncio.to_thread(
                self._duplicates.has_duplicate, request.customer_email, start, end
            )
        except StoreUnavailableError as exc:
            return error_response(exc.code, exc.message)
        response: Payload = {"is_duplicate": result.is_duplicate}
        if result.conflicting_record is not None:
            response["conflicting_record"] = result.conflicting_record.owner_view()
        return response

    async def check_slot(self, payload: Payload) -> Payload:
        """Is a booking already starting at this date and time, and whose is it?"""
        new_request_id("SLOT")
        try:
            request = SlotCheckRequest.model_validate(payload)
            day = self._calendar.as_local_date(request.date)
            time_of_day = normalize_time_of_day(request.time_of_day)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        except ValueError as exc:
            return error_response("VALIDATION_ERROR", str(exc))

        try:
            result = await asyncio.to_thread(
                self._conflicts.is_booked, day, time_of_day, self._resource(request.resource_id)
            )
        except StoreUnavailableError as exc:
            return error_response(exc.code, exc.message)

        by_customer = False
        if result.is_booked and request.customer_email:
            by_customer = result.conflicting_record.customer_key == normalize_email(request.customer_email)
        response: Payload = {
            "is_available": not result.is_booked,
            "is_booked_by_others": result.is_booked and not by_customer,
            "is_booked_by_customer": by_customer,
        }
        if result.is_booked:
            response["booked_by"] = result.conflicting_record.customer_name
        return response

    async def cancel_booking(self, payload: Payload) -> Payload:
        """Cancel a booking; only its owner may do so."""
        try:
            request = CancelRequest.model_validate(payload)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        try:
            cancelled = await self._orchestrator.cancel_booking(request.booking_id, request.customer_email)
        except StoreUnavailableError as exc:
            return error_response(exc.code, exc.message, cancelled=False)
        if not cancelled:
            return {
                "status": "ERROR",
                "cancelled": False,
                "message": f"Booking {request.booking_id} could not be cancelled by this customer.",
            }
        return {"status": "SUCCESS", "cancelled": True, "message": f"Booking {request.booking_id} has been cancelled."}

    async def customer_bookings(self, payload: Payload) -> Payload:
        """Every booking a customer has made, cancelled ones included."""
        try:
            request = CustomerBookingsRequest.model_validate(payload)
        except PydanticValidationError as exc:
            return _payload_error(exc)
        try:
            records = await asyncio.to_thread(self._store.list_customer_bookings, request.customer_email)
        except StoreUnavailableError as exc:
            return error_response(exc.code, exc.message)
        return {"customer_email": request.customer_email, "bookings": [r.owner_view() for r in records]}

