"""Booking, slot and availability data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from booking_engine.utils import normalize_email


class BookingStatus(str, Enum):
    """Lifecycle status of a stored booking. Cancelled records are never deleted."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class TimeSlot(BaseModel):
    """A candidate or confirmed interval on one resource."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    resource_id: str
    available: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("slot end must be after slot start")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


class NewBookingRecord(BaseModel):
    """Booking data handed to the store; id, status and created_at are assigned there."""
    resource_id: str
    date: str
    time_of_day: str
    start_instant: datetime
    end_instant: datetime
    service_offering_id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    service_address: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self) -> "NewBookingRecord":
        if self.end_instant <= self.start_instant:
            raise ValueError("booking end must be after booking start")
        return self


class BookingRecord(NewBookingRecord):
    """The durable booking entity owned by the record store."""
    id: str
    status: BookingStatus = BookingStatus.CONFIRMED
    external_job_id: Optional[str] = None
    created_at: datetime

    @property
    def customer_key(self) -> str:
        return normalize_email(self.customer_email)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    def public_view(self) -> dict[str, Any]:
        """What another customer may learn about this booking: no email or phone."""
        return {
            "customer_name": self.customer_name,
            "date": self.date,
            "time_of_day": self.time_of_day,
            "start": self.start_instant.isoformat(),
            "end": self.end_instant.isoformat(),
        }

    def owner_view(self) -> dict[str, Any]:
        """Full details, for the customer who owns the booking."""
        return self.model_dump(mode="json")


class BusyInterval(BaseModel):
    """A non-availability window reported by an external source of truth."""
    start: datetime
    end: datetime
    resource_id: Optional[str] = None
    source: str = "job_sink"
    reference: Optional[str] = None


class JobReceipt(BaseModel):
    """Acknowledgment returned by the job sink for a submitted booking."""
    external_id: str
    raw: dict[str, Any] = Field(default_factory=dict)


class ConflictResult(BaseModel):
    """Answer to "is this slot already taken on this resource?"."""
    is_booked: bool
    conflicting_record: Optional[BookingRecord] = None


class DuplicateResult(BaseModel):
    """Answer to "does this customer already hold an overlapping booking?"."""
    is_duplicate: bool
    conflicting_record: Optional[BookingRecord] = None


class BusinessHours(BaseModel):
    """Business-hours window shown alongside availability."""
    start: str
    end: str
    timezone: str


class AvailabilityReport(BaseModel):
    """Availability for one resource, one date and one service offering."""
    date: str
    resource_id: str
    service_offering_id: str
    slots: list[TimeSlot] = Field(default_factory=list)
    business_hours: BusinessHours
    external_checked: bool = False

    @property
    def total(self) -> int:
        return len(self.slots)

    @property
    def available_count(self) -> int:
        return sum(1 for slot in self.slots if slot.available)


class BookingOutcome(BaseModel):
    """Result of one booking attempt, success or rejection."""
    status: Literal["SUCCESS", "ERROR"]
    code: Optional[str] = None
    message: str = ""
    record: Optional[BookingRecord] = None
    conflicting_record: Optional[dict[str, Any]] = None
    sink_forwarded: bool = False
    needs_reconciliation: bool = False
    sink_error: Optional[str] = None
    state_trace: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCESS"
