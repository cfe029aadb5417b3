"""Shared test fixtures and helpers."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from booking_engine.availability.business_calendar import BusinessCalendar
from booking_engine.config import BusinessConfig, StoreConfig
from booking_engine.errors import SinkForwardError
from booking_engine.schemas.booking_schema import BookingRecord, BusyInterval, JobReceipt, NewBookingRecord
from booking_engine.schemas.customer_schema import CustomerIdentity
from booking_engine.store.record_store import BookingRecordStore

PARIS = "Europe/Paris"

# Tuesday 2026-10-20, 07:00 in Paris (CEST, UTC+2)
NOW = datetime(2026, 10, 20, 5, 0, tzinfo=timezone.utc)
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
SATURDAY = date(2026, 10, 24)


class FakeJobSink:
    """In-memory job sink with switchable failure and latency."""

    def __init__(
        self,
        busy: Optional[list[BusyInterval]] = None,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.busy = busy or []
        self.fail = fail
        self.delay = delay
        self.submitted: list[BookingRecord] = []
        self.fetch_calls: list[tuple[date, str]] = []

    async def submit_job(self, record: BookingRecord) -> JobReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SinkForwardError("Job sink returned 503 on POST", status_code=503)
        self.submitted.append(record)
        return JobReceipt(external_id=f"JOB-{len(self.submitted)}")

    async def fetch_busy_intervals(self, day: date, resource_id: str) -> list[BusyInterval]:
        self.fetch_calls.append((day, resource_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SinkForwardError("Job sink returned 500 on GET", status_code=500)
        return list(self.busy)


@pytest.fixture
def business_config():
    return BusinessConfig(
        name="Test Plumbing",
        timezone=PARIS,
        business_start="08:00",
        business_end="17:00",
        closed_weekdays=(5, 6),
        default_resource_id="default",
    )


@pytest.fixture
def calendar(business_config):
    return BusinessCalendar(business_config)


@pytest.fixture
def store(tmp_path):
    db_path = str(tmp_path / "bookings.db")
    record_store = BookingRecordStore(
        db_path=db_path,
        config=StoreConfig(database_path=db_path, busy_timeout_sec=5.0),
    )
    record_store.init_schema()
    return record_store


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def customer():
    return CustomerIdentity(email="Jane.Doe@Example.com", name="Jane Doe", phone="06 12 34 56 78")


@pytest.fixture
def other_customer():
    return CustomerIdentity(email="bob@example.com", name="Bob Martin")


def local(calendar: BusinessCalendar, day: date, hhmm: str) -> datetime:
    """Aware business-local datetime for a day and ``HH:MM``."""
    return calendar.combine_local(day, hhmm)


def make_new_record(
    calendar: BusinessCalendar,
    day: date = WEDNESDAY,
    hhmm: str = "10:00",
    minutes: int = 60,
    email: str = "jane.doe@example.com",
    name: str = "Jane Doe",
    resource_id: str = "default",
    service_offering_id: str = "1",
) -> NewBookingRecord:
    """Helper to build a store-ready booking with sensible defaults."""
    start = calendar.combine_local(day, hhmm)
    return NewBookingRecord(
        resource_id=resource_id,
        date=day.isoformat(),
        time_of_day=hhmm,
        start_instant=start,
        end_instant=start + timedelta(minutes=minutes),
        service_offering_id=service_offering_id,
        customer_name=name,
        customer_email=email,
    )
