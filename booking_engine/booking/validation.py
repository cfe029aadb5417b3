"""
Input validation for booking attempts.

Each check raises ``ValidationError`` naming the offending field; the
orchestrator turns that into a ``VALIDATION_ERROR`` rejection.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from booking_engine.availability.business_calendar import BusinessCalendar
from booking_engine.errors import ValidationError
from booking_engine.schemas.customer_schema import BookingDetails, CustomerIdentity
from booking_engine.schemas.service_schema import ServiceOffering
from booking_engine.tools.services import get_service_offering
from booking_engine.utils import normalize_phone

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15
MIN_ADDRESS_LENGTH = 5

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(value: Optional[str]) -> str:
    if not value or not value.strip():
        raise ValidationError("Customer email is required.", field="customer_email")
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValidationError(f"Invalid email address: {value}", field="customer_email")
    return value


def validate_name(value: Optional[str]) -> str:
    if not value or len(value.strip()) < MIN_NAME_LENGTH:
        raise ValidationError("Customer name is required.", field="customer_name")
    return value.strip()


def validate_phone(value: Optional[str]) -> Optional[str]:
    """Optional; when given it must have a plausible number of digits."""
    if not value or not value.strip():
        return None
    normalized = normalize_phone(value)
    digits = normalized.lstrip("+")
    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
        raise ValidationError(f"Invalid phone number: {value}", field="customer_phone")
    return normalized


def validate_address(value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    if len(value.strip()) < MIN_ADDRESS_LENGTH:
        raise ValidationError("Service address is too short.", field="service_address")
    return value.strip()


def validate_offering(service_offering_id: Optional[str]) -> ServiceOffering:
    if not service_offering_id:
        raise ValidationError("Service offering is required.", field="service_offering_id")
    offering = get_service_offering(service_offering_id)
    if offering is None:
        raise ValidationError(
            f"Unknown service offering: {service_offering_id}", field="service_offering_id"
        )
    return offering


def validate_start(
    start: datetime,
    offering: ServiceOffering,
    calendar: BusinessCalendar,
    now: datetime,
) -> tuple[datetime, datetime]:
    """
    Check timing rules and return the aware (start, end) range.

    Naive datetimes are read as business-local wall-clock time.
    """
    if start is None:
        raise ValidationError("Start time is required.", field="start")
    start = calendar.ensure_aware(start)
    end = start + timedelta(minutes=offering.duration_minutes)

    if start <= now:
        raise ValidationError("Cannot book a time in the past.", field="start")
    if not calendar.meets_notice(start, now, offering.minimum_notice_minutes):
        raise ValidationError(
            f"{offering.title} must be booked at least "
            f"{offering.minimum_notice_minutes} minutes in advance.",
            field="start",
        )
    if not calendar.is_business_day(start):
        raise ValidationError("We are closed on that day.", field="start")
    if not calendar.within_business_hours(start, end):
        hours = calendar.business_hours()
        raise ValidationError(
            f"Appointments must fall between {hours.start} and {hours.end}.",
            field="start",
        )
    return start, end


def validate_request(
    customer: CustomerIdentity,
    service_offering_id: str,
    start: datetime,
    calendar: BusinessCalendar,
    now: datetime,
    details: Optional[BookingDetails] = None,
) -> tuple[ServiceOffering, datetime, datetime, BookingDetails]:
    """Run every check for a booking attempt, stopping at the first failure."""
    validate_email(customer.email)
    validate_name(customer.name)
    details = details or BookingDetails()
    phone = validate_phone(details.customer_phone or customer.phone)
    address = validate_address(details.service_address)
    offering = validate_offering(service_offering_id)
    start, end = validate_start(start, offering, calendar, now)
    cleaned = BookingDetails(customer_phone=phone, service_address=address, notes=details.notes)
    return offering, start, end, cleaned
