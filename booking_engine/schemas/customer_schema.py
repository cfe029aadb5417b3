"""Customer identity and per-request booking details."""

from typing import Optional

from pydantic import BaseModel

from booking_engine.utils import normalize_email


class CustomerIdentity(BaseModel):
    """The caller booking an appointment. Email is the case-insensitive key."""
    email: str
    name: str
    phone: Optional[str] = None

    @property
    def customer_key(self) -> str:
        return normalize_email(self.email)


class BookingDetails(BaseModel):
    """Optional extras captured alongside a booking."""
    customer_phone: Optional[str] = None
    service_address: Optional[str] = None
    notes: Optional[str] = None
