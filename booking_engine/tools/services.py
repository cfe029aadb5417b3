"""Service offering catalog with durations, minimum notice and pricing."""

import logging
from typing import Optional

from booking_engine.schemas.service_schema import ServiceOffering

logger = logging.getLogger(__name__)

SERVICE_CATALOG: dict[str, ServiceOffering] = {
    offering.id: offering
    for offering in (
        ServiceOffering(
            id="1",
            slug="basic-plumbing",
            title="Basic Plumbing Service",
            description="Basic plumbing services including inspection and small repairs.",
            duration_minutes=60,
            minimum_notice_minutes=120,
            price=100,
            currency="USD",
        ),
        ServiceOffering(
            id="2",
            slug="emergency-plumbing",
            title="Emergency Plumbing Service",
            description="Emergency plumbing services for urgent issues.",
            duration_minutes=120,
            minimum_notice_minutes=30,
            price=200,
            currency="USD",
        ),
        ServiceOffering(
            id="3",
            slug="standard-intervention",
            title="Standard Intervention",
            description="On-site intervention by a technician, booked in 90-minute blocks.",
            duration_minutes=90,
            minimum_notice_minutes=240,
        ),
    )
}

SERVICE_ALIASES: dict[str, str] = {
    "plumber": "basic-plumbing", "plumbing": "basic-plumbing",
    "leak": "basic-plumbing", "tap": "basic-plumbing", "toilet": "basic-plumbing",
    "emergency": "emergency-plumbing", "urgent": "emergency-plumbing",
    "burst pipe": "emergency-plumbing", "flooding": "emergency-plumbing",
    "intervention": "standard-intervention", "visit": "standard-intervention",
    "technician": "standard-intervention",
}


def get_all_services() -> list[ServiceOffering]:
    """Return all offerings in catalog order."""
    return list(SERVICE_CATALOG.values())


def get_service_offering(service_id: str) -> Optional[ServiceOffering]:
    """Look up an offering by id or slug. Returns None if unknown."""
    normalized = str(service_id).strip().lower()
    if normalized in SERVICE_CATALOG:
        return SERVICE_CATALOG[normalized]
    for offering in SERVICE_CATALOG.values():
        if offering.slug == normalized:
            return offering
    return None


def match_service(query: str) -> Optional[ServiceOffering]:
    """Match free text to an offering. Emergency wording wins over generic wording."""
    normalized = query.lower().strip()
    direct = get_service_offering(normalized)
    if direct:
        return direct
    matches = [slug for alias, slug in SERVICE_ALIASES.items() if alias in normalized]
    if not matches:
        return None
    slug = "emergency-plumbing" if "emergency-plumbing" in matches else matches[0]
    logger.debug("Matched service query %r to %s", query, slug)
    return get_service_offering(slug)
