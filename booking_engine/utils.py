"""Shared utilities used across the booking engine."""

import re


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("06 12 34 56 78")
        '0612345678'
        >>> normalize_phone("+33 (6) 12-34-56-78")
        '+33612345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def normalize_email(value: str) -> str:
    """Case-fold and trim an email so it can be used as a customer key.

    Examples:
        >>> normalize_email("  Jean.Dupont@Example.COM ")
        'jean.dupont@example.com'
    """
    return value.strip().casefold()


def normalize_time_of_day(value: str) -> str:
    """Normalize ``H:MM`` / ``HH:MM`` / ``HH:MM:SS`` to zero-padded ``HH:MM``.

    Examples:
        >>> normalize_time_of_day("9:30")
        '09:30'
        >>> normalize_time_of_day("14:00:00")
        '14:00'
    """
    match = re.match(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$", value)
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time of day: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def mask_secret(secret: str) -> str:
    """Return a log-safe representation of a token or key."""
    if not secret:
        return "null"
    if len(secret) <= 10:
        return "[too short to safely truncate]"
    return f"{secret[:5]}...{secret[-5:]} ({len(secret)} chars)"
