"""
Centralized configuration with environment variable overrides.

Business hours, storage location, job sink connection details and
booking rules are all configurable here. Nothing is hardcoded in the
scheduling or booking logic.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


def _safe_weekdays(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated weekday list (0=Monday .. 6=Sunday)."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(sorted({int(part) for part in raw.split(",") if part.strip()}))
    except ValueError:
        raise ValueError(
            f"Invalid weekday list for {env_var}: {raw!r}"
        ) from None


def minutes_of_day(hhmm: str) -> int:
    """Convert an ``HH:MM`` string to minutes after midnight."""
    match = _HHMM.match(hhmm.strip())
    if not match:
        raise ValueError(f"Invalid HH:MM time: {hhmm!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


@dataclass(frozen=True)
class BusinessConfig:
    """Business calendar settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Reliable Home Services")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "Europe/Paris")
    business_start: str = os.getenv("BUSINESS_START", "08:00")
    business_end: str = os.getenv("BUSINESS_END", "17:00")
    closed_weekdays: tuple[int, ...] = _safe_weekdays("CLOSED_WEEKDAYS", "5,6")
    default_resource_id: str = os.getenv("DEFAULT_RESOURCE_ID", "default")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class StoreConfig:
    """Booking record store settings."""

    database_path: str = os.getenv("DATABASE_PATH", "./bookings.db")
    busy_timeout_sec: float = _safe_float("STORE_BUSY_TIMEOUT_SEC", "10.0")


@dataclass(frozen=True)
class JobSinkConfig:
    """Upstream job-management system connection settings."""

    base_url: str = os.getenv("JOB_SINK_BASE_URL", "https://app.kaze.so")
    api_token: str = os.getenv("JOB_SINK_API_TOKEN", "")
    timeout_sec: float = _safe_float("JOB_SINK_TIMEOUT_SEC", "10.0")
    enabled: bool = _safe_bool("JOB_SINK_ENABLED", "false")


@dataclass(frozen=True)
class BookingRulesConfig:
    """Thresholds used by the duplicate and conflict checks."""

    duplicate_window_hours: int = _safe_int("DUPLICATE_WINDOW_HOURS", "24")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    job_sink: JobSinkConfig = field(default_factory=JobSinkConfig)
    rules: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        ZoneInfo(config.business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE is not a known timezone: {config.business.timezone!r}"
        ) from None

    start = minutes_of_day(config.business.business_start)
    end = minutes_of_day(config.business.business_end)
    if start >= end:
        raise ValueError(
            "BUSINESS_START must be before BUSINESS_END, "
            f"got {config.business.business_start} - {config.business.business_end}"
        )

    for day in config.business.closed_weekdays:
        if not 0 <= day <= 6:
            raise ValueError(f"CLOSED_WEEKDAYS entries must be 0-6, got {day}")
    if len(config.business.closed_weekdays) >= 7:
        raise ValueError("CLOSED_WEEKDAYS cannot close every day of the week")

    if not config.business.default_resource_id.strip():
        raise ValueError("DEFAULT_RESOURCE_ID must not be empty")

    if config.store.busy_timeout_sec <= 0:
        raise ValueError(
            f"STORE_BUSY_TIMEOUT_SEC must be > 0, got {config.store.busy_timeout_sec}"
        )
    if config.job_sink.timeout_sec <= 0:
        raise ValueError(
            f"JOB_SINK_TIMEOUT_SEC must be > 0, got {config.job_sink.timeout_sec}"
        )
    if config.rules.duplicate_window_hours < 1:
        raise ValueError(
            "DUPLICATE_WINDOW_HOURS must be >= 1, "
            f"got {config.rules.duplicate_window_hours}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
