"""
Job sink client: the upstream job-management system.

Confirmed bookings are submitted here as jobs, and jobs entered through
other channels are read back as busy intervals. The engine only depends on
the ``JobSink`` protocol; ``HttpJobSink`` is the production implementation.
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import httpx

from booking_engine.config import JobSinkConfig, settings
from booking_engine.errors import SinkForwardError
from booking_engine.schemas.booking_schema import BookingRecord, BusyInterval, JobReceipt
from booking_engine.utils import mask_secret

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/job_workflows.json"
JOBS_PATH = "/api/jobs.json"
BLOCKING_JOB_STATUSES = "waiting,confirmed,in_progress,scheduled"
DEFAULT_JOB_DURATION_MINUTES = 120


class JobSink(Protocol):
    """What the booking engine needs from the upstream job system."""

    async def submit_job(self, record: BookingRecord) -> JobReceipt: ...

    async def fetch_busy_intervals(self, day: date, resource_id: str) -> list[BusyInterval]: ...


def clean_api_token(raw: str) -> tuple[str, list[str]]:
    """Strip whitespace, quotes and a ``Bearer`` prefix from a configured token.

    Returns the cleaned token and a list of problems found, for logging.
    """
    issues: list[str] = []
    token = raw.strip().strip("\"'")
    if token != raw:
        issues.append("Token contained whitespace or quote characters that were removed")
    if re.match(r"(?i)^bearer\s+", token):
        token = re.sub(r"(?i)^bearer\s+", "", token)
        issues.append("Token contained a 'Bearer ' prefix that was removed")
    if token and len(token) < 20:
        issues.append(f"Token is suspiciously short ({len(token)} characters)")
    if " " in token:
        issues.append("Token contains spaces which may cause authentication issues")
    return token, issues


def _parse_instant(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=settings.business.tzinfo)
    return parsed


def _parse_due_date(value: str) -> date:
    """Job due dates come back as DD/MM/YYYY or ISO."""
    if "/" in value:
        return datetime.strptime(value, "%d/%m/%Y").date()
    return date.fromisoformat(value[:10])


def parse_job_interval(job: dict[str, Any]) -> Optional[tuple[datetime, datetime]]:
    """
    Work out when a job blocks the calendar.

    Uses explicit start/end times when present, then due date + due time with
    the job's duration, then the due date alone. Jobs with no usable timing
    return None.
    """
    try:
        start: Optional[datetime] = None
        end: Optional[datetime] = None
        if job.get("start_time"):
            start = _parse_instant(job["start_time"])
        if job.get("end_time"):
            end = _parse_instant(job["end_time"])

        duration = timedelta(minutes=int(job.get("duration_minutes") or DEFAULT_JOB_DURATION_MINUTES))
        if start is None and job.get("due_date"):
            due = _parse_due_date(job["due_date"])
            if job.get("due_time"):
                start = _parse_instant(f"{due.isoformat()}T{job['due_time']}")
            else:
                start = datetime.combine(due, datetime.min.time(), tzinfo=settings.business.tzinfo)
                duration = timedelta(minutes=DEFAULT_JOB_DURATION_MINUTES)
        if start is None:
            return None
        if end is None or end <= start:
            end = start + duration
        return start, end
    except (ValueError, TypeError, AttributeError) as exc:
        logger.warning("Skipping job %s with unparseable timing: %s", job.get("id"), exc)
        return None


def build_job_payload(record: BookingRecord) -> dict[str, Any]:
    """Translate a confirmed booking into the job system's submission body."""
    return {
        "start_time": record.start_instant.astimezone(timezone.utc).isoformat(),
        "end_time": record.end_instant.astimezone(timezone.utc).isoformat(),
        "customer": {
            "name": record.customer_name,
            "email": record.customer_email,
            "phone": record.customer_phone,
        },
        "service_id": record.service_offering_id,
        "technician_id": record.resource_id,
        "address": record.service_address,
        "notes": record.notes,
        "reference": record.id,
        "status": "confirmed",
    }


class HttpJobSink:
    """Job sink backed by the job system's JSON API over HTTPS."""

    def __init__(
        self,
        config: Optional[JobSinkConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or settings.job_sink
        self._token, issues = clean_api_token(self._config.api_token)
        for issue in issues:
            logger.warning("JOB_SINK_API_TOKEN: %s", issue)
        self._client = client or httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_sec,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self._token:
            raise SinkForwardError("Job sink API token is not configured")
        logger.debug("Job sink %s %s (token %s)", method, path, mask_secret(self._token))
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            raise SinkForwardError(f"Job sink timed out on {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise SinkForwardError(f"Job sink request failed on {method} {path}: {exc}") from exc
        if response.is_error:
            raise SinkForwardError(
                f"Job sink returned {response.status_code} on {method} {path}",
                status_code=response.status_code,
            )
        return response

    async def submit_job(self, record: BookingRecord) -> JobReceipt:
        """Create a job for a confirmed booking and return its external id."""
        response = await self._request("POST", SUBMIT_PATH, json=build_job_payload(record))
        try:
            body = response.json()
        except ValueError as exc:
            raise SinkForwardError("Job sink returned a non-JSON acknowledgment") from exc

        if not isinstance(body, dict):
            raise SinkForwardError("Job sink acknowledgment was not a JSON object")
        payload = body.get("job") or body.get("booking") or body
        if not isinstance(payload, dict):
            raise SinkForwardError("Job sink acknowledgment did not describe a job")
        external_id = payload.get("id") or payload.get("job_id")
        if external_id is None:
            raise SinkForwardError("Job sink acknowledgment did not include a job id")
        logger.info("Booking %s forwarded to job sink as job %s", record.id, external_id)
        return JobReceipt(external_id=str(external_id), raw=body)

    async def fetch_busy_intervals(self, day: date, resource_id: str) -> list[BusyInterval]:
        """Read jobs due on ``day`` and return the windows they occupy."""
        params = {
            "filter[due_date_range]": day.strftime("%d/%m/%Y"),
            "filter[status]": BLOCKING_JOB_STATUSES,
        }
        filter_technician = resource_id != settings.business.default_resource_id
        if filter_technician:
            params["filter[technician_id]"] = resource_id

        response = await self._request("GET", JOBS_PATH, params=params)
        try:
            body = response.json()
        except ValueError as exc:
            raise SinkForwardError("Job sink returned a non-JSON job list") from exc
        jobs = body.get("jobs", []) if isinstance(body, dict) else body
        if not isinstance(jobs, list):
            raise SinkForwardError("Job sink returned a job list of unexpected shape")

        intervals = []
        for job in jobs:
            if not isinstance(job, dict):
                logger.warning("Skipping malformed job entry: %r", job)
                continue
            technician = job.get("technician_id")
            if filter_technician and technician and str(technician) != resource_id:
                continue
            window = parse_job_interval(job)
            if window is None:
                continue
            intervals.append(BusyInterval(
                start=window[0],
                end=window[1],
                resource_id=str(technician) if technician else None,
                reference=str(job.get("id")) if job.get("id") is not None else None,
            ))
        logger.debug("Job sink reported %d busy intervals on %s", len(intervals), day)
        return intervals

    async def aclose(self) -> None:
        await self._client.aclose()


def build_job_sink(config: Optional[JobSinkConfig] = None) -> Optional[JobSink]:
    """Return the configured job sink, or None when forwarding is disabled."""
    config = config or settings.job_sink
    if not config.enabled:
        logger.info("Job sink disabled; bookings will be stored locally only")
        return None
    return HttpJobSink(config)
