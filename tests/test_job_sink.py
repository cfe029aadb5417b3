"""Tests for the HTTP job sink client and job parsing."""

import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from booking_engine.config import JobSinkConfig
from booking_engine.errors import SinkForwardError
from booking_engine.tools.job_sink import (
    BLOCKING_JOB_STATUSES,
    HttpJobSink,
    build_job_payload,
    build_job_sink,
    clean_api_token,
    parse_job_interval,
)
from tests.conftest import WEDNESDAY, make_new_record

TOKEN = "abcdefghijklmnopqrstuvwxyz0123456789"


def _config(token: str = TOKEN, enabled: bool = True) -> JobSinkConfig:
    return JobSinkConfig(
        base_url="https://jobs.example.test",
        api_token=token,
        timeout_sec=2.0,
        enabled=enabled,
    )


def _sink(handler, token: str = TOKEN) -> HttpJobSink:
    client = httpx.AsyncClient(
        base_url="https://jobs.example.test", transport=httpx.MockTransport(handler)
    )
    return HttpJobSink(_config(token), client=client)


class TestCleanApiToken:
    def test_clean_token_untouched(self):
        assert clean_api_token(TOKEN) == (TOKEN, [])

    def test_strips_quotes_whitespace_and_bearer(self):
        token, issues = clean_api_token(f'  "Bearer {TOKEN}" ')
        assert token == TOKEN
        assert len(issues) == 2

    def test_flags_short_token(self):
        token, issues = clean_api_token("abc")
        assert token == "abc"
        assert any("short" in issue for issue in issues)


class TestParseJobInterval:
    def test_explicit_start_and_end(self):
        start, end = parse_job_interval({
            "start_time": "2026-10-21T08:00:00Z", "end_time": "2026-10-21T09:30:00Z",
        })
        assert start == datetime(2026, 10, 21, 8, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(minutes=90)

    def test_due_date_and_time_with_duration(self):
        start, end = parse_job_interval({
            "due_date": "21/10/2026", "due_time": "14:00", "duration_minutes": 45,
        })
        assert start.strftime("%Y-%m-%d %H:%M") == "2026-10-21 14:00"
        assert end - start == timedelta(minutes=45)

    def test_due_time_defaults_to_two_hours(self):
        start, end = parse_job_interval({"due_date": "2026-10-21", "due_time": "09:00"})
        assert end - start == timedelta(hours=2)

    def test_due_date_only(self):
        start, end = parse_job_interval({"due_date": "21/10/2026"})
        assert start.hour == 0
        assert end - start == timedelta(hours=2)

    def test_end_before_start_falls_back_to_duration(self):
        start, end = parse_job_interval({
            "start_time": "2026-10-21T10:00:00+02:00", "end_time": "2026-10-21T09:00:00+02:00",
        })
        assert end - start == timedelta(hours=2)

    def test_no_timing_is_skipped(self):
        assert parse_job_interval({"id": 1, "title": "Call back"}) is None

    def test_garbage_is_skipped(self):
        assert parse_job_interval({"id": 2, "due_date": "next tuesday"}) is None

    def test_numeric_start_time_is_skipped(self):
        assert parse_job_interval({"id": 3, "start_time": 1792483200}) is None


class TestSubmitJob:
    @pytest.mark.asyncio
    async def test_submit_returns_external_id(self, store, calendar):
        record = store.create(make_new_record(calendar))
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"job": {"id": 987}})

        sink = _sink(handler)
        receipt = await sink.submit_job(record)
        await sink.aclose()
        assert receipt.external_id == "987"
        assert seen["auth"] == f"Bearer {TOKEN}"
        assert seen["path"] == "/api/job_workflows.json"
        assert seen["body"]["reference"] == record.id
        assert seen["body"]["customer"]["email"] == "jane.doe@example.com"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, store, calendar):
        record = store.create(make_new_record(calendar))
        sink = _sink(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(SinkForwardError) as exc_info:
            await sink.submit_job(record)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_missing_id_raises(self, store, calendar):
        record = store.create(make_new_record(calendar))
        sink = _sink(lambda request: httpx.Response(200, json={"ok": True}))
        with pytest.raises(SinkForwardError):
            await sink.submit_job(record)

    @pytest.mark.asyncio
    async def test_non_object_job_raises(self, store, calendar):
        record = store.create(make_new_record(calendar))
        sink = _sink(lambda request: httpx.Response(201, json={"job": "queued"}))
        with pytest.raises(SinkForwardError):
            await sink.submit_job(record)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, store, calendar):
        record = store.create(make_new_record(calendar))

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SinkForwardError):
            await _sink(handler).submit_job(record)

    @pytest.mark.asyncio
    async def test_missing_token_raises_without_request(self, store, calendar):
        record = store.create(make_new_record(calendar))
        calls = []
        sink = _sink(lambda request: calls.append(request) or httpx.Response(200, json={"id": 1}), token="")
        with pytest.raises(SinkForwardError):
            await sink.submit_job(record)
        assert calls == []

    def test_payload_uses_utc_instants(self, store, calendar):
        record = store.create(make_new_record(calendar, hhmm="10:00"))
        payload = build_job_payload(record)
        assert payload["start_time"] == "2026-10-21T08:00:00+00:00"
        assert payload["technician_id"] == "default"


class TestFetchBusyIntervals:
    @pytest.mark.asyncio
    async def test_fetch_builds_filters_and_parses_jobs(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"jobs": [
                {"id": 1, "due_date": "21/10/2026", "due_time": "10:00", "duration_minutes": 60},
                {"id": 2, "title": "no timing"},
            ]})

        sink = _sink(handler)
        intervals = await sink.fetch_busy_intervals(WEDNESDAY, "default")
        assert seen["params"]["filter[due_date_range]"] == "21/10/2026"
        assert seen["params"]["filter[status]"] == BLOCKING_JOB_STATUSES
        assert "filter[technician_id]" not in seen["params"]
        assert len(intervals) == 1
        assert intervals[0].reference == "1"
        assert intervals[0].end - intervals[0].start == timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_fetch_filters_by_technician(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                {"id": 1, "due_date": "2026-10-21", "due_time": "10:00", "technician_id": "tech-1"},
                {"id": 2, "due_date": "2026-10-21", "due_time": "12:00", "technician_id": "tech-2"},
            ])

        intervals = await _sink(handler).fetch_busy_intervals(date(2026, 10, 21), "tech-1")
        assert seen["params"]["filter[technician_id]"] == "tech-1"
        assert [i.reference for i in intervals] == ["1"]

    @pytest.mark.asyncio
    async def test_fetch_skips_malformed_entries(self):
        sink = _sink(lambda request: httpx.Response(200, json={"jobs": [
            "oops",
            None,
            {"id": 3, "due_date": "2026-10-21", "due_time": "09:00"},
        ]}))
        intervals = await sink.fetch_busy_intervals(WEDNESDAY, "default")
        assert [i.reference for i in intervals] == ["3"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["busy", 42, {"jobs": "none"}])
    async def test_fetch_unexpected_body_raises(self, body):
        sink = _sink(lambda request: httpx.Response(200, json=body))
        with pytest.raises(SinkForwardError):
            await sink.fetch_busy_intervals(WEDNESDAY, "default")

    @pytest.mark.asyncio
    async def test_fetch_error_raises(self):
        sink = _sink(lambda request: httpx.Response(401, json={"error": "unauthorized"}))
        with pytest.raises(SinkForwardError):
            await sink.fetch_busy_intervals(WEDNESDAY, "default")


class TestBuildJobSink:
    def test_disabled_returns_none(self):
        assert build_job_sink(_config(enabled=False)) is None

    def test_enabled_returns_http_sink(self):
        assert isinstance(build_job_sink(_config()), HttpJobSink)
