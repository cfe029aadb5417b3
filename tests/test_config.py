"""Tests for configuration loading and validation."""

import pytest

from booking_engine.config import (
    AppConfig,
    BookingRulesConfig,
    BusinessConfig,
    JobSinkConfig,
    StoreConfig,
    _validate_config,
    minutes_of_day,
)


def _business(**overrides) -> BusinessConfig:
    values = dict(
        name="Test", timezone="Europe/Paris", business_start="08:00", business_end="17:00",
        closed_weekdays=(5, 6), default_resource_id="default",
    )
    values.update(overrides)
    return BusinessConfig(**values)


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        _validate_config(AppConfig(business=_business()))  # should not raise

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="BUSINESS_TIMEZONE"):
            _validate_config(AppConfig(business=_business(timezone="Mars/Olympus_Mons")))

    def test_start_after_end(self):
        with pytest.raises(ValueError, match="BUSINESS_START"):
            _validate_config(AppConfig(business=_business(business_start="18:00")))

    def test_malformed_hours(self):
        with pytest.raises(ValueError, match="HH:MM"):
            _validate_config(AppConfig(business=_business(business_end="5pm")))

    def test_weekday_out_of_range(self):
        with pytest.raises(ValueError, match="CLOSED_WEEKDAYS"):
            _validate_config(AppConfig(business=_business(closed_weekdays=(7,))))

    def test_all_days_closed(self):
        with pytest.raises(ValueError, match="every day"):
            _validate_config(AppConfig(business=_business(closed_weekdays=(0, 1, 2, 3, 4, 5, 6))))

    def test_empty_resource(self):
        with pytest.raises(ValueError, match="DEFAULT_RESOURCE_ID"):
            _validate_config(AppConfig(business=_business(default_resource_id=" ")))

    def test_non_positive_store_timeout(self):
        with pytest.raises(ValueError, match="STORE_BUSY_TIMEOUT_SEC"):
            _validate_config(AppConfig(business=_business(), store=StoreConfig(busy_timeout_sec=0)))

    def test_non_positive_sink_timeout(self):
        with pytest.raises(ValueError, match="JOB_SINK_TIMEOUT_SEC"):
            _validate_config(AppConfig(business=_business(), job_sink=JobSinkConfig(timeout_sec=-1)))

    def test_duplicate_window_too_small(self):
        with pytest.raises(ValueError, match="DUPLICATE_WINDOW_HOURS"):
            _validate_config(AppConfig(business=_business(), rules=BookingRulesConfig(duplicate_window_hours=0)))


class TestEnvParsing:
    def test_safe_int_parsing(self):
        from booking_engine.config import _safe_int

        assert _safe_int("NONEXISTENT_VAR_12345", "42") == 42

    def test_safe_float_parsing(self):
        from booking_engine.config import _safe_float

        assert _safe_float("NONEXISTENT_VAR_12345", "3.14") == pytest.approx(3.14)

    def test_safe_int_rejects_garbage(self, monkeypatch):
        from booking_engine.config import _safe_int

        monkeypatch.setenv("BOOKING_TEST_INT", "twelve")
        with pytest.raises(ValueError, match="BOOKING_TEST_INT"):
            _safe_int("BOOKING_TEST_INT", "1")

    @pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("off", False), ("", False)])
    def test_safe_bool(self, monkeypatch, raw, expected):
        from booking_engine.config import _safe_bool

        monkeypatch.setenv("BOOKING_TEST_BOOL", raw)
        assert _safe_bool("BOOKING_TEST_BOOL", "false") is expected

    def test_safe_weekdays(self, monkeypatch):
        from booking_engine.config import _safe_weekdays

        monkeypatch.setenv("BOOKING_TEST_DAYS", "6, 5,6")
        assert _safe_weekdays("BOOKING_TEST_DAYS", "") == (5, 6)

    def test_minutes_of_day(self):
        assert minutes_of_day("08:30") == 510
        with pytest.raises(ValueError):
            minutes_of_day("8:30")
