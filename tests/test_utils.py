"""Tests for shared utility functions."""

import pytest

from booking_engine.utils import mask_secret, normalize_email, normalize_phone, normalize_time_of_day


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("06 12 34 56 78") == "0612345678"

    def test_strips_dashes(self):
        assert normalize_phone("06-12-34-56-78") == "0612345678"

    def test_preserves_leading_plus(self):
        assert normalize_phone("+33 6 12 34 56 78") == "+33612345678"

    def test_mixed_separators(self):
        assert normalize_phone("+33 (6) 12-34-56-78") == "+33612345678"

    def test_strips_whitespace(self):
        assert normalize_phone("  0612345678  ") == "0612345678"


class TestNormalizeEmail:
    def test_case_folds_and_trims(self):
        assert normalize_email("  Jean.Dupont@Example.COM ") == "jean.dupont@example.com"


class TestNormalizeTimeOfDay:
    @pytest.mark.parametrize(
        "raw, expected",
        [("9:30", "09:30"), ("09:30", "09:30"), ("14:00:00", "14:00"), (" 8:05 ", "08:05")],
    )
    def test_pads(self, raw, expected):
        assert normalize_time_of_day(raw) == expected

    @pytest.mark.parametrize("raw", ["", "930", "24:00", "12:60", "noon"])
    def test_rejects(self, raw):
        with pytest.raises(ValueError):
            normalize_time_of_day(raw)


class TestMaskSecret:
    def test_empty(self):
        assert mask_secret("") == "null"

    def test_short(self):
        assert "too short" in mask_secret("abc")

    def test_long_keeps_ends_only(self):
        masked = mask_secret("abcdefghijklmnopqrstuvwxyz")
        assert masked.startswith("abcde...vwxyz")
        assert "klmno" not in masked
