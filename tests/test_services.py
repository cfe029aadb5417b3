"""Tests for the service offering catalog."""

from booking_engine.tools.services import get_all_services, get_service_offering, match_service


class TestCatalog:
    def test_catalog_order(self):
        assert [s.id for s in get_all_services()] == ["1", "2", "3"]

    def test_standard_intervention(self):
        offering = get_service_offering("3")
        assert offering.duration_minutes == 90
        assert offering.minimum_notice_minutes == 240

    def test_lookup_by_slug_case_insensitive(self):
        assert get_service_offering(" Emergency-Plumbing ").id == "2"

    def test_unknown(self):
        assert get_service_offering("999") is None


class TestMatchService:
    def test_alias(self):
        assert match_service("I have a leak under the sink").slug == "basic-plumbing"

    def test_emergency_wins(self):
        assert match_service("emergency, my toilet is flooding").slug == "emergency-plumbing"

    def test_no_match(self):
        assert match_service("paint my fence") is None
