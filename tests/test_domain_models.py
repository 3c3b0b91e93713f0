"""
Tests for domain models.
"""

import pytest

from onspot.domain.exceptions import ValidationError
from onspot.domain.models import (
    Business,
    GeoPoint,
    OperatingTime,
    PartnershipRequest,
    PartnershipStatus,
    User,
    parse_flag,
    parse_opening_days,
)


class TestGeoPoint:
    """Tests for GeoPoint model."""

    @pytest.mark.parametrize("latitude, longitude", [(90.1, 0), (-90.1, 0), (0, 180.5), (0, -181)])
    def test_out_of_range_raises(self, latitude, longitude):
        with pytest.raises(ValidationError):
            GeoPoint(latitude, longitude)

    def test_orders_by_latitude_first(self):
        assert GeoPoint(10, 50) < GeoPoint(11, -50)
        assert GeoPoint(10, 1) < GeoPoint(10, 2)

    def test_from_document_rejects_missing_fields(self):
        with pytest.raises(ValidationError):
            GeoPoint.from_document({"latitude": 1})


class TestOperatingTime:
    """Tests for OperatingTime model."""

    def test_invalid_hour_raises(self):
        with pytest.raises(ValidationError, match="Hour must be between 0 and 23"):
            OperatingTime(24, 0)

    def test_empty_zone_means_utc(self):
        assert OperatingTime.from_document({"hour": 8, "minute": 15, "zone": ""}).zone_offset_minutes == 0

    def test_str(self):
        assert str(OperatingTime(9, 5, 330)) == "09:05 UTC+05:30"
        assert str(OperatingTime(9, 5, -90)) == "09:05 UTC-01:30"


class TestOpeningDays:
    """Tests for parse_opening_days()."""

    def test_absent_means_every_day(self):
        assert parse_opening_days(None) is None

    def test_names_and_numbers(self):
        assert parse_opening_days(["Monday", "tue", 6]) == frozenset({0, 1, 6})

    def test_unknown_name_raises(self):
        with pytest.raises(ValidationError):
            parse_opening_days(["Funday"])

    def test_out_of_range_number_raises(self):
        with pytest.raises(ValidationError):
            parse_opening_days([7])


class TestBusiness:
    """Tests for reading business documents."""

    def test_defaults_when_fields_absent(self):
        business = Business.from_document(
            "doc-1",
            {"location": {"geoPoint": {"latitude": 1.0, "longitude": 2.0}}},
        )

        assert business.business_ref_id == "doc-1"
        assert business.is_open is True
        assert business.passive_open_enabled is None
        assert business.delivery_range_meters is None
        assert business.opening_days is None
        assert business.partners == []

    def test_reads_partner_list(self):
        business = Business.from_document(
            "b1",
            {
                "location": {"geoPoint": {"latitude": 1.0, "longitude": 2.0}},
                "open": False,
                "osd": [{"userId": "u1", "status": "ACCEPTED"}],
            },
        )

        assert business.is_open is False
        assert business.find_partner("u1").status is PartnershipStatus.ACCEPTED
        assert business.find_partner("u2") is None

    def test_missing_location_raises(self):
        with pytest.raises(ValidationError):
            Business.from_document("b1", {})

    @pytest.mark.parametrize("field", ["open", "passiveOpenEnable"])
    @pytest.mark.parametrize("value", ["false", 0, 1, "yes"])
    def test_non_boolean_flags_raise(self, field, value):
        document = {"location": {"geoPoint": {"latitude": 1.0, "longitude": 2.0}}, field: value}
        with pytest.raises(ValidationError):
            Business.from_document("b1", document)

    def test_parse_flag(self):
        assert parse_flag({}, "open") is None
        assert parse_flag({"open": False}, "open") is False
        assert parse_flag({"open": True}, "open") is True


class TestUserAndRequest:
    """Tests for User and PartnershipRequest documents."""

    def test_user_partner_lookup(self):
        user = User.from_document("u1", {"businessOSD": [{"businessRefId": "b1", "status": "PENDING"}]})
        assert user.find_partner("b1").status is PartnershipStatus.PENDING

    def test_request_account_key_parsed(self):
        request = PartnershipRequest.from_document(
            "r1",
            {"account": ["osb::b1", "osd::u1"], "status": "ACCEPTED", "type": 1, "osb": {"x": 1}},
        )

        assert request.business_ref_id == "b1"
        assert request.user_id == "u1"
        assert request.status is PartnershipStatus.ACCEPTED
        assert request.to_document()["account"] == ["osb::b1", "osd::u1"]

    def test_request_without_account_raises(self):
        with pytest.raises(ValidationError):
            PartnershipRequest.from_document("r1", {"status": "PENDING"})
