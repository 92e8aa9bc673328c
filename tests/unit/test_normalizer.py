"""Tests for payload normalization and date coercion."""

import json
from datetime import date, datetime

import pytest

from deployment_assistant.common.exceptions import (
    InvertedDateRangeWarning,
    MalformedDateWarning,
    PayloadParseError,
    UnidentifiedEntryWarning,
)
from deployment_assistant.entitlements.dates import parse_date, window_days
from deployment_assistant.entitlements.normalizer import (
    load_payload,
    normalize,
    payload_metadata,
)
from deployment_assistant.entitlements.types import Category


def make_payload(models=(), data=(), apps=(), **extra):
    payload = {
        "properties": {
            "provisioningDetail": {
                "entitlements": {
                    "modelEntitlements": list(models),
                    "dataEntitlements": list(data),
                    "appEntitlements": list(apps),
                },
            },
        },
    }
    payload.update(extra)
    return payload


# ── Dates ──────────────────────────────────────────────────────────


class TestParseDate:
    def test_iso_date(self):
        assert parse_date("2025-06-01") == date(2025, 6, 1)

    def test_iso_timestamp_with_z(self):
        assert parse_date("2025-06-01T00:00:00.000Z") == date(2025, 6, 1)

    def test_us_format(self):
        assert parse_date("06/01/2025") == date(2025, 6, 1)

    def test_date_objects_pass_through(self):
        assert parse_date(date(2025, 1, 2)) == date(2025, 1, 2)
        assert parse_date(datetime(2025, 1, 2, 13, 0)) == date(2025, 1, 2)

    def test_empty_is_absent(self):
        assert parse_date(None) is None
        assert parse_date("   ") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_date("next tuesday")

    def test_non_string_raises(self):
        with pytest.raises(ValueError):
            parse_date(20250601)


class TestWindowDays:
    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            window_days(-1)

    def test_zero_window_allowed(self):
        assert window_days(0) == 0


# ── Payload loading ────────────────────────────────────────────────


class TestLoadPayload:
    def test_none_and_blank_are_empty(self):
        assert load_payload(None) == {}
        assert load_payload("  ") == {}

    def test_json_string(self):
        assert load_payload('{"a": 1}') == {"a": 1}

    def test_bytes(self):
        assert load_payload(b'{"a": 1}') == {"a": 1}

    def test_invalid_json_raises(self):
        with pytest.raises(PayloadParseError) as exc_info:
            load_payload("{not json", snapshot_id="PS-1")
        assert exc_info.value.snapshot_id == "PS-1"
        assert exc_info.value.code == "PAYLOAD_PARSE_ERROR"

    def test_non_object_raises(self):
        with pytest.raises(PayloadParseError):
            load_payload("[1, 2, 3]")


# ── Normalization ──────────────────────────────────────────────────


class TestNormalize:
    def test_extracts_all_categories_in_order(self):
        payload = make_payload(
            models=[{"productCode": "m-1", "startDate": "2025-01-01", "endDate": "2025-12-31"}],
            data=[{"productCode": "D-1"}],
            apps=[{"productCode": "A-1", "name": "Risk App"}],
        )
        records = list(normalize(payload))
        assert [(r.category, r.product_code) for r in records] == [
            (Category.MODEL, "M-1"),
            (Category.DATA, "D-1"),
            (Category.APP, "A-1"),
        ]
        assert records[0].start_date == date(2025, 1, 1)
        assert records[0].end_date == date(2025, 12, 31)
        assert records[2].display_name == "Risk App"

    def test_codes_trimmed_and_uppercased(self):
        records = list(normalize(make_payload(models=[{"productCode": "  ic-databridge "}])))
        assert records[0].product_code == "IC-DATABRIDGE"

    def test_alternate_field_names(self):
        payload = make_payload(data=[{
            "product_code": "D-2", "start_date": "2025-02-01", "EndDate": "2026-01-31",
            "package_name": "Core",
        }])
        record = list(normalize(payload))[0]
        assert record.product_code == "D-2"
        assert record.start_date == date(2025, 2, 1)
        assert record.end_date == date(2026, 1, 31)
        assert record.package_name == "Core"

    def test_name_used_when_code_missing(self):
        record = list(normalize(make_payload(apps=[{"name": "Portfolio Viewer"}])))[0]
        assert record.product_code == "PORTFOLIO VIEWER"
        assert record.display_name == "Portfolio Viewer"

    def test_legacy_top_level_sections(self):
        payload = {
            "productEntitlements": [{"productCode": "LEGACY-M"}],
            "dataEntitlements": [{"productCode": "LEGACY-D"}],
        }
        records = list(normalize(payload))
        assert [(r.category, r.product_code) for r in records] == [
            (Category.MODEL, "LEGACY-M"),
            (Category.DATA, "LEGACY-D"),
        ]

    def test_missing_sections_yield_nothing(self):
        assert list(normalize({"properties": {}})) == []
        assert list(normalize(None)) == []

    def test_json_string_payload(self):
        raw = json.dumps(make_payload(models=[{"productCode": "M-1"}]))
        assert [r.product_code for r in normalize(raw)] == ["M-1"]

    def test_malformed_json_raises(self):
        with pytest.raises(PayloadParseError):
            normalize("{{{", snapshot_id="PS-9")

    def test_unidentified_entry_skipped_with_warning(self):
        issues = []
        payload = make_payload(models=[{"startDate": "2025-01-01"}, {"productCode": "M-1"}, "junk"])
        records = list(normalize(payload, "PS-1", issues))
        assert [r.product_code for r in records] == ["M-1"]
        assert len(issues) == 2
        assert all(isinstance(w, UnidentifiedEntryWarning) for w in issues)
        assert issues[0].snapshot_id == "PS-1"

    def test_malformed_date_treated_as_absent(self):
        issues = []
        payload = make_payload(models=[{"productCode": "M-1", "endDate": "soon"}])
        record = list(normalize(payload, "PS-1", issues))[0]
        assert record.end_date is None
        assert record.is_indefinite
        assert isinstance(issues[0], MalformedDateWarning)
        assert issues[0].field == "endDate"
        assert issues[0].product_code == "M-1"

    def test_inverted_range_kept_with_warning(self):
        issues = []
        payload = make_payload(models=[
            {"productCode": "M-1", "startDate": "2026-01-01", "endDate": "2025-01-01"},
        ])
        record = list(normalize(payload, "PS-1", issues))[0]
        assert record.start_date == date(2026, 1, 1)
        assert record.end_date == date(2025, 1, 1)
        assert isinstance(issues[0], InvertedDateRangeWarning)

    def test_restartable_and_warnings_reported_once(self):
        issues = []
        normalized = normalize(make_payload(models=[{}, {"productCode": "M-1"}]), "PS-1", issues)
        first = list(normalized)
        second = list(normalized)
        assert first == second
        assert len(issues) == 1

    def test_deterministic(self):
        payload = make_payload(models=[{"productCode": "M-1"}], apps=[{"productCode": "A-1"}])
        assert list(normalize(payload)) == list(normalize(payload))


class TestPayloadMetadata:
    def test_nested_tenant_and_region(self):
        payload = make_payload()
        payload["properties"]["provisioningDetail"]["tenantName"] = "acme-prod"
        payload["properties"]["region"] = "EU"
        meta = payload_metadata(payload)
        assert meta.tenant_name == "acme-prod"
        assert meta.region == "EU"

    def test_subdomain_fallback(self):
        meta = payload_metadata({"preferredSubdomain1": "acme"})
        assert meta.tenant_name == "acme"
        assert meta.region is None
