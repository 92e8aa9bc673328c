"""Tests for category aggregation and customer products."""

from datetime import date, datetime, timezone

from deployment_assistant.common.exceptions import AmbiguousGroupingWarning
from deployment_assistant.entitlements.aggregate import (
    AggregationMode,
    aggregate,
    category_counts,
)
from deployment_assistant.entitlements.customer_products import (
    UNKNOWN_REGION,
    active_products,
    product_status,
)
from deployment_assistant.entitlements.timeline import build_timeline
from deployment_assistant.entitlements.types import (
    Category,
    EntitlementRecord,
    Snapshot,
    SnapshotEntitlements,
)


def entries(request_id, *records):
    snapshot = Snapshot(
        account_id="ACC-1", request_id=request_id,
        timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    return SnapshotEntitlements(snapshot=snapshot, entitlements=tuple(records))


def rec(code, category=Category.MODEL):
    return EntitlementRecord(product_code=code, category=category, display_name=code)


class TestAggregateUnion:
    def test_dedupes_across_snapshots(self):
        summaries = aggregate([
            entries("PS-1", rec("M-1"), rec("M-2"), rec("D-1", Category.DATA)),
            entries("PS-2", rec("M-1"), rec("A-1", Category.APP)),
        ])
        assert [s.category for s in summaries] == [Category.MODEL, Category.DATA, Category.APP]
        models = summaries[0]
        assert models.unique_product_count == 2
        assert models.entry_count == 3
        assert models.source_map == {"M-1": ["PS-1", "PS-2"], "M-2": ["PS-1"]}
        assert models.product_codes == ["M-1", "M-2"]
        assert summaries[2].source_map == {"A-1": ["PS-2"]}

    def test_empty_categories_present(self):
        summaries = aggregate([entries("PS-1", rec("M-1"))])
        assert [s.unique_product_count for s in summaries] == [1, 0, 0]

    def test_unique_count_never_exceeds_entries(self):
        summaries = aggregate([
            entries("PS-1", rec("M-1"), rec("M-1")),
            entries("PS-2", rec("M-1")),
        ])
        for summary in summaries:
            assert summary.unique_product_count <= summary.entry_count

    def test_mode_accepts_string(self):
        assert aggregate([], "union") == aggregate([], AggregationMode.UNION)


class TestAggregatePerSnapshot:
    def test_counts_each_snapshot_independently(self):
        summaries = aggregate(
            [
                entries("PS-1", rec("M-1"), rec("M-2")),
                entries("PS-2", rec("M-1")),
            ],
            AggregationMode.PER_SNAPSHOT,
        )
        assert len(summaries) == 6
        models = [s for s in summaries if s.category is Category.MODEL]
        assert [(s.snapshot_id, s.unique_product_count) for s in models] == [("PS-1", 2), ("PS-2", 1)]


class TestAggregateIssues:
    def test_blank_codes_dropped_with_warning(self):
        issues = []
        summaries = aggregate([entries("PS-1", rec("M-1"), rec("  "))], issues=issues)
        assert summaries[0].unique_product_count == 1
        assert len(issues) == 1
        assert isinstance(issues[0], AmbiguousGroupingWarning)
        assert issues[0].snapshot_id == "PS-1"

    def test_category_counts(self):
        counts = category_counts(aggregate([entries("PS-1", rec("M-1"), rec("D-1", Category.DATA))]))
        assert counts == {Category.MODEL: 1, Category.DATA: 1, Category.APP: 0}


# ── Customer products ──────────────────────────────────────────────


def region_snapshot(request_id, day, region, models):
    payload = {"productEntitlements": models}
    if region:
        payload["region"] = region
    return Snapshot(
        account_id="ACC-1",
        request_id=request_id,
        timestamp=datetime.fromisoformat(day).replace(tzinfo=timezone.utc),
        raw_payload=payload,
    )


class TestProductStatus:
    def test_thresholds(self):
        assert product_status(None) == "active"
        assert product_status(91) == "active"
        assert product_status(90) == "expiring-soon"
        assert product_status(31) == "expiring-soon"
        assert product_status(30) == "expiring"
        assert product_status(0) == "expiring"


class TestActiveProducts:
    TODAY = date(2025, 10, 7)

    def test_expired_terms_dropped_and_renewals_merged(self):
        timeline = build_timeline([
            region_snapshot("PS-1", "2024-01-01", "US", [
                {"productCode": "OLD", "endDate": "2024-12-31"},
                {"productCode": "M-1", "startDate": "2024-01-01", "endDate": "2025-11-01"},
            ]),
            region_snapshot("PS-2", "2025-06-01", "US", [
                {"productCode": "M-1", "startDate": "2025-11-02", "endDate": "2026-11-01"},
            ]),
        ], rolled=False)
        products = active_products("ACC-1", timeline, self.TODAY)
        us_models = products.products_by_region["US"][Category.MODEL]
        assert [p.entitlement.product_code for p in us_models] == ["M-1"]
        merged = us_models[0]
        assert merged.entitlement.start_date == date(2024, 1, 1)
        assert merged.entitlement.end_date == date(2026, 11, 1)
        assert merged.sources == ["PS-1", "PS-2"]
        assert merged.status == "active"
        assert products.total_active == 1
        assert products.snapshots_analyzed == 2
        assert products.last_updated.request_id == "PS-2"

    def test_indefinite_products_are_active(self):
        timeline = build_timeline(
            [region_snapshot("PS-1", "2025-01-01", "EU", [{"productCode": "OPEN"}])], rolled=False,
        )
        product = active_products("ACC-1", timeline, self.TODAY).products_by_region["EU"][Category.MODEL][0]
        assert product.days_remaining is None
        assert product.status == "active"

    def test_regions_kept_apart(self):
        timeline = build_timeline([
            region_snapshot("PS-1", "2025-01-01", "US", [{"productCode": "M-1"}]),
            region_snapshot("PS-2", "2025-02-01", None, [{"productCode": "M-1", "endDate": "2025-10-20"}]),
        ], rolled=False)
        products = active_products("ACC-1", timeline, self.TODAY)
        assert set(products.products_by_region) == {"US", UNKNOWN_REGION}
        unknown = products.products_by_region[UNKNOWN_REGION][Category.MODEL][0]
        assert unknown.days_remaining == 13
        assert unknown.status == "expiring"
        assert products.by_category[Category.MODEL] == 2

    def test_no_snapshots(self):
        products = active_products("ACC-1", [], self.TODAY)
        assert products.total_active == 0
        assert products.last_updated is None
