"""Category aggregation for dashboard tiles and detail views."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from deployment_assistant.common.exceptions import AmbiguousGroupingWarning
from deployment_assistant.entitlements.issues import IssueSink, record_issue
from deployment_assistant.entitlements.types import (
    CATEGORY_ORDER,
    AnyEntitlement,
    Category,
    SnapshotEntitlements,
)


class AggregationMode(str, Enum):
    PER_SNAPSHOT = "perSnapshot"
    UNION = "union"


@dataclass
class CategorySummary:
    """Unique products of one category and the snapshots that contributed them."""
    category: Category
    unique_product_count: int = 0
    entry_count: int = 0
    source_map: dict[str, list[str]] = field(default_factory=dict)
    snapshot_id: Optional[str] = None

    @property
    def product_codes(self) -> list[str]:
        return list(self.source_map)


def _usable(entitlement: AnyEntitlement, snapshot_id: str, issues: IssueSink) -> bool:
    if entitlement.product_code and entitlement.product_code.strip():
        return True
    record_issue(issues, AmbiguousGroupingWarning(
        f"Dropping {entitlement.category.value} entry {entitlement.display_name!r} "
        "with no usable product code",
        snapshot_id=snapshot_id,
    ))
    return False


def _summarize(
    category: Category,
    entries: Iterable[tuple[str, AnyEntitlement]],
    snapshot_id: Optional[str] = None,
) -> CategorySummary:
    summary = CategorySummary(category=category, snapshot_id=snapshot_id)
    for source_id, entitlement in entries:
        summary.entry_count += 1
        sources = summary.source_map.setdefault(entitlement.product_code, [])
        if source_id not in sources:
            sources.append(source_id)
    summary.unique_product_count = len(summary.source_map)
    return summary


def aggregate(
    snapshots: Sequence[SnapshotEntitlements],
    mode: AggregationMode | str = AggregationMode.UNION,
    issues: IssueSink = None,
) -> list[CategorySummary]:
    """
    Build per-category summaries over normalized snapshots.

    ``union`` dedupes by (category, product_code) across every snapshot and
    keeps, per product, the snapshots that contained it. ``perSnapshot``
    counts each snapshot independently. Output is grouped by category in
    Model, Data, App order; entries without a product code are dropped with
    an AmbiguousGroupingWarning.
    """
    mode = AggregationMode(mode)
    usable: list[tuple[str, AnyEntitlement]] = [
        (entry.request_id, entitlement)
        for entry in snapshots
        for entitlement in entry.entitlements
        if _usable(entitlement, entry.request_id, issues)
    ]

    if mode is AggregationMode.UNION:
        return [
            _summarize(category, ((sid, e) for sid, e in usable if e.category == category))
            for category in CATEGORY_ORDER
        ]

    summaries = []
    for category in CATEGORY_ORDER:
        for entry in snapshots:
            summaries.append(_summarize(
                category,
                (
                    (sid, e) for sid, e in usable
                    if sid == entry.request_id and e.category == category
                ),
                snapshot_id=entry.request_id,
            ))
    return summaries


def category_counts(summaries: Iterable[CategorySummary]) -> dict[Category, int]:
    """Unique product count per category, summed over the given summaries."""
    counts = {category: 0 for category in CATEGORY_ORDER}
    for summary in summaries:
        counts[summary.category] += summary.unique_product_count
    return counts
