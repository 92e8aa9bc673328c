"""Active customer products across an account's history, by region and category."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence, Union

from deployment_assistant.common.exceptions import PayloadParseError
from deployment_assistant.entitlements.dates import as_date
from deployment_assistant.entitlements.normalizer import payload_metadata
from deployment_assistant.entitlements.rollup import rollup
from deployment_assistant.entitlements.types import (
    CATEGORY_ORDER,
    AnyEntitlement,
    Category,
    RolledUpEntitlement,
    Snapshot,
    SnapshotEntitlements,
)

logger = logging.getLogger(__name__)

UNKNOWN_REGION = "Unknown Region"


@dataclass
class CustomerProduct:
    entitlement: RolledUpEntitlement
    region: str
    status: str
    days_remaining: Optional[int]
    sources: list[str] = field(default_factory=list)


@dataclass
class CustomerProducts:
    account_id: str
    products_by_region: dict[str, dict[Category, list[CustomerProduct]]] = field(default_factory=dict)
    snapshots_analyzed: int = 0
    last_updated: Optional[Snapshot] = None

    @property
    def by_category(self) -> dict[Category, int]:
        counts = {category: 0 for category in CATEGORY_ORDER}
        for categories in self.products_by_region.values():
            for category, products in categories.items():
                counts[category] += len(products)
        return counts

    @property
    def total_active(self) -> int:
        return sum(self.by_category.values())


def product_status(days_remaining: Optional[int], active_days: int = 90,
                   expiring_soon_days: int = 30) -> str:
    if days_remaining is None or days_remaining > active_days:
        return "active"
    if days_remaining > expiring_soon_days:
        return "expiring-soon"
    return "expiring"


def _region(snapshot: Snapshot) -> str:
    try:
        return payload_metadata(snapshot.raw_payload, snapshot.request_id).region or UNKNOWN_REGION
    except PayloadParseError:
        return UNKNOWN_REGION


def active_products(
    account_id: str,
    snapshots: Sequence[SnapshotEntitlements],
    today: Union[date, datetime],
    active_days: int = 90,
    expiring_soon_days: int = 30,
) -> CustomerProducts:
    """
    Merge still-active entitlement terms per (region, category, product_code).

    Terms that ended before ``today`` are ignored; the remaining terms are
    rolled up with the standard rule, so a product renewed across several
    requests shows one interval and lists every contributing request.
    Entitlements without an end date never expire and count as active.
    """
    today = as_date(today)
    result = CustomerProducts(account_id=account_id, snapshots_analyzed=len(snapshots))
    if snapshots:
        result.last_updated = max((s.snapshot for s in snapshots), key=lambda s: s.timestamp)

    terms: dict[str, list[AnyEntitlement]] = {}
    sources: dict[tuple[str, Category, str], list[str]] = {}
    for entry in snapshots:
        region = _region(entry.snapshot)
        for entitlement in entry.entitlements:
            if entitlement.end_date is not None and entitlement.end_date < today:
                continue
            terms.setdefault(region, []).append(entitlement)
            seen = sources.setdefault((region, *entitlement.key), [])
            if entry.request_id not in seen:
                seen.append(entry.request_id)

    for region, region_terms in terms.items():
        categories: dict[Category, list[CustomerProduct]] = {c: [] for c in CATEGORY_ORDER}
        for merged in rollup(region_terms):
            days = (merged.end_date - today).days if merged.end_date is not None else None
            categories[merged.category].append(CustomerProduct(
                entitlement=merged,
                region=region,
                status=product_status(days, active_days, expiring_soon_days),
                days_remaining=days,
                sources=sources[(region, *merged.key)],
            ))
        for products in categories.values():
            products.sort(key=lambda p: p.entitlement.product_code)
        result.products_by_region[region] = categories

    logger.debug(
        "Account %s: %d active products across %d regions",
        account_id, result.total_active, len(result.products_by_region),
        extra={"account_id": account_id},
    )
    return result
