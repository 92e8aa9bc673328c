"""Core value types for entitlement timeline reconciliation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union


class Category(str, Enum):
    """The three fixed entitlement classes, in display order."""
    MODEL = "Model"
    DATA = "Data"
    APP = "App"


CATEGORY_ORDER: tuple[Category, ...] = (Category.MODEL, Category.DATA, Category.APP)


@dataclass(frozen=True)
class Snapshot:
    """One provisioning request's entitlement payload at a point in time."""
    account_id: str
    request_id: str
    timestamp: datetime
    raw_payload: Any = None
    request_name: str = ""
    request_type: str = ""
    account_name: str = ""

    @property
    def label(self) -> str:
        return self.request_name or self.request_id


@dataclass(frozen=True)
class EntitlementRecord:
    """One normalized entitlement row extracted from a payload."""
    product_code: str
    category: Category
    display_name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    package_name: Optional[str] = None

    @property
    def key(self) -> tuple[Category, str]:
        return (self.category, self.product_code)

    @property
    def is_indefinite(self) -> bool:
        return self.end_date is None


@dataclass(frozen=True)
class RolledUpEntitlement(EntitlementRecord):
    """One record per (category, product_code) after merging duplicates."""
    source_count: int = 1


AnyEntitlement = Union[EntitlementRecord, RolledUpEntitlement]


@dataclass(frozen=True)
class SnapshotEntitlements:
    """A snapshot paired with the entitlements derived from its payload."""
    snapshot: Snapshot
    entitlements: tuple[AnyEntitlement, ...] = field(default_factory=tuple)

    @property
    def request_id(self) -> str:
        return self.snapshot.request_id

    def by_key(self) -> dict[tuple[Category, str], AnyEntitlement]:
        return {e.key: e for e in self.entitlements}


def sort_snapshots(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Order snapshots ascending by timestamp.

    The sort is stable, so snapshots sharing a timestamp keep the order in
    which they were supplied (insertion / request id order).
    """
    return sorted(snapshots, key=lambda s: s.timestamp)


def group_by_account(snapshots: Sequence[Snapshot]) -> dict[str, list[Snapshot]]:
    """Split snapshots per account, each list ordered by timestamp."""
    grouped: dict[str, list[Snapshot]] = {}
    for snap in snapshots:
        grouped.setdefault(snap.account_id, []).append(snap)
    return {account: sort_snapshots(items) for account, items in grouped.items()}
