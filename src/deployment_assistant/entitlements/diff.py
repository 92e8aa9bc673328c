"""Diff engine: added / removed / unchanged products between two snapshots."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from deployment_assistant.common.exceptions import UnorderedInputError
from deployment_assistant.entitlements.types import (
    CATEGORY_ORDER,
    AnyEntitlement,
    Category,
    Snapshot,
    SnapshotEntitlements,
)


@dataclass(frozen=True)
class DateChange:
    """A product present on both sides whose coverage interval moved."""
    previous: AnyEntitlement
    current: AnyEntitlement


@dataclass
class DiffResult:
    """Comparison of an earlier snapshot (previous) with a later one (current)."""
    added: list[AnyEntitlement] = field(default_factory=list)
    removed: list[AnyEntitlement] = field(default_factory=list)
    unchanged: list[AnyEntitlement] = field(default_factory=list)
    date_changes: list[DateChange] = field(default_factory=list)

    @property
    def has_removals(self) -> bool:
        return bool(self.removed)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)

    def removed_in(self, category: Category) -> list[AnyEntitlement]:
        return [e for e in self.removed if e.category == category]

    def added_in(self, category: Category) -> list[AnyEntitlement]:
        return [e for e in self.added if e.category == category]

    @property
    def summary(self) -> str:
        if not self.removed:
            return "No removals"
        models = len(self.removed_in(Category.MODEL))
        data = len(self.removed_in(Category.DATA))
        apps = len(self.removed_in(Category.APP))
        return f"{models} Model(s), {data} Data, {apps} App(s)"


@dataclass
class SnapshotDiff:
    """A DiffResult bound to the two snapshots it compares."""
    previous: Snapshot
    current: Snapshot
    result: DiffResult


def _check_order(
    previous_timestamp: Optional[datetime],
    current_timestamp: Optional[datetime],
    tie_break: bool,
) -> None:
    if previous_timestamp is None or current_timestamp is None:
        return
    if previous_timestamp > current_timestamp:
        raise UnorderedInputError(
            f"previous snapshot ({previous_timestamp.isoformat()}) is later than "
            f"current snapshot ({current_timestamp.isoformat()})"
        )
    if previous_timestamp == current_timestamp and not tie_break:
        raise UnorderedInputError(
            f"snapshots share timestamp {previous_timestamp.isoformat()} "
            "and no tie-break was supplied"
        )


def _sort_key(entitlement: AnyEntitlement) -> int:
    return CATEGORY_ORDER.index(entitlement.category)


def diff(
    previous: Sequence[AnyEntitlement],
    current: Sequence[AnyEntitlement],
    *,
    previous_timestamp: Optional[datetime] = None,
    current_timestamp: Optional[datetime] = None,
    tie_break: bool = False,
) -> DiffResult:
    """
    Classify every (category, product_code) of both sides.

    ``previous`` must be the chronologically earlier snapshot; the diff does
    not reorder its inputs. When both timestamps are supplied, an inverted
    pair, or an equal pair without ``tie_break=True``, raises
    UnorderedInputError. Date changes on a product present on both sides
    leave it ``unchanged`` and are listed in ``date_changes``.
    """
    _check_order(previous_timestamp, current_timestamp, tie_break)

    prev_by_key = {e.key: e for e in previous}
    cur_by_key = {e.key: e for e in current}

    result = DiffResult()
    for key, entitlement in prev_by_key.items():
        if key not in cur_by_key:
            result.removed.append(entitlement)
    for key, entitlement in cur_by_key.items():
        before = prev_by_key.get(key)
        if before is None:
            result.added.append(entitlement)
            continue
        result.unchanged.append(entitlement)
        if (before.start_date, before.end_date) != (entitlement.start_date, entitlement.end_date):
            result.date_changes.append(DateChange(previous=before, current=entitlement))

    # stable sort keeps input order within a category
    result.added.sort(key=_sort_key)
    result.removed.sort(key=_sort_key)
    result.unchanged.sort(key=_sort_key)
    return result


def diff_snapshots(previous: SnapshotEntitlements, current: SnapshotEntitlements,
                   tie_break: bool = False) -> SnapshotDiff:
    result = diff(
        previous.entitlements,
        current.entitlements,
        previous_timestamp=previous.snapshot.timestamp,
        current_timestamp=current.snapshot.timestamp,
        tie_break=tie_break,
    )
    return SnapshotDiff(previous=previous.snapshot, current=current.snapshot, result=result)


def diff_timeline(timeline: Sequence[SnapshotEntitlements]) -> list[SnapshotDiff]:
    """
    Diff every snapshot against its predecessor in an ordered timeline.

    The first snapshot has no predecessor and produces no diff. Equal
    timestamps are resolved by timeline position (the provider's stable
    order); a timestamp that goes backwards raises UnorderedInputError.
    """
    diffs = []
    for previous, current in zip(timeline, timeline[1:]):
        if previous.snapshot.account_id != current.snapshot.account_id:
            raise UnorderedInputError(
                f"timeline mixes accounts {previous.snapshot.account_id!r} "
                f"and {current.snapshot.account_id!r}"
            )
        diffs.append(diff_snapshots(previous, current, tie_break=True))
    return diffs
