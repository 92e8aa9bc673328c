"""Expiration classification over an account's rolled-up timeline.

Every rolled-up entry of every snapshot is classified against a reference
date ``now`` and a lookahead window:

- NotApplicable: no end date, or the end date is outside [now, now + window];
- Extended: the end date is inside the window and a later snapshot carries
  the same product with coverage past the window (no end date, an end date
  after now + window, or a fresh term starting after this entry ends);
- AtRisk: inside the window and nothing later extends it.

Results depend only on (timeline, now, window).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from deployment_assistant.common.exceptions import UnorderedInputError
from deployment_assistant.entitlements.dates import as_date, window_days
from deployment_assistant.entitlements.types import (
    AnyEntitlement,
    Category,
    Snapshot,
    SnapshotEntitlements,
)


class ExpirationStatus(str, Enum):
    AT_RISK = "AtRisk"
    EXTENDED = "Extended"
    NOT_APPLICABLE = "NotApplicable"


class Urgency(str, Enum):
    IMMINENT = "imminent"
    UPCOMING = "upcoming"
    CURRENT = "current"


@dataclass(frozen=True)
class ExpirationRecord:
    """Classification of one rolled-up entitlement of one snapshot."""
    account_id: str
    snapshot_id: str
    category: Category
    product_code: str
    status: ExpirationStatus
    end_date: Optional[date] = None
    days_until_expiry: Optional[int] = None
    display_name: str = ""
    request_name: str = ""
    account_name: str = ""
    extending_snapshot_id: Optional[str] = None
    extending_request_name: Optional[str] = None
    extending_end_date: Optional[date] = None
    removed_later: bool = False

    @property
    def is_expiring(self) -> bool:
        return self.status is not ExpirationStatus.NOT_APPLICABLE

    @property
    def is_extended(self) -> bool:
        return self.status is ExpirationStatus.EXTENDED


@dataclass
class ExpirationGroup:
    """Expiring entitlements that share one account and request."""
    account_id: str
    snapshot_id: str
    request_name: str = ""
    account_name: str = ""
    members: list[ExpirationRecord] = field(default_factory=list)
    urgency: Urgency = Urgency.CURRENT

    @property
    def status(self) -> ExpirationStatus:
        # Extended only when every member is individually confirmed extended
        if self.members and all(m.is_extended for m in self.members):
            return ExpirationStatus.EXTENDED
        return ExpirationStatus.AT_RISK

    @property
    def earliest(self) -> Optional[ExpirationRecord]:
        dated = [m for m in self.members if m.end_date is not None]
        return min(dated, key=lambda m: m.end_date) if dated else None

    @property
    def earliest_expiry(self) -> Optional[date]:
        first = self.earliest
        return first.end_date if first else None

    @property
    def earliest_days_until_expiry(self) -> Optional[int]:
        first = self.earliest
        return first.days_until_expiry if first else None

    def products_by_category(self) -> dict[Category, list[ExpirationRecord]]:
        grouped: dict[Category, list[ExpirationRecord]] = {c: [] for c in Category}
        for member in self.members:
            grouped[member.category].append(member)
        return grouped


@dataclass
class ExpirationSummary:
    total_expiring: int = 0
    at_risk: int = 0
    extended: int = 0
    removed_later: int = 0
    accounts_affected: int = 0


def _check_timeline(timeline: Sequence[SnapshotEntitlements]) -> None:
    for previous, current in zip(timeline, timeline[1:]):
        if previous.snapshot.account_id != current.snapshot.account_id:
            raise UnorderedInputError(
                f"timeline mixes accounts {previous.snapshot.account_id!r} "
                f"and {current.snapshot.account_id!r}"
            )
        if current.snapshot.timestamp < previous.snapshot.timestamp:
            raise UnorderedInputError(
                f"snapshot {current.snapshot.request_id} precedes "
                f"{previous.snapshot.request_id} but comes after it in the timeline"
            )


def _coverage(entitlement: AnyEntitlement) -> date:
    return date.max if entitlement.end_date is None else entitlement.end_date


def _extends(candidate: AnyEntitlement, end: date, horizon: date) -> bool:
    if candidate.end_date is None or candidate.end_date > horizon:
        return True
    return candidate.start_date is not None and candidate.start_date > end


def _classify_entry(
    snapshot: Snapshot,
    entitlement: AnyEntitlement,
    later: Sequence[tuple[Snapshot, dict]],
    today: date,
    horizon: date,
) -> ExpirationRecord:
    end = entitlement.end_date
    base = dict(
        account_id=snapshot.account_id,
        snapshot_id=snapshot.request_id,
        category=entitlement.category,
        product_code=entitlement.product_code,
        end_date=end,
        days_until_expiry=(end - today).days if end is not None else None,
        display_name=entitlement.display_name,
        request_name=snapshot.request_name,
        account_name=snapshot.account_name,
    )
    if end is None or end < today or end > horizon:
        return ExpirationRecord(status=ExpirationStatus.NOT_APPLICABLE, **base)

    extension: Optional[tuple[Snapshot, AnyEntitlement]] = None
    for later_snapshot, by_key in later:
        candidate = by_key.get(entitlement.key)
        if candidate is None or not _extends(candidate, end, horizon):
            continue
        if extension is None or _coverage(candidate) > _coverage(extension[1]):
            extension = (later_snapshot, candidate)

    removed_later = any(entitlement.key not in by_key for _, by_key in later)

    if extension is None:
        return ExpirationRecord(
            status=ExpirationStatus.AT_RISK, removed_later=removed_later, **base,
        )
    ext_snapshot, ext_entitlement = extension
    return ExpirationRecord(
        status=ExpirationStatus.EXTENDED,
        extending_snapshot_id=ext_snapshot.request_id,
        extending_request_name=ext_snapshot.request_name,
        extending_end_date=ext_entitlement.end_date,
        removed_later=removed_later,
        **base,
    )


def classify(
    timeline: Sequence[SnapshotEntitlements],
    now: Union[date, datetime],
    window: Union[int, timedelta],
) -> list[ExpirationRecord]:
    """
    Classify every entitlement of every snapshot in one account's timeline.

    ``timeline`` must be ordered by timestamp (equal timestamps keep their
    position); a timestamp going backwards raises UnorderedInputError.
    Window boundaries are inclusive. ``removed_later`` marks entries whose
    product is missing from any later snapshot, even if it comes back after.
    """
    _check_timeline(timeline)
    today = as_date(now)
    horizon = today + timedelta(days=window_days(window))

    indexed = [(entry.snapshot, entry.by_key()) for entry in timeline]
    records = []
    for position, entry in enumerate(timeline):
        later = indexed[position + 1:]
        for entitlement in entry.entitlements:
            records.append(_classify_entry(entry.snapshot, entitlement, later, today, horizon))
    return records


def expiring(records: Iterable[ExpirationRecord], include_removed: bool = False) -> list[ExpirationRecord]:
    """AtRisk and Extended records, optionally keeping products dropped later."""
    return [
        r for r in records
        if r.is_expiring and (include_removed or not r.removed_later)
    ]


def classify_urgency(days_until_expiry: Optional[int], imminent_days: int = 7,
                     upcoming_days: int = 30) -> Urgency:
    if days_until_expiry is None:
        return Urgency.CURRENT
    if days_until_expiry <= imminent_days:
        return Urgency.IMMINENT
    if days_until_expiry <= upcoming_days:
        return Urgency.UPCOMING
    return Urgency.CURRENT


def group_expirations(
    records: Iterable[ExpirationRecord],
    imminent_days: int = 7,
    upcoming_days: int = 30,
) -> list[ExpirationGroup]:
    """Group expiring records by (account, request), in first-seen order."""
    groups: dict[tuple[str, str], ExpirationGroup] = {}
    for record in records:
        if not record.is_expiring:
            continue
        key = (record.account_id, record.snapshot_id)
        group = groups.get(key)
        if group is None:
            group = groups[key] = ExpirationGroup(
                account_id=record.account_id,
                snapshot_id=record.snapshot_id,
                request_name=record.request_name,
                account_name=record.account_name,
            )
        group.members.append(record)

    for group in groups.values():
        group.urgency = classify_urgency(
            group.earliest_days_until_expiry, imminent_days, upcoming_days,
        )
    return list(groups.values())


def summarize_expirations(records: Iterable[ExpirationRecord]) -> ExpirationSummary:
    summary = ExpirationSummary()
    accounts = set()
    for record in records:
        if not record.is_expiring:
            continue
        summary.total_expiring += 1
        if record.status is ExpirationStatus.AT_RISK:
            summary.at_risk += 1
        else:
            summary.extended += 1
        if record.removed_later:
            summary.removed_later += 1
        accounts.add(record.account_id)
    summary.accounts_affected = len(accounts)
    return summary
