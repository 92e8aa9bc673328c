"""Date rollup: merge entries sharing a (category, product_code) key."""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from deployment_assistant.entitlements.types import (
    AnyEntitlement,
    Category,
    RolledUpEntitlement,
)


@dataclass
class _Group:
    first: AnyEntitlement
    starts: list[date] = field(default_factory=list)
    ends: list[date] = field(default_factory=list)
    indefinite: bool = False
    source_count: int = 0
    package_name: Optional[str] = None

    def add(self, record: AnyEntitlement) -> None:
        if self.package_name is None:
            self.package_name = record.package_name
        if record.start_date is not None:
            self.starts.append(record.start_date)
        if record.end_date is None:
            self.indefinite = True
        else:
            self.ends.append(record.end_date)
        self.source_count += getattr(record, "source_count", 1)

    def merged(self) -> RolledUpEntitlement:
        start: Optional[date] = min(self.starts) if self.starts else None
        end: Optional[date] = None if self.indefinite else max(self.ends)
        return RolledUpEntitlement(
            product_code=self.first.product_code,
            category=self.first.category,
            display_name=self.first.display_name,
            start_date=start,
            end_date=end,
            package_name=self.package_name,
            source_count=self.source_count,
        )


def rollup(records: Iterable[AnyEntitlement]) -> list[RolledUpEntitlement]:
    """
    Collapse records sharing a (category, product_code) into one coverage interval.

    start = earliest start present, end = latest end, except that a single
    contributor without an end date makes the merged end absent (indefinite
    coverage dominates). The rule is the same for every product code.
    Groups are returned in order of first occurrence; rolling up an already
    rolled-up list returns an equal list.
    """
    groups: dict[tuple[Category, str], _Group] = {}
    for record in records:
        group = groups.get(record.key)
        if group is None:
            group = groups[record.key] = _Group(first=record)
        group.add(record)
    return [group.merged() for group in groups.values()]
