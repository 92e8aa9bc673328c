"""Analysis service: account history, removals, category tiles, customer products."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from deployment_assistant.common.config import AssistantSettings
from deployment_assistant.common.exceptions import (
    DataQualityWarning,
    PayloadParseError,
    SnapshotNotFoundError,
    UnorderedInputError,
)
from deployment_assistant.entitlements.aggregate import (
    AggregationMode,
    CategorySummary,
    aggregate,
)
from deployment_assistant.entitlements.customer_products import (
    CustomerProducts,
    active_products,
)
from deployment_assistant.entitlements.diff import SnapshotDiff, diff_snapshots, diff_timeline
from deployment_assistant.entitlements.timeline import build_timeline, normalize_snapshot
from deployment_assistant.entitlements.rollup import rollup
from deployment_assistant.entitlements.types import Snapshot, SnapshotEntitlements, group_by_account
from deployment_assistant.snapshots.service import SnapshotService, to_snapshot

logger = logging.getLogger(__name__)


@dataclass
class RemovalReport:
    """Snapshots in a time frame that removed products, with their diffs."""
    time_frame: str
    start: datetime
    diffs: list[SnapshotDiff] = field(default_factory=list)
    unavailable_accounts: list[str] = field(default_factory=list)


@dataclass
class AccountHistory:
    account_id: str
    diffs: list[SnapshotDiff] = field(default_factory=list)
    snapshots_analyzed: int = 0
    issues: list[DataQualityWarning] = field(default_factory=list)


class AnalysisService:
    """On-demand reconciliation of stored snapshot histories."""

    def __init__(self, settings: AssistantSettings, snapshot_service: SnapshotService):
        self.settings = settings
        self.snapshots = snapshot_service

    # ── Account history ──

    async def account_history(self, session: AsyncSession, account_id: str) -> AccountHistory:
        """Consecutive diffs across an account's history (oldest pair first)."""
        snapshots = await self.snapshots.get_snapshots_for_account(session, account_id)
        history = AccountHistory(account_id=account_id, snapshots_analyzed=len(snapshots))
        timeline = build_timeline(snapshots, history.issues)
        history.diffs = diff_timeline(timeline)
        return history

    async def compare_snapshots(
        self, session: AsyncSession, previous_id: str, current_id: str,
        account_id: Optional[str] = None,
    ) -> SnapshotDiff:
        """Diff two chosen snapshots; raises UnorderedInputError if inverted."""
        entries = []
        for request_id in (previous_id, current_id):
            model = await self.snapshots.get_snapshot(session, request_id)
            if model is None or (account_id is not None and model.account_id != account_id):
                raise SnapshotNotFoundError(f"Snapshot {request_id} not found")
            entry = normalize_snapshot(to_snapshot(model))
            entries.append(SnapshotEntitlements(
                snapshot=entry.snapshot, entitlements=tuple(rollup(entry.entitlements)),
            ))
        previous, current = entries
        # same-timestamp pairs are resolved by insertion order
        tie_break = await self._inserted_before(session, previous.snapshot, current.snapshot)
        return diff_snapshots(previous, current, tie_break=tie_break)

    async def _inserted_before(self, session: AsyncSession, first: Snapshot, second: Snapshot) -> bool:
        if first.timestamp != second.timestamp or first.account_id != second.account_id:
            return False
        history = await self.snapshots.get_snapshots_for_account(session, first.account_id)
        ids = [s.request_id for s in history]
        return ids.index(first.request_id) < ids.index(second.request_id)

    # ── Removals monitor ──

    def time_frame_start(self, time_frame: str, now: Optional[datetime] = None) -> datetime:
        frames = self.settings.removal_time_frames
        if time_frame not in frames:
            raise ValueError(
                f"Unknown time frame {time_frame!r}; expected one of {', '.join(frames)}"
            )
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now - timedelta(days=frames[time_frame])

    async def removals(
        self, session: AsyncSession, time_frame: str = "1w",
        now: Optional[datetime] = None,
    ) -> RemovalReport:
        """
        Snapshots created within the time frame whose diff against the
        account's previous snapshot removed at least one product. An
        account's first snapshot never counts as a removal. Accounts whose
        history cannot be ordered are reported as unavailable.
        """
        start = self.time_frame_start(time_frame, now)
        report = RemovalReport(time_frame=time_frame, start=start)

        recent = await self.snapshots.list_snapshots(session, since=start)
        for account_id in group_by_account(recent):
            history = await self.snapshots.get_snapshots_for_account(session, account_id)
            try:
                diffs = diff_timeline(build_timeline(history))
            except UnorderedInputError as e:
                report.unavailable_accounts.append(account_id)
                logger.warning(
                    "Skipping account %s: %s", account_id, e.message,
                    extra={"account_id": account_id},
                )
                continue
            for snapshot_diff in diffs:
                if snapshot_diff.current.timestamp < start:
                    continue
                if snapshot_diff.result.has_removals:
                    report.diffs.append(snapshot_diff)

        # newest first, as the monitor lists them
        report.diffs.sort(key=lambda d: d.current.timestamp, reverse=True)
        logger.info(
            "Found %d snapshots with product removals since %s (%s)",
            len(report.diffs), start.date().isoformat(), time_frame,
            extra={"time_frame": time_frame},
        )
        return report

    # ── Category tiles ──

    async def category_summary(
        self,
        session: AsyncSession,
        mode: AggregationMode = AggregationMode.UNION,
        account_id: Optional[str] = None,
        request_ids: Optional[list[str]] = None,
        issues: Optional[list[DataQualityWarning]] = None,
    ) -> list[CategorySummary]:
        if request_ids:
            snapshots = []
            for request_id in request_ids:
                model = await self.snapshots.get_snapshot(session, request_id)
                if model is None:
                    raise SnapshotNotFoundError(f"Snapshot {request_id} not found")
                snapshots.append(to_snapshot(model))
        else:
            snapshots = await self.snapshots.list_snapshots(session, account_id=account_id)

        normalized = []
        for snapshot in snapshots:
            try:
                normalized.append(normalize_snapshot(snapshot, issues))
            except PayloadParseError as e:
                logger.warning(
                    "Skipping snapshot %s: %s", snapshot.request_id, e.message,
                    extra={"request_id": snapshot.request_id},
                )
        return aggregate(normalized, mode, issues)

    # ── Customer products ──

    async def customer_products(
        self, session: AsyncSession, account_id: str, today: Optional[date] = None,
    ) -> CustomerProducts:
        snapshots = await self.snapshots.get_snapshots_for_account(session, account_id)
        timeline = build_timeline(snapshots, rolled=False)
        return active_products(
            account_id,
            timeline,
            today or datetime.now(timezone.utc).date(),
            active_days=self.settings.product_active_days,
            expiring_soon_days=self.settings.product_expiring_soon_days,
        )
