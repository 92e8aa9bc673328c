"""Expiration service: refresh the monitor cache and read it back."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from deployment_assistant.common.config import AssistantSettings
from deployment_assistant.common.exceptions import UnorderedInputError
from deployment_assistant.entitlements.expiration import (
    ExpirationGroup,
    ExpirationRecord,
    ExpirationStatus,
    ExpirationSummary,
    classify,
    expiring,
    group_expirations,
    summarize_expirations,
)
from deployment_assistant.entitlements.timeline import build_timeline
from deployment_assistant.entitlements.types import Category, group_by_account
from deployment_assistant.expiration.models import (
    ExpirationAnalysisLogModel,
    ExpirationMonitorModel,
)
from deployment_assistant.snapshots.service import SnapshotService

logger = logging.getLogger(__name__)

NO_ANALYSIS_MESSAGE = 'No analysis has been run yet. Click "Refresh" to analyze expirations.'


@dataclass
class ExpirationMonitor:
    window: int
    groups: list[ExpirationGroup] = field(default_factory=list)
    summary: ExpirationSummary = field(default_factory=ExpirationSummary)
    last_analyzed: Optional[datetime] = None


@dataclass
class AnalysisStatus:
    has_analysis: bool
    message: str = ""
    last_run: Optional[ExpirationAnalysisLogModel] = None
    last_run_ago: Optional[str] = None


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive values even for timezone-aware columns
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def format_age(age: timedelta) -> str:
    """Human readable age of an analysis run, e.g. ``"3 hours ago"``."""
    total_minutes = max(int(age.total_seconds() // 60), 0)
    hours = total_minutes // 60
    if hours > 24:
        days = hours // 24
        return f"{days} day{'s' if days != 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    minutes = total_minutes % 60
    return f"{minutes} minute{'s' if minutes != 1 else ''} ago"


def _to_row(record: ExpirationRecord, analyzed_at: datetime) -> ExpirationMonitorModel:
    return ExpirationMonitorModel(
        account_id=record.account_id,
        account_name=record.account_name,
        snapshot_id=record.snapshot_id,
        request_name=record.request_name,
        product_code=record.product_code,
        product_name=record.display_name,
        category=record.category.value,
        end_date=record.end_date,
        is_extended=record.is_extended,
        extending_snapshot_id=record.extending_snapshot_id,
        extending_request_name=record.extending_request_name,
        extending_end_date=record.extending_end_date,
        days_until_expiry=record.days_until_expiry,
        last_analyzed=analyzed_at,
    )


def _to_record(row: ExpirationMonitorModel, today: date) -> ExpirationRecord:
    return ExpirationRecord(
        account_id=row.account_id,
        snapshot_id=row.snapshot_id,
        category=Category(row.category),
        product_code=row.product_code,
        status=ExpirationStatus.EXTENDED if row.is_extended else ExpirationStatus.AT_RISK,
        end_date=row.end_date,
        days_until_expiry=(row.end_date - today).days,
        display_name=row.product_name or "",
        request_name=row.request_name or "",
        account_name=row.account_name or "",
        extending_snapshot_id=row.extending_snapshot_id,
        extending_request_name=row.extending_request_name,
        extending_end_date=row.extending_end_date,
    )


class ExpirationService:
    """Expiration monitor backed by a recomputable cache table."""

    def __init__(self, settings: AssistantSettings, snapshot_service: SnapshotService):
        self.settings = settings
        self.snapshots = snapshot_service

    def _window(self, window: Optional[int]) -> int:
        window = self.settings.default_expiration_window if window is None else window
        if not self.settings.is_allowed_window(window):
            allowed = ", ".join(str(w) for w in self.settings.expiration_windows)
            raise ValueError(f"Unsupported expiration window {window}; expected one of {allowed}")
        return window

    async def refresh_analysis(
        self,
        session: AsyncSession,
        window: Optional[int] = None,
        lookback_years: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ExpirationAnalysisLogModel:
        """
        Classify every stored snapshot within the lookback and rebuild the
        cache from scratch.

        Accounts whose history cannot be ordered are counted as failed and
        left out; the rest are still analyzed. Products missing from any later
        snapshot of their account are not cached. An unexpected error is
        recorded as a failed run and the previous cache is left in place.
        """
        window = self._window(window)
        lookback_years = lookback_years or self.settings.lookback_years
        started = now or datetime.now(timezone.utc)
        started = _aware(started)
        since = started - timedelta(days=365 * lookback_years)

        run = ExpirationAnalysisLogModel(
            analysis_started=started,
            lookback_years=lookback_years,
            expiration_window=window,
            status="running",
            records_analyzed=0,
            entitlements_processed=0,
            expirations_found=0,
            extensions_found=0,
            removed_in_subsequent_record=0,
            accounts_failed=0,
        )
        logger.info(
            "Starting expiration analysis: %d year lookback, %d day window",
            lookback_years, window,
            extra={"window": window},
        )

        try:
            snapshots = await self.snapshots.list_snapshots(session, since=since)
            records: list[ExpirationRecord] = []
            for account_id, history in group_by_account(snapshots).items():
                try:
                    records.extend(classify(build_timeline(history), started, window))
                except UnorderedInputError as e:
                    run.accounts_failed += 1
                    logger.warning(
                        "Skipping account %s: %s", account_id, e.message,
                        extra={"account_id": account_id},
                    )

            found = expiring(records, include_removed=True)
            cached = [r for r in found if not r.removed_later]

            await session.execute(delete(ExpirationMonitorModel))
            session.add_all(_to_row(r, started) for r in cached)

            run.records_analyzed = len(snapshots)
            run.entitlements_processed = len(records)
            run.expirations_found = len(cached)
            run.extensions_found = sum(1 for r in cached if r.is_extended)
            run.removed_in_subsequent_record = len(found) - len(cached)
            run.status = "completed"
        except Exception as e:
            logger.exception("Expiration analysis failed")
            run.status = "failed"
            run.error_message = str(e)

        run.analysis_completed = datetime.now(timezone.utc) if now is None else started
        session.add(run)
        await session.flush()

        if run.status == "completed":
            logger.info(
                "Expiration analysis complete: %d expirations found (%d filtered out)",
                run.expirations_found, run.removed_in_subsequent_record,
            )
        return run

    async def latest_run(self, session: AsyncSession) -> Optional[ExpirationAnalysisLogModel]:
        result = await session.execute(
            select(ExpirationAnalysisLogModel)
            .order_by(
                ExpirationAnalysisLogModel.analysis_completed.desc(),
                ExpirationAnalysisLogModel.created_at.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_monitor(
        self,
        session: AsyncSession,
        window: Optional[int] = None,
        show_extended: bool = False,
        now: Optional[datetime] = None,
    ) -> ExpirationMonitor:
        """Cached expirations ending within ``window`` days of ``now``, grouped by request."""
        window = self._window(window)
        today = _aware(now or datetime.now(timezone.utc)).date()
        horizon = today + timedelta(days=window)

        result = await session.execute(
            select(ExpirationMonitorModel)
            .where(
                ExpirationMonitorModel.end_date >= today,
                ExpirationMonitorModel.end_date <= horizon,
            )
            .order_by(ExpirationMonitorModel.end_date.asc())
        )
        records = [_to_record(row, today) for row in result.scalars().all()]
        visible = records if show_extended else [r for r in records if not r.is_extended]

        groups = group_expirations(
            visible, self.settings.imminent_days, self.settings.upcoming_days,
        )
        groups.sort(key=lambda g: (g.earliest_expiry or date.max, g.account_name, g.snapshot_id))

        last = await self.latest_run(session)
        return ExpirationMonitor(
            window=window,
            groups=groups,
            summary=summarize_expirations(records),
            last_analyzed=_aware(last.analysis_completed) if last and last.analysis_completed else None,
        )

    async def get_status(self, session: AsyncSession, now: Optional[datetime] = None) -> AnalysisStatus:
        last = await self.latest_run(session)
        if last is None or last.analysis_completed is None:
            return AnalysisStatus(has_analysis=False, message=NO_ANALYSIS_MESSAGE)
        now = _aware(now or datetime.now(timezone.utc))
        return AnalysisStatus(
            has_analysis=True,
            last_run=last,
            last_run_ago=format_age(now - _aware(last.analysis_completed)),
        )

    async def query_expired(
        self,
        session: AsyncSession,
        category: Optional[str] = None,
        account_name: Optional[str] = None,
        product_name: Optional[str] = None,
        exclude_product: Optional[str] = None,
        limit: int = 100,
        today: Optional[date] = None,
    ) -> list[ExpirationMonitorModel]:
        """Cached entries whose end date has already passed, by account then product."""
        today = today or datetime.now(timezone.utc).date()
        query = select(ExpirationMonitorModel).where(ExpirationMonitorModel.end_date < today)
        if category:
            query = query.where(ExpirationMonitorModel.category == category)
        if account_name:
            query = query.where(ExpirationMonitorModel.account_name.ilike(f"%{account_name}%"))
        if product_name:
            query = query.where(ExpirationMonitorModel.product_name.ilike(f"%{product_name}%"))
        if exclude_product:
            query = query.where(
                ExpirationMonitorModel.product_name.not_ilike(f"%{exclude_product}%")
            )
        query = query.order_by(
            ExpirationMonitorModel.account_name, ExpirationMonitorModel.product_name,
        ).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())


def group_expired_by_account(
    rows: list[ExpirationMonitorModel],
) -> dict[str, list[ExpirationMonitorModel]]:
    """Expired rows keyed by account name, preserving query order."""
    grouped: dict[str, list[ExpirationMonitorModel]] = {}
    for row in rows:
        grouped.setdefault(row.account_name or row.account_id, []).append(row)
    return grouped
