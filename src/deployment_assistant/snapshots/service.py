"""Snapshot service: store provisioning snapshots and read ordered histories."""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from deployment_assistant.common.config import AssistantSettings
from deployment_assistant.entitlements.types import Snapshot
from deployment_assistant.snapshots.models import SnapshotModel


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_snapshot(model: SnapshotModel) -> Snapshot:
    """Convert a stored row into the engine's Snapshot value."""
    return Snapshot(
        account_id=model.account_id,
        request_id=model.request_id,
        timestamp=model.requested_at.replace(tzinfo=timezone.utc),
        raw_payload=model.payload,
        request_name=model.request_name or "",
        request_type=model.request_type or "",
        account_name=model.account_name or "",
    )


class SnapshotService:
    """Snapshot history store, the provider of ordered account timelines."""

    def __init__(self, settings: AssistantSettings):
        self.settings = settings

    @staticmethod
    def _ordered(query):
        return query.order_by(
            SnapshotModel.requested_at.asc(),
            SnapshotModel.sequence.asc(),
        )

    async def ingest_snapshot(
        self,
        session: AsyncSession,
        account_id: str,
        request_id: str,
        requested_at: datetime,
        payload: Any = None,
        **kwargs: Any,
    ) -> SnapshotModel:
        """Store a snapshot, replacing any earlier copy of the same request."""
        if payload is not None and not isinstance(payload, str):
            payload = json.dumps(payload)

        existing = await self.get_snapshot(session, request_id)
        if existing is not None:
            existing.account_id = account_id
            existing.requested_at = to_naive_utc(requested_at)
            existing.payload = payload
            for attr in ("account_name", "request_name", "request_type", "status"):
                if attr in kwargs:
                    setattr(existing, attr, kwargs[attr] or "")
            await session.flush()
            return existing

        last = (await session.execute(select(func.max(SnapshotModel.sequence)))).scalar()
        snapshot = SnapshotModel(
            sequence=(last or 0) + 1,
            account_id=account_id,
            account_name=kwargs.get("account_name", "") or "",
            request_id=request_id,
            request_name=kwargs.get("request_name", "") or "",
            request_type=kwargs.get("request_type", "") or "",
            status=kwargs.get("status", "") or "",
            requested_at=to_naive_utc(requested_at),
            payload=payload,
        )
        session.add(snapshot)
        await session.flush()
        return snapshot

    async def get_snapshot(
        self, session: AsyncSession, request_id: str,
    ) -> SnapshotModel | None:
        result = await session.execute(
            select(SnapshotModel).where(SnapshotModel.request_id == request_id)
        )
        return result.scalar_one_or_none()

    async def get_snapshots_for_account(
        self, session: AsyncSession, account_id: str,
        since: Optional[datetime] = None,
    ) -> list[Snapshot]:
        """An account's snapshots ascending by timestamp, ties in insertion order."""
        query = select(SnapshotModel).where(SnapshotModel.account_id == account_id)
        if since is not None:
            query = query.where(SnapshotModel.requested_at >= to_naive_utc(since))
        result = await session.execute(self._ordered(query))
        return [to_snapshot(m) for m in result.scalars().all()]

    async def list_snapshots(
        self,
        session: AsyncSession,
        since: Optional[datetime] = None,
        account_id: Optional[str] = None,
    ) -> list[Snapshot]:
        """All snapshots (optionally from ``since``), ordered by timestamp."""
        query = select(SnapshotModel)
        if since is not None:
            query = query.where(SnapshotModel.requested_at >= to_naive_utc(since))
        if account_id is not None:
            query = query.where(SnapshotModel.account_id == account_id)
        result = await session.execute(self._ordered(query))
        return [to_snapshot(m) for m in result.scalars().all()]

    async def get_previous_snapshot(
        self, session: AsyncSession, snapshot: Snapshot,
    ) -> Snapshot | None:
        """The account's snapshot immediately before ``snapshot``."""
        history = await self.get_snapshots_for_account(session, snapshot.account_id)
        ids = [s.request_id for s in history]
        if snapshot.request_id not in ids:
            return None
        position = ids.index(snapshot.request_id)
        return history[position - 1] if position > 0 else None

    async def list_accounts(self, session: AsyncSession) -> list[tuple[str, str, int]]:
        """(account_id, account_name, snapshot_count) per account."""
        result = await session.execute(
            select(
                SnapshotModel.account_id,
                func.max(SnapshotModel.account_name),
                func.count(SnapshotModel.id),
            )
            .group_by(SnapshotModel.account_id)
            .order_by(SnapshotModel.account_id)
        )
        return [(row[0], row[1] or "", row[2]) for row in result.all()]
