"""SQLAlchemy models for provisioning request snapshots."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deployment_assistant.common.models import Base, TimestampMixin, generate_uuid


class SnapshotModel(Base, TimestampMixin):
    __tablename__ = "snapshots"
    __table_args__ = (
        Index("ix_snapshot_account_requested", "account_id", "requested_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    # Insertion order, used to break timestamp ties deterministically
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(255), default="")
    request_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    request_name: Mapped[str] = mapped_column(String(100), default="")
    request_type: Mapped[str] = mapped_column(String(50), default="")
    status: Mapped[str] = mapped_column(String(50), default="")
    # Naive UTC
    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)
