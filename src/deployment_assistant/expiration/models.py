"""SQLAlchemy models for the expiration monitor cache and its run log."""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from deployment_assistant.common.models import Base, TimestampMixin, generate_uuid


class ExpirationMonitorModel(Base, TimestampMixin):
    __tablename__ = "expiration_monitor"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    account_name: Mapped[str] = mapped_column(String(255), default="")
    snapshot_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    request_name: Mapped[str] = mapped_column(String(100), default="")
    product_code: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(255), default="")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_extended: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    extending_snapshot_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    extending_request_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    extending_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Relative to the analysis date, recomputed on read
    days_until_expiry: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_analyzed: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ExpirationAnalysisLogModel(Base, TimestampMixin):
    __tablename__ = "expiration_analysis_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    analysis_started: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    analysis_completed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    records_analyzed: Mapped[int] = mapped_column(Integer, default=0)
    entitlements_processed: Mapped[int] = mapped_column(Integer, default=0)
    expirations_found: Mapped[int] = mapped_column(Integer, default=0)
    extensions_found: Mapped[int] = mapped_column(Integer, default=0)
    removed_in_subsequent_record: Mapped[int] = mapped_column(Integer, default=0)
    accounts_failed: Mapped[int] = mapped_column(Integer, default=0)
    lookback_years: Mapped[int] = mapped_column(Integer, default=5)
    expiration_window: Mapped[int] = mapped_column(Integer, default=30)
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
