"""Pydantic schemas for analysis endpoints."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from deployment_assistant.common.schemas import DataQualityIssue
from deployment_assistant.snapshots.schemas import EntitlementResponse, SnapshotResponse


class DateChangeResponse(BaseModel):
    product_code: str
    category: str
    previous_start_date: Optional[date] = None
    previous_end_date: Optional[date] = None
    current_start_date: Optional[date] = None
    current_end_date: Optional[date] = None


class DiffResponse(BaseModel):
    previous: SnapshotResponse
    current: SnapshotResponse
    added: list[EntitlementResponse]
    removed: list[EntitlementResponse]
    unchanged: list[EntitlementResponse]
    date_changes: list[DateChangeResponse] = []
    has_removals: bool
    summary: str


class AccountHistoryResponse(BaseModel):
    account_id: str
    snapshots_analyzed: int
    diffs: list[DiffResponse]
    issues: list[DataQualityIssue] = []


class RemovalsResponse(BaseModel):
    time_frame: str
    start_date: date
    total_count: int
    requests: list[DiffResponse]
    unavailable_accounts: list[str] = []


class CategorySummaryResponse(BaseModel):
    category: str
    unique_product_count: int
    entry_count: int
    source_map: dict[str, list[str]]
    snapshot_id: Optional[str] = None


class CategorySummaryListResponse(BaseModel):
    mode: str
    summaries: list[CategorySummaryResponse]
    issues: list[DataQualityIssue] = []


class CustomerProductResponse(BaseModel):
    product_code: str
    product_name: str
    package_name: Optional[str] = None
    category: str
    region: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str
    days_remaining: Optional[int] = None
    source_requests: list[str]


class CustomerProductsResponse(BaseModel):
    account_id: str
    total_active: int
    by_category: dict[str, int]
    products_by_region: dict[str, dict[str, list[CustomerProductResponse]]]
    snapshots_analyzed: int
    last_updated_request: Optional[str] = None
    last_updated: Optional[datetime] = None
