"""Pydantic schemas for snapshot endpoints."""

from datetime import date, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from deployment_assistant.common.schemas import DataQualityIssue


class SnapshotCreate(BaseModel):
    account_id: str = Field(..., min_length=1, max_length=255)
    request_id: str = Field(..., min_length=1, max_length=255)
    requested_at: datetime
    account_name: str = ""
    request_name: str = ""
    request_type: str = ""
    status: str = ""
    payload: Optional[Union[dict[str, Any], str]] = None


class SnapshotResponse(BaseModel):
    account_id: str
    account_name: str
    request_id: str
    request_name: str
    request_type: str
    requested_at: datetime

    @classmethod
    def from_snapshot(cls, s) -> "SnapshotResponse":
        return cls(
            account_id=s.account_id,
            account_name=s.account_name,
            request_id=s.request_id,
            request_name=s.request_name,
            request_type=s.request_type,
            requested_at=s.timestamp,
        )


class EntitlementResponse(BaseModel):
    product_code: str
    category: str
    display_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    package_name: Optional[str] = None
    source_count: int = 1

    @classmethod
    def from_entitlement(cls, e) -> "EntitlementResponse":
        return cls(
            product_code=e.product_code,
            category=e.category.value,
            display_name=e.display_name,
            start_date=e.start_date,
            end_date=e.end_date,
            package_name=e.package_name,
            source_count=getattr(e, "source_count", 1),
        )


class SnapshotDetailResponse(SnapshotResponse):
    entitlements: list[EntitlementResponse] = []
    tenant_name: Optional[str] = None
    region: Optional[str] = None
    parse_error: Optional[str] = None
    issues: list[DataQualityIssue] = []


class AccountResponse(BaseModel):
    account_id: str
    account_name: str
    snapshot_count: int
