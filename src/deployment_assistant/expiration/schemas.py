"""Pydantic schemas for expiration monitor endpoints."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class ExpirationRefreshRequest(BaseModel):
    window: Optional[int] = None
    lookback_years: Optional[int] = Field(None, ge=1, le=20)


class AnalysisRunResponse(BaseModel):
    id: str
    analysis_started: datetime
    analysis_completed: Optional[datetime] = None
    records_analyzed: int
    entitlements_processed: int
    expirations_found: int
    extensions_found: int
    removed_in_subsequent_record: int
    accounts_failed: int
    lookback_years: int
    expiration_window: int
    status: str
    error_message: Optional[str] = None

    model_config = {"from_attributes": True}


class ExpiringProductResponse(BaseModel):
    product_code: str
    product_name: str
    category: str
    status: str
    end_date: date
    days_until_expiry: int
    extending_request_id: Optional[str] = None
    extending_request_name: Optional[str] = None
    extending_end_date: Optional[date] = None


class ExpirationGroupResponse(BaseModel):
    account_id: str
    account_name: str
    request_id: str
    request_name: str
    status: str
    urgency: str
    earliest_expiry: Optional[date] = None
    days_until_expiry: Optional[int] = None
    products: dict[str, list[ExpiringProductResponse]]


class ExpirationSummaryResponse(BaseModel):
    total_expiring: int
    at_risk: int
    extended: int
    accounts_affected: int


class ExpirationMonitorResponse(BaseModel):
    window: int
    summary: ExpirationSummaryResponse
    expirations: list[ExpirationGroupResponse]
    last_analyzed: Optional[datetime] = None


class ExpirationStatusResponse(BaseModel):
    has_analysis: bool
    message: str = ""
    last_run: Optional[AnalysisRunResponse] = None
    last_run_ago: Optional[str] = None


class ExpiredProductResponse(BaseModel):
    account_id: str
    account_name: str
    product_code: str
    product_name: str
    category: str
    expiration_date: date


class ExpiredAccountResponse(BaseModel):
    account_name: str
    account_id: str
    expired_products: list[ExpiredProductResponse]


class ExpiredProductsResponse(BaseModel):
    total_products: int
    total_accounts: int
    accounts: list[ExpiredAccountResponse] = []
    products: list[ExpiredProductResponse] = []
