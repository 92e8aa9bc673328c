"""Shared Pydantic schemas for the Deployment Assistant."""

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "deployment-assistant"


class DataQualityIssue(BaseModel):
    kind: str
    message: str
    snapshot_id: Optional[str] = None
    product_code: Optional[str] = None
