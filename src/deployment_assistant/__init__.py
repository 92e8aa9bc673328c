"""Deployment Assistant: entitlement timeline reconciliation for provisioning snapshots."""

from deployment_assistant.entitlements.aggregate import AggregationMode, aggregate
from deployment_assistant.entitlements.diff import diff, diff_timeline
from deployment_assistant.entitlements.expiration import ExpirationStatus, classify
from deployment_assistant.entitlements.normalizer import normalize
from deployment_assistant.entitlements.rollup import rollup
from deployment_assistant.entitlements.timeline import build_timeline
from deployment_assistant.entitlements.types import (
    Category,
    EntitlementRecord,
    RolledUpEntitlement,
    Snapshot,
)

__all__ = [
    "AggregationMode",
    "Category",
    "EntitlementRecord",
    "ExpirationStatus",
    "RolledUpEntitlement",
    "Snapshot",
    "aggregate",
    "build_timeline",
    "classify",
    "diff",
    "diff_timeline",
    "normalize",
    "rollup",
]
__version__ = "0.1.0"
