"""Dependency injection singletons for the Deployment Assistant."""

from deployment_assistant.common.config import get_settings
from deployment_assistant.common.database import DatabaseManager
from deployment_assistant.snapshots.service import SnapshotService
from deployment_assistant.analysis.service import AnalysisService
from deployment_assistant.expiration.service import ExpirationService

_db: DatabaseManager | None = None
_snapshots: SnapshotService | None = None
_analysis: AnalysisService | None = None
_expiration: ExpirationService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_snapshot_service() -> SnapshotService:
    global _snapshots
    if _snapshots is None:
        _snapshots = SnapshotService(get_settings())
    return _snapshots


def get_analysis_service() -> AnalysisService:
    global _analysis
    if _analysis is None:
        _analysis = AnalysisService(get_settings(), get_snapshot_service())
    return _analysis


def get_expiration_service() -> ExpirationService:
    global _expiration
    if _expiration is None:
        _expiration = ExpirationService(get_settings(), get_snapshot_service())
    return _expiration


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _snapshots, _analysis, _expiration
    _db = None
    _snapshots = None
    _analysis = None
    _expiration = None
