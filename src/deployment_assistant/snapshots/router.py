"""Snapshot ingestion and lookup API router."""

from fastapi import APIRouter, Depends, HTTPException

from deployment_assistant.common.exceptions import PayloadParseError
from deployment_assistant.common.schemas import DataQualityIssue
from deployment_assistant.common.security import require_api_key
from deployment_assistant.entitlements.normalizer import payload_metadata
from deployment_assistant.entitlements.rollup import rollup
from deployment_assistant.entitlements.timeline import normalize_snapshot
from deployment_assistant.snapshots.schemas import (
    AccountResponse,
    EntitlementResponse,
    SnapshotCreate,
    SnapshotDetailResponse,
    SnapshotResponse,
)
from deployment_assistant.snapshots.service import to_snapshot

router = APIRouter()


def _get_service():
    from deployment_assistant.deps import get_snapshot_service
    return get_snapshot_service()


def _get_db():
    from deployment_assistant.deps import get_db
    return get_db()


@router.post("/snapshots", response_model=SnapshotResponse, status_code=201)
async def ingest_snapshot(body: SnapshotCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.ingest_snapshot(
            session, body.account_id, body.request_id, body.requested_at,
            payload=body.payload,
            account_name=body.account_name,
            request_name=body.request_name,
            request_type=body.request_type,
            status=body.status,
        )
        return SnapshotResponse.from_snapshot(to_snapshot(model))


@router.get("/snapshots/{request_id}", response_model=SnapshotDetailResponse)
async def get_snapshot(request_id: str, rolled: bool = True, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        model = await svc.get_snapshot(session, request_id)
        if model is None:
            raise HTTPException(status_code=404, detail="Snapshot not found")
        snapshot = to_snapshot(model)

    base = SnapshotResponse.from_snapshot(snapshot).model_dump()
    issues = []
    try:
        entry = normalize_snapshot(snapshot, issues)
        metadata = payload_metadata(snapshot.raw_payload, snapshot.request_id)
    except PayloadParseError as e:
        return SnapshotDetailResponse(**base, parse_error=e.message)

    entitlements = rollup(entry.entitlements) if rolled else entry.entitlements
    return SnapshotDetailResponse(
        **base,
        entitlements=[EntitlementResponse.from_entitlement(e) for e in entitlements],
        tenant_name=metadata.tenant_name,
        region=metadata.region,
        issues=[DataQualityIssue(**w.as_dict()) for w in issues],
    )


@router.get("/accounts", response_model=list[AccountResponse])
async def list_accounts(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        rows = await svc.list_accounts(session)
        return [
            AccountResponse(account_id=a, account_name=n, snapshot_count=c)
            for a, n, c in rows
        ]


@router.get("/accounts/{account_id}/snapshots", response_model=list[SnapshotResponse])
async def list_account_snapshots(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        snapshots = await svc.get_snapshots_for_account(session, account_id)
        return [SnapshotResponse.from_snapshot(s) for s in snapshots]
