"""Account history, removals, category summary and customer products API router."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from deployment_assistant.analysis.schemas import (
    AccountHistoryResponse,
    CategorySummaryListResponse,
    CategorySummaryResponse,
    CustomerProductResponse,
    CustomerProductsResponse,
    DateChangeResponse,
    DiffResponse,
    RemovalsResponse,
)
from deployment_assistant.common.exceptions import (
    PayloadParseError,
    SnapshotNotFoundError,
    UnorderedInputError,
)
from deployment_assistant.common.schemas import DataQualityIssue
from deployment_assistant.common.security import require_api_key
from deployment_assistant.entitlements.aggregate import AggregationMode
from deployment_assistant.entitlements.diff import SnapshotDiff
from deployment_assistant.snapshots.schemas import EntitlementResponse, SnapshotResponse

router = APIRouter()


def _get_service():
    from deployment_assistant.deps import get_analysis_service
    return get_analysis_service()


def _get_db():
    from deployment_assistant.deps import get_db
    return get_db()


def _diff_response(d: SnapshotDiff) -> DiffResponse:
    result = d.result
    return DiffResponse(
        previous=SnapshotResponse.from_snapshot(d.previous),
        current=SnapshotResponse.from_snapshot(d.current),
        added=[EntitlementResponse.from_entitlement(e) for e in result.added],
        removed=[EntitlementResponse.from_entitlement(e) for e in result.removed],
        unchanged=[EntitlementResponse.from_entitlement(e) for e in result.unchanged],
        date_changes=[
            DateChangeResponse(
                product_code=c.current.product_code,
                category=c.current.category.value,
                previous_start_date=c.previous.start_date,
                previous_end_date=c.previous.end_date,
                current_start_date=c.current.start_date,
                current_end_date=c.current.end_date,
            )
            for c in result.date_changes
        ],
        has_removals=result.has_removals,
        summary=result.summary,
    )


# ── Account history ──

@router.get("/accounts/{account_id}/history", response_model=AccountHistoryResponse)
async def account_history(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            history = await svc.account_history(session, account_id)
        except UnorderedInputError as e:
            raise HTTPException(status_code=409, detail=e.message)
        return AccountHistoryResponse(
            account_id=account_id,
            snapshots_analyzed=history.snapshots_analyzed,
            diffs=[_diff_response(d) for d in reversed(history.diffs)],
            issues=[DataQualityIssue(**w.as_dict()) for w in history.issues],
        )


@router.get("/accounts/{account_id}/compare", response_model=DiffResponse)
async def compare_snapshots(
    account_id: str,
    previous: str = Query(...),
    current: str = Query(...),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            snapshot_diff = await svc.compare_snapshots(
                session, previous, current, account_id=account_id,
            )
        except SnapshotNotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)
        except UnorderedInputError as e:
            raise HTTPException(status_code=409, detail=e.message)
        except PayloadParseError as e:
            raise HTTPException(status_code=422, detail=e.message)
        return _diff_response(snapshot_diff)


# ── Removals monitor ──

@router.get("/removals", response_model=RemovalsResponse)
async def removals(
    time_frame: Optional[str] = Query(None),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    time_frame = time_frame or svc.settings.default_removal_time_frame
    async with db.get_session() as session:
        try:
            report = await svc.removals(session, time_frame)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return RemovalsResponse(
            time_frame=report.time_frame,
            start_date=report.start.date(),
            total_count=len(report.diffs),
            requests=[_diff_response(d) for d in report.diffs],
            unavailable_accounts=report.unavailable_accounts,
        )


# ── Category tiles ──

@router.get("/summary", response_model=CategorySummaryListResponse)
async def category_summary(
    mode: AggregationMode = Query(AggregationMode.UNION),
    account_id: Optional[str] = Query(None),
    request_id: Optional[list[str]] = Query(None),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    issues = []
    async with db.get_session() as session:
        try:
            summaries = await svc.category_summary(
                session, mode, account_id=account_id, request_ids=request_id, issues=issues,
            )
        except SnapshotNotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)
        return CategorySummaryListResponse(
            mode=mode.value,
            summaries=[
                CategorySummaryResponse(
                    category=s.category.value,
                    unique_product_count=s.unique_product_count,
                    entry_count=s.entry_count,
                    source_map=s.source_map,
                    snapshot_id=s.snapshot_id,
                )
                for s in summaries
            ],
            issues=[DataQualityIssue(**w.as_dict()) for w in issues],
        )


# ── Customer products ──

@router.get("/accounts/{account_id}/products", response_model=CustomerProductsResponse)
async def customer_products(account_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        products = await svc.customer_products(session, account_id)

    by_region = {
        region: {
            category.value: [
                CustomerProductResponse(
                    product_code=p.entitlement.product_code,
                    product_name=p.entitlement.display_name,
                    package_name=p.entitlement.package_name,
                    category=category.value,
                    region=region,
                    start_date=p.entitlement.start_date,
                    end_date=p.entitlement.end_date,
                    status=p.status,
                    days_remaining=p.days_remaining,
                    source_requests=p.sources,
                )
                for p in items
            ]
            for category, items in categories.items()
        }
        for region, categories in products.products_by_region.items()
    }
    last = products.last_updated
    return CustomerProductsResponse(
        account_id=account_id,
        total_active=products.total_active,
        by_category={c.value: n for c, n in products.by_category.items()},
        products_by_region=by_region,
        snapshots_analyzed=products.snapshots_analyzed,
        last_updated_request=last.label if last else None,
        last_updated=last.timestamp if last else None,
    )
