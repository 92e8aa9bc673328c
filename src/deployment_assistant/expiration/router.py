"""Expiration monitor API router."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from deployment_assistant.common.security import require_api_key
from deployment_assistant.entitlements.expiration import ExpirationGroup
from deployment_assistant.entitlements.types import Category
from deployment_assistant.expiration.schemas import (
    AnalysisRunResponse,
    ExpirationGroupResponse,
    ExpirationMonitorResponse,
    ExpirationRefreshRequest,
    ExpirationStatusResponse,
    ExpirationSummaryResponse,
    ExpiredAccountResponse,
    ExpiredProductResponse,
    ExpiredProductsResponse,
    ExpiringProductResponse,
)
from deployment_assistant.expiration.service import group_expired_by_account

router = APIRouter()


def _get_service():
    from deployment_assistant.deps import get_expiration_service
    return get_expiration_service()


def _get_db():
    from deployment_assistant.deps import get_db
    return get_db()


def _group_response(group: ExpirationGroup) -> ExpirationGroupResponse:
    return ExpirationGroupResponse(
        account_id=group.account_id,
        account_name=group.account_name,
        request_id=group.snapshot_id,
        request_name=group.request_name,
        status=group.status.value,
        urgency=group.urgency.value,
        earliest_expiry=group.earliest_expiry,
        days_until_expiry=group.earliest_days_until_expiry,
        products={
            category.value: [
                ExpiringProductResponse(
                    product_code=m.product_code,
                    product_name=m.display_name,
                    category=category.value,
                    status=m.status.value,
                    end_date=m.end_date,
                    days_until_expiry=m.days_until_expiry,
                    extending_request_id=m.extending_snapshot_id,
                    extending_request_name=m.extending_request_name,
                    extending_end_date=m.extending_end_date,
                )
                for m in members
            ]
            for category, members in group.products_by_category().items()
        },
    )


def _expired_response(row) -> ExpiredProductResponse:
    return ExpiredProductResponse(
        account_id=row.account_id,
        account_name=row.account_name or "",
        product_code=row.product_code,
        product_name=row.product_name or "",
        category=row.category,
        expiration_date=row.end_date,
    )


@router.post("/expiration/refresh", response_model=AnalysisRunResponse)
async def refresh_expiration_analysis(
    body: Optional[ExpirationRefreshRequest] = None,
    _=Depends(require_api_key),
):
    body = body or ExpirationRefreshRequest()
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            run = await svc.refresh_analysis(
                session, window=body.window, lookback_years=body.lookback_years,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        response = AnalysisRunResponse.model_validate(run)

    # failed runs stay in the log
    if run.status == "failed":
        raise HTTPException(status_code=500, detail=run.error_message or "Expiration analysis failed")
    return response


@router.get("/expiration/monitor", response_model=ExpirationMonitorResponse)
async def get_expiration_monitor(
    window: Optional[int] = Query(None),
    show_extended: bool = Query(False),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            monitor = await svc.get_monitor(session, window=window, show_extended=show_extended)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ExpirationMonitorResponse(
            window=monitor.window,
            summary=ExpirationSummaryResponse(
                total_expiring=monitor.summary.total_expiring,
                at_risk=monitor.summary.at_risk,
                extended=monitor.summary.extended,
                accounts_affected=monitor.summary.accounts_affected,
            ),
            expirations=[_group_response(g) for g in monitor.groups],
            last_analyzed=monitor.last_analyzed,
        )


@router.get("/expiration/status", response_model=ExpirationStatusResponse)
async def get_expiration_status(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        status = await svc.get_status(session)
        return ExpirationStatusResponse(
            has_analysis=status.has_analysis,
            message=status.message,
            last_run=AnalysisRunResponse.model_validate(status.last_run) if status.last_run else None,
            last_run_ago=status.last_run_ago,
        )


@router.get("/expiration/expired", response_model=ExpiredProductsResponse)
async def query_expired_products(
    category: Optional[Category] = Query(None),
    account_name: Optional[str] = Query(None),
    product_name: Optional[str] = Query(None),
    exclude_product: Optional[str] = Query(None),
    group_by_account: bool = Query(True),
    limit: int = Query(100, ge=1, le=1000),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        rows = await svc.query_expired(
            session,
            category=category.value if category else None,
            account_name=account_name,
            product_name=product_name,
            exclude_product=exclude_product,
            limit=limit,
        )

    grouped = group_expired_by_account(rows)
    if not group_by_account:
        return ExpiredProductsResponse(
            total_products=len(rows),
            total_accounts=len(grouped),
            products=[_expired_response(r) for r in rows],
        )
    return ExpiredProductsResponse(
        total_products=len(rows),
        total_accounts=len(grouped),
        accounts=[
            ExpiredAccountResponse(
                account_name=name,
                account_id=items[0].account_id,
                expired_products=[_expired_response(r) for r in items],
            )
            for name, items in grouped.items()
        ],
    )
