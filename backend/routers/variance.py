from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from core.exceptions import VarianceEngineError, to_http_exception
from db.repositories import Repositories, get_repositories
from schemas.variance import InvestigateRequest, ResolveRequest, UsageCalculationRequest
from services.usage_calculation import UsageCalculationService
from services.variance import InventoryVarianceService

router = APIRouter()


@router.post("/periods/{period_id}/calculate")
async def calculate_usage_variance(
    period_id: UUID,
    body: UsageCalculationRequest,
    repos: Repositories = Depends(get_repositories),
):
    try:
        return await InventoryVarianceService(repos).calculate_usage_variance(
            period_id, method=body.method, item_ids=body.item_ids, recalculate=body.recalculate
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.get("/periods/{period_id}/analysis")
async def analyze_period_variance(period_id: UUID, repos: Repositories = Depends(get_repositories)):
    try:
        return await InventoryVarianceService(repos).analyze_period_variance(period_id)
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.get("/periods/{period_id}/priority-summary")
async def priority_variance_summary(
    period_id: UUID,
    top_n: int = Query(10, ge=1, le=100),
    repos: Repositories = Depends(get_repositories),
):
    try:
        return await InventoryVarianceService(repos).priority_variance_summary(period_id, top_n=top_n)
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.get("/periods/{period_id}/summary")
async def calculation_summary(period_id: UUID, repos: Repositories = Depends(get_repositories)):
    try:
        return await UsageCalculationService(repos).get_calculation_summary(period_id)
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.get("/restaurants/{restaurant_id}/trends")
async def historical_variance_trends(
    restaurant_id: UUID,
    item_id: Optional[UUID] = None,
    period_count: Optional[int] = Query(None, ge=2, le=52),
    repos: Repositories = Depends(get_repositories),
):
    try:
        return await InventoryVarianceService(repos).historical_variance_trends(
            restaurant_id, item_id=item_id, period_count=period_count
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.post("/analyses/{analysis_id}/investigate")
async def investigate_variance(
    analysis_id: UUID,
    body: InvestigateRequest,
    repos: Repositories = Depends(get_repositories),
):
    try:
        return await InventoryVarianceService(repos).investigate_variance(analysis_id, body.assigned_to, body.notes)
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.post("/analyses/{analysis_id}/resolve")
async def resolve_variance_investigation(
    analysis_id: UUID,
    body: ResolveRequest,
    repos: Repositories = Depends(get_repositories),
):
    try:
        return await InventoryVarianceService(repos).resolve_variance_investigation(
            analysis_id, body.resolved_by, body.explanation, body.resolution
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
