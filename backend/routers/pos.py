from fastapi import APIRouter, Depends

from core.exceptions import VarianceEngineError, to_http_exception
from db.repositories import Repositories, get_repositories
from schemas.imports import PosTransformRequest
from services.pos.registry import supported_providers
from services.pos.transformer import PosDataTransformer

router = APIRouter()


@router.get("/providers")
async def list_providers():
    return {"providers": supported_providers()}


@router.post("/{provider}/menu-items/transform")
async def transform_menu_items(provider: str, body: PosTransformRequest, repos: Repositories = Depends(get_repositories)):
    try:
        return await PosDataTransformer(repos).transform_menu_items(
            body.restaurant_id, provider, dry_run=body.dry_run, since=body.since
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.post("/{provider}/orders/transform")
async def transform_orders(provider: str, body: PosTransformRequest, repos: Repositories = Depends(get_repositories)):
    try:
        return await PosDataTransformer(repos).transform_orders(
            body.restaurant_id, provider, dry_run=body.dry_run, since=body.since
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)


@router.post("/{provider}/inventory-counts/transform")
async def transform_inventory_counts(provider: str, body: PosTransformRequest, repos: Repositories = Depends(get_repositories)):
    try:
        return await PosDataTransformer(repos).transform_inventory_counts(
            body.restaurant_id, provider, dry_run=body.dry_run, since=body.since
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
