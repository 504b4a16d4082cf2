from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, status

from core.exceptions import VarianceEngineError, to_http_exception
from db.repositories import Repositories, get_repositories
from schemas.periods import (
    PeriodClose,
    PeriodCreate,
    SnapshotCreate,
    SnapshotsComplete,
    TransactionApprove,
    TransactionCreate,
)
from services.ledger import InventoryLedgerService
from services.periods import PeriodService, period_to_dict

router = APIRouter()


def _num(x):
    return float(x) if x is not None else None


def _snapshot_to_dict(snapshot) -> Dict[str, Any]:
    return {
        "id": str(snapshot.id),
        "periodId": str(snapshot.period_id),
        "inventoryItemId": str(snapshot.inventory_item_id),
        "snapshotType": snapshot.snapshot_type,
        "quantity": _num(snapshot.quantity),
        "unitCost": _num(snapshot.unit_cost),
        "verified": bool(snapshot.verified),
    }


def _transaction_to_dict(tx) -> Dict[str, Any]:
    return {
        "id": str(tx.id),
        "inventoryItemId": str(tx.inventory_item_id),
        "transactionType": tx.transaction_type,
        "quantity": _num(tx.quantity),
        "unitCost": _num(tx.unit_cost),
        "transactionDate": tx.transaction_date.isoformat() if tx.transaction_date else None,
        "varianceCategory": tx.variance_category,
        "requiresApproval": bool(tx.requires_approval),
        "approvedBy": str(tx.approved_by) if tx.approved_by else None,
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_period(body: PeriodCreate, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).create_period(
            body.restaurant_id, body.period_name, body.period_start, body.period_end, body.period_type
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.get("/{period_id}")
async def get_period(period_id: UUID, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).get_period(period_id)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.post("/{period_id}/activate")
async def activate_period(period_id: UUID, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).activate_period(period_id)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.post("/{period_id}/close")
async def close_period(period_id: UUID, body: PeriodClose, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).close_period(period_id, closed_by=body.closed_by)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.post("/{period_id}/lock")
async def lock_period(period_id: UUID, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).lock_period(period_id)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.post("/{period_id}/snapshots", status_code=status.HTTP_201_CREATED)
async def record_snapshot(period_id: UUID, body: SnapshotCreate, repos: Repositories = Depends(get_repositories)):
    try:
        snapshot = await PeriodService(repos).record_snapshot(
            period_id,
            body.inventory_item_id,
            body.snapshot_type,
            body.quantity,
            unit_cost=body.unit_cost,
            counted_by=body.counted_by,
            verified=body.verified,
            variance_notes=body.variance_notes,
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return _snapshot_to_dict(snapshot)


@router.post("/{period_id}/snapshots/complete")
async def complete_snapshots(period_id: UUID, body: SnapshotsComplete, repos: Repositories = Depends(get_repositories)):
    try:
        period = await PeriodService(repos).complete_snapshots(period_id, body.snapshot_type)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return period_to_dict(period)


@router.post("/transactions", status_code=status.HTTP_201_CREATED)
async def record_transaction(body: TransactionCreate, repos: Repositories = Depends(get_repositories)):
    try:
        tx = await InventoryLedgerService(repos).record_transaction(
            body.restaurant_id,
            body.inventory_item_id,
            body.transaction_type,
            body.quantity,
            unit_cost=body.unit_cost,
            transaction_date=body.transaction_date,
            reference=body.reference,
            notes=body.notes,
            variance_category=body.variance_category,
            created_by=body.created_by,
        )
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return _transaction_to_dict(tx)


@router.post("/transactions/{transaction_id}/approve")
async def approve_transaction(transaction_id: UUID, body: TransactionApprove, repos: Repositories = Depends(get_repositories)):
    try:
        tx = await InventoryLedgerService(repos).approve_transaction(transaction_id, body.approved_by)
    except VarianceEngineError as e:
        raise to_http_exception(e)
    return _transaction_to_dict(tx)
