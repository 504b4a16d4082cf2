from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from core.enums import PeriodType, SnapshotType, TransactionType


class PeriodCreate(BaseModel):
    restaurant_id: UUID
    period_name: str
    period_start: date
    period_end: date
    period_type: PeriodType = PeriodType.WEEKLY

    @field_validator("period_name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class PeriodClose(BaseModel):
    closed_by: Optional[UUID] = None


class SnapshotCreate(BaseModel):
    inventory_item_id: UUID
    snapshot_type: SnapshotType
    quantity: Decimal
    unit_cost: Optional[Decimal] = None
    counted_by: Optional[UUID] = None
    verified: bool = False
    variance_notes: Optional[str] = None


class SnapshotsComplete(BaseModel):
    snapshot_type: SnapshotType


class TransactionCreate(BaseModel):
    restaurant_id: UUID
    inventory_item_id: UUID
    transaction_type: TransactionType
    quantity: Decimal
    unit_cost: Optional[Decimal] = None
    transaction_date: Optional[datetime] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    variance_category: Optional[str] = None
    created_by: Optional[UUID] = None


class TransactionApprove(BaseModel):
    approved_by: UUID
