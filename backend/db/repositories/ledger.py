from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import TransactionType
from db.inventory.transaction import InventoryTransaction


def period_bounds(start: date, end: date):
    """Inclusive date range as a half-open datetime window."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


class TransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, transaction_id: UUID) -> Optional[InventoryTransaction]:
        return await self.session.get(InventoryTransaction, transaction_id)

    async def add(self, transaction: InventoryTransaction) -> InventoryTransaction:
        self.session.add(transaction)
        await self.session.flush()
        return transaction

    async def save(self, transaction: InventoryTransaction) -> InventoryTransaction:
        await self.session.flush()
        return transaction

    async def purchases_total(self, item_id: UUID, start: date, end: date) -> Decimal:
        lo, hi = period_bounds(start, end)
        stmt = select(func.coalesce(func.sum(InventoryTransaction.quantity), 0)).where(
            InventoryTransaction.inventory_item_id == item_id,
            InventoryTransaction.transaction_type == TransactionType.PURCHASE.value,
            InventoryTransaction.transaction_date >= lo,
            InventoryTransaction.transaction_date < hi,
        )
        return Decimal(str((await self.session.execute(stmt)).scalar() or 0))
