import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from core.enums import TransactionType
from core.exceptions import NotFoundError, ValidationError
from db.inventory.transaction import InventoryTransaction
from services.priority import requires_approval

logger = logging.getLogger(__name__)


class InventoryLedgerService:
    def __init__(self, repos):
        self.repos = repos

    async def record_transaction(
        self,
        restaurant_id: UUID,
        item_id: UUID,
        transaction_type,
        quantity,
        unit_cost=None,
        transaction_date: Optional[datetime] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        variance_category: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> InventoryTransaction:
        try:
            ttype = TransactionType(transaction_type)
        except ValueError:
            raise ValidationError(f"Unknown transaction type: {transaction_type}", field="transaction_type")

        item = await self.repos.items.get(item_id)
        if item is None or item.restaurant_id != restaurant_id:
            raise NotFoundError("InventoryItem", item_id)

        transaction = InventoryTransaction(
            restaurant_id=restaurant_id,
            inventory_item_id=item.id,
            transaction_type=ttype.value,
            quantity=Decimal(str(quantity)),
            unit_cost=Decimal(str(unit_cost)) if unit_cost is not None else item.unit_cost,
            transaction_date=transaction_date or datetime.utcnow(),
            reference=reference,
            notes=notes,
            variance_category=variance_category,
            created_by=created_by,
            approved_by=None,
            approval_date=None,
        )
        transaction.requires_approval = requires_approval(transaction, item)
        await self.repos.transactions.add(transaction)
        await self.repos.commit()

        if transaction.requires_approval:
            logger.warning(
                "Transaction %s on item %s needs approval (type=%s, category=%s)",
                transaction.id, item.id, ttype.value, variance_category,
            )
        return transaction

    async def approve_transaction(self, transaction_id: UUID, approved_by: UUID) -> InventoryTransaction:
        transaction = await self.repos.transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError("InventoryTransaction", transaction_id)
        if not transaction.requires_approval:
            raise ValidationError(f"Transaction {transaction_id} does not require approval")
        if transaction.approved_by is not None:
            raise ValidationError(f"Transaction {transaction_id} is already approved")

        transaction.approved_by = approved_by
        transaction.approval_date = datetime.utcnow()
        await self.repos.transactions.save(transaction)
        await self.repos.commit()
        return transaction
