import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from ..database import Base


class InventoryTransaction(Base):
    """Append-only ledger entry. Only the approval columns change after insert."""

    __tablename__ = "inventory_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    inventory_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 'purchase' | 'usage' | 'waste' | 'adjustment' | 'transfer'
    transaction_type = Column(Text, nullable=False, index=True)
    quantity = Column(Numeric(12, 3), nullable=False)  # signed
    unit_cost = Column(Numeric(12, 2), nullable=True)
    transaction_date = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    reference = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    variance_category = Column(Text, nullable=True)  # 'theft' | 'waste' | 'receiving_error' | ...

    requires_approval = Column(Boolean, nullable=False, default=False)
    approved_by = Column(UUID(as_uuid=True), nullable=True)
    approval_date = Column(DateTime, nullable=True)

    created_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
