import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from .database import Base


class SalesTransaction(Base):
    """Tier 2 unified sales line, one row per POS/CSV line item."""

    __tablename__ = "sales_transactions"
    __table_args__ = (
        UniqueConstraint(
            "source_pos_provider",
            "source_pos_line_item_id",
            name="ux_sales_transactions_pos_line",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    # NULL for ad-hoc lines, discounts and anything not mapped to an item
    inventory_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    transaction_date = Column(DateTime, nullable=False, index=True)
    item_name = Column(String, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    source_pos_provider = Column(Text, nullable=False)
    source_pos_order_id = Column(Text, nullable=True, index=True)
    source_pos_line_item_id = Column(Text, nullable=False)
    source_pos_data = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
