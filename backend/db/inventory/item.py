import uuid

from sqlalchemy import Boolean, Column, DateTime, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from ..database import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        # Reconciliation key shared by the POS and CSV write paths
        UniqueConstraint(
            "restaurant_id",
            "source_pos_provider",
            "source_pos_item_id",
            name="ux_inventory_items_pos_source",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    supplier_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    # 'produce' | 'proteins' | 'dairy' | 'dry_goods' | 'beverages' | ...
    category = Column(Text, nullable=False, default="other")
    category_id = Column(UUID(as_uuid=True), nullable=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(Text, nullable=False, default="pieces")
    is_active = Column(Boolean, nullable=False, default=True)

    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    current_stock = Column(Numeric(12, 3), nullable=False, default=0)
    minimum_stock = Column(Numeric(12, 3), nullable=True)
    maximum_stock = Column(Numeric(12, 3), nullable=True)

    variance_threshold_quantity = Column(Numeric(12, 3), nullable=True)
    variance_threshold_dollar = Column(Numeric(12, 2), nullable=True)
    high_value_flag = Column(Boolean, nullable=False, default=False)
    theoretical_yield_factor = Column(Numeric(6, 3), nullable=False, default=1)

    source_pos_provider = Column(Text, nullable=True, index=True)  # 'square' | 'toast' | 'csv'
    source_pos_item_id = Column(Text, nullable=True)
    source_pos_data = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
