import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class SquareMenuItem(Base):
    __tablename__ = "square_menu_items"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "square_item_id", name="ux_square_menu_items_item"),
    )
    record_kind = "menu_item"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    square_item_id = Column(Text, nullable=False)  # catalog object id
    square_data = Column(JSONB, nullable=False, default=dict)

    name = Column(String, nullable=False)
    sku = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    category_name = Column(Text, nullable=True)
    variation_name = Column(Text, nullable=True)
    price_money_amount = Column(BigInteger, nullable=True)  # cents
    price_money_currency = Column(Text, nullable=True, default="USD")
    is_deleted = Column(Boolean, nullable=False, default=False)

    last_synced_at = Column(DateTime, nullable=False, server_default=func.now())


class SquareOrder(Base):
    __tablename__ = "square_orders"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "square_order_id", name="ux_square_orders_order"),
    )
    record_kind = "order"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    square_order_id = Column(Text, nullable=False)
    square_data = Column(JSONB, nullable=False, default=dict)

    state = Column(Text, nullable=False, default="OPEN")  # OPEN | COMPLETED | CANCELED
    opened_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True, index=True)
    total_money_amount = Column(BigInteger, nullable=True)

    last_synced_at = Column(DateTime, nullable=False, server_default=func.now())

    line_items = relationship("SquareOrderItem", back_populates="order", cascade="all, delete-orphan")


class SquareOrderItem(Base):
    __tablename__ = "square_order_items"
    record_kind = "order_line"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    square_order_id = Column(UUID(as_uuid=True), ForeignKey("square_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    square_line_item_uid = Column(Text, nullable=False, unique=True)
    square_item_id = Column(Text, nullable=True, index=True)  # catalog item the line sold, if any
    square_variation_id = Column(Text, nullable=True)
    line_item_data = Column(JSONB, nullable=False, default=dict)

    name = Column(String, nullable=True)
    variation_name = Column(Text, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    base_price_money_amount = Column(BigInteger, nullable=True)
    total_money_amount = Column(BigInteger, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    order = relationship("SquareOrder", back_populates="line_items")


class SquareInventoryCount(Base):
    __tablename__ = "square_inventory_counts"
    record_kind = "inventory_count"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    square_catalog_object_id = Column(Text, nullable=False, index=True)
    square_state = Column(Text, nullable=False, default="IN_STOCK")
    square_data = Column(JSONB, nullable=False, default=dict)

    quantity = Column(Numeric(12, 3), nullable=False, default=0)
    calculated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
