import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from ..database import Base


class ToastMenuItem(Base):
    __tablename__ = "toast_menu_items"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "toast_item_guid", name="ux_toast_menu_items_guid"),
    )
    record_kind = "menu_item"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    toast_item_guid = Column(Text, nullable=False)
    toast_data = Column(JSONB, nullable=False, default=dict)

    name = Column(String, nullable=False)
    sku = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    menu_group_name = Column(Text, nullable=True)
    price_amount = Column(BigInteger, nullable=True)  # cents
    is_archived = Column(Boolean, nullable=False, default=False)

    last_synced_at = Column(DateTime, nullable=False, server_default=func.now())


class ToastOrderSelection(Base):
    """A single selection (line item) on a Toast check."""

    __tablename__ = "toast_order_selections"
    record_kind = "order_line"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    toast_order_guid = Column(Text, nullable=False, index=True)
    toast_selection_guid = Column(Text, nullable=False, unique=True)
    toast_item_guid = Column(Text, nullable=True, index=True)
    toast_data = Column(JSONB, nullable=False, default=dict)

    display_name = Column(String, nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit_price_amount = Column(BigInteger, nullable=True)
    total_price_amount = Column(BigInteger, nullable=True)
    voided = Column(Boolean, nullable=False, default=False)
    closed_at = Column(DateTime, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
