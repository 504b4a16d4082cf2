import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class PeriodInventorySnapshot(Base):
    __tablename__ = "period_inventory_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "period_id",
            "inventory_item_id",
            "snapshot_type",
            name="ux_period_snapshots_period_item_type",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    inventory_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    snapshot_type = Column(Text, nullable=False)  # 'beginning' | 'ending'
    quantity = Column(Numeric(12, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(12, 2), nullable=True)

    counted_by = Column(UUID(as_uuid=True), nullable=True)
    counted_at = Column(DateTime, nullable=False, server_default=func.now())
    verified = Column(Boolean, nullable=False, default=False)
    variance_notes = Column(Text, nullable=True)

    period = relationship("InventoryPeriod", back_populates="snapshots")
