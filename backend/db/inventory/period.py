import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class InventoryPeriod(Base):
    __tablename__ = "inventory_periods"
    __table_args__ = (
        CheckConstraint("period_start < period_end", name="ck_inventory_periods_range"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    period_name = Column(String, nullable=False)

    period_type = Column(Text, nullable=False, default="weekly")  # daily | weekly | monthly | custom
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False, index=True)

    status = Column(Text, nullable=False, default="draft", index=True)  # draft | active | closed | locked
    beginning_snapshot_completed = Column(Boolean, nullable=False, default=False)
    ending_snapshot_completed = Column(Boolean, nullable=False, default=False)
    variance_analysis_completed = Column(Boolean, nullable=False, default=False)

    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(UUID(as_uuid=True), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    snapshots = relationship("PeriodInventorySnapshot", back_populates="period", cascade="all, delete-orphan")

    def overlaps(self, start, end) -> bool:
        return self.period_start <= end and start <= self.period_end
