import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from ..database import Base


class TheoreticalUsageAnalysis(Base):
    __tablename__ = "theoretical_usage_analysis"
    __table_args__ = (
        # One analysis per item per period; recalculation upserts onto it
        UniqueConstraint("period_id", "inventory_item_id", name="ux_usage_analysis_period_item"),
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

    theoretical_quantity = Column(Numeric(14, 3), nullable=False, default=0)
    actual_quantity = Column(Numeric(14, 3), nullable=False, default=0)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    variance_quantity = Column(Numeric(14, 3), nullable=False, default=0)
    variance_percentage = Column(Numeric(12, 2), nullable=False, default=0)
    variance_dollar_value = Column(Numeric(14, 2), nullable=False, default=0)

    priority = Column(Text, nullable=False, default="low", index=True)
    calculation_method = Column(Text, nullable=False, default="recipe_based")
    calculation_confidence = Column(Numeric(4, 2), nullable=True)
    calculation_metadata = Column(JSONB, nullable=False, default=dict)
    calculated_at = Column(DateTime, nullable=False, server_default=func.now())

    investigation_status = Column(Text, nullable=False, default="pending", index=True)
    assigned_to = Column(UUID(as_uuid=True), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    investigated_by = Column(UUID(as_uuid=True), nullable=True)
    investigation_notes = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
