import uuid
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.inventory.usage_analysis import TheoreticalUsageAnalysis

# Written by the calculation engine; investigation columns are left alone on conflict
COMPUTED_COLUMNS = (
    "theoretical_quantity",
    "actual_quantity",
    "unit_cost",
    "variance_quantity",
    "variance_percentage",
    "variance_dollar_value",
    "priority",
    "calculation_method",
    "calculation_confidence",
    "calculation_metadata",
    "calculated_at",
)


class UsageAnalysisRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, analysis_id: UUID) -> Optional[TheoreticalUsageAnalysis]:
        return await self.session.get(TheoreticalUsageAnalysis, analysis_id)

    async def save(self, analysis: TheoreticalUsageAnalysis) -> TheoreticalUsageAnalysis:
        await self.session.flush()
        return analysis

    async def get_for(self, period_id: UUID, item_id: UUID) -> Optional[TheoreticalUsageAnalysis]:
        stmt = select(TheoreticalUsageAnalysis).where(
            TheoreticalUsageAnalysis.period_id == period_id,
            TheoreticalUsageAnalysis.inventory_item_id == item_id,
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def list_for_period(self, period_id: UUID) -> List[TheoreticalUsageAnalysis]:
        stmt = (
            select(TheoreticalUsageAnalysis)
            .where(TheoreticalUsageAnalysis.period_id == period_id)
            .order_by(func.abs(TheoreticalUsageAnalysis.variance_dollar_value).desc())
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def list_for_periods(self, period_ids: Iterable[UUID]) -> List[TheoreticalUsageAnalysis]:
        ids = list(period_ids)
        if not ids:
            return []
        stmt = select(TheoreticalUsageAnalysis).where(TheoreticalUsageAnalysis.period_id.in_(ids))
        return list((await self.session.execute(stmt)).scalars().all())

    async def existing_item_ids(self, period_id: UUID) -> Set[UUID]:
        stmt = select(TheoreticalUsageAnalysis.inventory_item_id).where(TheoreticalUsageAnalysis.period_id == period_id)
        return set((await self.session.execute(stmt)).scalars().all())

    async def history_for_item(self, item_id: UUID, period_ids: Iterable[UUID]) -> List[TheoreticalUsageAnalysis]:
        ids = list(period_ids)
        if not ids:
            return []
        stmt = select(TheoreticalUsageAnalysis).where(
            TheoreticalUsageAnalysis.inventory_item_id == item_id,
            TheoreticalUsageAnalysis.period_id.in_(ids),
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def upsert(self, values: Dict[str, Any]) -> TheoreticalUsageAnalysis:
        """Insert or replace the computed columns for ``(period_id, inventory_item_id)``."""
        stmt = insert(TheoreticalUsageAnalysis).values(id=uuid.uuid4(), **values)
        set_ = {c: stmt.excluded[c] for c in COMPUTED_COLUMNS if c in values}
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            constraint="ux_usage_analysis_period_item",
            set_=set_,
        ).returning(TheoreticalUsageAnalysis)
        result = await self.session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one()
