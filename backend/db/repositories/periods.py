import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import HISTORY_STATUSES, PERIOD_BLOCKING_STATUSES
from db.inventory.period import InventoryPeriod
from db.inventory.snapshot import PeriodInventorySnapshot


class PeriodRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, period_id: UUID) -> Optional[InventoryPeriod]:
        return await self.session.get(InventoryPeriod, period_id)

    async def add(self, period: InventoryPeriod) -> InventoryPeriod:
        self.session.add(period)
        await self.session.flush()
        return period

    async def save(self, period: InventoryPeriod) -> InventoryPeriod:
        await self.session.flush()
        return period

    async def find_overlapping(
        self,
        restaurant_id: UUID,
        start: date,
        end: date,
        exclude_id: Optional[UUID] = None,
    ) -> List[InventoryPeriod]:
        stmt = (
            select(InventoryPeriod)
            .where(InventoryPeriod.restaurant_id == restaurant_id)
            .where(InventoryPeriod.status.in_([s.value for s in PERIOD_BLOCKING_STATUSES]))
            .where(InventoryPeriod.period_start <= end)
            .where(InventoryPeriod.period_end >= start)
        )
        if exclude_id is not None:
            stmt = stmt.where(InventoryPeriod.id != exclude_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def recent_closed(self, restaurant_id: UUID, before: date, limit: int) -> List[InventoryPeriod]:
        """Closed or locked periods ending before ``before``, newest first."""
        stmt = (
            select(InventoryPeriod)
            .where(InventoryPeriod.restaurant_id == restaurant_id)
            .where(InventoryPeriod.status.in_([s.value for s in HISTORY_STATUSES]))
            .where(InventoryPeriod.period_end < before)
            .order_by(InventoryPeriod.period_end.desc())
            .limit(limit)
        )
        return list((await self.session.execute(stmt)).scalars().all())


class SnapshotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, period_id: UUID, item_id: UUID, snapshot_type: str) -> Optional[PeriodInventorySnapshot]:
        stmt = select(PeriodInventorySnapshot).where(
            PeriodInventorySnapshot.period_id == period_id,
            PeriodInventorySnapshot.inventory_item_id == item_id,
            PeriodInventorySnapshot.snapshot_type == snapshot_type,
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def for_period(self, period_id: UUID) -> List[PeriodInventorySnapshot]:
        stmt = select(PeriodInventorySnapshot).where(PeriodInventorySnapshot.period_id == period_id)
        return list((await self.session.execute(stmt)).scalars().all())

    async def count(self, period_id: UUID, snapshot_type: str) -> int:
        stmt = select(func.count(PeriodInventorySnapshot.id)).where(
            PeriodInventorySnapshot.period_id == period_id,
            PeriodInventorySnapshot.snapshot_type == snapshot_type,
        )
        return int((await self.session.execute(stmt)).scalar() or 0)

    async def upsert(
        self,
        *,
        period_id: UUID,
        item_id: UUID,
        snapshot_type: str,
        quantity: Decimal,
        unit_cost: Optional[Decimal],
        counted_by: Optional[UUID],
        verified: bool,
        variance_notes: Optional[str] = None,
    ) -> PeriodInventorySnapshot:
        counted_at = datetime.utcnow()
        stmt = insert(PeriodInventorySnapshot).values(
            id=uuid.uuid4(),
            period_id=period_id,
            inventory_item_id=item_id,
            snapshot_type=snapshot_type,
            quantity=quantity,
            unit_cost=unit_cost,
            counted_by=counted_by,
            counted_at=counted_at,
            verified=verified,
            variance_notes=variance_notes,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="ux_period_snapshots_period_item_type",
            set_={
                "quantity": stmt.excluded.quantity,
                "unit_cost": stmt.excluded.unit_cost,
                "counted_by": stmt.excluded.counted_by,
                "counted_at": stmt.excluded.counted_at,
                "verified": stmt.excluded.verified,
                "variance_notes": stmt.excluded.variance_notes,
            },
        ).returning(PeriodInventorySnapshot)
        result = await self.session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalars().one()
