import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from core.enums import PeriodStatus, PeriodType, SnapshotType
from core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PeriodOverlapError,
    PeriodStateError,
    ValidationError,
)
from db.inventory.period import InventoryPeriod

logger = logging.getLogger(__name__)

PERIOD_TRANSITIONS = {
    PeriodStatus.DRAFT: PeriodStatus.ACTIVE,
    PeriodStatus.ACTIVE: PeriodStatus.CLOSED,
    PeriodStatus.CLOSED: PeriodStatus.LOCKED,
}

SNAPSHOT_FLAGS = {
    SnapshotType.BEGINNING: "beginning_snapshot_completed",
    SnapshotType.ENDING: "ending_snapshot_completed",
}


def period_to_dict(period: InventoryPeriod) -> Dict[str, Any]:
    return {
        "id": str(period.id),
        "restaurantId": str(period.restaurant_id),
        "periodName": period.period_name,
        "periodType": period.period_type,
        "periodStart": period.period_start.isoformat(),
        "periodEnd": period.period_end.isoformat(),
        "status": period.status,
        "beginningSnapshotCompleted": bool(period.beginning_snapshot_completed),
        "endingSnapshotCompleted": bool(period.ending_snapshot_completed),
        "varianceAnalysisCompleted": bool(period.variance_analysis_completed),
        "closedAt": period.closed_at.isoformat() if period.closed_at else None,
        "lockedAt": period.locked_at.isoformat() if period.locked_at else None,
    }


def _advance(period: InventoryPeriod, target: PeriodStatus) -> None:
    current = PeriodStatus(period.status)
    if PERIOD_TRANSITIONS.get(current) is not target:
        raise InvalidTransitionError("period", current.value, target.value)
    period.status = target.value


class PeriodService:
    """Period lifecycle and snapshot recording."""

    def __init__(self, repos):
        self.repos = repos

    async def get_period(self, period_id: UUID) -> InventoryPeriod:
        period = await self.repos.periods.get(period_id)
        if period is None:
            raise NotFoundError("InventoryPeriod", period_id)
        return period

    async def _check_overlap(self, restaurant_id: UUID, start: date, end: date, exclude_id: Optional[UUID] = None) -> None:
        clashes = await self.repos.periods.find_overlapping(restaurant_id, start, end, exclude_id=exclude_id)
        if clashes:
            raise PeriodOverlapError(
                f"Period {start}..{end} overlaps existing period '{clashes[0].period_name}'",
                conflicting_period_id=clashes[0].id,
            )

    async def create_period(
        self,
        restaurant_id: UUID,
        period_name: str,
        period_start: date,
        period_end: date,
        period_type: Any = PeriodType.WEEKLY,
    ) -> InventoryPeriod:
        if period_start >= period_end:
            raise ValidationError("period_start must be before period_end", field="period_end")
        try:
            ptype = PeriodType(period_type)
        except ValueError:
            raise ValidationError(f"Unknown period type: {period_type}", field="period_type")
        name = (period_name or "").strip()
        if not name:
            raise ValidationError("period_name is required", field="period_name")

        await self._check_overlap(restaurant_id, period_start, period_end)

        period = InventoryPeriod(
            restaurant_id=restaurant_id,
            period_name=name,
            period_type=ptype.value,
            period_start=period_start,
            period_end=period_end,
            status=PeriodStatus.DRAFT.value,
            beginning_snapshot_completed=False,
            ending_snapshot_completed=False,
            variance_analysis_completed=False,
        )
        await self.repos.periods.add(period)
        await self.repos.commit()
        logger.info("Created period %s (%s..%s) for restaurant %s", period.id, period_start, period_end, restaurant_id)
        return period

    async def activate_period(self, period_id: UUID) -> InventoryPeriod:
        period = await self.get_period(period_id)
        await self._check_overlap(period.restaurant_id, period.period_start, period.period_end, exclude_id=period.id)
        _advance(period, PeriodStatus.ACTIVE)
        await self.repos.periods.save(period)
        await self.repos.commit()
        logger.info("Period %s activated", period.id)
        return period

    async def close_period(self, period_id: UUID, closed_by: Optional[UUID] = None) -> InventoryPeriod:
        period = await self.get_period(period_id)
        missing = []
        if not period.beginning_snapshot_completed:
            missing.append("beginning snapshot")
        if not period.ending_snapshot_completed:
            missing.append("ending snapshot")
        if not period.variance_analysis_completed:
            missing.append("variance analysis")
        if PeriodStatus(period.status) is PeriodStatus.ACTIVE and missing:
            raise PeriodStateError(f"Cannot close period {period.id}: missing {', '.join(missing)}", period_id=period.id)

        _advance(period, PeriodStatus.CLOSED)
        period.closed_at = datetime.utcnow()
        period.closed_by = closed_by
        await self.repos.periods.save(period)
        await self.repos.commit()
        logger.info("Period %s closed by %s", period.id, closed_by)
        return period

    async def lock_period(self, period_id: UUID) -> InventoryPeriod:
        period = await self.get_period(period_id)
        _advance(period, PeriodStatus.LOCKED)
        period.locked_at = datetime.utcnow()
        await self.repos.periods.save(period)
        await self.repos.commit()
        logger.info("Period %s locked", period.id)
        return period

    async def record_snapshot(
        self,
        period_id: UUID,
        item_id: UUID,
        snapshot_type: Any,
        quantity,
        unit_cost=None,
        counted_by: Optional[UUID] = None,
        verified: bool = False,
        variance_notes: Optional[str] = None,
    ):
        try:
            stype = SnapshotType(snapshot_type)
        except ValueError:
            raise ValidationError(f"Unknown snapshot type: {snapshot_type}", field="snapshot_type")
        qty = Decimal(str(quantity))
        if qty < 0:
            raise ValidationError("Snapshot quantity cannot be negative", field="quantity")

        period = await self.get_period(period_id)
        if PeriodStatus(period.status) in (PeriodStatus.CLOSED, PeriodStatus.LOCKED):
            raise PeriodStateError(f"Period {period.id} is {period.status}; snapshots are frozen", period_id=period.id)

        item = await self.repos.items.get(item_id)
        if item is None or item.restaurant_id != period.restaurant_id:
            raise NotFoundError("InventoryItem", item_id)

        cost = Decimal(str(unit_cost)) if unit_cost is not None else item.unit_cost
        snapshot = await self.repos.snapshots.upsert(
            period_id=period.id,
            item_id=item.id,
            snapshot_type=stype.value,
            quantity=qty,
            unit_cost=cost,
            counted_by=counted_by,
            verified=verified,
            variance_notes=variance_notes,
        )
        await self.repos.commit()
        return snapshot

    async def complete_snapshots(self, period_id: UUID, snapshot_type: Any) -> InventoryPeriod:
        try:
            stype = SnapshotType(snapshot_type)
        except ValueError:
            raise ValidationError(f"Unknown snapshot type: {snapshot_type}", field="snapshot_type")
        period = await self.get_period(period_id)
        if PeriodStatus(period.status) in (PeriodStatus.CLOSED, PeriodStatus.LOCKED):
            raise PeriodStateError(f"Period {period.id} is {period.status}", period_id=period.id)
        if await self.repos.snapshots.count(period.id, stype.value) == 0:
            raise PeriodStateError(f"No {stype.value} snapshots recorded for period {period.id}", period_id=period.id)

        setattr(period, SNAPSHOT_FLAGS[stype], True)
        await self.repos.periods.save(period)
        await self.repos.commit()
        return period
