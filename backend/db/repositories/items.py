from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, literal_column, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import UpsertOutcome
from db.inventory.item import InventoryItem
from schemas.unified import UnifiedInventoryItem, UnifiedStockCount

SOURCE_KEY = ("restaurant_id", "source_pos_provider", "source_pos_item_id")

# Raw payload is refreshed on update but never counts as a change by itself
UNTRACKED_COLUMNS = frozenset(SOURCE_KEY) | {"source_pos_data"}


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, Decimal) or isinstance(b, Decimal):
        if a is None or b is None:
            return a is b
        return Decimal(str(a)) == Decimal(str(b))
    return a == b


def changed_columns(existing: Any, values: Dict[str, Any]) -> List[str]:
    """Columns whose incoming value differs from the stored row."""
    return [
        col
        for col, value in values.items()
        if col not in UNTRACKED_COLUMNS and not _same(getattr(existing, col, None), value)
    ]


def upsert_item_statement(record: UnifiedInventoryItem):
    """Single conditional INSERT .. ON CONFLICT DO UPDATE on the reconciliation key."""
    values = record.column_values()
    tbl = InventoryItem.__table__
    stmt = insert(tbl).values(**values)
    tracked = [c for c in values if c not in UNTRACKED_COLUMNS]
    set_ = {c: stmt.excluded[c] for c in values if c not in SOURCE_KEY}
    set_["updated_at"] = func.now()
    return stmt.on_conflict_do_update(
        constraint="ux_inventory_items_pos_source",
        set_=set_,
        where=or_(*[tbl.c[c].is_distinct_from(stmt.excluded[c]) for c in tracked]),
    ).returning(tbl.c.id, literal_column("(xmax = 0)").label("inserted"))


class InventoryItemRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, item_id: UUID) -> Optional[InventoryItem]:
        return await self.session.get(InventoryItem, item_id)

    async def list_active(self, restaurant_id: UUID, item_ids: Optional[Iterable[UUID]] = None) -> List[InventoryItem]:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.restaurant_id == restaurant_id)
            .where(InventoryItem.is_active.is_(True))
            .order_by(InventoryItem.name)
        )
        if item_ids is not None:
            stmt = stmt.where(InventoryItem.id.in_(list(item_ids)))
        return list((await self.session.execute(stmt)).scalars().all())

    async def find_by_source(self, restaurant_id: UUID, provider: str, source_item_id: str) -> Optional[InventoryItem]:
        stmt = select(InventoryItem).where(
            InventoryItem.restaurant_id == restaurant_id,
            InventoryItem.source_pos_provider == provider,
            InventoryItem.source_pos_item_id == source_item_id,
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def find_by_name(self, restaurant_id: UUID, name: str) -> Optional[InventoryItem]:
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.restaurant_id == restaurant_id)
            .where(func.lower(InventoryItem.name) == (name or "").strip().lower())
            .order_by(InventoryItem.created_at)
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def preview_from_source(self, record: UnifiedInventoryItem) -> Tuple[UpsertOutcome, Optional[UUID]]:
        existing = await self.find_by_source(record.restaurant_id, record.source_pos_provider, record.source_pos_item_id)
        if existing is None:
            return UpsertOutcome.CREATED, None
        if changed_columns(existing, record.column_values()):
            return UpsertOutcome.UPDATED, existing.id
        return UpsertOutcome.UNCHANGED, existing.id

    async def upsert_from_source(self, record: UnifiedInventoryItem) -> Tuple[UpsertOutcome, UUID]:
        row = (await self.session.execute(upsert_item_statement(record))).first()
        if row is None:
            # Conflict with nothing to change: the WHERE suppressed the update
            existing = await self.find_by_source(record.restaurant_id, record.source_pos_provider, record.source_pos_item_id)
            return UpsertOutcome.UNCHANGED, existing.id
        return (UpsertOutcome.CREATED if row.inserted else UpsertOutcome.UPDATED), row.id

    async def preview_stock_count(self, record: UnifiedStockCount) -> UpsertOutcome:
        existing = await self.find_by_source(record.restaurant_id, record.source_pos_provider, record.source_pos_item_id)
        if existing is None:
            return UpsertOutcome.UNMATCHED
        if _same(existing.current_stock, record.quantity):
            return UpsertOutcome.UNCHANGED
        return UpsertOutcome.UPDATED

    async def apply_stock_count(self, record: UnifiedStockCount) -> UpsertOutcome:
        tbl = InventoryItem.__table__
        stmt = (
            update(tbl)
            .where(tbl.c.restaurant_id == record.restaurant_id)
            .where(tbl.c.source_pos_provider == record.source_pos_provider)
            .where(tbl.c.source_pos_item_id == record.source_pos_item_id)
            .where(tbl.c.current_stock.is_distinct_from(record.quantity))
            .values(current_stock=record.quantity, updated_at=func.now())
            .returning(tbl.c.id)
        )
        if (await self.session.execute(stmt)).first() is not None:
            return UpsertOutcome.UPDATED
        existing = await self.find_by_source(record.restaurant_id, record.source_pos_provider, record.source_pos_item_id)
        return UpsertOutcome.UNMATCHED if existing is None else UpsertOutcome.UNCHANGED
