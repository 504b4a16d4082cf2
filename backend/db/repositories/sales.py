from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, literal_column, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.enums import UpsertOutcome
from core.exceptions import ReconciliationConflictError
from db.repositories.items import changed_columns
from db.repositories.ledger import period_bounds
from db.sales import SalesTransaction
from schemas.unified import UnifiedSalesLine

LINE_KEY = ("source_pos_provider", "source_pos_line_item_id")
TRACKED_COLUMNS = (
    "inventory_item_id",
    "transaction_date",
    "item_name",
    "quantity",
    "unit_price",
    "total_amount",
    "source_pos_order_id",
)


def _conflict(record: UnifiedSalesLine, owner_restaurant_id) -> ReconciliationConflictError:
    return ReconciliationConflictError(
        f"Sales line {record.source_pos_provider}:{record.source_pos_line_item_id} "
        f"already belongs to restaurant {owner_restaurant_id}",
        provider=record.source_pos_provider,
        line_item_id=record.source_pos_line_item_id,
        restaurant_id=record.restaurant_id,
    )


def upsert_line_statement(record: UnifiedSalesLine):
    values = record.column_values()
    tbl = SalesTransaction.__table__
    stmt = insert(tbl).values(**values)
    set_ = {c: stmt.excluded[c] for c in values if c not in LINE_KEY and c != "restaurant_id"}
    set_["updated_at"] = func.now()
    return stmt.on_conflict_do_update(
        constraint="ux_sales_transactions_pos_line",
        set_=set_,
        # Never move a line between restaurants
        where=and_(
            tbl.c.restaurant_id == stmt.excluded.restaurant_id,
            or_(*[tbl.c[c].is_distinct_from(stmt.excluded[c]) for c in TRACKED_COLUMNS]),
        ),
    ).returning(tbl.c.id, literal_column("(xmax = 0)").label("inserted"))


class SalesTransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_line(self, provider: str, line_item_id: str) -> Optional[SalesTransaction]:
        stmt = select(SalesTransaction).where(
            SalesTransaction.source_pos_provider == provider,
            SalesTransaction.source_pos_line_item_id == line_item_id,
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def units_sold(self, restaurant_id, menu_item_id, start: date, end: date) -> Decimal:
        lo, hi = period_bounds(start, end)
        stmt = select(func.coalesce(func.sum(SalesTransaction.quantity), 0)).where(
            SalesTransaction.restaurant_id == restaurant_id,
            SalesTransaction.inventory_item_id == menu_item_id,
            SalesTransaction.transaction_date >= lo,
            SalesTransaction.transaction_date < hi,
        )
        return Decimal(str((await self.session.execute(stmt)).scalar() or 0))

    async def preview_line(self, record: UnifiedSalesLine) -> UpsertOutcome:
        existing = await self.find_by_line(record.source_pos_provider, record.source_pos_line_item_id)
        if existing is None:
            return UpsertOutcome.CREATED
        if existing.restaurant_id != record.restaurant_id:
            raise _conflict(record, existing.restaurant_id)
        values = {c: v for c, v in record.column_values().items() if c in TRACKED_COLUMNS}
        return UpsertOutcome.UPDATED if changed_columns(existing, values) else UpsertOutcome.UNCHANGED

    async def upsert_line(self, record: UnifiedSalesLine) -> UpsertOutcome:
        row = (await self.session.execute(upsert_line_statement(record))).first()
        if row is not None:
            return UpsertOutcome.CREATED if row.inserted else UpsertOutcome.UPDATED

        existing = await self.find_by_line(record.source_pos_provider, record.source_pos_line_item_id)
        if existing is not None and existing.restaurant_id != record.restaurant_id:
            raise _conflict(record, existing.restaurant_id)
        return UpsertOutcome.UNCHANGED
