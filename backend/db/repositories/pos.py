from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db.pos.square import SquareInventoryCount, SquareMenuItem, SquareOrderItem
from db.pos.toast import ToastMenuItem, ToastOrderSelection

RAW_MODELS: Dict[str, Dict[str, type]] = {
    "square": {
        "menu_item": SquareMenuItem,
        "order_line": SquareOrderItem,
        "inventory_count": SquareInventoryCount,
    },
    "toast": {
        "menu_item": ToastMenuItem,
        "order_line": ToastOrderSelection,
    },
}


class PosRawRepository:
    """Read-only access to Tier 1 provider tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch(
        self,
        provider: str,
        record_kind: str,
        restaurant_id: UUID,
        since: Optional[datetime] = None,
    ) -> List[object]:
        model = RAW_MODELS.get(provider, {}).get(record_kind)
        if model is None:
            return []

        stmt = select(model).where(model.restaurant_id == restaurant_id)
        if model is SquareOrderItem:
            stmt = stmt.options(selectinload(SquareOrderItem.order))
        if since is not None:
            ts_col = model.last_synced_at if hasattr(model, "last_synced_at") else model.created_at
            stmt = stmt.where(ts_col >= since)
        stmt = stmt.order_by(model.id)
        return list((await self.session.execute(stmt)).scalars().all())
