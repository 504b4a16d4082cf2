"""Shared Tier 2 write path for POS- and CSV-origin records."""

import logging

from sqlalchemy.exc import DBAPIError

from core.enums import UpsertOutcome
from core.exceptions import ValidationError
from schemas.unified import UnifiedInventoryItem, UnifiedSalesLine, UnifiedStockCount

logger = logging.getLogger(__name__)


def record_key(record) -> str:
    if isinstance(record, UnifiedSalesLine):
        return f"{record.source_pos_provider}:{record.source_pos_line_item_id}"
    return f"{record.restaurant_id}:{record.source_pos_provider}:{record.source_pos_item_id}"


async def resolve_sales_item(repos, record: UnifiedSalesLine) -> UnifiedSalesLine:
    """Attach the Tier 2 item a sales line sold, when one exists."""
    if record.inventory_item_id is not None or not record.source_pos_item_id:
        return record
    item = await repos.items.find_by_source(record.restaurant_id, record.source_pos_provider, record.source_pos_item_id)
    if item is None:
        return record
    return record.model_copy(update={"inventory_item_id": item.id})


async def _atomic(repos, record, write):
    """Run one upsert in a savepoint; a row the database rejects becomes a row error."""
    try:
        async with repos.savepoint():
            return await write(record)
    except DBAPIError as exc:
        logger.warning("Database rejected %s: %s", record_key(record), exc.orig)
        raise ValidationError(f"Database rejected row: {exc.orig}", key=record_key(record)) from exc


async def write_unified(repos, record, dry_run: bool = False) -> UpsertOutcome:
    """Route one unified record to its atomic upsert, or to a read-only preview on dry runs."""
    if isinstance(record, UnifiedInventoryItem):
        if dry_run:
            outcome, _ = await repos.items.preview_from_source(record)
            return outcome
        outcome, _ = await _atomic(repos, record, repos.items.upsert_from_source)
        return outcome

    if isinstance(record, UnifiedSalesLine):
        record = await resolve_sales_item(repos, record)
        if dry_run:
            return await repos.sales.preview_line(record)
        return await _atomic(repos, record, repos.sales.upsert_line)

    if isinstance(record, UnifiedStockCount):
        if dry_run:
            return await repos.items.preview_stock_count(record)
        return await _atomic(repos, record, repos.items.apply_stock_count)

    raise TypeError(f"Unsupported unified record: {type(record).__name__}")
