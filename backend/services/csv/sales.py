from decimal import Decimal
from typing import Any, Dict

from core.enums import CSV_PROVIDER
from core.exceptions import ValidationError
from schemas.csv import SalesCsvRow
from schemas.unified import UnifiedSalesLine
from services.csv.inventory import slugify, source_item_id


class CsvSalesTransformer:
    """Validated sales rows -> unified sales lines, matched to CSV-origin items."""

    upload_type = "sales"

    def __init__(self, repos):
        self.repos = repos

    def line_item_key(self, data: SalesCsvRow, row: int, context: Dict[str, Any]) -> str:
        if data.line_item_id:
            return f"csv-{slugify(data.line_item_id, f'row-{row}')}"
        # Deterministic across re-runs: batches are consumed in order
        base = f"csv-{slugify(data.order_id, 'order')}-{slugify(data.item_name, 'item')}"
        occurrences = context.setdefault("occurrences", {})
        occurrences[base] = occurrences.get(base, 0) + 1
        return f"{base}-{occurrences[base]}"

    async def match_item(self, restaurant_id, item_name: str, cache: Dict[str, Any]):
        if item_name in cache:
            return cache[item_name]
        item = await self.repos.items.find_by_source(restaurant_id, CSV_PROVIDER, source_item_id(item_name))
        if item is None:
            item = await self.repos.items.find_by_name(restaurant_id, item_name)
        cache[item_name] = item
        return item

    async def build_record(self, upload, row: Dict[str, Any], context: Dict[str, Any]):
        data = SalesCsvRow.model_validate(row["data"])
        if data.quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity", row=row["row"])
        if data.unit_price < 0 or data.total_amount < 0:
            raise ValidationError("amounts cannot be negative", field="total_amount", row=row["row"])

        item = await self.match_item(upload.restaurant_id, data.item_name, context.setdefault("item_cache", {}))
        record = UnifiedSalesLine(
            restaurant_id=upload.restaurant_id,
            source_pos_provider=CSV_PROVIDER,
            source_pos_order_id=data.order_id,
            source_pos_line_item_id=self.line_item_key(data, row["row"], context),
            inventory_item_id=item.id if item is not None else None,
            item_name=data.item_name,
            transaction_date=data.transaction_date,
            quantity=data.quantity,
            unit_price=data.unit_price.quantize(Decimal("0.01")),
            total_amount=data.total_amount.quantize(Decimal("0.01")),
            source_pos_data={
                "uploadId": str(upload.id),
                "row": row["row"],
                "modifiers": data.modifiers,
                "serverName": data.server_name,
                "guestCount": data.guest_count,
                "location": data.location,
                "notes": data.notes,
            },
        )
        flag = None if item is not None else {"name": data.item_name, "reason": "unmatched_item", "row": row["row"]}
        return record, flag
