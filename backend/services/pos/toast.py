from decimal import Decimal
from typing import Optional

from schemas.unified import UnifiedInventoryItem, UnifiedSalesLine
from services.pos.base import PosTransformer, money


class ToastTransformer(PosTransformer):
    provider = "toast"

    def transform_menu_item(self, raw) -> Optional[UnifiedInventoryItem]:
        if raw.is_archived:
            return None
        return self.build_item(
            restaurant_id=raw.restaurant_id,
            source_item_id=raw.toast_item_guid,
            name=raw.name,
            description=raw.description,
            category_name=raw.menu_group_name,
            price_minor=raw.price_amount,
            payload={"toastItemGuid": raw.toast_item_guid, "sku": raw.sku},
        )

    def transform_order_line(self, raw) -> Optional[UnifiedSalesLine]:
        if raw.voided:
            return None

        quantity = Decimal(str(raw.quantity))
        unit_price = money(raw.unit_price_amount)
        if raw.total_price_amount is not None:
            total = money(raw.total_price_amount)
        else:
            total = (unit_price * quantity).quantize(Decimal("0.01"))

        return UnifiedSalesLine(
            restaurant_id=raw.restaurant_id,
            source_pos_provider=self.provider,
            source_pos_order_id=raw.toast_order_guid,
            source_pos_line_item_id=raw.toast_selection_guid,
            source_pos_item_id=raw.toast_item_guid,
            item_name=raw.display_name,
            transaction_date=raw.closed_at or raw.created_at,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total,
            source_pos_data={"toastOrderGuid": raw.toast_order_guid},
        )
