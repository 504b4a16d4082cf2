from decimal import Decimal
from typing import Optional

from schemas.unified import UnifiedInventoryItem, UnifiedSalesLine, UnifiedStockCount
from services.pos.base import PosTransformer, money

COMPLETED_STATE = "COMPLETED"
IN_STOCK_STATE = "IN_STOCK"


class SquareTransformer(PosTransformer):
    provider = "square"

    def transform_menu_item(self, raw) -> Optional[UnifiedInventoryItem]:
        if raw.is_deleted:
            return None
        return self.build_item(
            restaurant_id=raw.restaurant_id,
            source_item_id=raw.square_item_id,
            name=raw.name,
            description=raw.description,
            category_name=raw.category_name,
            price_minor=raw.price_money_amount,
            variation_name=raw.variation_name,
            payload={
                "squareItemId": raw.square_item_id,
                "sku": raw.sku,
                "variationName": raw.variation_name,
                "currency": raw.price_money_currency,
            },
        )

    def transform_order_line(self, raw) -> Optional[UnifiedSalesLine]:
        order = raw.order
        if order is not None and order.state != COMPLETED_STATE:
            return None

        quantity = Decimal(str(raw.quantity))
        unit_price = money(raw.base_price_money_amount)
        total = money(raw.total_money_amount) if raw.total_money_amount is not None else (unit_price * quantity).quantize(Decimal("0.01"))
        sold_at = (order.closed_at or order.opened_at) if order is not None else None

        return UnifiedSalesLine(
            restaurant_id=raw.restaurant_id,
            source_pos_provider=self.provider,
            source_pos_order_id=order.square_order_id if order is not None else None,
            source_pos_line_item_id=raw.square_line_item_uid,
            source_pos_item_id=raw.square_item_id,
            item_name=raw.name,
            transaction_date=sold_at or raw.created_at,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total,
            source_pos_data={
                "variationName": raw.variation_name,
                "squareVariationId": raw.square_variation_id,
            },
        )

    def transform_inventory_count(self, raw) -> Optional[UnifiedStockCount]:
        if raw.square_state != IN_STOCK_STATE:
            return None
        return UnifiedStockCount(
            restaurant_id=raw.restaurant_id,
            source_pos_provider=self.provider,
            source_pos_item_id=raw.square_catalog_object_id,
            quantity=Decimal(str(raw.quantity)),
            counted_at=raw.calculated_at,
        )
