"""Tests for Tier 1 -> Tier 2 POS transformation."""

import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import DataError

from core.enums import UpsertOutcome
from core.exceptions import ValidationError
from db.pos.square import SquareInventoryCount, SquareMenuItem, SquareOrder, SquareOrderItem
from db.pos.toast import ToastMenuItem, ToastOrderSelection
from services.pos.base import money
from services.pos.registry import TRANSFORMERS, get_transformer, register_transformer, supported_providers
from services.pos.square import SquareTransformer
from services.pos.transformer import PosDataTransformer

CLOSED_AT = datetime(2024, 3, 6, 19, 30)


def _square_item(restaurant_id, item_id="SQ-WINGS", price=1299, category="Meat", deleted=False, name="Chicken Wings 2 lb"):
    return SquareMenuItem(
        restaurant_id=restaurant_id,
        square_item_id=item_id,
        square_data={},
        name=name,
        sku="W-2",
        description="Party size",
        category_name=category,
        variation_name="Regular",
        price_money_amount=price,
        price_money_currency="USD",
        is_deleted=deleted,
        last_synced_at=CLOSED_AT,
    )


def _square_line(restaurant_id, uid, item_id="SQ-WINGS", state="COMPLETED", qty="2"):
    order = SquareOrder(
        restaurant_id=restaurant_id,
        square_order_id=f"ORD-{uid}",
        square_data={},
        state=state,
        opened_at=datetime(2024, 3, 6, 19, 0),
        closed_at=CLOSED_AT,
        total_money_amount=2598,
    )
    return SquareOrderItem(
        restaurant_id=restaurant_id,
        square_line_item_uid=uid,
        square_item_id=item_id,
        square_variation_id="VAR-1",
        line_item_data={},
        name="Chicken Wings",
        variation_name="Regular",
        quantity=Decimal(qty),
        base_price_money_amount=1299,
        total_money_amount=2598,
        created_at=CLOSED_AT,
        order=order,
    )


class TestMoneyAndRegistry:
    def test_minor_units(self):
        assert money(1299) == Decimal("12.99")
        assert money(None) == Decimal("0.00")
        assert money(5) == Decimal("0.05")

    def test_registry(self):
        assert supported_providers() == ["square", "toast"]
        assert isinstance(get_transformer("SQUARE"), SquareTransformer)
        with pytest.raises(ValidationError):
            get_transformer("clover")

    def test_register_new_provider(self, monkeypatch):
        monkeypatch.setitem(TRANSFORMERS, "clover", None)

        @register_transformer
        class CloverTransformer(SquareTransformer):
            provider = "clover"

        assert isinstance(get_transformer("clover"), CloverTransformer)
        assert "clover" in supported_providers()


class TestSquareTransformer:
    def test_menu_item_mapping(self, restaurant_id):
        record = SquareTransformer().transform(_square_item(restaurant_id))

        assert record.source_pos_provider == "square"
        assert record.source_pos_item_id == "SQ-WINGS"
        assert record.category == "proteins"
        assert record.unit == "lbs"
        assert record.unit_cost == Decimal("12.99")
        assert record.variance_threshold_quantity == Decimal("1.000")
        assert record.variance_threshold_dollar == Decimal("12.99")
        assert record.high_value_flag is False
        assert record.source_pos_data["sku"] == "W-2"

    def test_unmapped_category_falls_back(self, restaurant_id):
        record = SquareTransformer().transform(_square_item(restaurant_id, category="Zzqx"))
        assert record.category == "dry_goods"
        assert record.source_pos_data["categoryMapping"]["confidence"] == 0.3

    def test_deleted_item_skipped(self, restaurant_id):
        assert SquareTransformer().transform(_square_item(restaurant_id, deleted=True)) is None

    def test_open_order_skipped(self, restaurant_id):
        assert SquareTransformer().transform(_square_line(restaurant_id, "u1", state="OPEN")) is None

    def test_order_line(self, restaurant_id):
        record = SquareTransformer().transform(_square_line(restaurant_id, "u1"))
        assert record.source_pos_line_item_id == "u1"
        assert record.source_pos_order_id == "ORD-u1"
        assert record.quantity == Decimal("2")
        assert record.total_amount == Decimal("25.98")
        assert record.transaction_date == CLOSED_AT


class TestPosDataTransformer:
    @pytest.mark.asyncio
    async def test_menu_items_are_idempotent(self, repos, restaurant_id):
        repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id, item_id="SQ-OLD", deleted=True))
        transformer = PosDataTransformer(repos)

        first = await transformer.transform_menu_items(restaurant_id, "square")
        assert first["summary"] == {"processed": 2, "created": 1, "updated": 0, "skipped": 1, "errors": 0}

        second = await transformer.transform_menu_items(restaurant_id, "square")
        assert second["summary"]["created"] == 0
        assert second["summary"]["updated"] == 0
        assert len(repos.items.rows) == 1

    @pytest.mark.asyncio
    async def test_price_change_updates_existing_item(self, repos, restaurant_id):
        raw = repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        transformer = PosDataTransformer(repos)
        await transformer.transform_menu_items(restaurant_id, "square")

        raw.price_money_amount = 1499
        result = await transformer.transform_menu_items(restaurant_id, "square")

        assert result["summary"]["updated"] == 1
        item = next(iter(repos.items.rows.values()))
        assert item.unit_cost == Decimal("14.99")

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, repos, restaurant_id):
        repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        result = await PosDataTransformer(repos).transform_menu_items(restaurant_id, "square", dry_run=True)

        assert result["dryRun"] is True
        assert result["summary"]["created"] == 1
        assert repos.items.rows == {}
        assert repos.commits == 0

    @pytest.mark.asyncio
    async def test_orders_link_items_and_keep_unmatched(self, repos, restaurant_id):
        repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u1"))
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u2", item_id="SQ-UNKNOWN"))
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u3", state="CANCELED"))
        transformer = PosDataTransformer(repos)
        await transformer.transform_menu_items(restaurant_id, "square")

        result = await transformer.transform_orders(restaurant_id, "square")

        assert result["summary"] == {"processed": 3, "created": 2, "updated": 0, "skipped": 1, "errors": 0}
        wings = next(iter(repos.items.rows.values()))
        assert repos.sales.rows[("square", "u1")].inventory_item_id == wings.id
        assert repos.sales.rows[("square", "u2")].inventory_item_id is None

        again = await transformer.transform_orders(restaurant_id, "square")
        assert again["summary"]["created"] == 0
        assert again["summary"]["updated"] == 0

    @pytest.mark.asyncio
    async def test_line_owned_by_other_restaurant_is_row_error(self, repos, restaurant_id):
        repos.sales.add(
            restaurant_id=uuid.uuid4(),
            source_pos_provider="square",
            source_pos_line_item_id="u1",
            transaction_date=CLOSED_AT,
            quantity=Decimal("1"),
            unit_price=Decimal("1"),
            total_amount=Decimal("1"),
            source_pos_data={},
        )
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u1"))

        result = await PosDataTransformer(repos, max_error_rate=0.05).transform_orders(restaurant_id, "square")

        assert result["summary"]["errors"] == 1
        assert result["errors"][0]["code"] == "RECONCILIATION_CONFLICT"
        assert result["errorRate"] == 1.0
        assert result["exceededThreshold"] is True

    @pytest.mark.asyncio
    async def test_inventory_counts(self, repos, restaurant_id):
        repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        counts = [
            SquareInventoryCount(restaurant_id=restaurant_id, square_catalog_object_id="SQ-WINGS", square_state="IN_STOCK",
                                 square_data={}, quantity=Decimal("18"), calculated_at=CLOSED_AT),
            SquareInventoryCount(restaurant_id=restaurant_id, square_catalog_object_id="SQ-WINGS", square_state="WASTE",
                                 square_data={}, quantity=Decimal("2"), calculated_at=CLOSED_AT),
            SquareInventoryCount(restaurant_id=restaurant_id, square_catalog_object_id="SQ-NOPE", square_state="IN_STOCK",
                                 square_data={}, quantity=Decimal("4"), calculated_at=CLOSED_AT),
        ]
        for c in counts:
            repos.pos_raw.add("square", "inventory_count", c)
        transformer = PosDataTransformer(repos)
        await transformer.transform_menu_items(restaurant_id, "square")

        result = await transformer.transform_inventory_counts(restaurant_id, "square")

        assert result["summary"]["updated"] == 1
        assert result["summary"]["skipped"] == 2
        assert next(iter(repos.items.rows.values())).current_stock == Decimal("18")

    @pytest.mark.asyncio
    async def test_toast_skips_archived_and_voided(self, repos, restaurant_id):
        repos.pos_raw.add("toast", "menu_item", ToastMenuItem(
            restaurant_id=restaurant_id, toast_item_guid="T-1", toast_data={}, name="Draft IPA 16 oz",
            sku=None, description=None, menu_group_name="Beer", price_amount=700, is_archived=False,
        ))
        repos.pos_raw.add("toast", "menu_item", ToastMenuItem(
            restaurant_id=restaurant_id, toast_item_guid="T-2", toast_data={}, name="Old Stout",
            sku=None, description=None, menu_group_name="Beer", price_amount=700, is_archived=True,
        ))
        for guid, voided in (("S-1", False), ("S-2", True)):
            repos.pos_raw.add("toast", "order_line", ToastOrderSelection(
                restaurant_id=restaurant_id, toast_order_guid="O-1", toast_selection_guid=guid, toast_item_guid="T-1",
                toast_data={}, display_name="Draft IPA", quantity=Decimal("3"), unit_price_amount=700,
                total_price_amount=None, voided=voided, closed_at=CLOSED_AT, created_at=CLOSED_AT,
            ))
        transformer = PosDataTransformer(repos)

        items = await transformer.transform_menu_items(restaurant_id, "toast")
        orders = await transformer.transform_orders(restaurant_id, "toast")

        assert items["summary"]["created"] == 1
        ipa = next(iter(repos.items.rows.values()))
        assert ipa.category == "beverages"
        assert ipa.unit == "oz"
        assert orders["summary"]["created"] == 1
        line = repos.sales.rows[("toast", "S-1")]
        assert line.total_amount == Decimal("21.00")
        assert line.inventory_item_id == ipa.id

    @pytest.mark.asyncio
    async def test_provider_without_counts_returns_empty(self, repos, restaurant_id):
        result = await PosDataTransformer(repos).transform_inventory_counts(restaurant_id, "toast")
        assert result["summary"]["processed"] == 0
        assert result["errorRate"] == 0.0

    @pytest.mark.asyncio
    async def test_write_reports_outcome(self, repos, restaurant_id):
        record = SquareTransformer().transform(_square_item(restaurant_id))
        assert await PosDataTransformer(repos).write(record) is UpsertOutcome.CREATED

    @pytest.mark.asyncio
    async def test_row_rejected_by_database_is_row_error(self, repos, restaurant_id):
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u1"))
        repos.pos_raw.add("square", "order_line", _square_line(restaurant_id, "u2", qty="123456789012"))
        upsert = repos.sales.upsert_line

        async def overflow_on_huge_quantity(record):
            if record.quantity > Decimal("999999999"):
                raise DataError("INSERT INTO sales_transactions ...", {}, Exception("numeric field overflow"))
            return await upsert(record)

        repos.sales.upsert_line = overflow_on_huge_quantity

        result = await PosDataTransformer(repos, max_error_rate=1.0).transform_orders(restaurant_id, "square")

        assert result["summary"] == {"processed": 2, "created": 1, "updated": 0, "skipped": 1, "errors": 1}
        assert result["errors"][0]["code"] == "VALIDATION_ERROR"
        assert "numeric field overflow" in result["errors"][0]["error"]
        assert list(repos.sales.rows) == [("square", "u1")]

    @pytest.mark.asyncio
    async def test_resync_keeps_assigned_supplier(self, repos, restaurant_id):
        raw = repos.pos_raw.add("square", "menu_item", _square_item(restaurant_id))
        transformer = PosDataTransformer(repos)
        await transformer.transform_menu_items(restaurant_id, "square")
        item = next(iter(repos.items.rows.values()))
        supplier_id = uuid.uuid4()
        item.supplier_id = supplier_id

        raw.price_money_amount = 1499
        result = await transformer.transform_menu_items(restaurant_id, "square")

        assert result["summary"]["updated"] == 1
        assert item.unit_cost == Decimal("14.99")
        assert item.supplier_id == supplier_id
