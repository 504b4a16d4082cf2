"""Tests for the CSV validate -> transform pipeline."""

import uuid
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import DataError

from core.exceptions import NotFoundError, ValidationError
from services.csv.inventory import slugify, source_item_id
from services.csv.schemas import normalize_header
from services.csv.transform import CsvTransformService
from services.csv.upload import CsvUploadService

INVENTORY_CSV = """Item Name,Category,UOM,Unit Cost,Description,Vendor,SKU,Current Qty,Par
Chicken Breast,Meat,lb,$3.49,Boneless,Sysco,SYS-100,20,40
Romaine,Produce,case,"1,200.00",Hearts,FreshCo,,5,
Mystery,Qwzx,each,1.00,,Local,,,
Bad Row,Produce,lb,abc,,Sysco,,,
"""

SALES_CSV = """Date,Menu Item,Qty,Price Each,Line Total,Check ID
2024-03-05,Chicken Breast,2,12.00,24.00,C-1
03/05/2024,Chicken Breast,1,12.00,12.00,C-1
2024-03-06,Unknown Dish,1,9.50,9.50,C-2
2024-03-06,Chicken Breast,0,12.00,0,C-3
"""


async def _upload(repos, restaurant_id, content=INVENTORY_CSV, upload_type="inventory", batch_size=None):
    return await CsvUploadService(repos, batch_size=batch_size).validate_upload(
        restaurant_id, upload_type, "upload.csv", content
    )


class CancelAfter:
    """Reports cancellation once ``n`` batches have started."""

    def __init__(self, n):
        self.n = n
        self.calls = 0

    def is_set(self):
        self.calls += 1
        return self.calls > self.n


class TestHeaders:
    def test_aliases(self):
        assert normalize_header(" Unit Cost ") == "unit_cost"
        assert normalize_header("Vendor Item #") == "vendor_item_number"
        assert normalize_header("Reorder Point") == "reorder_point"

    def test_item_depends_on_upload_type(self):
        assert normalize_header("Item", "inventory") == "name"
        assert normalize_header("Item", "sales") == "item_name"

    def test_slugs(self):
        assert slugify("  SYS 100/B ", "x") == "sys-100-b"
        assert slugify("", "row-4") == "row-4"
        assert source_item_id("Romaine") == "csv-romaine"
        assert source_item_id("Romaine", sku="R-1") == "csv-r-1"


class TestValidatePhase:
    @pytest.mark.asyncio
    async def test_rows_are_typed_and_batched(self, repos, restaurant_id):
        result = await _upload(repos, restaurant_id, batch_size=2)

        assert result["status"] == "validated"
        assert (result["rowsTotal"], result["rowsValid"], result["rowsInvalid"]) == (4, 3, 1)
        assert result["batches"] == 2
        assert result["errors"][0]["row"] == 5
        assert result["errors"][0]["field"] == "unit_cost"

        batches = await repos.csv.list_batches(uuid.UUID(result["uploadId"]))
        assert [b.batch_index for b in batches] == [0, 1]
        first = batches[0].rows[0]
        assert first["row"] == 2
        assert Decimal(first["data"]["unit_cost"]) == Decimal("3.49")
        assert batches[1].rows_invalid == 1

    @pytest.mark.asyncio
    async def test_no_tier2_writes(self, repos, restaurant_id):
        await _upload(repos, restaurant_id)
        assert repos.items.rows == {}

    @pytest.mark.asyncio
    async def test_missing_required_headers(self, repos, restaurant_id):
        with pytest.raises(ValidationError) as exc:
            await _upload(repos, restaurant_id, content="Item Name,Category\nEggs,Dairy\n")

        assert "unit" in str(exc.value)
        upload = next(iter(repos.csv.uploads.values()))
        assert upload.status == "failed"
        assert "unit_cost" in upload.validation_errors["missingHeaders"]

    @pytest.mark.asyncio
    async def test_unknown_headers_and_blank_lines(self, repos, restaurant_id):
        content = "\ufeffname,category,unit,unit_cost,description,supplier_name,Shelf\nEggs,Dairy,each,0.25,,Farm,B2\n\n,,,,,,\n"
        result = await _upload(repos, restaurant_id, content=content)

        assert result["rowsTotal"] == 1
        assert result["unknownHeaders"] == ["shelf"]

    @pytest.mark.asyncio
    async def test_rejects_non_csv_files(self, repos, restaurant_id):
        with pytest.raises(ValidationError):
            await CsvUploadService(repos).validate_upload(restaurant_id, "inventory", "stock.xlsx", INVENTORY_CSV)
        assert repos.csv.uploads == {}

    @pytest.mark.asyncio
    async def test_unknown_upload_type(self, repos, restaurant_id):
        with pytest.raises(ValidationError):
            await _upload(repos, restaurant_id, upload_type="invoices")

    @pytest.mark.asyncio
    async def test_non_utf8_file_fails_the_upload(self, repos, restaurant_id):
        content = "name,category,unit,unit_cost,description,supplier_name\nCafé Beans,Dry Goods,lb,9.00,,Roaster\n"

        with pytest.raises(ValidationError) as exc:
            await _upload(repos, restaurant_id, content=content.encode("latin-1"))

        assert exc.value.field == "file"
        upload = next(iter(repos.csv.uploads.values()))
        assert upload.status == "failed"
        assert "byteOffset" in upload.validation_errors
        assert repos.csv.batches == []

    @pytest.mark.asyncio
    async def test_oversized_field_fails_the_upload(self, repos, restaurant_id):
        content = (
            "name,category,unit,unit_cost,description,supplier_name\n"
            f"Eggs,Dairy,each,0.25,{'x' * 200_000},Farm\n"
        )

        with pytest.raises(ValidationError) as exc:
            await _upload(repos, restaurant_id, content=content)

        assert exc.value.field == "file"
        assert "Malformed CSV" in str(exc.value)
        upload = next(iter(repos.csv.uploads.values()))
        assert upload.status == "failed"
        assert upload.validation_errors["line"] >= 2


class TestInventoryTransform:
    @pytest.mark.asyncio
    async def test_creates_items_with_csv_keys(self, repos, restaurant_id):
        upload = await _upload(repos, restaurant_id)

        result = await CsvTransformService(repos).transform_inventory_upload(uuid.UUID(upload["uploadId"]))

        assert result["status"] == "completed"
        assert result["summary"]["createdCount"] == 3
        assert result["summary"]["errorCount"] == 0
        assert result["summary"]["flaggedForReviewCount"] == 2

        chicken = await repos.items.find_by_source(restaurant_id, "csv", "csv-sys-100")
        assert chicken.category == "proteins"
        assert chicken.unit == "lbs"
        assert chicken.unit_cost == Decimal("3.49")
        assert chicken.current_stock == Decimal("20")
        assert chicken.maximum_stock == Decimal("40")
        assert chicken.minimum_stock == Decimal("12.0")

        mystery = await repos.items.find_by_source(restaurant_id, "csv", "csv-mystery")
        assert mystery.category == "other"
        assert mystery.unit == "pieces"
        assert repos.csv.uploads[uuid.UUID(upload["uploadId"])].status == "transformed"

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id))["uploadId"])
        service = CsvTransformService(repos)
        await service.transform_upload(upload_id)

        again = await service.transform_upload(upload_id)

        assert again["summary"]["createdCount"] == 0
        assert again["summary"]["updatedCount"] == 0
        assert again["summary"]["skippedCount"] == 3
        assert len(repos.items.rows) == 3
        assert len(repos.csv.transforms) == 2

    @pytest.mark.asyncio
    async def test_second_upload_updates_same_sku(self, repos, restaurant_id):
        service = CsvTransformService(repos)
        await service.transform_upload(uuid.UUID((await _upload(repos, restaurant_id))["uploadId"]))
        repriced = (
            "Item Name,Category,UOM,Unit Cost,Description,Vendor,SKU\n"
            "Chicken Breast Boneless,Meat,lb,3.79,Boneless,Sysco,SYS-100\n"
        )
        second = await _upload(repos, restaurant_id, content=repriced)

        result = await service.transform_upload(uuid.UUID(second["uploadId"]))

        assert result["summary"]["updatedCount"] == 1
        assert result["summary"]["createdCount"] == 0
        assert len(repos.items.rows) == 3
        chicken = await repos.items.find_by_source(restaurant_id, "csv", "csv-sys-100")
        assert chicken.unit_cost == Decimal("3.79")
        assert chicken.name == "Chicken Breast Boneless"

    @pytest.mark.asyncio
    async def test_dry_run_persists_only_the_transform_record(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id))["uploadId"])

        result = await CsvTransformService(repos).transform_upload(upload_id, dry_run=True)

        assert result["dryRun"] is True
        assert result["status"] == "completed"
        assert result["summary"]["createdCount"] == 3
        assert repos.items.rows == {}
        record = repos.csv.transforms[uuid.UUID(result["transformId"])]
        assert record.dry_run is True
        assert record.created_count == 3
        assert record.completed_at is not None
        assert repos.csv.uploads[upload_id].status == "validated"

    @pytest.mark.asyncio
    async def test_row_errors_are_collected(self, repos, restaurant_id):
        content = (
            "name,category,unit,unit_cost,description,supplier_name,sku,current_stock\n"
            "Eggs,Dairy,each,0.25,,Farm,E-1,-5\n"
            "Milk,Dairy,gal,3.10,,Farm,M-1,4\n"
            "Milk 2%,Dairy,gal,3.20,,Farm,M-1,4\n"
        )
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=content))["uploadId"])

        result = await CsvTransformService(repos).transform_upload(upload_id)

        assert result["status"] == "completed"
        assert result["summary"]["processedCount"] == 3
        assert result["summary"]["createdCount"] == 1
        assert result["summary"]["errorCount"] == 2
        assert result["errorRate"] == pytest.approx(0.6667)
        assert {e["code"] for e in result["errors"]} == {"VALIDATION_ERROR", "RECONCILIATION_CONFLICT"}
        assert {e["row"] for e in result["errors"]} == {2, 4}

    @pytest.mark.asyncio
    async def test_error_rate_gate_rejects_before_writing(self, repos, restaurant_id):
        content = (
            "name,category,unit,unit_cost,description,supplier_name,current_stock\n"
            "Eggs,Dairy,each,0.25,,Farm,-5\n"
            "Milk,Dairy,gal,3.10,,Farm,4\n"
        )
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=content))["uploadId"])

        result = await CsvTransformService(repos).transform_upload(upload_id, max_error_rate=0.1)

        assert result["status"] == "failed"
        assert result["errorRate"] == 0.5
        assert result["summary"]["processedCount"] == 2
        assert result["summary"]["maxErrorRate"] == 0.1
        assert repos.items.rows == {}

    @pytest.mark.asyncio
    async def test_cancel_between_batches(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, batch_size=1))["uploadId"])

        result = await CsvTransformService(repos).transform_upload(upload_id, cancel_event=CancelAfter(1))

        assert result["status"] == "cancelled"
        assert result["summary"]["processedCount"] == 1
        assert result["summary"]["batchesProcessed"] == 1
        assert len(repos.items.rows) == 1
        assert repos.csv.uploads[upload_id].status == "validated"

    @pytest.mark.asyncio
    async def test_missing_upload(self, repos):
        with pytest.raises(NotFoundError):
            await CsvTransformService(repos).transform_upload(uuid.uuid4())
        assert repos.csv.transforms == {}

    @pytest.mark.asyncio
    async def test_wrong_type_records_failed_transform(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id))["uploadId"])

        with pytest.raises(ValidationError):
            await CsvTransformService(repos).transform_sales_upload(upload_id)

        record = next(iter(repos.csv.transforms.values()))
        assert record.status == "failed"
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_foreign_restaurant_rejected(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id))["uploadId"])
        with pytest.raises(ValidationError):
            await CsvTransformService(repos).transform_upload(upload_id, restaurant_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_rows_rejected_by_database_are_row_errors(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id))["uploadId"])
        upsert = repos.items.upsert_from_source

        async def overflow_on_romaine(record):
            if record.name == "Romaine":
                raise DataError("INSERT INTO inventory_items ...", {}, Exception("numeric field overflow"))
            return await upsert(record)

        repos.items.upsert_from_source = overflow_on_romaine

        result = await CsvTransformService(repos).transform_upload(upload_id)

        assert result["status"] == "completed"
        assert result["summary"]["createdCount"] == 2
        assert result["summary"]["errorCount"] == 1
        assert result["errors"][0]["row"] == 3
        assert result["errors"][0]["code"] == "VALIDATION_ERROR"
        assert "numeric field overflow" in result["errors"][0]["error"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_marks_transform_failed(self, repos, restaurant_id):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, batch_size=1))["uploadId"])
        upsert = repos.items.upsert_from_source

        async def connection_lost_on_romaine(record):
            if record.name == "Romaine":
                raise RuntimeError("connection lost")
            return await upsert(record)

        repos.items.upsert_from_source = connection_lost_on_romaine

        with pytest.raises(RuntimeError):
            await CsvTransformService(repos).transform_upload(upload_id)

        record = next(iter(repos.csv.transforms.values()))
        assert record.status == "failed"
        assert record.completed_at is not None
        assert record.created_count == 1
        assert record.errors == [{"code": "UNEXPECTED_ERROR", "error": "connection lost"}]
        assert repos.rollbacks == 1
        assert repos.csv.uploads[upload_id].status == "validated"

    @pytest.mark.asyncio
    async def test_dry_run_matches_stored_precision(self, repos, restaurant_id):
        content = (
            "name,category,unit,unit_cost,description,supplier_name,sku,current_stock\n"
            "Saffron,Spices,oz,12.505,,Importer,SAF-1,2.5005\n"
        )
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=content))["uploadId"])
        service = CsvTransformService(repos)
        await service.transform_upload(upload_id)

        preview = await service.transform_upload(upload_id, dry_run=True)

        assert preview["summary"]["updatedCount"] == 0
        assert preview["summary"]["skippedCount"] == 1
        saffron = await repos.items.find_by_source(restaurant_id, "csv", "csv-saf-1")
        assert saffron.current_stock == Decimal("2.501")
        assert saffron.unit_cost == Decimal("12.51")

    @pytest.mark.asyncio
    async def test_reupload_keeps_assigned_supplier(self, repos, restaurant_id):
        service = CsvTransformService(repos)
        await service.transform_upload(uuid.UUID((await _upload(repos, restaurant_id))["uploadId"]))
        chicken = await repos.items.find_by_source(restaurant_id, "csv", "csv-sys-100")
        supplier_id = uuid.uuid4()
        chicken.supplier_id = supplier_id
        repriced = (
            "Item Name,Category,UOM,Unit Cost,Description,Vendor,SKU\n"
            "Chicken Breast,Meat,lb,3.79,Boneless,Sysco,SYS-100\n"
        )

        await service.transform_upload(uuid.UUID((await _upload(repos, restaurant_id, content=repriced))["uploadId"]))

        assert chicken.unit_cost == Decimal("3.79")
        assert chicken.supplier_id == supplier_id


class TestSalesTransform:
    @pytest.mark.asyncio
    async def test_sales_lines_match_items_by_name(self, repos, restaurant_id, item):
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=SALES_CSV, upload_type="sales"))["uploadId"])
        service = CsvTransformService(repos)

        result = await service.transform_sales_upload(upload_id, restaurant_id)

        assert result["summary"]["createdCount"] == 3
        assert result["summary"]["errorCount"] == 1
        assert result["errorRate"] == 0.25
        assert result["summary"]["flaggedForReview"][0]["reason"] == "unmatched_item"

        first = repos.sales.rows[("csv", "csv-c-1-chicken-breast-1")]
        second = repos.sales.rows[("csv", "csv-c-1-chicken-breast-2")]
        assert first.inventory_item_id == item.id
        assert second.quantity == Decimal("1")
        assert repos.sales.rows[("csv", "csv-c-2-unknown-dish-1")].inventory_item_id is None

        again = await service.transform_sales_upload(upload_id, restaurant_id)
        assert again["summary"]["createdCount"] == 0
        assert again["summary"]["updatedCount"] == 0
        assert len(repos.sales.rows) == 3

    @pytest.mark.asyncio
    async def test_line_item_id_is_the_key(self, repos, restaurant_id):
        content = (
            "transaction_date,item_name,quantity,unit_price,total_amount,order_id,line_item_id\n"
            "2024-03-05,Soup,1,6.00,6.00,C-9,L-77\n"
        )
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=content, upload_type="sales"))["uploadId"])

        await CsvTransformService(repos).transform_upload(upload_id)

        assert ("csv", "csv-l-77") in repos.sales.rows

    @pytest.mark.asyncio
    async def test_offset_timestamps_are_stored_as_utc(self, repos, restaurant_id):
        content = (
            "transaction_date,item_name,quantity,unit_price,total_amount,order_id,line_item_id\n"
            "2024-03-05T10:00:00+02:00,Soup,1,6.00,6.00,C-9,L-78\n"
        )
        upload_id = uuid.UUID((await _upload(repos, restaurant_id, content=content, upload_type="sales"))["uploadId"])

        result = await CsvTransformService(repos).transform_upload(upload_id)

        assert result["summary"]["createdCount"] == 1
        line = repos.sales.rows[("csv", "csv-l-78")]
        assert line.transaction_date == datetime(2024, 3, 5, 8, 0)
        assert line.transaction_date.tzinfo is None
