import re
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from core.enums import CSV_PROVIDER
from core.exceptions import ValidationError
from schemas.csv import InventoryCsvRow
from schemas.unified import UnifiedInventoryItem
from services.helpers.categories import map_category
from services.helpers.thresholds import VarianceThresholdCalculator
from services.helpers.units import normalize_unit

UNMAPPED_CATEGORY = "other"
MIN_STOCK_RATIO = Decimal("0.3")
MAX_STOCK_RATIO = Decimal("1.5")
# Fuzzy category matches below this are kept but flagged for review
REVIEW_CONFIDENCE = 0.85


def slugify(value: Optional[str], fallback: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").strip().lower()).strip("-")
    return slug[:64] or fallback


def source_item_id(name: Optional[str], sku: Optional[str] = None, vendor_item_number: Optional[str] = None, row: int = 0) -> str:
    return f"csv-{slugify(sku or vendor_item_number or name, f'row-{row}')}"


class CsvInventoryTransformer:
    """Validated inventory rows -> unified inventory items keyed ``csv-<slug>``."""

    upload_type = "inventory"

    def __init__(self, repos, threshold_calculator: Optional[VarianceThresholdCalculator] = None):
        self.repos = repos
        self.thresholds = threshold_calculator or VarianceThresholdCalculator()

    def par_levels(self, data: InventoryCsvRow) -> Tuple[Decimal, Decimal, Decimal]:
        par = data.maximum_stock or data.minimum_stock or self.thresholds.default_par_level
        if par <= 0:
            par = self.thresholds.default_par_level
        minimum = data.minimum_stock if data.minimum_stock is not None else par * MIN_STOCK_RATIO
        maximum = data.maximum_stock if data.maximum_stock is not None else par * MAX_STOCK_RATIO
        return par, minimum, maximum

    def review_flag(self, data: InventoryCsvRow, match) -> Optional[Dict[str, Any]]:
        if match is None:
            return {"name": data.name, "reason": "unmapped_category", "category": data.category}
        if match.confidence < REVIEW_CONFIDENCE:
            return {
                "name": data.name,
                "reason": "low_category_confidence",
                "category": data.category,
                "mappedCategory": match.category,
                "confidence": match.confidence,
            }
        if not data.sku and not data.vendor_item_number:
            return {"name": data.name, "reason": "missing_identifiers"}
        return None

    async def build_record(self, upload, row: Dict[str, Any], context: Dict[str, Any]):
        data = InventoryCsvRow.model_validate(row["data"])
        if data.current_stock is not None and data.current_stock < 0:
            raise ValidationError("current_stock cannot be negative", field="current_stock", row=row["row"])
        if data.minimum_stock is not None and data.minimum_stock < 0:
            raise ValidationError("minimum_stock cannot be negative", field="minimum_stock", row=row["row"])

        match = map_category(data.category)
        category = match.category if match else UNMAPPED_CATEGORY
        unit = normalize_unit(data.unit)
        par, minimum, maximum = self.par_levels(data)
        limits = self.thresholds.calculate(data.unit_cost, category, unit, par)

        record = UnifiedInventoryItem(
            restaurant_id=upload.restaurant_id,
            source_pos_provider=CSV_PROVIDER,
            source_pos_item_id=source_item_id(data.name, data.sku, data.vendor_item_number, row["row"]),
            name=data.name,
            description=data.description,
            category=category,
            unit=unit,
            unit_cost=data.unit_cost.quantize(Decimal("0.01")),
            current_stock=data.current_stock,
            minimum_stock=minimum,
            maximum_stock=maximum,
            variance_threshold_quantity=limits.quantity,
            variance_threshold_dollar=limits.dollar,
            high_value_flag=limits.high_value,
            source_pos_data={
                "uploadId": str(upload.id),
                "row": row["row"],
                "supplierName": data.supplier_name,
                "sku": data.sku,
                "vendorItemNumber": data.vendor_item_number,
                "batchNumber": data.batch_number,
                "glAccount": data.gl_account,
                "location": data.location,
                "notes": data.notes,
                "categoryOriginal": data.category,
                "unitOriginal": data.unit,
            },
        )
        return record, self.review_flag(data, match)
