from dataclasses import dataclass
from typing import FrozenSet, Tuple, Type

from pydantic import BaseModel

from core.enums import UploadType
from core.exceptions import ValidationError
from schemas.csv import InventoryCsvRow, SalesCsvRow

HEADER_ALIASES = {
    "item name": "name",
    "product name": "name",
    "category name": "category",
    "category_name": "category",
    "uom": "unit",
    "unit of measure": "unit",
    "unit cost": "unit_cost",
    "price": "unit_cost",
    "cost": "unit_cost",
    "supplier": "supplier_name",
    "vendor": "supplier_name",
    "vendor name": "supplier_name",
    "current qty": "current_stock",
    "current quantity": "current_stock",
    "par level": "maximum_stock",
    "par": "maximum_stock",
    "min": "minimum_stock",
    "max": "maximum_stock",
    "batch": "batch_number",
    "location name": "location",
    "gl account": "gl_account",
    "gl code": "gl_account",
    "item sku": "sku",
    "vendor item #": "vendor_item_number",
    "vendor item number": "vendor_item_number",
    "date": "transaction_date",
    "transaction date": "transaction_date",
    "menu item": "item_name",
    "qty": "quantity",
    "quantity sold": "quantity",
    "price each": "unit_price",
    "line total": "total_amount",
    "total": "total_amount",
    "ticket id": "order_id",
    "check id": "order_id",
    "line item id": "line_item_id",
    "modifier": "modifiers",
    "modifier list": "modifiers",
}

# 'item' means the menu item on sales files and the product name on inventory files
CONTEXT_ALIASES = {
    UploadType.INVENTORY: {"item": "name", "item name": "name"},
    UploadType.SALES: {"item": "item_name", "item name": "item_name"},
}

INVENTORY_REQUIRED = ("name", "category", "unit", "unit_cost", "description", "supplier_name")
INVENTORY_OPTIONAL = (
    "minimum_stock",
    "maximum_stock",
    "current_stock",
    "batch_number",
    "location",
    "gl_account",
    "sku",
    "vendor_item_number",
    "notes",
)
SALES_REQUIRED = ("transaction_date", "item_name", "quantity", "unit_price", "total_amount", "order_id")
SALES_OPTIONAL = ("line_item_id", "modifiers", "notes", "location", "server_name", "guest_count")


@dataclass(frozen=True)
class CsvSchema:
    upload_type: UploadType
    required: Tuple[str, ...]
    optional: Tuple[str, ...]
    row_model: Type[BaseModel]

    @property
    def known(self) -> FrozenSet[str]:
        return frozenset(self.required) | frozenset(self.optional)


SCHEMAS = {
    UploadType.INVENTORY: CsvSchema(UploadType.INVENTORY, INVENTORY_REQUIRED, INVENTORY_OPTIONAL, InventoryCsvRow),
    UploadType.SALES: CsvSchema(UploadType.SALES, SALES_REQUIRED, SALES_OPTIONAL, SalesCsvRow),
}


def get_schema(upload_type) -> CsvSchema:
    try:
        return SCHEMAS[UploadType(upload_type)]
    except ValueError:
        raise ValidationError(f"Unsupported CSV upload type: {upload_type}", field="upload_type")


def normalize_header(header: str, upload_type=None) -> str:
    lower = (header or "").strip().lower()
    if not lower:
        return ""
    if upload_type is not None:
        contextual = CONTEXT_ALIASES.get(UploadType(upload_type), {})
        if lower in contextual:
            return contextual[lower]
    return HEADER_ALIASES.get(lower, "_".join(lower.split()))
