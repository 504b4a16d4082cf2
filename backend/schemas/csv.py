from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, field_validator

from schemas.unified import naive_utc

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _parse_decimal(v):
    v = _blank_to_none(v)
    if v is None or isinstance(v, (Decimal, int, float)):
        return v
    cleaned = str(v).replace("$", "").replace(",", "").strip()
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"'{v}' is not a number")


class InventoryCsvRow(BaseModel):
    name: str
    category: str
    unit: str
    unit_cost: Decimal
    description: Optional[str] = None
    supplier_name: Optional[str] = None

    minimum_stock: Optional[Decimal] = None
    maximum_stock: Optional[Decimal] = None
    current_stock: Optional[Decimal] = None
    batch_number: Optional[str] = None
    location: Optional[str] = None
    gl_account: Optional[str] = None
    sku: Optional[str] = None
    vendor_item_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator(
        "name", "category", "unit", "description", "supplier_name", "batch_number",
        "location", "gl_account", "sku", "vendor_item_number", "notes",
        mode="before",
    )
    @classmethod
    def _strip(cls, v):
        return _blank_to_none(v)

    @field_validator("unit_cost", "minimum_stock", "maximum_stock", "current_stock", mode="before")
    @classmethod
    def _number(cls, v):
        return _parse_decimal(v)

    @field_validator("unit_cost")
    @classmethod
    def _non_negative_cost(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_cost cannot be negative")
        return v


class SalesCsvRow(BaseModel):
    transaction_date: datetime
    item_name: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal
    order_id: str

    line_item_id: Optional[str] = None
    modifiers: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[str] = None
    server_name: Optional[str] = None
    guest_count: Optional[int] = None

    @field_validator("item_name", "order_id", "line_item_id", "modifiers", "notes", "location", "server_name", mode="before")
    @classmethod
    def _strip(cls, v):
        return _blank_to_none(v)

    @field_validator("quantity", "unit_price", "total_amount", mode="before")
    @classmethod
    def _number(cls, v):
        return _parse_decimal(v)

    @field_validator("guest_count", mode="before")
    @classmethod
    def _count(cls, v):
        return _blank_to_none(v)

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _date(cls, v):
        v = _blank_to_none(v)
        if not isinstance(v, str):
            return v
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(v, fmt)
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(v)
        except ValueError:
            raise ValueError(f"'{v}' is not a recognised date")

    @field_validator("transaction_date")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return naive_utc(v)
