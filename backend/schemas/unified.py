"""Tier 2 write records produced by the POS and CSV transformers."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

# Scales of the Numeric(12, 3) and Numeric(12, 2) columns
QUANTITY_SCALE = Decimal("0.001")
MONEY_SCALE = Decimal("0.01")

# Left out of the write when unset so values kept by hand survive a re-sync
KEEP_WHEN_UNSET = ("current_stock", "supplier_id")


def quantize(value: Optional[Decimal], scale: Decimal) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return value.quantize(scale, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"{value} is out of range") from None


def naive_utc(value: datetime) -> datetime:
    """Timestamp columns are timezone-naive UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class UnifiedInventoryItem(BaseModel):
    restaurant_id: UUID
    source_pos_provider: str
    source_pos_item_id: str

    name: str
    description: Optional[str] = None
    category: str = "other"
    unit: str = "pieces"
    unit_cost: Decimal = Decimal("0")
    current_stock: Optional[Decimal] = None
    minimum_stock: Optional[Decimal] = None
    maximum_stock: Optional[Decimal] = None
    supplier_id: Optional[UUID] = None

    variance_threshold_quantity: Optional[Decimal] = None
    variance_threshold_dollar: Optional[Decimal] = None
    high_value_flag: bool = False
    is_active: bool = True

    # Provider or file specific attributes, kept opaque
    source_pos_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name", "source_pos_item_id")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("unit_cost")
    @classmethod
    def _non_negative_cost(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_cost cannot be negative")
        return v

    @field_validator("current_stock", "minimum_stock", "maximum_stock", "variance_threshold_quantity")
    @classmethod
    def _quantity_scale(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return quantize(v, QUANTITY_SCALE)

    @field_validator("unit_cost", "variance_threshold_dollar")
    @classmethod
    def _money_scale(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        return quantize(v, MONEY_SCALE)

    def column_values(self) -> Dict[str, Any]:
        values = self.model_dump(exclude_none=False)
        values["source_pos_data"] = self.model_dump(mode="json")["source_pos_data"]
        for col in KEEP_WHEN_UNSET:
            if values[col] is None:
                values.pop(col)
        return values


class UnifiedSalesLine(BaseModel):
    restaurant_id: UUID
    source_pos_provider: str
    source_pos_order_id: Optional[str] = None
    source_pos_line_item_id: str

    # External item id used to resolve inventory_item_id on write
    source_pos_item_id: Optional[str] = None
    inventory_item_id: Optional[UUID] = None

    item_name: Optional[str] = None
    transaction_date: datetime
    quantity: Decimal
    unit_price: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    source_pos_data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("transaction_date")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return naive_utc(v)

    @field_validator("quantity")
    @classmethod
    def _quantity_scale(cls, v: Decimal) -> Decimal:
        return quantize(v, QUANTITY_SCALE)

    @field_validator("unit_price", "total_amount")
    @classmethod
    def _money_scale(cls, v: Decimal) -> Decimal:
        return quantize(v, MONEY_SCALE)

    def column_values(self) -> Dict[str, Any]:
        values = self.model_dump(exclude={"source_pos_item_id"})
        values["source_pos_data"] = self.model_dump(mode="json")["source_pos_data"]
        return values


class UnifiedStockCount(BaseModel):
    restaurant_id: UUID
    source_pos_provider: str
    source_pos_item_id: str
    quantity: Decimal
    counted_at: Optional[datetime] = None

    @field_validator("quantity")
    @classmethod
    def _non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("stock quantity cannot be negative")
        return quantize(v, QUANTITY_SCALE)
