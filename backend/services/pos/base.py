"""Base class for POS transformers.

A transformer turns one Tier 1 raw row into one Tier 2 unified record. To
add a provider:
1. Create a module in this package
2. Subclass PosTransformer and implement the abstract methods
3. Register it in services.pos.registry
The unified write path does not change.
"""

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Union
from uuid import UUID

from core.exceptions import ValidationError
from schemas.unified import UnifiedInventoryItem, UnifiedSalesLine, UnifiedStockCount
from services.helpers.categories import map_category
from services.helpers.thresholds import VarianceThresholdCalculator
from services.helpers.units import infer_unit, normalize_unit

logger = logging.getLogger(__name__)

UnifiedRecord = Union[UnifiedInventoryItem, UnifiedSalesLine, UnifiedStockCount]

FALLBACK_CATEGORY = "dry_goods"
FALLBACK_CATEGORY_CONFIDENCE = 0.3
MIN_STOCK_RATIO = Decimal("0.3")
MAX_STOCK_RATIO = Decimal("1.5")


def money(minor_units: Optional[int]) -> Decimal:
    """Integer minor units (cents) to currency units."""
    if minor_units is None:
        return Decimal("0.00")
    return (Decimal(int(minor_units)) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class PosTransformer(ABC):
    def __init__(self, threshold_calculator: Optional[VarianceThresholdCalculator] = None):
        self.thresholds = threshold_calculator or VarianceThresholdCalculator()

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider tag written to source_pos_provider (e.g. 'square')."""

    @abstractmethod
    def transform_menu_item(self, raw: Any) -> Optional[UnifiedInventoryItem]:
        """Raw catalog/menu row to a unified inventory item, or None to skip."""

    @abstractmethod
    def transform_order_line(self, raw: Any) -> Optional[UnifiedSalesLine]:
        """Raw order line to a unified sales line, or None to skip."""

    def transform_inventory_count(self, raw: Any) -> Optional[UnifiedStockCount]:
        # Providers without a stock feed skip counts
        return None

    def transform(self, raw: Any) -> Optional[UnifiedRecord]:
        kind = getattr(raw, "record_kind", None)
        handlers = {
            "menu_item": self.transform_menu_item,
            "order_line": self.transform_order_line,
            "inventory_count": self.transform_inventory_count,
        }
        if kind not in handlers:
            raise ValidationError(f"{self.provider} transformer cannot handle record kind {kind!r}")
        return handlers[kind](raw)

    def build_item(
        self,
        *,
        restaurant_id: UUID,
        source_item_id: str,
        name: str,
        description: Optional[str],
        category_name: Optional[str],
        price_minor: Optional[int],
        variation_name: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> UnifiedInventoryItem:
        match = map_category(category_name)
        if match is None:
            logger.warning("%s item %s: unmapped category %r, using %s", self.provider, source_item_id, category_name, FALLBACK_CATEGORY)
            category, confidence, match_type = FALLBACK_CATEGORY, FALLBACK_CATEGORY_CONFIDENCE, "fallback"
        else:
            category, confidence, match_type = match.category, match.confidence, match.match_type

        inferred = infer_unit(name, variation_name, category)
        unit = normalize_unit(inferred.unit)
        unit_cost = money(price_minor)
        par = self.thresholds.default_par_level
        limits = self.thresholds.calculate(unit_cost, category, unit, par)

        data = dict(payload or {})
        data.update({
            "categoryName": category_name,
            "categoryMapping": {"category": category, "confidence": confidence, "matchType": match_type},
            "unitInference": {"unit": inferred.unit, "confidence": inferred.confidence, "matchType": inferred.match_type},
        })
        return UnifiedInventoryItem(
            restaurant_id=restaurant_id,
            source_pos_provider=self.provider,
            source_pos_item_id=str(source_item_id),
            name=name,
            description=description,
            category=category,
            unit=unit,
            unit_cost=unit_cost,
            minimum_stock=par * MIN_STOCK_RATIO,
            maximum_stock=par * MAX_STOCK_RATIO,
            variance_threshold_quantity=limits.quantity,
            variance_threshold_dollar=limits.dollar,
            high_value_flag=limits.high_value,
            source_pos_data=data,
        )
