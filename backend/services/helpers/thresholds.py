from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from core.config import settings

COST_TIERS = (
    (Decimal("5"), Decimal("20")),
    (Decimal("20"), Decimal("15")),
    (Decimal("100"), Decimal("10")),
)
TOP_TIER_PCT = Decimal("5")

CATEGORY_ADJUSTMENTS = {
    "produce": Decimal("5"),
    "proteins": Decimal("-5"),
    "dairy": Decimal("3"),
    "beverages": Decimal("10"),
    "paper_disposables": Decimal("15"),
    "cleaning_chemicals": Decimal("5"),
}

UNIT_ADJUSTMENTS = {
    "ea": Decimal("30"),
    "pieces": Decimal("30"),
    "case": Decimal("-5"),
    "cases": Decimal("-5"),
    "box": Decimal("-5"),
    "boxes": Decimal("-5"),
    "bag": Decimal("-5"),
    "bulk": Decimal("-5"),
}

MIN_PCT = Decimal("1")


@dataclass(frozen=True)
class VarianceThresholds:
    quantity: Decimal
    dollar: Decimal
    high_value: bool
    percentage: Decimal


class VarianceThresholdCalculator:
    """Derives per-item variance tolerances from cost, category and unit."""

    def __init__(self, high_value_dollar: Optional[float] = None, default_par_level: Optional[float] = None):
        self.high_value_dollar = Decimal(str(high_value_dollar if high_value_dollar is not None else settings.high_value_dollar_threshold))
        self.default_par_level = Decimal(str(default_par_level if default_par_level is not None else settings.default_par_level))

    def base_percentage(self, unit_cost: Decimal) -> Decimal:
        for ceiling, pct in COST_TIERS:
            if unit_cost < ceiling:
                return pct
        return TOP_TIER_PCT

    def calculate(self, unit_cost, category: Optional[str], unit: Optional[str], par_level=None) -> VarianceThresholds:
        cost = Decimal(str(unit_cost or 0))
        par = Decimal(str(par_level)) if par_level else self.default_par_level

        pct = self.base_percentage(cost)
        pct += CATEGORY_ADJUSTMENTS.get(category or "", Decimal("0"))
        pct += UNIT_ADJUSTMENTS.get((unit or "").lower(), Decimal("0"))
        pct = max(MIN_PCT, pct)

        quantity = (par * pct / Decimal("100")).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
        dollar = (quantity * cost).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return VarianceThresholds(
            quantity=quantity,
            dollar=dollar,
            high_value=dollar >= self.high_value_dollar,
            percentage=pct,
        )
