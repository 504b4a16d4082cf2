import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from core.config import settings
from core.enums import CalculationMethod, PeriodStatus, Priority, SnapshotType
from core.exceptions import (
    MissingSnapshotError,
    NotFoundError,
    PeriodStateError,
    UnknownCalculationMethodError,
    UnsupportedMethodError,
    VarianceEngineError,
    error_entry,
)
from services.priority import PriorityThresholds, classify

logger = logging.getLogger(__name__)

QTY = Decimal("0.001")
CENTS = Decimal("0.01")

RECIPE_CONFIDENCE = Decimal("0.90")
NO_HISTORY_CONFIDENCE = Decimal("0.20")
NEW_ITEM_CONFIDENCE = Decimal("0.30")
HISTORY_BASE_CONFIDENCE = Decimal("0.40")
HISTORY_STEP_CONFIDENCE = Decimal("0.08")
HISTORY_MAX_CONFIDENCE = Decimal("0.80")
AI_BOOST = Decimal("1.1")
AI_MAX_CONFIDENCE = Decimal("0.95")
AI_MIN_CONFIDENCE = Decimal("0.20")
AI_FACTORS = ["historical_trend", "seasonal_pattern"]


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class VarianceFigures:
    theoretical_quantity: Decimal
    actual_quantity: Decimal
    unit_cost: Decimal
    variance_quantity: Decimal
    variance_percentage: Decimal
    variance_dollar_value: Decimal


@dataclass(frozen=True)
class ActualUsage:
    quantity: Decimal
    beginning: Decimal
    ending: Decimal
    purchases: Decimal
    fallback_unit_cost: Optional[Decimal] = None


def compute_variance(theoretical: Decimal, actual: Decimal, unit_cost: Decimal) -> VarianceFigures:
    """Quantities are rounded before the dollar product so qty x cost is exact to the cent."""
    theoretical = _dec(theoretical).quantize(QTY, rounding=ROUND_HALF_UP)
    actual = _dec(actual).quantize(QTY, rounding=ROUND_HALF_UP)
    unit_cost = _dec(unit_cost)

    variance_qty = actual - theoretical
    if theoretical == 0:
        variance_pct = Decimal("0.00")
    else:
        variance_pct = (variance_qty / theoretical * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    variance_dollar = (variance_qty * unit_cost).quantize(CENTS, rounding=ROUND_HALF_UP)

    return VarianceFigures(
        theoretical_quantity=theoretical,
        actual_quantity=actual,
        unit_cost=unit_cost,
        variance_quantity=variance_qty,
        variance_percentage=variance_pct,
        variance_dollar_value=variance_dollar,
    )


def resolve_method(method: Any) -> CalculationMethod:
    try:
        resolved = CalculationMethod(method)
    except ValueError:
        raise UnknownCalculationMethodError(str(method))
    if resolved is CalculationMethod.MANUAL:
        raise UnsupportedMethodError(resolved.value, "manual usage requires an externally supplied theoretical quantity")
    return resolved


def _f(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def analysis_to_dict(analysis: Any) -> Dict[str, Any]:
    return {
        "id": str(analysis.id) if analysis.id else None,
        "periodId": str(analysis.period_id),
        "inventoryItemId": str(analysis.inventory_item_id),
        "theoreticalQuantity": _f(analysis.theoretical_quantity),
        "actualQuantity": _f(analysis.actual_quantity),
        "unitCost": _f(analysis.unit_cost),
        "varianceQuantity": _f(analysis.variance_quantity),
        "variancePercentage": _f(analysis.variance_percentage),
        "varianceDollarValue": _f(analysis.variance_dollar_value),
        "priority": analysis.priority,
        "calculationMethod": analysis.calculation_method,
        "calculationConfidence": _f(analysis.calculation_confidence),
        "investigationStatus": analysis.investigation_status,
        "assignedTo": str(analysis.assigned_to) if analysis.assigned_to else None,
        "investigatedBy": str(analysis.investigated_by) if analysis.investigated_by else None,
        "explanation": analysis.explanation,
        "calculationMetadata": analysis.calculation_metadata or {},
    }


class UsageCalculationService:
    def __init__(self, repos, thresholds: Optional[PriorityThresholds] = None, historical_period_limit: Optional[int] = None):
        self.repos = repos
        self.thresholds = thresholds or PriorityThresholds.from_settings()
        self.historical_period_limit = historical_period_limit or settings.historical_period_limit

    async def calculate_usage_for_period(
        self,
        period_id: UUID,
        method: Any = CalculationMethod.RECIPE_BASED,
        item_ids: Optional[Iterable[UUID]] = None,
        recalculate: bool = False,
    ) -> Dict[str, Any]:
        resolved = resolve_method(method)

        period = await self.repos.periods.get(period_id)
        if period is None:
            raise NotFoundError("InventoryPeriod", period_id)
        if period.status == PeriodStatus.LOCKED.value:
            raise PeriodStateError(f"Period {period_id} is locked", period_id=period_id)

        items = await self.repos.items.list_active(period.restaurant_id, item_ids)
        done = set() if recalculate else await self.repos.analyses.existing_item_ids(period.id)

        history = None
        if resolved in (CalculationMethod.HISTORICAL_AVERAGE, CalculationMethod.AI_PREDICTED):
            history = await self.repos.periods.recent_closed(
                period.restaurant_id, period.period_start, self.historical_period_limit
            )

        logger.info(
            "Calculating usage for period %s (%s): %d items, method=%s, recalculate=%s",
            period.id, period.period_name, len(items), resolved.value, recalculate,
        )

        result: Dict[str, Any] = {
            "periodId": str(period.id),
            "method": resolved.value,
            "itemsProcessed": 0,
            "itemsSkipped": 0,
            "analyses": [],
            "errors": [],
        }
        for item in items:
            if item.id in done:
                result["itemsSkipped"] += 1
                continue
            try:
                analysis = await self.calculate_item(period, item, resolved, history)
            except VarianceEngineError as exc:
                logger.warning("Usage calculation failed for item %s in period %s: %s", item.id, period.id, exc)
                result["errors"].append(error_entry(exc, itemId=str(item.id), itemName=item.name))
                continue
            result["itemsProcessed"] += 1
            result["analyses"].append(analysis_to_dict(analysis))

        if result["analyses"] and not result["errors"]:
            period.variance_analysis_completed = True
            await self.repos.periods.save(period)
        await self.repos.commit()

        logger.info(
            "Period %s usage calculated: processed=%d skipped=%d errors=%d",
            period.id, result["itemsProcessed"], result["itemsSkipped"], len(result["errors"]),
        )
        return result

    async def calculate_usage_for_multiple_periods(self, period_ids: Iterable[UUID], **options) -> Dict[str, Any]:
        results = []
        for period_id in period_ids:
            try:
                outcome = await self.calculate_usage_for_period(period_id, **options)
                results.append({"periodId": str(period_id), "success": True, **outcome})
            except VarianceEngineError as exc:
                logger.error("Usage calculation failed for period %s: %s", period_id, exc)
                results.append({"periodId": str(period_id), "success": False, "error": exc.to_dict()})
        return {
            "periods": results,
            "succeeded": sum(1 for r in results if r["success"]),
            "failed": sum(1 for r in results if not r["success"]),
        }

    async def calculate_item(self, period, item, method: CalculationMethod, history=None):
        theoretical, confidence, metadata = await self.theoretical_usage(period, item, method, history)
        usage = await self.actual_usage(period, item)
        metadata.update({
            "beginningQuantity": str(usage.beginning),
            "endingQuantity": str(usage.ending),
            "purchases": str(usage.purchases),
        })

        unit_cost = _dec(item.unit_cost)
        if unit_cost <= 0:
            unit_cost = _dec(usage.fallback_unit_cost)

        figures = compute_variance(theoretical, usage.quantity, unit_cost)
        priority = classify(figures, item, self.thresholds)

        values = {
            "period_id": period.id,
            "inventory_item_id": item.id,
            "theoretical_quantity": figures.theoretical_quantity,
            "actual_quantity": figures.actual_quantity,
            "unit_cost": figures.unit_cost,
            "variance_quantity": figures.variance_quantity,
            "variance_percentage": figures.variance_percentage,
            "variance_dollar_value": figures.variance_dollar_value,
            "priority": priority.value,
            "calculation_method": method.value,
            "calculation_confidence": confidence,
            "calculation_metadata": metadata,
            "calculated_at": datetime.utcnow(),
        }
        return await self.repos.analyses.upsert(values)

    async def theoretical_usage(self, period, item, method: CalculationMethod, history=None) -> Tuple[Decimal, Decimal, Dict[str, Any]]:
        if method is CalculationMethod.RECIPE_BASED:
            return await self._recipe_based(period, item)
        if method is CalculationMethod.HISTORICAL_AVERAGE:
            return await self._historical_average(period, item, history)
        if method is CalculationMethod.AI_PREDICTED:
            return await self._ai_predicted(period, item, history)
        raise UnknownCalculationMethodError(method.value)

    async def _recipe_based(self, period, item):
        total = Decimal("0")
        breakdown = []
        for usage in await self.repos.recipes.usages_for_item(item.id):
            sold = await self.repos.sales.units_sold(
                period.restaurant_id, usage.menu_item_id, period.period_start, period.period_end
            )
            total += usage.quantity_per_serving * sold
            breakdown.append({
                "recipeId": str(usage.recipe_id),
                "recipeName": usage.recipe_name,
                "quantityPerServing": str(usage.quantity_per_serving),
                "unitsSold": str(sold),
            })

        yield_factor = _dec(item.theoretical_yield_factor)
        if yield_factor <= 0:
            yield_factor = Decimal("1")
        theoretical = total / yield_factor
        return theoretical, RECIPE_CONFIDENCE, {"recipes": breakdown, "yieldFactor": str(yield_factor)}

    async def _historical_average(self, period, item, history=None):
        if history is None:
            history = await self.repos.periods.recent_closed(
                period.restaurant_id, period.period_start, self.historical_period_limit
            )
        if not history:
            return Decimal("0"), NO_HISTORY_CONFIDENCE, {"historicalPeriods": 0, "basis": "no_history"}

        analyses = await self.repos.analyses.history_for_item(item.id, [p.id for p in history])
        if not analyses:
            return Decimal("0"), NEW_ITEM_CONFIDENCE, {
                "historicalPeriods": len(history),
                "basis": "new_item_estimation",
            }

        n = len(analyses)
        mean = sum((_dec(a.actual_quantity) for a in analyses), Decimal("0")) / n
        confidence = min(HISTORY_MAX_CONFIDENCE, HISTORY_BASE_CONFIDENCE + HISTORY_STEP_CONFIDENCE * n)
        return mean, confidence, {
            "historicalPeriods": len(history),
            "sampleCount": n,
            "basis": "historical_average",
        }

    async def _ai_predicted(self, period, item, history=None):
        theoretical, confidence, metadata = await self._historical_average(period, item, history)
        boosted = min(AI_MAX_CONFIDENCE, (confidence * AI_BOOST).quantize(CENTS, rounding=ROUND_HALF_UP))
        metadata.update({"aiModel": "historical_trend", "aiFactors": list(AI_FACTORS)})
        return theoretical, max(AI_MIN_CONFIDENCE, boosted), metadata

    async def actual_usage(self, period, item) -> ActualUsage:
        """beginning + purchases - ending, never below zero."""
        beginning = await self.repos.snapshots.get(period.id, item.id, SnapshotType.BEGINNING.value)
        if beginning is None:
            raise MissingSnapshotError(period.id, item.id, SnapshotType.BEGINNING.value)
        ending = await self.repos.snapshots.get(period.id, item.id, SnapshotType.ENDING.value)
        if ending is None:
            raise MissingSnapshotError(period.id, item.id, SnapshotType.ENDING.value)

        purchases = await self.repos.transactions.purchases_total(item.id, period.period_start, period.period_end)
        raw = _dec(beginning.quantity) + purchases - _dec(ending.quantity)
        return ActualUsage(
            quantity=max(raw, Decimal("0")),
            beginning=_dec(beginning.quantity),
            ending=_dec(ending.quantity),
            purchases=purchases,
            fallback_unit_cost=ending.unit_cost if ending.unit_cost is not None else beginning.unit_cost,
        )

    async def get_calculation_summary(self, period_id: UUID) -> Dict[str, Any]:
        period = await self.repos.periods.get(period_id)
        if period is None:
            raise NotFoundError("InventoryPeriod", period_id)
        analyses = await self.repos.analyses.list_for_period(period_id)

        by_priority = {p.value: 0 for p in Priority}
        by_method: Dict[str, int] = {}
        total = Decimal("0")
        confidences: List[Decimal] = []
        for a in analyses:
            by_priority[a.priority] = by_priority.get(a.priority, 0) + 1
            by_method[a.calculation_method] = by_method.get(a.calculation_method, 0) + 1
            total += abs(_dec(a.variance_dollar_value))
            if a.calculation_confidence is not None:
                confidences.append(_dec(a.calculation_confidence))

        avg_conf = sum(confidences, Decimal("0")) / len(confidences) if confidences else Decimal("0")
        return {
            "periodId": str(period_id),
            "totalItems": len(analyses),
            "byPriority": by_priority,
            "byMethod": by_method,
            "totalVarianceDollarValue": float(total.quantize(CENTS)),
            "averageConfidence": float(avg_conf.quantize(CENTS)),
        }
