import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from core.config import settings
from core.enums import CalculationMethod, InvestigationStatus, Priority
from core.exceptions import NotFoundError
from services.investigation import (
    OPEN_STATUSES,
    InvestigationWorkflow,
    build_insights,
    build_recommendations,
    workflow_metrics,
)
from services.periods import period_to_dict
from services.priority import priority_score
from services.usage_calculation import UsageCalculationService, analysis_to_dict

logger = logging.getLogger(__name__)

WORSENING_RATIO = Decimal("1.1")
IMPROVING_RATIO = Decimal("0.9")
TREND_ESCALATION_DOLLAR = Decimal("50")
ACCURACY_TARGET = Decimal("0.8")


def _abs_dollar(analysis: Any) -> Decimal:
    return abs(Decimal(str(analysis.variance_dollar_value or 0)))


def variance_trend(values: Sequence[Decimal]) -> Dict[str, Any]:
    """Compare the mean of the older half of a series against the recent half."""
    if len(values) < 2:
        return {"trend": "insufficient_data", "olderAverage": None, "recentAverage": None}

    mid = len(values) // 2
    older, recent = values[:mid], values[mid:]
    older_avg = sum(older, Decimal("0")) / len(older)
    recent_avg = sum(recent, Decimal("0")) / len(recent)

    if older_avg == 0:
        trend = "worsening" if recent_avg > 0 else "stable"
    elif recent_avg > older_avg * WORSENING_RATIO:
        trend = "worsening"
    elif recent_avg < older_avg * IMPROVING_RATIO:
        trend = "improving"
    else:
        trend = "stable"
    return {
        "trend": trend,
        "olderAverage": float(older_avg.quantize(Decimal("0.01"))),
        "recentAverage": float(recent_avg.quantize(Decimal("0.01"))),
    }


def trend_recommendation(trend: Dict[str, Any]) -> str:
    if trend["trend"] == "worsening":
        if Decimal(str(trend["recentAverage"])) > TREND_ESCALATION_DOLLAR:
            return "immediate_investigation_required"
        return "monitor_closely"
    if trend["trend"] == "improving":
        return "continue_current_practices"
    return "maintain_monitoring"


class InventoryVarianceService:
    """External surface of the variance engine. Every operation returns
    ``{"success": True, ...payload, "errors": [...]}``; request-level failures
    raise ``VarianceEngineError`` subclasses instead."""

    def __init__(self, repos, calculator: Optional[UsageCalculationService] = None):
        self.repos = repos
        self.calculator = calculator or UsageCalculationService(repos)
        self.workflow = InvestigationWorkflow(repos)

    async def calculate_usage_variance(
        self,
        period_id: UUID,
        method: Any = CalculationMethod.RECIPE_BASED,
        item_ids: Optional[Iterable[UUID]] = None,
        recalculate: bool = False,
    ) -> Dict[str, Any]:
        result = await self.calculator.calculate_usage_for_period(
            period_id, method=method, item_ids=item_ids, recalculate=recalculate
        )
        calculated = {a["id"] for a in result["analyses"]}
        analyses = [a for a in await self.repos.analyses.list_for_period(period_id) if str(a.id) in calculated]

        return {
            "success": True,
            **result,
            "insights": build_insights(analyses),
            "summary": {
                "totalVarianceDollarValue": float(sum((_abs_dollar(a) for a in analyses), Decimal("0"))),
                "highPriorityCount": sum(1 for a in analyses if priority_score(a.priority) >= 3),
            },
        }

    async def analyze_period_variance(self, period_id: UUID) -> Dict[str, Any]:
        period = await self.repos.periods.get(period_id)
        if period is None:
            raise NotFoundError("InventoryPeriod", period_id)
        analyses = await self.repos.analyses.list_for_period(period_id)

        by_priority: Dict[str, List[Any]] = {p.value: [] for p in Priority}
        by_method: Dict[str, int] = defaultdict(int)
        confidences = []
        for a in analyses:
            by_priority.setdefault(a.priority, []).append(a)
            by_method[a.calculation_method] += 1
            if a.calculation_confidence is not None:
                confidences.append(Decimal(str(a.calculation_confidence)))
        total_dollar = sum((_abs_dollar(a) for a in analyses), Decimal("0"))
        avg_conf = sum(confidences, Decimal("0")) / len(confidences) if confidences else None

        recommendations = build_recommendations(analyses)
        historical = by_method.get(CalculationMethod.HISTORICAL_AVERAGE.value, 0)
        if historical > by_method.get(CalculationMethod.RECIPE_BASED.value, 0):
            recommendations.append({
                "type": "data_improvement",
                "priority": Priority.MEDIUM.value,
                "message": "Most items rely on historical averages; add recipes to improve accuracy",
            })
        if avg_conf is not None and avg_conf < ACCURACY_TARGET:
            recommendations.append({
                "type": "accuracy_improvement",
                "priority": Priority.MEDIUM.value,
                "message": f"Average calculation confidence {avg_conf:.2f} is below {ACCURACY_TARGET}",
            })

        alerts = []
        if by_priority[Priority.CRITICAL.value]:
            alerts.append({
                "type": "critical_variance",
                "count": len(by_priority[Priority.CRITICAL.value]),
                "message": "Critical variances detected",
            })
        if total_dollar > Decimal(str(settings.total_impact_alert)):
            alerts.append({
                "type": "high_financial_impact",
                "totalVarianceDollarValue": float(total_dollar),
                "message": f"Total variance impact ${total_dollar:.2f} exceeds ${settings.total_impact_alert:.2f}",
            })
            logger.warning("Period %s total variance impact %.2f over alert threshold", period.id, total_dollar)

        return {
            "success": True,
            "period": period_to_dict(period),
            "summary": {
                "totalItems": len(analyses),
                "byPriority": {p: len(items) for p, items in by_priority.items()},
                "byMethod": dict(by_method),
                "totalVarianceDollarValue": float(total_dollar),
                "averageConfidence": float(avg_conf) if avg_conf is not None else None,
            },
            "analyses": [analysis_to_dict(a) for a in analyses],
            "recommendations": recommendations,
            "alerts": alerts,
            "insights": build_insights(analyses),
            "workflow": workflow_metrics(analyses),
            "errors": [],
        }

    async def priority_variance_summary(self, period_id: UUID, top_n: int = 10) -> Dict[str, Any]:
        period = await self.repos.periods.get(period_id)
        if period is None:
            raise NotFoundError("InventoryPeriod", period_id)
        analyses = await self.repos.analyses.list_for_period(period_id)

        priorities: Dict[str, Dict[str, Any]] = {}
        for p in Priority:
            group = sorted((a for a in analyses if a.priority == p.value), key=_abs_dollar, reverse=True)
            priorities[p.value] = {
                "count": len(group),
                "open": sum(1 for a in group if InvestigationStatus(a.investigation_status) in OPEN_STATUSES),
                "totalDollarImpact": float(sum((_abs_dollar(a) for a in group), Decimal("0"))),
                "items": [analysis_to_dict(a) for a in group[:top_n]],
            }

        attention = [
            a for a in analyses
            if priority_score(a.priority) >= 3 and InvestigationStatus(a.investigation_status) in OPEN_STATUSES
        ]
        return {
            "success": True,
            "periodId": str(period.id),
            "priorities": priorities,
            "requiresAttention": len(attention),
            "errors": [],
        }

    async def historical_variance_trends(
        self,
        restaurant_id: UUID,
        item_id: Optional[UUID] = None,
        period_count: Optional[int] = None,
    ) -> Dict[str, Any]:
        limit = period_count or settings.historical_period_limit
        periods = await self.repos.periods.recent_closed(restaurant_id, date.today() + timedelta(days=1), limit)
        periods = sorted(periods, key=lambda p: p.period_end)
        order = {p.id: i for i, p in enumerate(periods)}

        analyses = await self.repos.analyses.list_for_periods(list(order))
        if item_id is not None:
            analyses = [a for a in analyses if a.inventory_item_id == item_id]

        per_period = [Decimal("0")] * len(periods)
        per_item: Dict[UUID, List[tuple]] = defaultdict(list)
        for a in analyses:
            per_period[order[a.period_id]] += _abs_dollar(a)
            per_item[a.inventory_item_id].append((order[a.period_id], _abs_dollar(a)))

        items = []
        for iid, series in per_item.items():
            trend = variance_trend([v for _, v in sorted(series, key=lambda s: s[0])])
            items.append({
                "inventoryItemId": str(iid),
                "periods": len(series),
                **trend,
                "recommendation": trend_recommendation(trend) if trend["trend"] != "insufficient_data" else None,
            })
        items.sort(key=lambda i: (i["trend"] != "worsening", -(i["recentAverage"] or 0)))

        overall = variance_trend(per_period)
        return {
            "success": True,
            "restaurantId": str(restaurant_id),
            "periodsAnalyzed": len(periods),
            "periods": [
                {"periodId": str(p.id), "periodEnd": p.period_end.isoformat(), "totalVarianceDollarValue": float(per_period[i])}
                for i, p in enumerate(periods)
            ],
            "overall": overall,
            "items": items,
            "errors": [],
        }

    async def investigate_variance(self, analysis_id: UUID, assigned_to: UUID, notes: Optional[str] = None) -> Dict[str, Any]:
        analysis = await self.workflow.investigate(analysis_id, assigned_to, notes)
        return {"success": True, "analysis": analysis_to_dict(analysis), "errors": []}

    async def resolve_variance_investigation(
        self,
        analysis_id: UUID,
        resolved_by: UUID,
        explanation: str,
        resolution: Any = InvestigationStatus.RESOLVED,
    ) -> Dict[str, Any]:
        analysis = await self.workflow.resolve(analysis_id, resolved_by, explanation, resolution)
        return {"success": True, "analysis": analysis_to_dict(analysis), "errors": []}
