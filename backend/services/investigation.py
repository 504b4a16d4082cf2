"""Investigation lifecycle for variance analyses.

    pending -> investigating -> resolved | accepted | escalated
    pending ----------------> resolved | accepted | escalated

resolved, accepted and escalated are terminal; re-opening is not modelled.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from core.config import settings
from core.enums import InvestigationStatus, PeriodStatus, Priority
from core.exceptions import InvalidTransitionError, NotFoundError, PeriodStateError, ValidationError

logger = logging.getLogger(__name__)

S = InvestigationStatus

TRANSITIONS = {
    S.PENDING: frozenset({S.INVESTIGATING, S.RESOLVED, S.ACCEPTED, S.ESCALATED}),
    S.INVESTIGATING: frozenset({S.RESOLVED, S.ACCEPTED, S.ESCALATED}),
    S.RESOLVED: frozenset(),
    S.ACCEPTED: frozenset(),
    S.ESCALATED: frozenset(),
}

RESOLUTIONS = frozenset({S.RESOLVED, S.ACCEPTED, S.ESCALATED})
OPEN_STATUSES = frozenset({S.PENDING, S.INVESTIGATING})

# Lower sorts first in work queues
STATUS_PRIORITY = {
    S.ESCALATED: 1,
    S.PENDING: 2,
    S.INVESTIGATING: 3,
    S.RESOLVED: 4,
    S.ACCEPTED: 5,
}


def is_terminal(status) -> bool:
    return not TRANSITIONS[InvestigationStatus(status)]


def can_transition(current, target) -> bool:
    return InvestigationStatus(target) in TRANSITIONS[InvestigationStatus(current)]


def ensure_transition(current, target) -> InvestigationStatus:
    if not can_transition(current, target):
        raise InvalidTransitionError("investigation", InvestigationStatus(current).value, InvestigationStatus(target).value)
    return InvestigationStatus(target)


def days_in_investigation(analysis: Any, now: Optional[datetime] = None) -> Optional[int]:
    if analysis.assigned_at is None:
        return None
    end = analysis.resolved_at or now or datetime.utcnow()
    return max(0, (end - analysis.assigned_at).days)


def is_overdue(analysis: Any, now: Optional[datetime] = None, sla_days: Optional[int] = None) -> bool:
    if InvestigationStatus(analysis.investigation_status) not in OPEN_STATUSES:
        return False
    days = days_in_investigation(analysis, now)
    return days is not None and days > (sla_days if sla_days is not None else settings.investigation_sla_days)


def workflow_metrics(analyses: Iterable[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    analyses = list(analyses)
    by_status = {s.value: 0 for s in InvestigationStatus}
    resolution_days: List[int] = []
    overdue = 0
    for a in analyses:
        by_status[a.investigation_status] = by_status.get(a.investigation_status, 0) + 1
        if a.resolved_at is not None and a.assigned_at is not None:
            resolution_days.append(days_in_investigation(a, now))
        if is_overdue(a, now):
            overdue += 1

    closed = sum(by_status[s.value] for s in RESOLUTIONS)
    return {
        "total": len(analyses),
        "byStatus": by_status,
        "backlog": by_status[S.PENDING.value] + by_status[S.INVESTIGATING.value],
        "overdue": overdue,
        "averageDaysToResolve": round(sum(resolution_days) / len(resolution_days), 1) if resolution_days else None,
        "resolutionRate": round(closed / len(analyses), 3) if analyses else 0.0,
    }


def build_recommendations(analyses: Iterable[Any]) -> List[Dict[str, Any]]:
    """Recommendations from unresolved analyses grouped by priority."""
    open_by_priority: Dict[str, List[Any]] = {p.value: [] for p in Priority}
    for a in analyses:
        if InvestigationStatus(a.investigation_status) in OPEN_STATUSES:
            open_by_priority.setdefault(a.priority, []).append(a)

    recommendations = []
    critical = open_by_priority[Priority.CRITICAL.value]
    if critical:
        recommendations.append({
            "type": "critical_investigation",
            "priority": Priority.CRITICAL.value,
            "message": f"{len(critical)} critical variance(s) require immediate investigation",
            "itemIds": [str(a.inventory_item_id) for a in critical],
        })
    high = open_by_priority[Priority.HIGH.value]
    if high:
        recommendations.append({
            "type": "high_priority_review",
            "priority": Priority.HIGH.value,
            "message": f"{len(high)} high priority variance(s) should be reviewed",
            "itemIds": [str(a.inventory_item_id) for a in high],
        })
    return recommendations


def build_insights(analyses: Iterable[Any], large_impact: Optional[float] = None) -> List[Dict[str, Any]]:
    threshold = Decimal(str(large_impact if large_impact is not None else settings.large_impact_threshold))
    insights = []
    for a in analyses:
        dollar = Decimal(str(a.variance_dollar_value or 0))
        if abs(dollar) > threshold:
            insights.append({
                "type": "financial_impact",
                "itemId": str(a.inventory_item_id),
                "varianceDollarValue": float(dollar),
                "message": f"Variance of ${abs(dollar):.2f} exceeds ${threshold:.2f}",
            })
        if a.priority in (Priority.CRITICAL.value, Priority.HIGH.value):
            insights.append({
                "type": "high_priority_alert",
                "itemId": str(a.inventory_item_id),
                "priority": a.priority,
            })
        if a.calculation_confidence is not None and Decimal(str(a.calculation_confidence)) < Decimal("0.5"):
            insights.append({
                "type": "confidence_warning",
                "itemId": str(a.inventory_item_id),
                "confidence": float(a.calculation_confidence),
            })
    return insights


class InvestigationWorkflow:
    def __init__(self, repos):
        self.repos = repos

    async def _load(self, analysis_id: UUID):
        analysis = await self.repos.analyses.get(analysis_id)
        if analysis is None:
            raise NotFoundError("TheoreticalUsageAnalysis", analysis_id)
        period = await self.repos.periods.get(analysis.period_id)
        if period is not None and period.status == PeriodStatus.LOCKED.value:
            raise PeriodStateError(f"Period {period.id} is locked", period_id=period.id)
        return analysis

    async def investigate(self, analysis_id: UUID, assigned_to: UUID, notes: Optional[str] = None):
        analysis = await self._load(analysis_id)
        ensure_transition(analysis.investigation_status, S.INVESTIGATING)

        analysis.investigation_status = S.INVESTIGATING.value
        analysis.assigned_to = assigned_to
        analysis.assigned_at = datetime.utcnow()
        if notes:
            analysis.investigation_notes = notes.strip()
        await self.repos.analyses.save(analysis)
        await self.repos.commit()

        logger.info("Analysis %s assigned to %s for investigation", analysis.id, assigned_to)
        return analysis

    async def resolve(
        self,
        analysis_id: UUID,
        resolved_by: UUID,
        explanation: str,
        resolution: Any = S.RESOLVED,
    ):
        try:
            target = S(resolution)
        except ValueError:
            raise ValidationError(f"Unknown resolution: {resolution}", field="resolution")
        if target not in RESOLUTIONS:
            raise ValidationError(
                f"Resolution must be one of {sorted(r.value for r in RESOLUTIONS)}",
                field="resolution",
            )
        explanation = (explanation or "").strip()
        if not explanation:
            raise ValidationError("explanation is required", field="explanation")

        analysis = await self._load(analysis_id)
        ensure_transition(analysis.investigation_status, target)

        analysis.investigation_status = target.value
        analysis.investigated_by = resolved_by
        analysis.resolved_at = datetime.utcnow()
        analysis.explanation = explanation
        await self.repos.analyses.save(analysis)
        await self.repos.commit()

        logger.info("Analysis %s closed as %s by %s", analysis.id, target.value, resolved_by)
        return analysis
