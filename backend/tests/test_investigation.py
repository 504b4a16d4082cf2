"""Tests for the investigation lifecycle."""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from core.exceptions import InvalidTransitionError, NotFoundError, PeriodStateError, ValidationError
from services.investigation import (
    InvestigationWorkflow,
    build_insights,
    build_recommendations,
    can_transition,
    is_overdue,
    is_terminal,
    workflow_metrics,
)


@pytest.fixture
def analysis(repos, period, item):
    return repos.analyses.add(
        period_id=period.id,
        inventory_item_id=item.id,
        theoretical_quantity=Decimal("10"),
        actual_quantity=Decimal("40"),
        unit_cost=Decimal("2"),
        variance_quantity=Decimal("30"),
        variance_percentage=Decimal("300"),
        variance_dollar_value=Decimal("60"),
        priority="critical",
        calculation_method="recipe_based",
        calculation_confidence=Decimal("0.9"),
    )


class TestTransitions:
    @pytest.mark.parametrize("target", ["investigating", "resolved", "accepted", "escalated"])
    def test_pending_can_move_anywhere(self, target):
        assert can_transition("pending", target)

    def test_investigating_cannot_go_back(self):
        assert not can_transition("investigating", "pending")
        assert not can_transition("investigating", "investigating")

    @pytest.mark.parametrize("status", ["resolved", "accepted", "escalated"])
    def test_terminal_states(self, status):
        assert is_terminal(status)
        assert not can_transition(status, "investigating")

    def test_overdue_after_sla(self):
        now = datetime(2024, 3, 20)
        open_case = SimpleNamespace(investigation_status="investigating", assigned_at=now - timedelta(days=8), resolved_at=None)
        fresh = SimpleNamespace(investigation_status="investigating", assigned_at=now - timedelta(days=2), resolved_at=None)
        closed = SimpleNamespace(investigation_status="resolved", assigned_at=now - timedelta(days=30), resolved_at=now)
        assert is_overdue(open_case, now)
        assert not is_overdue(fresh, now)
        assert not is_overdue(closed, now)


class TestInvestigationWorkflow:
    @pytest.mark.asyncio
    async def test_investigate_assigns(self, repos, analysis):
        user = uuid.uuid4()
        result = await InvestigationWorkflow(repos).investigate(analysis.id, user, notes="  count again  ")

        assert result.investigation_status == "investigating"
        assert result.assigned_to == user
        assert result.assigned_at is not None
        assert result.investigation_notes == "count again"

    @pytest.mark.asyncio
    async def test_resolve_from_investigating(self, repos, analysis):
        workflow = InvestigationWorkflow(repos)
        await workflow.investigate(analysis.id, uuid.uuid4())
        resolver = uuid.uuid4()

        result = await workflow.resolve(analysis.id, resolver, "Delivery was short by a case", "resolved")

        assert result.investigation_status == "resolved"
        assert result.investigated_by == resolver
        assert result.resolved_at is not None
        assert result.explanation == "Delivery was short by a case"

    @pytest.mark.asyncio
    async def test_accept_directly_from_pending(self, repos, analysis):
        result = await InvestigationWorkflow(repos).resolve(analysis.id, uuid.uuid4(), "Known spillage", "accepted")
        assert result.investigation_status == "accepted"

    @pytest.mark.asyncio
    async def test_terminal_cannot_be_reopened(self, repos, analysis):
        workflow = InvestigationWorkflow(repos)
        await workflow.resolve(analysis.id, uuid.uuid4(), "Escalated to GM", "escalated")
        with pytest.raises(InvalidTransitionError):
            await workflow.investigate(analysis.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_resolution_requires_explanation(self, repos, analysis):
        with pytest.raises(ValidationError):
            await InvestigationWorkflow(repos).resolve(analysis.id, uuid.uuid4(), "   ")

    @pytest.mark.asyncio
    async def test_pending_is_not_a_resolution(self, repos, analysis):
        with pytest.raises(ValidationError):
            await InvestigationWorkflow(repos).resolve(analysis.id, uuid.uuid4(), "why", "pending")

    @pytest.mark.asyncio
    async def test_locked_period_blocks_changes(self, repos, period, analysis):
        period.status = "locked"
        with pytest.raises(PeriodStateError):
            await InvestigationWorkflow(repos).investigate(analysis.id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_missing_analysis(self, repos):
        with pytest.raises(NotFoundError):
            await InvestigationWorkflow(repos).investigate(uuid.uuid4(), uuid.uuid4())


class TestReporting:
    def test_recommendations_only_for_open_cases(self, analysis):
        done = SimpleNamespace(investigation_status="resolved", priority="critical", inventory_item_id=uuid.uuid4())
        recs = build_recommendations([analysis, done])
        assert [r["type"] for r in recs] == ["critical_investigation"]
        assert recs[0]["itemIds"] == [str(analysis.inventory_item_id)]

    def test_insights(self, analysis):
        analysis.variance_dollar_value = Decimal("-750")
        analysis.calculation_confidence = Decimal("0.3")
        types = [i["type"] for i in build_insights([analysis])]
        assert types == ["financial_impact", "high_priority_alert", "confidence_warning"]

    def test_metrics(self, analysis):
        metrics = workflow_metrics([analysis])
        assert metrics["total"] == 1
        assert metrics["backlog"] == 1
        assert metrics["resolutionRate"] == 0.0
