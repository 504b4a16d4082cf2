"""Tests for the priority table and ledger approval rules."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from core.enums import Priority
from services.priority import (
    PriorityThresholds,
    classify,
    is_variance_transaction,
    priority_score,
    requires_approval,
    requires_immediate_attention,
)


def _analysis(qty, dollar):
    return SimpleNamespace(variance_quantity=Decimal(str(qty)), variance_dollar_value=Decimal(str(dollar)))


def _item(qty_threshold=5, dollar_threshold=25, high_value=False):
    return SimpleNamespace(
        variance_threshold_quantity=Decimal(str(qty_threshold)) if qty_threshold is not None else None,
        variance_threshold_dollar=Decimal(str(dollar_threshold)) if dollar_threshold is not None else None,
        high_value_flag=high_value,
    )


class TestClassify:
    def test_high_value_item_over_dollar_threshold_is_critical(self):
        assert classify(_analysis(1, 30), _item(high_value=True)) is Priority.CRITICAL

    def test_double_dollar_threshold_is_critical(self):
        assert classify(_analysis(1, -51), _item()) is Priority.CRITICAL

    def test_exactly_double_is_not_critical(self):
        # 50 is not strictly greater than 2 x 25
        assert classify(_analysis(1, 50), _item()) is not Priority.CRITICAL

    def test_quantity_and_dollar_over_threshold_is_high(self):
        assert classify(_analysis(6, 30), _item()) is Priority.HIGH

    def test_quantity_at_threshold_is_not_high(self):
        assert classify(_analysis(5, 30), _item()) is Priority.LOW

    def test_quantity_over_one_and_half_threshold_is_medium(self):
        assert classify(_analysis(-8, 10), _item()) is Priority.MEDIUM

    def test_small_variance_is_low(self):
        assert classify(_analysis(2, 4), _item()) is Priority.LOW

    def test_missing_thresholds_use_defaults(self):
        assert classify(_analysis(6, 26), _item(None, None)) is Priority.HIGH

    def test_zero_thresholds_use_defaults(self):
        assert classify(_analysis(6, 26), _item(0, 0)) is Priority.HIGH

    def test_custom_multipliers(self):
        thresholds = PriorityThresholds(
            default_quantity=Decimal("5"),
            default_dollar=Decimal("25"),
            critical_dollar_multiplier=Decimal("4"),
            medium_quantity_multiplier=Decimal("1.5"),
        )
        assert classify(_analysis(1, 60), _item(), thresholds) is Priority.LOW
        assert classify(_analysis(1, 101), _item(), thresholds) is Priority.CRITICAL


class TestPriorityHelpers:
    @pytest.mark.parametrize("priority,score", [("critical", 4), ("high", 3), ("medium", 2), ("low", 1)])
    def test_priority_score(self, priority, score):
        assert priority_score(priority) == score

    def test_requires_immediate_attention(self):
        assert requires_immediate_attention("critical")
        assert requires_immediate_attention(Priority.HIGH)
        assert not requires_immediate_attention("medium")


class TestApprovalRules:
    def _tx(self, ttype="waste", qty=1, cost=10, category=None):
        return SimpleNamespace(
            transaction_type=ttype,
            quantity=Decimal(str(qty)),
            unit_cost=Decimal(str(cost)),
            variance_category=category,
        )

    def test_purchases_never_need_approval(self):
        tx = self._tx(ttype="purchase", qty=100, cost=10)
        assert not is_variance_transaction(tx)
        assert not requires_approval(tx, SimpleNamespace(high_value_flag=True))

    def test_high_value_item_over_fifty(self):
        tx = self._tx(qty=6, cost=10)
        assert requires_approval(tx, SimpleNamespace(high_value_flag=True))
        assert not requires_approval(tx, SimpleNamespace(high_value_flag=False))

    def test_any_item_over_one_hundred(self):
        assert requires_approval(self._tx(ttype="adjustment", qty=-11, cost=10), SimpleNamespace(high_value_flag=False))

    def test_theft_always_needs_approval(self):
        tx = self._tx(ttype="usage", qty=1, cost=1, category="theft")
        assert is_variance_transaction(tx)
        assert requires_approval(tx, SimpleNamespace(high_value_flag=False))
