"""Pure business rules over plain analysis/item/transaction data.

``classify`` evaluates the ordered priority table; ``requires_approval``
decides whether a ledger entry needs a manager sign-off. Neither touches
persistence.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from core.config import settings
from core.enums import Priority, TransactionType

PRIORITY_SCORES = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

VARIANCE_TRANSACTION_TYPES = {TransactionType.WASTE.value, TransactionType.ADJUSTMENT.value}
APPROVAL_CATEGORIES = {"theft", "receiving_error"}


def _dec(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class PriorityThresholds:
    default_quantity: Decimal
    default_dollar: Decimal
    critical_dollar_multiplier: Decimal
    medium_quantity_multiplier: Decimal

    @classmethod
    def from_settings(cls) -> "PriorityThresholds":
        return cls(
            default_quantity=_dec(settings.default_quantity_threshold),
            default_dollar=_dec(settings.default_dollar_threshold),
            critical_dollar_multiplier=_dec(settings.critical_dollar_multiplier),
            medium_quantity_multiplier=_dec(settings.medium_quantity_multiplier),
        )


def classify(analysis: Any, item: Any, thresholds: Optional[PriorityThresholds] = None) -> Priority:
    """First matching rule wins; 'exceeds' is strictly greater than."""
    t = thresholds or PriorityThresholds.from_settings()

    qty_threshold = _dec(getattr(item, "variance_threshold_quantity", None) or t.default_quantity)
    dollar_threshold = _dec(getattr(item, "variance_threshold_dollar", None) or t.default_dollar)
    high_value = bool(getattr(item, "high_value_flag", False))

    abs_qty = abs(_dec(getattr(analysis, "variance_quantity", None)))
    abs_dollar = abs(_dec(getattr(analysis, "variance_dollar_value", None)))

    if (high_value and abs_dollar > dollar_threshold) or abs_dollar > dollar_threshold * t.critical_dollar_multiplier:
        return Priority.CRITICAL
    if abs_qty > qty_threshold and abs_dollar > dollar_threshold:
        return Priority.HIGH
    if abs_qty > qty_threshold * t.medium_quantity_multiplier:
        return Priority.MEDIUM
    return Priority.LOW


def priority_score(priority) -> int:
    return PRIORITY_SCORES.get(Priority(priority), 0)


def requires_immediate_attention(priority) -> bool:
    return Priority(priority) in (Priority.CRITICAL, Priority.HIGH)


def is_variance_transaction(transaction: Any) -> bool:
    return (
        getattr(transaction, "transaction_type", None) in VARIANCE_TRANSACTION_TYPES
        or bool(getattr(transaction, "variance_category", None))
    )


def requires_approval(transaction: Any, item: Any) -> bool:
    if not is_variance_transaction(transaction):
        return False

    impact = abs(_dec(getattr(transaction, "quantity", None)) * _dec(getattr(transaction, "unit_cost", None)))
    if getattr(item, "high_value_flag", False) and impact > _dec(settings.approval_high_value_dollar):
        return True
    if impact > _dec(settings.approval_dollar):
        return True
    return getattr(transaction, "variance_category", None) in APPROVAL_CATEGORIES
