"""
Conditional rule interpreter.

A conditional rule is a (condition-type, threshold, action) triple. The
condition is a predicate over the payment intent; the action decides how a
matching rule is scored.
"""

from enum import IntEnum
from typing import Optional

from .models import PaymentIntent


class ConditionType(IntEnum):
    """Condition predicates. Any other code never matches."""
    AMOUNT_GREATER_THAN = 1
    AMOUNT_LESS_THAN = 2
    AI_CONFIDENCE_LESS_THAN = 3
    VENDOR_EQUALS = 4
    CATEGORY_EQUALS = 5
    HOUR_GREATER_THAN = 6


class ConditionAction(IntEnum):
    """Actions applied when a condition matches."""
    APPROVE = 1
    REJECT = 2
    REQUIRE_APPROVAL = 3


ACTION_WEIGHTS = {
    ConditionAction.REJECT: 50,
    ConditionAction.REQUIRE_APPROVAL: 15,
}


def evaluate_condition(condition_type: int, threshold: int, intent: PaymentIntent) -> bool:
    """Return True when the condition holds for ``intent``."""
    if condition_type == ConditionType.AMOUNT_GREATER_THAN:
        return intent.amount > threshold
    if condition_type == ConditionType.AMOUNT_LESS_THAN:
        return intent.amount < threshold
    if condition_type == ConditionType.AI_CONFIDENCE_LESS_THAN:
        return intent.ai_confidence < threshold
    if condition_type == ConditionType.VENDOR_EQUALS:
        return intent.vendor_id == threshold
    if condition_type == ConditionType.CATEGORY_EQUALS:
        return intent.category_id == threshold
    if condition_type == ConditionType.HOUR_GREATER_THAN:
        return intent.hour > threshold
    return False


def action_weight(action: int) -> Optional[int]:
    """Risk weight for a scoring action, or None when the action does not score.

    ``approve`` and unknown action codes both return None.
    """
    return ACTION_WEIGHTS.get(action)


def condition_name(condition_type: int) -> str:
    try:
        return ConditionType(condition_type).name.lower()
    except ValueError:
        return f"unknown_{condition_type}"
