"""
Host-side driver for the value-stream codec.

Serialises caller data in read order, turns text policies into bounded
records, and decodes committed output.
"""

from typing import List, Sequence

from ..rules.decision import describe_mask
from ..rules.flexible import to_numeric_intent as lower_text_intent
from ..rules.identity import identity_of
from ..rules.models import (
    U8_MAX, CategoryLimit, PaymentIntent, PolicyEvaluation, PolicyRules,
    SpendingContext, TextPolicyRules, weekday_mask_from_days
)
from .codec import ValueStreamReader


def encode_evaluation_inputs(
    intent: PaymentIntent,
    policy: PolicyRules,
    spending: SpendingContext,
) -> List[int]:
    """Flatten inputs into the order ``read_evaluation_inputs`` expects.

    Each list is written as its declared count, capped to a u8, followed by its
    active entries only.
    """
    values = [
        intent.amount,
        intent.recipient_id,
        intent.vendor_id,
        intent.category_id,
        intent.timestamp,
        intent.ai_confidence,
        policy.max_per_payment,
        policy.max_per_day,
        policy.max_per_week,
        policy.allowed_hours_start,
        policy.allowed_hours_end,
        policy.allowed_weekday_mask,
    ]

    values.append(min(policy.vendors.count, U8_MAX))
    values.extend(policy.vendors.active())

    values.append(min(policy.category_limits.count, U8_MAX))
    for limit in policy.category_limits.active():
        values.extend([limit.category_id, limit.max_amount])

    values.append(min(policy.conditional_rules.count, U8_MAX))
    for rule in policy.conditional_rules.active():
        values.extend([rule.condition_type, rule.threshold, rule.action])

    values.append(policy.min_ai_confidence)
    values.extend([spending.current_spending, spending.weekly_spending])
    return values


def lower_text_policy(policy: TextPolicyRules) -> PolicyRules:
    """Bounded policy equivalent of a text policy.

    Vendor and category names become identities and the weekday list becomes a
    mask. Lists longer than their capacity are truncated. Blocked keywords have
    no bounded counterpart and are not carried over.
    """
    return PolicyRules.create(
        max_per_payment=policy.max_per_payment,
        max_per_day=policy.max_per_day,
        max_per_week=policy.max_per_week,
        allowed_hours_start=policy.allowed_hours_start,
        allowed_hours_end=policy.allowed_hours_end,
        allowed_weekday_mask=weekday_mask_from_days(policy.allowed_weekdays),
        vendors=[identity_of(vendor) for vendor in policy.allowed_vendors],
        category_limits=[
            CategoryLimit(category_id=identity_of(category), max_amount=limit)
            for category, limit in policy.category_limits.items()
        ],
        conditional_rules=policy.conditional_rules,
        min_ai_confidence=policy.min_ai_confidence,
    )


def decode_committed(values: Sequence[int]) -> PolicyEvaluation:
    """Rebuild a decision from committed values."""
    reader = ValueStreamReader(values)
    approved = reader.read_u8("approved")
    risk_score = reader.read_u8("risk_score")
    violation_count = reader.read_u8("violation_count")
    applied_rules_mask = reader.read_u64("applied_rules_mask")
    reader.expect_end()

    return PolicyEvaluation(
        approved=approved == 1,
        risk_score=risk_score,
        violation_count=violation_count,
        applied_rules_mask=applied_rules_mask,
        applied_rules=tuple(describe_mask(applied_rules_mask)),
    )
