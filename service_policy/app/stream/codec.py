"""
Ordered value-stream codec.

The bounded engine is fed a flat sequence of integers whose positions encode
their meaning, and it commits a flat sequence back. There are no tags, so the
read and commit orders below are the wire format.

Read order:
    amount, recipient_id, vendor_id, category_id, timestamp, ai_confidence,
    max_per_payment, max_per_day, max_per_week,
    hours_start (u8), hours_end (u8), weekday_mask (u8),
    vendor_count (u8), vendor_id * min(vendor_count, 10),
    category_count (u8), (category_id, max_amount) * min(category_count, 5),
    conditional_count (u8), (type u8, threshold, action u8) * min(conditional_count, 5),
    min_ai_confidence, current_spending, weekly_spending

Commit order:
    approved (0/1), risk_score, violation_count, applied_rules_mask

Each count is clamped to its list's capacity before any entry is read, so a
count above capacity is kept on the record but never drives a loop. Values
left after the last field are not read.
"""

from typing import Any, List, Optional, Sequence, Tuple

from shared.errors import (
    StreamExhaustedError, StreamTooLongError, TrailingInputError, ValueDecodeError
)

from ..rules.engine import PolicyEngine
from ..rules.models import (
    CATEGORY_CAPACITY, CONDITIONAL_RULE_CAPACITY, EMPTY_CATEGORY_LIMIT,
    EMPTY_CONDITIONAL_RULE, U8_MAX, U64_MAX, VENDOR_CAPACITY, BoundedList,
    CategoryLimit, ConditionalRule, PaymentIntent, PolicyEvaluation, PolicyRules,
    SpendingContext
)


class ValueStreamReader:
    """Reads typed primitives from an ordered sequence of values."""

    def __init__(self, values: Sequence[Any]):
        self._values = list(values)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def remaining(self) -> int:
        return len(self._values) - self._position

    def _next(self, field: str) -> Any:
        if self._position >= len(self._values):
            raise StreamExhaustedError(
                f"Input stream exhausted while reading {field}",
                {"field": field, "position": self._position}
            )
        value = self._values[self._position]
        self._position += 1
        return value

    def _read_unsigned(self, field: str, maximum: int, type_name: str) -> int:
        position = self._position
        value = self._next(field)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueDecodeError(
                f"Value for {field} is not an integer",
                {"field": field, "position": position, "type": type_name}
            )
        if value < 0 or value > maximum:
            raise ValueDecodeError(
                f"Value for {field} does not fit in {type_name}",
                {"field": field, "position": position, "type": type_name, "value": value}
            )
        return value

    def read_u8(self, field: str) -> int:
        return self._read_unsigned(field, U8_MAX, "u8")

    def read_u64(self, field: str) -> int:
        return self._read_unsigned(field, U64_MAX, "u64")

    def expect_end(self):
        """Fail if any values are left unread."""
        if self.remaining():
            raise TrailingInputError(
                f"{self.remaining()} unexpected trailing value(s)",
                {"position": self._position, "remaining": self.remaining()}
            )


def read_payment_intent(reader: ValueStreamReader) -> PaymentIntent:
    return PaymentIntent(
        amount=reader.read_u64("amount"),
        recipient_id=reader.read_u64("recipient_id"),
        vendor_id=reader.read_u64("vendor_id"),
        category_id=reader.read_u64("category_id"),
        timestamp=reader.read_u64("timestamp"),
        ai_confidence=reader.read_u64("ai_confidence"),
    )


def read_policy_rules(reader: ValueStreamReader) -> PolicyRules:
    max_per_payment = reader.read_u64("max_per_payment")
    max_per_day = reader.read_u64("max_per_day")
    max_per_week = reader.read_u64("max_per_week")
    allowed_hours_start = reader.read_u8("allowed_hours_start")
    allowed_hours_end = reader.read_u8("allowed_hours_end")
    allowed_weekday_mask = reader.read_u8("allowed_weekday_mask")

    vendor_count = reader.read_u8("vendor_count")
    vendor_ids = [reader.read_u64(f"vendor_id[{i}]") for i in range(min(vendor_count, VENDOR_CAPACITY))]

    category_count = reader.read_u8("category_count")
    category_limits = []
    for i in range(min(category_count, CATEGORY_CAPACITY)):
        category_limits.append(CategoryLimit(
            category_id=reader.read_u64(f"category_id[{i}]"),
            max_amount=reader.read_u64(f"category_max_amount[{i}]"),
        ))

    conditional_count = reader.read_u8("conditional_count")
    conditional_rules = []
    for i in range(min(conditional_count, CONDITIONAL_RULE_CAPACITY)):
        conditional_rules.append(ConditionalRule(
            condition_type=reader.read_u8(f"condition_type[{i}]"),
            threshold=reader.read_u64(f"condition_threshold[{i}]"),
            action=reader.read_u8(f"condition_action[{i}]"),
        ))

    min_ai_confidence = reader.read_u64("min_ai_confidence")

    return PolicyRules(
        max_per_payment=max_per_payment,
        max_per_day=max_per_day,
        max_per_week=max_per_week,
        allowed_hours_start=allowed_hours_start,
        allowed_hours_end=allowed_hours_end,
        allowed_weekday_mask=allowed_weekday_mask,
        vendors=BoundedList.of(vendor_ids, VENDOR_CAPACITY, 0, count=vendor_count),
        category_limits=BoundedList.of(category_limits, CATEGORY_CAPACITY, EMPTY_CATEGORY_LIMIT,
                                       count=category_count),
        conditional_rules=BoundedList.of(conditional_rules, CONDITIONAL_RULE_CAPACITY, EMPTY_CONDITIONAL_RULE,
                                         count=conditional_count),
        min_ai_confidence=min_ai_confidence,
    )


def read_spending_context(reader: ValueStreamReader) -> SpendingContext:
    return SpendingContext(
        current_spending=reader.read_u64("current_spending"),
        weekly_spending=reader.read_u64("weekly_spending"),
    )


def read_evaluation_inputs(reader: ValueStreamReader) -> Tuple[PaymentIntent, PolicyRules, SpendingContext]:
    """Read one evaluation's inputs in stream order."""
    intent = read_payment_intent(reader)
    policy = read_policy_rules(reader)
    spending = read_spending_context(reader)
    return intent, policy, spending


def commit_evaluation(evaluation: PolicyEvaluation) -> List[int]:
    """Committed values in commit order."""
    return list(evaluation.to_committed())


def run_stream(
    values: Sequence[Any],
    engine: Optional[PolicyEngine] = None,
    max_values: Optional[int] = None,
) -> List[int]:
    """Read inputs, evaluate and commit.

    A short stream or an undecodable value aborts the run with no decision.
    """
    if max_values is not None and len(values) > max_values:
        raise StreamTooLongError(
            f"Input stream has {len(values)} values, limit is {max_values}",
            {"length": len(values), "limit": max_values}
        )

    reader = ValueStreamReader(values)
    intent, policy, spending = read_evaluation_inputs(reader)

    evaluation = (engine or PolicyEngine()).evaluate(intent, policy, spending)
    return commit_evaluation(evaluation)
