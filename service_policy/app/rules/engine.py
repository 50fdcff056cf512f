"""
Policy evaluation engine for bounded records.
"""

from typing import Optional

from .conditions import action_weight, evaluate_condition
from .decision import (
    AI_CONFIDENCE_BIT, CATEGORY_BASE_BIT, CONDITIONAL_BASE_BIT, DAILY_LIMIT_BIT,
    PER_PAYMENT_BIT, TIME_WINDOW_BIT, VENDOR_BIT, WEEKDAY_BIT, WEEKLY_LIMIT_BIT,
    EvaluationTally, assemble_decision
)
from .models import PaymentIntent, PolicyEvaluation, PolicyRules, SpendingContext
from .trace import NullTraceSink, TraceSink

WEIGHTS = {
    "per_payment_limit": 30,
    "daily_limit": 25,
    "weekly_limit": 20,
    "vendor_allowlist": 25,
    "category_limit": 20,
    "ai_confidence": 10,
    "time_window": 15,
    "weekday_window": 10,
}


class PolicyEngine:
    """Evaluates a payment intent against a bounded policy.

    Rule categories run in a fixed order and each one that fires adds a
    violation, its weight and its bit(s) to the decision. Every loop is bounded
    by a list's clamped count, so the work done depends only on the policy's
    shape. The engine holds no state between evaluations.
    """

    def __init__(self, trace_sink: Optional[TraceSink] = None):
        self.trace = trace_sink or NullTraceSink()

    def evaluate(
        self,
        intent: PaymentIntent,
        policy: PolicyRules,
        spending: Optional[SpendingContext] = None,
    ) -> PolicyEvaluation:
        """Evaluate ``intent`` and return the decision."""
        spending = spending or SpendingContext()
        tally = EvaluationTally(self.trace)

        self.trace.record("evaluation_started", amount=intent.amount)
        self._check_amount_limits(intent, policy, spending, tally)
        self._check_vendor(intent, policy, tally)
        self._check_category(intent, policy, tally)
        self._check_conditional_rules(intent, policy, tally)
        self._check_ai_confidence(intent, policy, tally)
        self._check_time_window(intent, policy, tally)
        self._check_weekday(intent, policy, tally)

        evaluation = assemble_decision(tally)
        self.trace.record(
            "evaluation_completed",
            approved=evaluation.approved,
            risk_score=evaluation.risk_score,
            violation_count=evaluation.violation_count,
            applied_rules_mask=evaluation.applied_rules_mask,
        )
        return evaluation

    def _check_amount_limits(self, intent: PaymentIntent, policy: PolicyRules,
                             spending: SpendingContext, tally: EvaluationTally):
        if intent.amount > policy.max_per_payment:
            tally.violation("per_payment_limit", WEIGHTS["per_payment_limit"], PER_PAYMENT_BIT)

        if spending.current_spending + intent.amount > policy.max_per_day:
            tally.violation("daily_limit", WEIGHTS["daily_limit"], DAILY_LIMIT_BIT)

        if spending.weekly_spending + intent.amount > policy.max_per_week:
            tally.violation("weekly_limit", WEIGHTS["weekly_limit"], WEEKLY_LIMIT_BIT)

        self.trace.record("amount_limits_checked")

    def _check_vendor(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        # Scan every active slot before deciding the vendor is absent.
        vendor_allowed = False
        for vendor_id in policy.vendors.active():
            if vendor_id == intent.vendor_id:
                vendor_allowed = True

        if not vendor_allowed and not policy.vendors.is_empty():
            tally.violation("vendor_allowlist", WEIGHTS["vendor_allowlist"], VENDOR_BIT)

        self.trace.record("vendor_checked", allowed=vendor_allowed)

    def _check_category(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        # First matching row decides; later rows for the same category are unreachable.
        for index, limit in enumerate(policy.category_limits.active()):
            if limit.category_id == intent.category_id:
                if intent.amount > limit.max_amount:
                    tally.violation(f"category_limit[{index}]", WEIGHTS["category_limit"],
                                    CATEGORY_BASE_BIT + index)
                break

        self.trace.record("category_checked")

    def _check_conditional_rules(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        for index, rule in enumerate(policy.conditional_rules.active()):
            if not evaluate_condition(rule.condition_type, rule.threshold, intent):
                continue

            name = f"conditional_rule[{index}]"
            weight = action_weight(rule.action)
            if weight is None:
                tally.applied(name, CONDITIONAL_BASE_BIT + index)
            else:
                tally.violation(name, weight, CONDITIONAL_BASE_BIT + index)

        self.trace.record("conditional_rules_checked")

    def _check_ai_confidence(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        if intent.ai_confidence < policy.min_ai_confidence:
            tally.violation("ai_confidence", WEIGHTS["ai_confidence"], AI_CONFIDENCE_BIT)

        self.trace.record("ai_confidence_checked")

    def _check_time_window(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        hour = intent.hour
        if hour < policy.allowed_hours_start or hour >= policy.allowed_hours_end:
            tally.violation("time_window", WEIGHTS["time_window"], TIME_WINDOW_BIT)

        self.trace.record("time_window_checked", hour=hour)

    def _check_weekday(self, intent: PaymentIntent, policy: PolicyRules, tally: EvaluationTally):
        weekday = intent.weekday
        if policy.allowed_weekday_mask & (1 << weekday) == 0:
            tally.violation("weekday_window", WEIGHTS["weekday_window"], WEEKDAY_BIT)

        self.trace.record("weekday_checked", weekday=weekday)


def evaluate_policy(
    intent: PaymentIntent,
    policy: PolicyRules,
    spending: Optional[SpendingContext] = None,
    trace_sink: Optional[TraceSink] = None,
) -> PolicyEvaluation:
    """Evaluate with a throwaway engine."""
    return PolicyEngine(trace_sink).evaluate(intent, policy, spending)
