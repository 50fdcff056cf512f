"""
Text policy evaluator.

Host-side counterpart of ``PolicyEngine`` for policies expressed with text
identities and open-ended lists. It applies the same checks, in the same order
and with the same weights, but reports a readable message per violation instead
of a bitmask, adds a blocked-keyword pass and fingerprints the policy.
"""

from typing import Optional, Union

from .conditions import ConditionAction, action_weight, condition_name, evaluate_condition
from .decision import EvaluationTally, assemble_text_decision
from .engine import WEIGHTS
from .fingerprint import FingerprintAlgorithm, policy_fingerprint
from .identity import identity_of
from .models import (
    CONDITIONAL_RULE_CAPACITY, PaymentIntent, PolicyDecision, SpendingContext,
    TextPaymentIntent, TextPolicyRules
)
from .trace import NullTraceSink, TraceSink

TEXT_CATEGORY_LIMIT_WEIGHT = 15
BLOCKED_KEYWORD_WEIGHT = 20

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def to_numeric_intent(intent: TextPaymentIntent) -> PaymentIntent:
    """Numeric view of a text intent, for the conditional rule interpreter."""
    return PaymentIntent(
        amount=intent.amount,
        recipient_id=identity_of(intent.recipient),
        vendor_id=identity_of(intent.vendor),
        category_id=identity_of(intent.category),
        timestamp=intent.timestamp,
        ai_confidence=intent.ai_confidence,
    )


class TextPolicyEvaluator:
    """Evaluates text intents against text policies."""

    def __init__(
        self,
        trace_sink: Optional[TraceSink] = None,
        fingerprint_algorithm: Union[FingerprintAlgorithm, str] = FingerprintAlgorithm.FNV1A64,
    ):
        self.trace = trace_sink or NullTraceSink()
        self.fingerprint_algorithm = FingerprintAlgorithm(fingerprint_algorithm)

    def evaluate(
        self,
        intent: TextPaymentIntent,
        policy: TextPolicyRules,
        spending: Optional[SpendingContext] = None,
    ) -> PolicyDecision:
        spending = spending or SpendingContext()
        tally = EvaluationTally(self.trace)

        self.trace.record("evaluation_started", amount=intent.amount, vendor=intent.vendor)
        self._check_amount_limits(intent, policy, spending, tally)
        self._check_vendor(intent, policy, tally)
        self._check_category(intent, policy, tally)
        self._check_conditional_rules(intent, policy, tally)
        self._check_ai_confidence(intent, policy, tally)
        self._check_time_window(intent, policy, tally)
        self._check_weekday(intent, policy, tally)
        self._check_blocked_keywords(intent, policy, tally)

        fingerprint = policy_fingerprint(policy, self.fingerprint_algorithm)
        decision = assemble_text_decision(tally, fingerprint)
        self.trace.record(
            "evaluation_completed",
            approved=decision.approved,
            risk_score=decision.risk_score,
            violation_count=decision.violation_count,
        )
        return decision

    def _check_amount_limits(self, intent, policy, spending, tally):
        if intent.amount > policy.max_per_payment:
            tally.violation(
                "per_payment_limit", WEIGHTS["per_payment_limit"],
                message=f"Amount {intent.amount} exceeds per-payment limit {policy.max_per_payment}"
            )

        daily_total = spending.current_spending + intent.amount
        if daily_total > policy.max_per_day:
            tally.violation(
                "daily_limit", WEIGHTS["daily_limit"],
                message=f"Daily spending limit would be exceeded ({daily_total} > {policy.max_per_day})"
            )

        weekly_total = spending.weekly_spending + intent.amount
        if weekly_total > policy.max_per_week:
            tally.violation(
                "weekly_limit", WEIGHTS["weekly_limit"],
                message=f"Weekly spending limit would be exceeded ({weekly_total} > {policy.max_per_week})"
            )

    def _check_vendor(self, intent, policy, tally):
        if policy.allowed_vendors and intent.vendor not in policy.allowed_vendors:
            tally.violation(
                "vendor_allowlist", WEIGHTS["vendor_allowlist"],
                message=f"Vendor '{intent.vendor}' is not in the allowed vendor list"
            )

    def _check_category(self, intent, policy, tally):
        limit = policy.category_limits.get(intent.category)
        if limit is not None and intent.amount > limit:
            tally.violation(
                "category_limit", TEXT_CATEGORY_LIMIT_WEIGHT,
                message=f"Amount {intent.amount} exceeds '{intent.category}' category limit {limit}"
            )

    def _check_conditional_rules(self, intent, policy, tally):
        numeric = to_numeric_intent(intent)
        for index, rule in enumerate(policy.conditional_rules[:CONDITIONAL_RULE_CAPACITY]):
            if not evaluate_condition(rule.condition_type, rule.threshold, numeric):
                continue

            name = f"conditional_rule[{index}]"
            weight = action_weight(rule.action)
            if weight is None:
                tally.applied(name)
                continue

            outcome = "rejects" if rule.action == ConditionAction.REJECT else "requires manual approval for"
            tally.violation(
                name, weight,
                message=(f"Conditional rule {index} ({condition_name(rule.condition_type)} "
                         f"{rule.threshold}) {outcome} this payment")
            )

    def _check_ai_confidence(self, intent, policy, tally):
        if intent.ai_confidence < policy.min_ai_confidence:
            tally.violation(
                "ai_confidence", WEIGHTS["ai_confidence"],
                message=f"AI confidence {intent.ai_confidence} below minimum {policy.min_ai_confidence}"
            )

    def _check_time_window(self, intent, policy, tally):
        hour = intent.hour
        if hour < policy.allowed_hours_start or hour >= policy.allowed_hours_end:
            tally.violation(
                "time_window", WEIGHTS["time_window"],
                message=f"Payment outside allowed hours ({policy.allowed_hours_start}-{policy.allowed_hours_end})"
            )

    def _check_weekday(self, intent, policy, tally):
        weekday = intent.weekday
        if weekday not in policy.allowed_weekdays:
            tally.violation(
                "weekday_window", WEIGHTS["weekday_window"],
                message=f"Payment on non-allowed weekday ({WEEKDAY_NAMES[weekday]})"
            )

    def _check_blocked_keywords(self, intent, policy, tally):
        vendor = intent.vendor.lower()
        category = intent.category.lower()
        for keyword in policy.blocked_keywords:
            needle = keyword.lower()
            if needle in vendor or needle in category:
                tally.violation(
                    "blocked_keyword", BLOCKED_KEYWORD_WEIGHT,
                    message=f"Blocked keyword '{keyword}' found in vendor or category"
                )
