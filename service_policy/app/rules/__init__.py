"""
Payment policy rules package.

Defines the record types and evaluators that decide whether a payment intent
is authorized under a spending policy. Evaluation is deterministic: no clock,
no randomness, no floating point, and every loop is bounded by a fixed list
capacity.

Modules of interest:
- models: Bounded and text records, plus HTTP request/response models.
- engine: Bounded evaluator producing the committed decision and bitmask.
- conditions: Interpreter for (condition-type, threshold, action) rules.
- flexible: Text evaluator with readable violations and keyword blocking.
- fingerprint: Canonical policy encoding and digests.
- decision: Tally and decision assembly.
- trace: Injectable trace sinks (no-op by default).
"""

from .engine import PolicyEngine, evaluate_policy
from .flexible import TextPolicyEvaluator
from .models import (
    PaymentIntent, PolicyRules, SpendingContext, PolicyEvaluation,
    TextPaymentIntent, TextPolicyRules, PolicyDecision,
    CategoryLimit, ConditionalRule, BoundedList
)

__all__ = [
    "PolicyEngine",
    "evaluate_policy",
    "TextPolicyEvaluator",
    "PaymentIntent",
    "PolicyRules",
    "SpendingContext",
    "PolicyEvaluation",
    "TextPaymentIntent",
    "TextPolicyRules",
    "PolicyDecision",
    "CategoryLimit",
    "ConditionalRule",
    "BoundedList",
]
