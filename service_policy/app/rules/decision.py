"""
Decision assembly.

``EvaluationTally`` accumulates violations, risk and applied-rule bits while
the evaluators run; the ``assemble_*`` functions package the final record.
"""

from typing import Dict, List, Optional

from .models import CATEGORY_CAPACITY, CONDITIONAL_RULE_CAPACITY, PolicyDecision, PolicyEvaluation
from .trace import NullTraceSink, TraceSink

MAX_RISK_SCORE = 100

ALL_CHECKS_PASSED = "All policy checks passed"

# Bit positions of the applied-rules mask.
PER_PAYMENT_BIT = 0
DAILY_LIMIT_BIT = 1
WEEKLY_LIMIT_BIT = 2
VENDOR_BIT = 3
CATEGORY_BASE_BIT = 4
CONDITIONAL_BASE_BIT = 8
AI_CONFIDENCE_BIT = 12
TIME_WINDOW_BIT = 13
WEEKDAY_BIT = 14


def _bit_names() -> Dict[int, List[str]]:
    names: Dict[int, List[str]] = {}

    def add(bit: int, name: str):
        names.setdefault(bit, []).append(name)

    add(PER_PAYMENT_BIT, "per_payment_limit")
    add(DAILY_LIMIT_BIT, "daily_limit")
    add(WEEKLY_LIMIT_BIT, "weekly_limit")
    add(VENDOR_BIT, "vendor_allowlist")
    for index in range(CATEGORY_CAPACITY):
        add(CATEGORY_BASE_BIT + index, f"category_limit[{index}]")
    for index in range(CONDITIONAL_RULE_CAPACITY):
        add(CONDITIONAL_BASE_BIT + index, f"conditional_rule[{index}]")
    add(AI_CONFIDENCE_BIT, "ai_confidence")
    add(TIME_WINDOW_BIT, "time_window")
    add(WEEKDAY_BIT, "weekday_window")
    return names


BIT_NAMES = _bit_names()


def saturating_add(score: int, weight: int, ceiling: int = MAX_RISK_SCORE) -> int:
    return min(ceiling, score + weight)


class EvaluationTally:
    """Running totals for one evaluation."""

    def __init__(self, trace: Optional[TraceSink] = None):
        self.trace = trace or NullTraceSink()
        self.violation_count = 0
        self.risk_score = 0
        self.applied_rules_mask = 0
        self.applied_rules: List[str] = []
        self.violations: List[str] = []

    def violation(self, rule: str, weight: int, bit: Optional[int] = None, message: Optional[str] = None):
        """Count one violation of ``rule``."""
        self.violation_count += 1
        self.risk_score = saturating_add(self.risk_score, weight)
        self.applied(rule, bit)
        if message:
            self.violations.append(message)
        self.trace.record("violation", rule=rule, weight=weight, risk_score=self.risk_score)

    def applied(self, rule: str, bit: Optional[int] = None):
        """Mark ``rule`` as applied without scoring it."""
        if bit is not None:
            self.applied_rules_mask |= 1 << bit
        self.applied_rules.append(rule)


def assemble_decision(tally: EvaluationTally) -> PolicyEvaluation:
    """Package a bounded decision from the tally."""
    return PolicyEvaluation(
        approved=tally.violation_count == 0,
        risk_score=max(0, min(tally.risk_score, MAX_RISK_SCORE)),
        violation_count=tally.violation_count,
        applied_rules_mask=tally.applied_rules_mask,
        applied_rules=tuple(tally.applied_rules),
    )


def render_reason(violations: List[str]) -> str:
    if not violations:
        return ALL_CHECKS_PASSED
    return "Policy violations: " + "; ".join(violations)


def assemble_text_decision(tally: EvaluationTally, fingerprint: bytes) -> PolicyDecision:
    """Package a text decision, with reason and fingerprint, from the tally."""
    return PolicyDecision(
        approved=tally.violation_count == 0,
        reason=render_reason(tally.violations),
        risk_score=max(0, min(tally.risk_score, MAX_RISK_SCORE)),
        violation_count=tally.violation_count,
        violations=tuple(tally.violations),
        policy_fingerprint=fingerprint,
    )


def describe_mask(mask: int) -> List[str]:
    """Names of the rules whose bits are set in ``mask``.

    Some rules share a bit; such bits are reported as ``"a|b"``.
    """
    described = []
    for bit in sorted(BIT_NAMES):
        if mask & (1 << bit):
            described.append("|".join(BIT_NAMES[bit]))
    return described
