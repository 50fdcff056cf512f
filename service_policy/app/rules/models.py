"""
Record types for the payment policy decision core.

Two families live here:

- Bounded records (``PaymentIntent``, ``PolicyRules``, ``SpendingContext``,
  ``PolicyEvaluation``) used by the canonical engine. List-like policy fields
  are ``BoundedList`` values: a declared count plus a fixed number of slots.
- Text records (``TextPaymentIntent``, ``TextPolicyRules``, ``PolicyDecision``)
  used by the host-side evaluator that reports readable violations.

The pydantic models at the bottom are the HTTP request/response shapes.
"""

from dataclasses import dataclass, field
from typing import Annotated, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, Field

VENDOR_CAPACITY = 10
CATEGORY_CAPACITY = 5
CONDITIONAL_RULE_CAPACITY = 5

U8_MAX = 0xFF
U64_MAX = 0xFFFFFFFFFFFFFFFF

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
# The Unix epoch fell on a Thursday; weekday 0 is Sunday.
EPOCH_WEEKDAY_OFFSET = 4

MONDAY_TO_FRIDAY_MASK = 0b0111110

T = TypeVar("T")


def hour_of(timestamp: int) -> int:
    """Hour of day (0-23) for a timestamp in seconds."""
    return (timestamp // SECONDS_PER_HOUR) % 24


def weekday_of(timestamp: int) -> int:
    """Weekday index (0=Sunday) for a timestamp in seconds."""
    return (timestamp // SECONDS_PER_DAY + EPOCH_WEEKDAY_OFFSET) % 7


def weekday_mask_from_days(days: Iterable[int]) -> int:
    """Build a weekday bitmask from day indices; indices of 8 or more are ignored."""
    mask = 0
    for day in days:
        if 0 <= day < 8:
            mask |= 1 << day
    return mask


@dataclass(frozen=True)
class BoundedList(Generic[T]):
    """Fixed-capacity list: a declared count and exactly ``capacity`` slots.

    ``count`` is kept as declared. Readers must go through ``active()``, which
    clamps it to ``capacity`` so iteration never depends on what was declared.
    """
    capacity: int
    count: int
    slots: Tuple[T, ...]

    @classmethod
    def of(cls, items: Iterable[T], capacity: int, empty: T, count: Optional[int] = None) -> "BoundedList[T]":
        """Pack ``items`` into ``capacity`` slots, dropping anything beyond it."""
        items = tuple(items)
        kept = items[:capacity]
        slots = kept + (empty,) * (capacity - len(kept))
        return cls(capacity=capacity, count=len(items) if count is None else count, slots=slots)

    @property
    def active_count(self) -> int:
        return min(self.count, self.capacity)

    def active(self) -> Tuple[T, ...]:
        return self.slots[:self.active_count]

    def is_empty(self) -> bool:
        return self.active_count == 0


@dataclass(frozen=True)
class CategoryLimit:
    """Per-category spending cap."""
    category_id: int = 0
    max_amount: int = 0


@dataclass(frozen=True)
class ConditionalRule:
    """A (condition-type, threshold, action) triple.

    Types and actions are kept as raw integers: unknown codes are legal and
    simply never match or never score.
    """
    condition_type: int = 0
    threshold: int = 0
    action: int = 0


EMPTY_CATEGORY_LIMIT = CategoryLimit()
EMPTY_CONDITIONAL_RULE = ConditionalRule()


@dataclass(frozen=True)
class PaymentIntent:
    """Payment request being evaluated."""
    amount: int
    recipient_id: int
    vendor_id: int
    category_id: int
    timestamp: int
    ai_confidence: int

    @property
    def hour(self) -> int:
        return hour_of(self.timestamp)

    @property
    def weekday(self) -> int:
        return weekday_of(self.timestamp)


@dataclass(frozen=True)
class PolicyRules:
    """Bounded spending policy."""
    max_per_payment: int
    max_per_day: int
    max_per_week: int
    allowed_hours_start: int
    allowed_hours_end: int
    allowed_weekday_mask: int
    vendors: BoundedList[int]
    category_limits: BoundedList[CategoryLimit]
    conditional_rules: BoundedList[ConditionalRule]
    min_ai_confidence: int

    @classmethod
    def create(
        cls,
        max_per_payment: int,
        max_per_day: int,
        max_per_week: int,
        allowed_hours_start: int = 0,
        allowed_hours_end: int = 24,
        allowed_weekday_mask: int = 0b1111111,
        vendors: Iterable[int] = (),
        category_limits: Iterable[CategoryLimit] = (),
        conditional_rules: Iterable[ConditionalRule] = (),
        min_ai_confidence: int = 0,
    ) -> "PolicyRules":
        """Build a policy from plain sequences, packing them into bounded lists."""
        return cls(
            max_per_payment=max_per_payment,
            max_per_day=max_per_day,
            max_per_week=max_per_week,
            allowed_hours_start=allowed_hours_start,
            allowed_hours_end=allowed_hours_end,
            allowed_weekday_mask=allowed_weekday_mask,
            vendors=BoundedList.of(vendors, VENDOR_CAPACITY, 0),
            category_limits=BoundedList.of(category_limits, CATEGORY_CAPACITY, EMPTY_CATEGORY_LIMIT),
            conditional_rules=BoundedList.of(conditional_rules, CONDITIONAL_RULE_CAPACITY, EMPTY_CONDITIONAL_RULE),
            min_ai_confidence=min_ai_confidence,
        )

    @classmethod
    def default(cls) -> "PolicyRules":
        """Business-hours policy used when a caller has not configured one."""
        return cls.create(
            max_per_payment=100000,
            max_per_day=500000,
            max_per_week=2000000,
            allowed_hours_start=9,
            allowed_hours_end=18,
            allowed_weekday_mask=MONDAY_TO_FRIDAY_MASK,
        )


@dataclass(frozen=True)
class SpendingContext:
    """Running totals committed before this intent. Owned by the caller."""
    current_spending: int = 0
    weekly_spending: int = 0


@dataclass(frozen=True)
class PolicyEvaluation:
    """Decision produced by the bounded engine."""
    approved: bool
    risk_score: int
    violation_count: int
    applied_rules_mask: int
    applied_rules: Tuple[str, ...] = field(default=(), compare=False)

    def to_committed(self) -> Tuple[int, int, int, int]:
        """Values in commit order: approved (0/1), risk, violations, mask."""
        return (int(self.approved), self.risk_score, self.violation_count, self.applied_rules_mask)


@dataclass(frozen=True)
class TextPaymentIntent:
    """Payment request with text identities."""
    amount: int
    recipient: str
    vendor: str
    category: str
    timestamp: int
    ai_confidence: int

    @property
    def hour(self) -> int:
        return hour_of(self.timestamp)

    @property
    def weekday(self) -> int:
        return weekday_of(self.timestamp)


@dataclass(frozen=True)
class TextPolicyRules:
    """Policy with open-ended text lists and a category-limit map."""
    max_per_payment: int
    max_per_day: int
    max_per_week: int
    allowed_hours_start: int = 0
    allowed_hours_end: int = 24
    allowed_weekdays: Tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)
    allowed_vendors: Tuple[str, ...] = ()
    category_limits: Dict[str, int] = field(default_factory=dict)
    conditional_rules: Tuple[ConditionalRule, ...] = ()
    blocked_keywords: Tuple[str, ...] = ()
    min_ai_confidence: int = 0

    @classmethod
    def default(cls) -> "TextPolicyRules":
        return cls(
            max_per_payment=100000,
            max_per_day=500000,
            max_per_week=2000000,
            allowed_hours_start=9,
            allowed_hours_end=18,
            allowed_weekdays=(1, 2, 3, 4, 5),
        )


@dataclass(frozen=True)
class PolicyDecision:
    """Decision produced by the text evaluator."""
    approved: bool
    reason: str
    risk_score: int
    violation_count: int
    violations: Tuple[str, ...]
    policy_fingerprint: bytes


# ---------------------------------------------------------------------------
# HTTP models
# ---------------------------------------------------------------------------

class PaymentIntentModel(BaseModel):
    """Payment intent with numeric identities."""
    amount: int = Field(..., ge=0, le=U64_MAX, description="Amount in the smallest currency unit")
    recipient_id: int = Field(0, ge=0, le=U64_MAX, description="Recipient identity")
    vendor_id: int = Field(0, ge=0, le=U64_MAX, description="Vendor identity")
    category_id: int = Field(0, ge=0, le=U64_MAX, description="Category identity")
    timestamp: int = Field(..., ge=0, le=U64_MAX, description="Seconds since the Unix epoch")
    ai_confidence: int = Field(100, ge=0, le=U64_MAX, description="Classifier confidence, 0-100")

    def to_record(self) -> PaymentIntent:
        return PaymentIntent(**self.model_dump())


class CategoryLimitModel(BaseModel):
    category_id: int = Field(..., ge=0, le=U64_MAX)
    max_amount: int = Field(..., ge=0, le=U64_MAX)


class ConditionalRuleModel(BaseModel):
    condition_type: int = Field(..., ge=0, le=U8_MAX, description="1-6; other codes never match")
    threshold: int = Field(..., ge=0, le=U64_MAX)
    action: int = Field(..., ge=0, le=U8_MAX, description="1=approve, 2=reject, 3=require approval")

    def to_record(self) -> ConditionalRule:
        return ConditionalRule(**self.model_dump())


class PolicyRulesModel(BaseModel):
    """Bounded policy; lists longer than their capacity are truncated."""
    max_per_payment: int = Field(..., ge=0, le=U64_MAX)
    max_per_day: int = Field(..., ge=0, le=U64_MAX)
    max_per_week: int = Field(..., ge=0, le=U64_MAX)
    allowed_hours_start: int = Field(0, ge=0, le=U8_MAX)
    allowed_hours_end: int = Field(24, ge=0, le=U8_MAX)
    allowed_weekday_mask: int = Field(0b1111111, ge=0, le=U8_MAX)
    vendors: List[Annotated[int, Field(ge=0, le=U64_MAX)]] = Field(default_factory=list, description="Allowed vendor identities")
    category_limits: List[CategoryLimitModel] = Field(default_factory=list)
    conditional_rules: List[ConditionalRuleModel] = Field(default_factory=list)
    min_ai_confidence: int = Field(0, ge=0, le=U64_MAX)

    def to_record(self) -> PolicyRules:
        return PolicyRules.create(
            max_per_payment=self.max_per_payment,
            max_per_day=self.max_per_day,
            max_per_week=self.max_per_week,
            allowed_hours_start=self.allowed_hours_start,
            allowed_hours_end=self.allowed_hours_end,
            allowed_weekday_mask=self.allowed_weekday_mask,
            vendors=self.vendors,
            category_limits=[CategoryLimit(c.category_id, c.max_amount) for c in self.category_limits],
            conditional_rules=[r.to_record() for r in self.conditional_rules],
            min_ai_confidence=self.min_ai_confidence,
        )


class SpendingContextModel(BaseModel):
    current_spending: int = Field(0, ge=0, le=U64_MAX, description="Spent today before this intent")
    weekly_spending: int = Field(0, ge=0, le=U64_MAX, description="Spent this week before this intent")

    def to_record(self) -> SpendingContext:
        return SpendingContext(**self.model_dump())


class EvaluationRequest(BaseModel):
    """Request model for bounded policy evaluation."""
    intent: PaymentIntentModel
    policy: PolicyRulesModel
    spending: SpendingContextModel = Field(default_factory=SpendingContextModel)


class EvaluationResponse(BaseModel):
    """Response model for bounded policy evaluation."""
    approved: bool
    risk_score: int
    violation_count: int
    applied_rules_mask: int
    applied_rules: List[str] = Field(default_factory=list, description="Rules that fired, in evaluation order")


class StreamEvaluationRequest(BaseModel):
    """Ordered input values, positionally encoded."""
    values: List[int] = Field(..., description="Input values in read order")


class StreamEvaluationResponse(BaseModel):
    committed: List[int] = Field(..., description="approved, risk score, violation count, applied-rules mask")


class TextPaymentIntentModel(BaseModel):
    amount: int = Field(..., ge=0)
    recipient: str = Field("", description="Recipient name or address")
    vendor: str = Field(..., description="Vendor name")
    category: str = Field("", description="Spending category")
    timestamp: int = Field(..., ge=0)
    ai_confidence: int = Field(100, ge=0)

    def to_record(self) -> TextPaymentIntent:
        return TextPaymentIntent(**self.model_dump())


class TextPolicyRulesModel(BaseModel):
    max_per_payment: int = Field(..., ge=0)
    max_per_day: int = Field(..., ge=0)
    max_per_week: int = Field(..., ge=0)
    allowed_hours_start: int = Field(0, ge=0)
    allowed_hours_end: int = Field(24, ge=0)
    allowed_weekdays: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4, 5, 6])
    allowed_vendors: List[str] = Field(default_factory=list)
    category_limits: Dict[str, int] = Field(default_factory=dict)
    conditional_rules: List[ConditionalRuleModel] = Field(default_factory=list)
    blocked_keywords: List[str] = Field(default_factory=list)
    min_ai_confidence: int = Field(0, ge=0)

    def to_record(self) -> TextPolicyRules:
        return TextPolicyRules(
            max_per_payment=self.max_per_payment,
            max_per_day=self.max_per_day,
            max_per_week=self.max_per_week,
            allowed_hours_start=self.allowed_hours_start,
            allowed_hours_end=self.allowed_hours_end,
            allowed_weekdays=tuple(self.allowed_weekdays),
            allowed_vendors=tuple(self.allowed_vendors),
            category_limits=dict(self.category_limits),
            conditional_rules=tuple(r.to_record() for r in self.conditional_rules),
            blocked_keywords=tuple(self.blocked_keywords),
            min_ai_confidence=self.min_ai_confidence,
        )


class TextEvaluationRequest(BaseModel):
    """Request model for text policy evaluation."""
    intent: TextPaymentIntentModel
    policy: TextPolicyRulesModel
    spending: SpendingContextModel = Field(default_factory=SpendingContextModel)


class PolicyDecisionResponse(BaseModel):
    """Response model for text policy evaluation."""
    approved: bool
    reason: str
    risk_score: int
    violation_count: int
    violations: List[str]
    policy_fingerprint: str = Field(..., description="32-byte fingerprint, hex encoded")


class FingerprintResponse(BaseModel):
    algorithm: str
    policy_fingerprint: str
