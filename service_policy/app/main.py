"""
Policy decision service.
"""

from typing import Any, Dict, Iterable

from shared.base_service import BaseService
from shared.logging import set_policy_context

from .rules.engine import PolicyEngine
from .rules.fingerprint import FingerprintAlgorithm, bounded_policy_fingerprint, policy_fingerprint
from .rules.flexible import TextPolicyEvaluator
from .rules.models import (
    EvaluationRequest, EvaluationResponse, FingerprintResponse, PolicyDecisionResponse,
    StreamEvaluationRequest, StreamEvaluationResponse, TextEvaluationRequest,
    TextPolicyRulesModel
)
from .rules.trace import LoggingTraceSink, NullTraceSink
from .stream import decode_committed, run_stream


def _base_rule_name(rule: str) -> str:
    """Strip slot indices: ``category_limit[4]|conditional_rule[0]`` -> ``category_limit|conditional_rule``."""
    return "|".join(part.split("[", 1)[0] for part in rule.split("|"))


class PolicyService(BaseService):
    """Policy decision service implementation."""

    def __init__(self):
        super().__init__("policy", 8020)

        trace_sink = LoggingTraceSink() if self.config.trace_evaluations else NullTraceSink()
        self.fingerprint_algorithm = FingerprintAlgorithm(self.config.fingerprint_algorithm)
        self.engine = PolicyEngine(trace_sink)
        self.text_evaluator = TextPolicyEvaluator(trace_sink, self.fingerprint_algorithm)

        self._setup_policy_routes()

    def _setup_policy_routes(self):
        """Set up policy-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "policy",
                "message": "Policy Decision Core - Policy Service",
                "version": "1.0.0",
                "capabilities": ["bounded_evaluation", "stream_evaluation", "text_evaluation", "fingerprint"]
            }

        @self.app.post("/policy/evaluate", response_model=EvaluationResponse)
        async def evaluate(request: EvaluationRequest):
            """Evaluate a payment intent against a bounded policy."""
            policy = request.policy.to_record()
            set_policy_context(bounded_policy_fingerprint(policy, self.fingerprint_algorithm).hex())

            with self.metrics.time_operation("policy_evaluation_duration_seconds", variant="bounded"):
                evaluation = self.engine.evaluate(
                    request.intent.to_record(), policy, request.spending.to_record()
                )

            self._record("bounded", evaluation.approved, evaluation.risk_score, evaluation.applied_rules)
            self.logger.info(
                "Policy evaluated",
                variant="bounded",
                approved=evaluation.approved,
                risk_score=evaluation.risk_score,
                violation_count=evaluation.violation_count,
                applied_rules_mask=evaluation.applied_rules_mask
            )

            return EvaluationResponse(
                approved=evaluation.approved,
                risk_score=evaluation.risk_score,
                violation_count=evaluation.violation_count,
                applied_rules_mask=evaluation.applied_rules_mask,
                applied_rules=list(evaluation.applied_rules)
            )

        @self.app.post("/policy/evaluate/stream", response_model=StreamEvaluationResponse)
        async def evaluate_stream(request: StreamEvaluationRequest):
            """Evaluate positionally encoded inputs and return committed values."""
            with self.metrics.time_operation("policy_evaluation_duration_seconds", variant="stream"):
                committed = run_stream(
                    request.values, self.engine, max_values=self.config.max_stream_values
                )

            evaluation = decode_committed(committed)
            self._record("stream", evaluation.approved, evaluation.risk_score, evaluation.applied_rules)
            self.logger.info("Policy stream evaluated", variant="stream", committed=committed)

            return StreamEvaluationResponse(committed=committed)

        @self.app.post("/policy/evaluate/text", response_model=PolicyDecisionResponse)
        async def evaluate_text(request: TextEvaluationRequest):
            """Evaluate a text intent and report readable violations."""
            with self.metrics.time_operation("policy_evaluation_duration_seconds", variant="text"):
                decision = self.text_evaluator.evaluate(
                    request.intent.to_record(), request.policy.to_record(), request.spending.to_record()
                )

            fingerprint = decision.policy_fingerprint.hex()
            set_policy_context(fingerprint)
            self._record("text", decision.approved, decision.risk_score)
            self.logger.info(
                "Policy evaluated",
                variant="text",
                approved=decision.approved,
                risk_score=decision.risk_score,
                violation_count=decision.violation_count
            )

            return PolicyDecisionResponse(
                approved=decision.approved,
                reason=decision.reason,
                risk_score=decision.risk_score,
                violation_count=decision.violation_count,
                violations=list(decision.violations),
                policy_fingerprint=fingerprint
            )

        @self.app.post("/policy/fingerprint", response_model=FingerprintResponse)
        async def fingerprint(policy: TextPolicyRulesModel):
            """Fingerprint a text policy."""
            digest = policy_fingerprint(policy.to_record(), self.fingerprint_algorithm)
            return FingerprintResponse(
                algorithm=self.fingerprint_algorithm.value,
                policy_fingerprint=digest.hex()
            )

    def describe_settings(self) -> Dict[str, Any]:
        settings = super().describe_settings()
        settings.update(
            fingerprint_algorithm=self.fingerprint_algorithm.value,
            trace_evaluations=self.config.trace_evaluations,
            max_stream_values=self.config.max_stream_values,
        )
        return settings

    def _record(self, variant: str, approved: bool, risk_score: int, rules: Iterable[str] = ()):
        # A shared bit is one hit, labelled with both rule names.
        self.metrics.record_evaluation(variant, approved, risk_score, [_base_rule_name(r) for r in rules])


def create_app():
    """Create policy service application."""
    service = PolicyService()
    return service.app


if __name__ == "__main__":
    service = PolicyService()
    service.run()
