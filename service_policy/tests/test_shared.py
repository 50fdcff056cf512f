"""
Tests for the shared service infrastructure used by the policy service.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import get_config
from shared.errors import StreamExhaustedError
from shared.logging import (
    add_correlation_context, clear_context, policy_id_var, service_context,
    set_policy_context, set_request_id
)
from shared.metrics import MetricsCollector


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    @pytest.fixture
    def collector(self):
        """Create a policy metrics collector."""
        return MetricsCollector("policy")

    def test_collectors_are_isolated(self):
        """Two collectors for the same service do not share series."""
        first = MetricsCollector("policy")
        second = MetricsCollector("policy")

        first.record_evaluation("bounded", True, 0)

        assert first.registry.get_sample_value(
            "policy_evaluations_total", {"variant": "bounded", "decision": "approved"}) == 1.0
        assert second.registry.get_sample_value(
            "policy_evaluations_total", {"variant": "bounded", "decision": "approved"}) is None

    def test_record_evaluation(self, collector):
        """Decisions, risk and rule hits are recorded."""
        collector.record_evaluation("text", False, 45, ["per_payment_limit", "category_limit"])

        registry = collector.registry
        assert registry.get_sample_value(
            "policy_evaluations_total", {"variant": "text", "decision": "rejected"}) == 1.0
        assert registry.get_sample_value("policy_risk_score_sum", {"variant": "text"}) == 45.0
        assert registry.get_sample_value("policy_rule_hits_total", {"rule": "category_limit"}) == 1.0

    def test_time_operation(self, collector):
        """Timed blocks are observed once."""
        with collector.time_operation("policy_evaluation_duration_seconds", variant="stream"):
            pass

        assert collector.registry.get_sample_value(
            "policy_evaluation_duration_seconds_count", {"variant": "stream"}) == 1.0

    def test_other_services_have_no_policy_metrics(self):
        """Policy metrics exist only for the policy service."""
        collector = MetricsCollector("gateway")

        collector.record_evaluation("bounded", True, 0)

        assert collector.get_metric("policy_evaluations_total") is None

    def test_record_error(self, collector):
        """Errors are counted by code."""
        collector.record_error("STREAM_EXHAUSTED")

        assert collector.registry.get_sample_value("errors_total", {"code": "STREAM_EXHAUSTED"}) == 1.0


class TestLogging:
    """Test cases for logging processors and context."""

    def teardown_method(self):
        clear_context()

    def test_service_context(self):
        """Events are stamped with the service name."""
        event = service_context("policy")(None, "info", {"event": "x"})

        assert event["service"] == "policy"

    def test_correlation_context(self):
        """Request and policy ids are added when bound."""
        set_request_id("req-1")
        set_policy_context("abc123")

        event = add_correlation_context(None, "info", {"event": "x"})

        assert event["request_id"] == "req-1"
        assert event["policy_id"] == "abc123"

    def test_generated_request_id(self):
        """A request id is generated when none is supplied."""
        request_id = set_request_id(None)

        assert len(request_id) == 36

    def test_clear_context(self):
        """Cleared context adds nothing."""
        set_policy_context("abc123")
        clear_context()

        assert policy_id_var.get() is None
        assert add_correlation_context(None, "info", {"event": "x"}) == {"event": "x"}


class TestConfigAndErrors:
    """Test cases for configuration defaults and error responses."""

    def test_config_defaults(self, monkeypatch):
        """Defaults apply when no environment overrides are set."""
        for name in ["POLICY_FINGERPRINT_ALGORITHM", "POLICY_MAX_STREAM_VALUES", "POLICY_TRACE_EVALUATIONS"]:
            monkeypatch.delenv(name, raising=False)

        config = get_config("policy", 8020)

        assert config.fingerprint_algorithm == "fnv1a64"
        assert config.max_stream_values == 4096
        assert config.trace_evaluations is False

    def test_config_from_environment(self, monkeypatch):
        """Prefixed environment variables override defaults."""
        monkeypatch.setenv("POLICY_FINGERPRINT_ALGORITHM", "blake2b_256")
        monkeypatch.setenv("POLICY_MAX_STREAM_VALUES", "64")

        config = get_config("policy", 8020)

        assert config.fingerprint_algorithm == "blake2b_256"
        assert config.max_stream_values == 64

    def test_error_response(self):
        """Exceptions convert to the standard error shape."""
        response = StreamExhaustedError("ran out", {"field": "amount"}).to_response()

        assert response.code == "STREAM_EXHAUSTED"
        assert response.message == "ran out"
        assert response.details == {"field": "amount"}
        assert response.trace_id is None
