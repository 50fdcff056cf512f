"""
Tests for the policy service endpoints.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_policy.app.main import PolicyService
from service_policy.app.rules.fingerprint import policy_fingerprint
from service_policy.app.rules.models import TextPolicyRules

MONDAY_10AM = 4 * 86400 + 10 * 3600
MONDAY_11PM = 4 * 86400 + 23 * 3600

POLICY = {
    "max_per_payment": 1000,
    "max_per_day": 5000,
    "max_per_week": 20000,
    "allowed_hours_start": 9,
    "allowed_hours_end": 17,
    "allowed_weekday_mask": 62,
    "vendors": [7, 8],
    "min_ai_confidence": 90,
}

TEXT_POLICY = {
    "max_per_payment": 1000,
    "max_per_day": 5000,
    "max_per_week": 20000,
    "allowed_hours_start": 9,
    "allowed_hours_end": 17,
    "allowed_weekdays": [1, 2, 3, 4, 5],
    "allowed_vendors": ["Acme"],
    "category_limits": {"software": 500},
    "blocked_keywords": ["casino"],
    "min_ai_confidence": 90,
}


class TestPolicyService:
    """Test cases for PolicyService."""

    @pytest.fixture
    def service(self):
        """Create PolicyService instance."""
        return PolicyService()

    @pytest.fixture
    def client(self, service):
        """Create test client."""
        return TestClient(service.app)

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "policy"
        assert "stream_evaluation" in data["capabilities"]

    def test_health_endpoint(self, client, service):
        """Test health check endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "policy"
        assert data["status"] == "ok"
        assert data["settings"]["fingerprint_algorithm"] == service.config.fingerprint_algorithm
        assert data["settings"]["max_stream_values"] == service.config.max_stream_values

    def test_request_id_is_echoed(self, client):
        """Caller-supplied request ids come back on the response."""
        response = client.get("/", headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    def test_evaluate_approved(self, client):
        """Compliant payment is approved."""
        response = client.post("/policy/evaluate", json={
            "intent": {"amount": 100, "vendor_id": 7, "timestamp": MONDAY_10AM, "ai_confidence": 95},
            "policy": POLICY,
        })

        assert response.status_code == 200
        assert response.json() == {
            "approved": True,
            "risk_score": 0,
            "violation_count": 0,
            "applied_rules_mask": 0,
            "applied_rules": [],
        }

    def test_evaluate_rejected(self, client):
        """Violations are reported with their bits and names."""
        response = client.post("/policy/evaluate", json={
            "intent": {"amount": 1500, "vendor_id": 9, "timestamp": MONDAY_11PM, "ai_confidence": 95},
            "policy": POLICY,
            "spending": {"current_spending": 0, "weekly_spending": 0},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["approved"] is False
        assert data["violation_count"] == 3
        assert data["risk_score"] == 70
        assert data["applied_rules_mask"] == (1 << 0) | (1 << 3) | (1 << 13)
        assert data["applied_rules"] == ["per_payment_limit", "vendor_allowlist", "time_window"]

    def test_evaluate_validation_error(self, client):
        """Negative amounts are rejected by validation."""
        response = client.post("/policy/evaluate", json={
            "intent": {"amount": -1, "timestamp": MONDAY_10AM},
            "policy": POLICY,
        })

        assert response.status_code == 422

    def test_evaluate_stream(self, client):
        """Stream endpoint commits values in commit order."""
        values = [150, 42, 7, 3, MONDAY_10AM, 95, 100, 5000, 20000, 9, 17, 62, 0, 0, 0, 90, 0, 0]

        response = client.post("/policy/evaluate/stream", json={"values": values})

        assert response.status_code == 200
        assert response.json() == {"committed": [0, 30, 1, 1]}

    def test_evaluate_stream_exhausted(self, client):
        """Short streams return a structured error."""
        response = client.post("/policy/evaluate/stream", json={"values": [150, 42]})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "STREAM_EXHAUSTED"
        assert data["details"]["field"] == "vendor_id"

    def test_evaluate_stream_too_long(self, client, service):
        """Streams beyond the configured limit are rejected."""
        values = [0] * (service.config.max_stream_values + 1)

        response = client.post("/policy/evaluate/stream", json={"values": values})

        assert response.status_code == 400
        assert response.json()["code"] == "STREAM_TOO_LONG"

    def test_evaluate_text(self, client):
        """Text endpoint reports readable violations and a fingerprint."""
        response = client.post("/policy/evaluate/text", json={
            "intent": {
                "amount": 600,
                "vendor": "Acme",
                "category": "software",
                "timestamp": MONDAY_10AM,
                "ai_confidence": 95,
            },
            "policy": TEXT_POLICY,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["approved"] is False
        assert data["risk_score"] == 15
        assert data["reason"] == "Policy violations: Amount 600 exceeds 'software' category limit 500"
        assert len(data["policy_fingerprint"]) == 64
        assert data["policy_fingerprint"].startswith("0" * 48)

    def test_fingerprint_endpoint(self, client):
        """Fingerprint endpoint matches the library digest."""
        response = client.post("/policy/fingerprint", json=TEXT_POLICY)

        assert response.status_code == 200
        data = response.json()
        assert data["algorithm"] == "fnv1a64"

        expected = policy_fingerprint(TextPolicyRules(
            max_per_payment=1000,
            max_per_day=5000,
            max_per_week=20000,
            allowed_hours_start=9,
            allowed_hours_end=17,
            allowed_weekdays=(1, 2, 3, 4, 5),
            allowed_vendors=("Acme",),
            category_limits={"software": 500},
            blocked_keywords=("casino",),
            min_ai_confidence=90,
        ))
        assert data["policy_fingerprint"] == expected.hex()

    def test_metrics_endpoint(self, client):
        """Evaluations are counted."""
        client.post("/policy/evaluate/stream", json={
            "values": [150, 42, 7, 3, MONDAY_10AM, 95, 100, 5000, 20000, 9, 17, 62, 0, 0, 0, 90, 0, 0]
        })

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'policy_evaluations_total{variant="stream",decision="rejected"} 1.0' in response.text

    def test_shared_bit_counted_once(self, client):
        """A bit shared by two rules is one rule hit under both names."""
        values = [50, 42, 7, 3, MONDAY_10AM, 95, 100, 5000, 20000, 9, 17, 62, 0, 0, 1, 1, 10, 2, 90, 0, 0]

        committed = client.post("/policy/evaluate/stream", json={"values": values}).json()["committed"]
        metrics = client.get("/metrics").text

        assert committed == [0, 50, 1, 1 << 8]
        assert 'policy_rule_hits_total{rule="category_limit|conditional_rule"} 1.0' in metrics
        assert 'policy_rule_hits_total{rule="conditional_rule"}' not in metrics
        assert 'policy_rule_hits_total{rule="category_limit"}' not in metrics

    def test_evaluate_stream_ignores_trailing_values(self, client):
        """Values after the last field are not read."""
        values = [50, 42, 7, 3, MONDAY_10AM, 95, 100, 5000, 20000, 9, 17, 62, 0, 0, 0, 90, 0, 0, 99]

        response = client.post("/policy/evaluate/stream", json={"values": values})

        assert response.status_code == 200
        assert response.json() == {"committed": [1, 0, 0, 0]}
