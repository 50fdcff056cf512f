"""
Prometheus metrics for Policy Decision Core services.

Every collector owns its registry, so several services (or test instances)
can live in one process without duplicate-timeseries errors.
"""

from prometheus_client import Counter, Histogram, Info, CollectorRegistry
from typing import Any, Dict, Iterable, Optional
import time
from contextlib import contextmanager

# Evaluations are pure in-memory work; the default buckets start too high.
EVALUATION_LATENCY_BUCKETS = (0.0001, 0.00025, 0.0005, 0.001, 0.0025, 0.005, 0.01, 0.05, 0.1)
RISK_SCORE_BUCKETS = (0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100)


class MetricsCollector:
    """Metrics collector for one service."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_http_metrics()
        if service_name == "policy":
            self._setup_policy_metrics()

    def _setup_http_metrics(self):
        info = Info("service", "Service information", registry=self.registry)
        info.info({"service": self.service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "HTTP requests by route and status",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            registry=self.registry
        )
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Health check outcomes",
            ["status"],
            registry=self.registry
        )
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Rejected or failed requests by error code",
            ["code"],
            registry=self.registry
        )

    def _setup_policy_metrics(self):
        self._metrics["policy_evaluations_total"] = Counter(
            "policy_evaluations_total",
            "Policy evaluations by variant and decision",
            ["variant", "decision"],
            registry=self.registry
        )
        self._metrics["policy_evaluation_duration_seconds"] = Histogram(
            "policy_evaluation_duration_seconds",
            "Time spent inside the evaluator",
            ["variant"],
            buckets=EVALUATION_LATENCY_BUCKETS,
            registry=self.registry
        )
        self._metrics["policy_risk_score"] = Histogram(
            "policy_risk_score",
            "Risk score of evaluated payments",
            ["variant"],
            buckets=RISK_SCORE_BUCKETS,
            registry=self.registry
        )
        self._metrics["policy_rule_hits_total"] = Counter(
            "policy_rule_hits_total",
            "Rules that fired, by rule name",
            ["rule"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, code: str):
        self._metrics["errors_total"].labels(code=code).inc()

    def record_evaluation(self, variant: str, approved: bool, risk_score: int,
                          rules: Optional[Iterable[str]] = None):
        """Record the outcome of one policy evaluation."""
        decision = "approved" if approved else "rejected"
        self.increment_counter("policy_evaluations_total", variant=variant, decision=decision)
        if "policy_risk_score" in self._metrics:
            self._metrics["policy_risk_score"].labels(variant=variant).observe(risk_score)
        for rule in rules or ():
            self.increment_counter("policy_rule_hits_total", rule=rule)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Observe the duration of the enclosed block on a histogram."""
        started = time.perf_counter()
        try:
            yield
        finally:
            if operation_name in self._metrics:
                self._metrics[operation_name].labels(**labels).observe(time.perf_counter() - started)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter if this service defines it."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
