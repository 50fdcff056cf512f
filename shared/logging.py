"""
Structured logging for Policy Decision Core services.

Log events are JSON documents carrying the service name, the active
OpenTelemetry span (when one is recording), and the request and policy being
handled. Evaluators never log directly; they report to a trace sink, which may
forward to these loggers.
"""

import sys
import logging
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog
from opentelemetry import trace

EventDict = Dict[str, Any]

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
# Fingerprint (hex) of the policy under evaluation.
policy_id_var: ContextVar[Optional[str]] = ContextVar('policy_id', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structlog and the stdlib root logger for a service."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            service_context(service_name),
            add_trace_context,
            add_correlation_context,
            structlog.processors.JSONRenderer(sort_keys=True)
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def service_context(service_name: str) -> Callable[[Any, str, EventDict], EventDict]:
    """Processor stamping every event with ``service_name``."""
    def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service_name)
        return event_dict
    return add_service


def add_trace_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        if span_context.trace_id:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id:
            event_dict["span_id"] = f"{span_context.span_id:016x}"
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key, var in (("request_id", request_id_var), ("policy_id", policy_id_var)):
        value = var.get()
        if value:
            event_dict[key] = value
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id, generating one when the caller sent none."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_policy_context(policy_id: Optional[str] = None):
    if policy_id:
        policy_id_var.set(policy_id)


def clear_context():
    request_id_var.set(None)
    policy_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
