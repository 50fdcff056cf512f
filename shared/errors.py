"""
Shared error handling for the Policy Decision Core.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PolicyCoreException(Exception):
    """Base exception for policy core services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class StreamExhaustedError(PolicyCoreException):
    """Input stream ended before every expected value was read."""

    def __init__(self, message: str = "Input stream exhausted", details: Optional[Dict[str, Any]] = None):
        super().__init__("STREAM_EXHAUSTED", message, details)


class ValueDecodeError(PolicyCoreException):
    """A stream value could not be decoded into its primitive type."""

    def __init__(self, message: str = "Value could not be decoded", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECODE_ERROR", message, details)


class TrailingInputError(PolicyCoreException):
    """Values were left in the stream after a complete read."""

    def __init__(self, message: str = "Unexpected trailing input", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRAILING_INPUT", message, details)


class StreamTooLongError(PolicyCoreException):
    """Input stream exceeds the configured maximum length."""

    def __init__(self, message: str = "Input stream too long", details: Optional[Dict[str, Any]] = None):
        super().__init__("STREAM_TOO_LONG", message, details)
