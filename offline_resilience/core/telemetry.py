"""
OpenTelemetry helpers.

Only the OpenTelemetry API is used: with no SDK installed every tracer is a
no-op, so spans never require a network exporter.
"""

from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode


def add_span_attribute(key: str, value: Any) -> None:
    """Attach an attribute to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(key, value)


def mark_span_error(span: trace.Span, error: Exception, message: Optional[str] = None) -> None:
    """Flag a span as failed."""
    span.set_status(Status(StatusCode.ERROR, message or str(error)))
    span.record_exception(error)
