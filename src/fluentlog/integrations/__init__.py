"""External integrations."""

from .otel import SPAN_ID, TRACE_ID, is_otel_available, trace_context_metadata

__all__ = [
    "SPAN_ID",
    "TRACE_ID",
    "is_otel_available",
    "trace_context_metadata",
]
