"""
OpenTelemetry trace context as logging metadata.

Requires the optional "otel" extra (opentelemetry-api). Without it the
integration reports itself unavailable and adds no metadata.
"""

from typing import Optional

from ..core.metadata import ContextMetadata
from ..core.metadata_key import MetadataKey

try:
    from opentelemetry import trace
    from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

    OTEL_AVAILABLE = True
except ImportError:
    trace = None
    INVALID_SPAN_ID = 0
    INVALID_TRACE_ID = 0
    OTEL_AVAILABLE = False

TRACE_ID: MetadataKey[str] = MetadataKey.single("trace_id", str)
SPAN_ID: MetadataKey[str] = MetadataKey.single("span_id", str)


def is_otel_available() -> bool:
    """Whether the OpenTelemetry API is installed."""
    return OTEL_AVAILABLE


def trace_context_metadata(span: Optional[object] = None) -> ContextMetadata:
    """
    Return trace_id and span_id metadata for the active span.

    Args:
        span: Span to read instead of the current one

    Returns:
        Metadata with 32 hex digit trace_id and 16 hex digit span_id values,
        or empty metadata when no valid span is active
    """
    if not OTEL_AVAILABLE:
        return ContextMetadata.none()
    if span is None:
        span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx.trace_id == INVALID_TRACE_ID or ctx.span_id == INVALID_SPAN_ID:
        return ContextMetadata.none()
    return (
        ContextMetadata.builder()
        .add(TRACE_ID, format(ctx.trace_id, "032x"))
        .add(SPAN_ID, format(ctx.span_id, "016x"))
        .build()
    )
