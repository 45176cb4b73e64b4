"""
Tests for the OpenTelemetry trace context integration.
"""

from unittest.mock import Mock, patch

from fluentlog.context.scoped import ScopedLoggingContext, current_metadata
from fluentlog.integrations import otel
from fluentlog.integrations.otel import SPAN_ID, TRACE_ID, is_otel_available, trace_context_metadata


def mock_span(trace_id, span_id):
    span = Mock()
    span.get_span_context.return_value = Mock(trace_id=trace_id, span_id=span_id)
    return span


class TestTraceContextMetadata:
    """Test trace and span ids as metadata."""

    @patch("fluentlog.integrations.otel.OTEL_AVAILABLE", False)
    def test_unavailable(self):
        """Test no metadata is added without OpenTelemetry."""
        assert not is_otel_available()
        assert trace_context_metadata(mock_span(1, 2)).size() == 0

    @patch("fluentlog.integrations.otel.OTEL_AVAILABLE", True)
    @patch("fluentlog.integrations.otel.trace")
    def test_current_span(self, mock_trace):
        """Test ids of the current span are formatted as hex."""
        mock_trace.get_current_span.return_value = mock_span(0x1234, 0xABC)
        metadata = trace_context_metadata()
        assert metadata.find_value(TRACE_ID) == "00000000000000000000000000001234"
        assert metadata.find_value(SPAN_ID) == "0000000000000abc"

    @patch("fluentlog.integrations.otel.OTEL_AVAILABLE", True)
    def test_explicit_span(self):
        """Test a given span is used instead of the current one."""
        metadata = trace_context_metadata(mock_span(2**127, 2**63))
        assert metadata.find_value(TRACE_ID) == "8" + "0" * 31
        assert metadata.find_value(SPAN_ID) == "8" + "0" * 15

    @patch("fluentlog.integrations.otel.OTEL_AVAILABLE", True)
    def test_invalid_span(self):
        """Test invalid spans add no metadata."""
        assert trace_context_metadata(mock_span(otel.INVALID_TRACE_ID, 5)).size() == 0
        assert trace_context_metadata(mock_span(5, otel.INVALID_SPAN_ID)).size() == 0

    @patch("fluentlog.integrations.otel.OTEL_AVAILABLE", True)
    def test_as_context_metadata(self):
        """Test trace metadata can be installed in a logging context."""
        builder = ScopedLoggingContext.new_context()
        metadata = trace_context_metadata(mock_span(1, 1))
        for i in range(metadata.size()):
            builder.with_metadata(metadata.get_key(i), metadata.get_value(i))
        with builder.install():
            assert current_metadata().find_value(SPAN_ID) == "0000000000000001"
