"""Tests for TraceContext."""

import uuid

from survey_agent.telemetry.trace import TraceContext


class TestTraceContext:
    """Test TraceContext functionality."""

    def test_new_trace_creates_unique_trace_id(self) -> None:
        """Test that new_trace creates a context with unique trace_id."""
        ctx1 = TraceContext.new_trace()
        ctx2 = TraceContext.new_trace()

        assert ctx1.trace_id != ctx2.trace_id
        assert ctx1.parent_span_id is None
        uuid.UUID(ctx1.trace_id)

    def test_with_session_keeps_trace(self) -> None:
        """Test binding a resolved session id."""
        ctx = TraceContext.new_trace()

        bound = ctx.with_session("session-1")

        assert bound.trace_id == ctx.trace_id
        assert bound.session_id == "session-1"
        assert ctx.session_id is None

    def test_new_span_creates_child_context(self) -> None:
        """Test that new_span creates a child context with same trace_id."""
        parent = TraceContext.new_trace(session_id="session-1")
        child_ctx, span_id = parent.new_span()

        assert child_ctx.trace_id == parent.trace_id
        assert child_ctx.session_id == "session-1"
        assert child_ctx.parent_span_id == span_id
        uuid.UUID(span_id)

    def test_as_log_fields(self) -> None:
        """Test the fields bound onto log events."""
        ctx = TraceContext(trace_id="trace-1", session_id="session-1")

        assert ctx.as_log_fields() == {"trace_id": "trace-1", "session_id": "session-1"}
