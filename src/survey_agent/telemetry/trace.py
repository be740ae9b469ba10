"""Trace context for correlating the log events of one turn."""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class TraceContext:
    """Correlation ids carried through a turn or an approval decision.

    Attributes:
        trace_id: Identifier shared by every event of one request.
        session_id: Conversation session the request belongs to, once known.
        parent_span_id: Span that spawned this context, if any.
    """

    trace_id: str
    session_id: str | None = None
    parent_span_id: str | None = None

    @classmethod
    def new_trace(cls, session_id: str | None = None) -> "TraceContext":
        """Start a new trace."""
        return cls(trace_id=str(uuid.uuid4()), session_id=session_id)

    def with_session(self, session_id: str) -> "TraceContext":
        """Return a copy bound to a resolved session id."""
        return TraceContext(
            trace_id=self.trace_id, session_id=session_id, parent_span_id=self.parent_span_id
        )

    def new_span(self) -> tuple["TraceContext", str]:
        """Create a child span; returns (child context, span_id)."""
        span_id = str(uuid.uuid4())
        child = TraceContext(
            trace_id=self.trace_id, session_id=self.session_id, parent_span_id=span_id
        )
        return child, span_id

    def as_log_fields(self) -> dict[str, str | None]:
        """Fields to bind onto structured log events."""
        return {"trace_id": self.trace_id, "session_id": self.session_id}
