"""Core types for the turn orchestrator."""

from uuid import UUID

from pydantic import BaseModel, Field

from survey_agent.storage.models import TaskRecord, ToolRunRecord

# TurnResult.error codes
UPSTREAM_UNAVAILABLE = "upstream_unavailable"
INVALID_TOOL_INPUT = "invalid_tool_input"


class TurnResult(BaseModel):
    """Outcome of one user turn returned to the caller.

    Attributes:
        session_id: Session the turn ran in (possibly newly created).
        reply_text: Assistant text shown to the user.
        pending_task: Task awaiting approval if a gated tool was proposed.
        tool_runs: Direct tool runs executed during the turn.
        error: Machine-readable error code for a recoverable failure.
        trace_id: Correlation id of the turn's log events.
    """

    session_id: UUID
    reply_text: str
    pending_task: TaskRecord | None = None
    tool_runs: list[ToolRunRecord] = Field(default_factory=list)
    error: str | None = None
    trace_id: str | None = None
