"""Request and response models for the HTTP service."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from survey_agent.approvals.service import Decision
from survey_agent.storage.models import TaskRecord, ToolRunRecord


class Caller(BaseModel):
    """Identity asserted by the trusted upstream gateway."""

    user_id: str
    tenant_id: str | None = None


class ChatRequest(BaseModel):
    """One user message."""

    message: str = Field(..., min_length=1, max_length=8000)
    session_id: str | None = Field(None, description="Session to continue, if any")
    locale: str | None = Field(None, max_length=16)


class ChatResponse(BaseModel):
    """Assistant reply for one turn."""

    session_id: UUID
    reply: str
    pending_task: TaskRecord | None = None
    tool_runs: list[ToolRunRecord] = Field(default_factory=list)
    error: str | None = None
    trace_id: str | None = None


class DecisionRequest(BaseModel):
    """Approver's decision on a waiting task."""

    decision: Decision


HealthResponse = dict[str, Any]
