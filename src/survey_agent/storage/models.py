"""Data models for the persistence layer.

Pydantic records are what the core passes around; the SQLAlchemy models below
are their table mappings. Records are frozen: a change is a new record
returned by the repository, never an in-place mutation.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in local runs).
JSONPayload = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# Enumerations
# ============================================================================


class SessionStatus(str, Enum):
    """Lifecycle of a conversation session."""

    ACTIVE = "active"
    CLOSED = "closed"


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolRunStatus(str, Enum):
    """Lifecycle of one tool invocation in the ledger."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Whether the run has completed."""
        return self in _TERMINAL_RUN_STATUSES


_TERMINAL_RUN_STATUSES = {ToolRunStatus.SUCCEEDED, ToolRunStatus.FAILED, ToolRunStatus.CANCELED}


class TaskStatus(str, Enum):
    """Lifecycle shared by approval tasks and their steps."""

    WAITING_APPROVAL = "waiting_approval"
    APPROVED = "approved"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is accepted."""
        return self in _TERMINAL_TASK_STATUSES


_TERMINAL_TASK_STATUSES = {
    TaskStatus.SUCCEEDED,
    TaskStatus.FAILED,
    TaskStatus.REJECTED,
    TaskStatus.CANCELED,
}


# ============================================================================
# Pydantic Records
# ============================================================================


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


class SessionRecord(_Record):
    """A persisted, resumable conversation owned by one caller."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    tenant_id: str | None = None
    locale: str | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    last_message_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageRecord(_Record):
    """One immutable conversation turn."""

    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    role: MessageRole
    content: str | None = None
    tool_name: str | None = None
    tool_input: Any | None = None
    tool_output: Any | None = None
    latency_ms: float | None = None
    created_at: datetime


class ToolRunRecord(_Record):
    """Provenance of one tool invocation."""

    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    message_id: UUID | None = None
    task_id: UUID | None = None
    step_id: UUID | None = None
    tool_name: str
    input: Any | None = None
    output: Any | None = None
    status: ToolRunStatus = ToolRunStatus.PENDING
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    latency_ms: float | None = None


class TaskRecord(_Record):
    """A unit of approval-gated work proposed in a session."""

    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    created_by: str
    tenant_id: str | None = None
    title: str
    goal: str | None = None
    status: TaskStatus = TaskStatus.WAITING_APPROVAL
    created_at: datetime
    updated_at: datetime


class TaskStepRecord(_Record):
    """One tool invocation inside a task. ``input`` never changes after creation."""

    id: UUID = Field(default_factory=uuid4)
    task_id: UUID
    step_order: int = Field(1, ge=1)
    tool_name: str
    input: dict[str, Any]
    requires_approval: bool = True
    status: TaskStatus = TaskStatus.WAITING_APPROVAL
    error: str | None = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# SQLAlchemy Models (Database)
# ============================================================================


class SessionModel(Base):
    """SQLAlchemy model for the sessions table."""

    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(String(64), nullable=False, index=True)
    tenant_id = Column(String(64), nullable=True)
    locale = Column(String(16), nullable=True)
    status = Column(String(16), nullable=False, default=SessionStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_message_at = Column(DateTime(timezone=True), nullable=False)
    metadata_ = Column("metadata", JSONPayload, default=dict)


class MessageModel(Base):
    """SQLAlchemy model for the messages table."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_session_created", "session_id", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id"), nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=True)
    tool_name = Column(String(100), nullable=True)
    tool_input = Column(JSONPayload, nullable=True)
    tool_output = Column(JSONPayload, nullable=True)
    latency_ms = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ToolRunModel(Base):
    """SQLAlchemy model for the tool_runs table."""

    __tablename__ = "tool_runs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id"), nullable=False, index=True)
    message_id = Column(Uuid, ForeignKey("messages.id"), nullable=True)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=True, index=True)
    step_id = Column(Uuid, ForeignKey("task_steps.id"), nullable=True)
    tool_name = Column(String(100), nullable=False)
    input = Column(JSONPayload, nullable=True)
    output = Column(JSONPayload, nullable=True)
    status = Column(String(16), nullable=False)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    latency_ms = Column(Float, nullable=True)


class TaskModel(Base):
    """SQLAlchemy model for the tasks table."""

    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id"), nullable=False, index=True)
    created_by = Column(String(64), nullable=False)
    tenant_id = Column(String(64), nullable=True)
    title = Column(Text, nullable=False)
    goal = Column(Text, nullable=True)
    status = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class TaskStepModel(Base):
    """SQLAlchemy model for the task_steps table."""

    __tablename__ = "task_steps"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False, default=1)
    tool_name = Column(String(100), nullable=False)
    input = Column(JSONPayload, nullable=False)
    requires_approval = Column(Boolean, nullable=False, default=True)
    status = Column(String(32), nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
