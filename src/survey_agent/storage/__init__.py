"""Persistence: records, table mappings, and repository implementations."""

from survey_agent.storage.base import MessageStore, SessionStore, TaskStore, ToolRunStore
from survey_agent.storage.memory import (
    InMemoryMessageStore,
    InMemorySessionStore,
    InMemoryTaskStore,
    InMemoryToolRunStore,
)
from survey_agent.storage.models import (
    MessageRecord,
    MessageRole,
    SessionRecord,
    SessionStatus,
    TaskRecord,
    TaskStatus,
    TaskStepRecord,
    ToolRunRecord,
    ToolRunStatus,
)

__all__ = [
    "InMemoryMessageStore",
    "InMemorySessionStore",
    "InMemoryTaskStore",
    "InMemoryToolRunStore",
    "MessageRecord",
    "MessageRole",
    "MessageStore",
    "SessionRecord",
    "SessionStatus",
    "SessionStore",
    "TaskRecord",
    "TaskStatus",
    "TaskStepRecord",
    "TaskStore",
    "ToolRunRecord",
    "ToolRunStatus",
    "ToolRunStore",
]
