"""Repository interfaces injected into the core components.

Each component depends on one of these protocols rather than on a database
handle, so the same logic runs against Postgres (``storage.repositories``) or
the in-memory stores (``storage.memory``).
"""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from survey_agent.storage.models import (
    MessageRecord,
    SessionRecord,
    TaskRecord,
    TaskStatus,
    TaskStepRecord,
    ToolRunRecord,
)


class SessionStore(Protocol):
    async def create(self, record: SessionRecord) -> SessionRecord: ...

    async def get(self, session_id: UUID) -> SessionRecord | None: ...

    async def update(self, session_id: UUID, **fields: Any) -> SessionRecord: ...


class MessageStore(Protocol):
    async def add(self, record: MessageRecord) -> MessageRecord: ...

    async def latest(self, session_id: UUID, limit: int) -> list[MessageRecord]:
        """Return up to ``limit`` messages, newest first."""
        ...


class ToolRunStore(Protocol):
    async def add(self, record: ToolRunRecord) -> ToolRunRecord: ...

    async def replace(self, record: ToolRunRecord) -> ToolRunRecord: ...

    async def get(self, run_id: UUID) -> ToolRunRecord | None: ...

    async def list_for_session(self, session_id: UUID) -> list[ToolRunRecord]: ...

    async def list_for_task(self, task_id: UUID) -> list[ToolRunRecord]: ...


class TaskStore(Protocol):
    async def add(self, task: TaskRecord, step: TaskStepRecord) -> None:
        """Insert a task together with its first step."""
        ...

    async def get(self, task_id: UUID) -> TaskRecord | None: ...

    async def steps(self, task_id: UUID) -> list[TaskStepRecord]:
        """Return the task's steps ordered by ``step_order``."""
        ...

    async def save_status(
        self, task: TaskRecord, step: TaskStepRecord, expected: TaskStatus
    ) -> bool:
        """Persist status, error and ``updated_at`` of a task and one step.

        The write applies only while the stored task is still in ``expected``;
        returns False (writing nothing) otherwise. Implementations must never
        write the step's ``input``.
        """
        ...

    async def list_for_session(
        self, session_id: UUID, status: TaskStatus | None = None
    ) -> list[TaskRecord]: ...
