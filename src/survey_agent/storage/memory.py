"""In-memory repositories for tests and local experiments."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from survey_agent.errors import NotFound
from survey_agent.storage.models import (
    MessageRecord,
    SessionRecord,
    TaskRecord,
    TaskStatus,
    TaskStepRecord,
    ToolRunRecord,
)


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[UUID, SessionRecord] = {}

    async def create(self, record: SessionRecord) -> SessionRecord:
        self._sessions[record.id] = record
        return record

    async def get(self, session_id: UUID) -> SessionRecord | None:
        return self._sessions.get(session_id)

    async def update(self, session_id: UUID, **fields: Any) -> SessionRecord:
        current = self._sessions.get(session_id)
        if current is None:
            raise NotFound(f"Session {session_id} does not exist")
        updated = current.model_copy(update=fields)
        self._sessions[session_id] = updated
        return updated


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._messages: list[MessageRecord] = []

    async def add(self, record: MessageRecord) -> MessageRecord:
        self._messages.append(record)
        return record

    async def latest(self, session_id: UUID, limit: int) -> list[MessageRecord]:
        rows = [m for m in self._messages if m.session_id == session_id]
        rows.sort(key=lambda m: m.created_at, reverse=True)
        return rows[:limit]

    def all(self, session_id: UUID) -> list[MessageRecord]:
        """Every message of a session in insertion order (test helper)."""
        return [m for m in self._messages if m.session_id == session_id]


class InMemoryToolRunStore:
    def __init__(self) -> None:
        self._runs: dict[UUID, ToolRunRecord] = {}

    async def add(self, record: ToolRunRecord) -> ToolRunRecord:
        self._runs[record.id] = record
        return record

    async def replace(self, record: ToolRunRecord) -> ToolRunRecord:
        if record.id not in self._runs:
            raise NotFound(f"Tool run {record.id} does not exist")
        self._runs[record.id] = record
        return record

    async def get(self, run_id: UUID) -> ToolRunRecord | None:
        return self._runs.get(run_id)

    async def list_for_session(self, session_id: UUID) -> list[ToolRunRecord]:
        return [r for r in self._runs.values() if r.session_id == session_id]

    async def list_for_task(self, task_id: UUID) -> list[ToolRunRecord]:
        return [r for r in self._runs.values() if r.task_id == task_id]


class InMemoryTaskStore:
    def __init__(self) -> None:
        self._tasks: dict[UUID, TaskRecord] = {}
        self._steps: dict[UUID, TaskStepRecord] = {}

    async def add(self, task: TaskRecord, step: TaskStepRecord) -> None:
        self._tasks[task.id] = task
        self._steps[step.id] = step

    async def get(self, task_id: UUID) -> TaskRecord | None:
        return self._tasks.get(task_id)

    async def steps(self, task_id: UUID) -> list[TaskStepRecord]:
        rows = [s for s in self._steps.values() if s.task_id == task_id]
        return sorted(rows, key=lambda s: s.step_order)

    async def save_status(
        self, task: TaskRecord, step: TaskStepRecord, expected: TaskStatus
    ) -> bool:
        if task.id not in self._tasks or step.id not in self._steps:
            raise NotFound(f"Task {task.id} does not exist")
        # No await between check and write: atomic within one event loop.
        if self._tasks[task.id].status != expected:
            return False
        self._tasks[task.id] = self._tasks[task.id].model_copy(
            update={"status": task.status, "updated_at": task.updated_at}
        )
        self._steps[step.id] = self._steps[step.id].model_copy(
            update={"status": step.status, "error": step.error, "updated_at": step.updated_at}
        )
        return True

    async def list_for_session(
        self, session_id: UUID, status: TaskStatus | None = None
    ) -> list[TaskRecord]:
        rows = [
            t
            for t in self._tasks.values()
            if t.session_id == session_id and (status is None or t.status == status)
        ]
        return sorted(rows, key=lambda t: t.created_at)
