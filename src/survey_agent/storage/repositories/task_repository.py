"""Approval task and step storage."""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.storage.models import (
    TaskModel,
    TaskRecord,
    TaskStatus,
    TaskStepModel,
    TaskStepRecord,
)
from survey_agent.storage.repositories._guard import committing, reading


class TaskRepository:
    """Tasks and their steps, written together in one transaction."""

    def __init__(self, db: AsyncSession):  # noqa: D107
        self.db = db

    async def add(self, task: TaskRecord, step: TaskStepRecord) -> None:
        async with committing(self.db, "task_create"):
            self.db.add(
                TaskModel(
                    id=task.id,
                    session_id=task.session_id,
                    created_by=task.created_by,
                    tenant_id=task.tenant_id,
                    title=task.title,
                    goal=task.goal,
                    status=task.status.value,
                    created_at=task.created_at,
                    updated_at=task.updated_at,
                )
            )
            # Step references the task row, so flush it first.
            await self.db.flush()
            self.db.add(
                TaskStepModel(
                    id=step.id,
                    task_id=task.id,
                    step_order=step.step_order,
                    tool_name=step.tool_name,
                    input=step.input,
                    requires_approval=step.requires_approval,
                    status=step.status.value,
                    error=step.error,
                    created_at=step.created_at,
                    updated_at=step.updated_at,
                )
            )

    async def get(self, task_id: UUID) -> TaskRecord | None:
        async with reading("task_get"):
            result = await self.db.execute(select(TaskModel).where(TaskModel.id == task_id))
            row = result.scalar_one_or_none()
        return TaskRecord.model_validate(row) if row is not None else None

    async def steps(self, task_id: UUID) -> list[TaskStepRecord]:
        async with reading("task_steps"):
            result = await self.db.execute(
                select(TaskStepModel)
                .where(TaskStepModel.task_id == task_id)
                .order_by(TaskStepModel.step_order)
            )
            rows = result.scalars().all()
        return [TaskStepRecord.model_validate(row) for row in rows]

    async def save_status(
        self, task: TaskRecord, step: TaskStepRecord, expected: TaskStatus
    ) -> bool:
        """Write the status columns of a task and one step atomically.

        The task update is conditional on the stored status still being
        ``expected``; if no row matches, nothing is written and False is
        returned. The step's ``input`` column is never part of the update.
        """
        async with committing(self.db, "task_transition"):
            task_result = await self.db.execute(
                update(TaskModel)
                .where(TaskModel.id == task.id, TaskModel.status == expected.value)
                .values(status=task.status.value, updated_at=task.updated_at)
            )
            if task_result.rowcount == 0:
                return False
            await self.db.execute(
                update(TaskStepModel)
                .where(TaskStepModel.id == step.id)
                .values(status=step.status.value, error=step.error, updated_at=step.updated_at)
            )
        return True

    async def list_for_session(
        self, session_id: UUID, status: TaskStatus | None = None
    ) -> list[TaskRecord]:
        query = select(TaskModel).where(TaskModel.session_id == session_id)
        if status is not None:
            query = query.where(TaskModel.status == status.value)
        async with reading("task_list"):
            result = await self.db.execute(query.order_by(TaskModel.created_at))
            rows = result.scalars().all()
        return [TaskRecord.model_validate(row) for row in rows]
