"""Tool run ledger storage."""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.errors import NotFound
from survey_agent.storage.models import ToolRunModel, ToolRunRecord
from survey_agent.storage.repositories._guard import committing, reading

_MUTABLE_COLUMNS = ("status", "output", "error", "completed_at", "latency_ms")


class ToolRunRepository:
    def __init__(self, db: AsyncSession):  # noqa: D107
        self.db = db

    async def add(self, record: ToolRunRecord) -> ToolRunRecord:
        async with committing(self.db, "tool_run_create"):
            self.db.add(
                ToolRunModel(
                    id=record.id,
                    session_id=record.session_id,
                    message_id=record.message_id,
                    task_id=record.task_id,
                    step_id=record.step_id,
                    tool_name=record.tool_name,
                    input=record.input,
                    output=record.output,
                    status=record.status.value,
                    error=record.error,
                    started_at=record.started_at,
                    completed_at=record.completed_at,
                    latency_ms=record.latency_ms,
                )
            )
        return record

    async def replace(self, record: ToolRunRecord) -> ToolRunRecord:
        """Persist the outcome columns of an existing run."""
        values = record.model_dump(include=set(_MUTABLE_COLUMNS), mode="python")
        values["status"] = record.status.value
        async with committing(self.db, "tool_run_update"):
            result = await self.db.execute(
                update(ToolRunModel).where(ToolRunModel.id == record.id).values(**values)
            )
        if result.rowcount == 0:
            raise NotFound(f"Tool run {record.id} does not exist")
        return record

    async def get(self, run_id: UUID) -> ToolRunRecord | None:
        async with reading("tool_run_get"):
            result = await self.db.execute(select(ToolRunModel).where(ToolRunModel.id == run_id))
            row = result.scalar_one_or_none()
        return ToolRunRecord.model_validate(row) if row is not None else None

    async def list_for_session(self, session_id: UUID) -> list[ToolRunRecord]:
        async with reading("tool_run_list"):
            result = await self.db.execute(
                select(ToolRunModel)
                .where(ToolRunModel.session_id == session_id)
                .order_by(ToolRunModel.started_at)
            )
            rows = result.scalars().all()
        return [ToolRunRecord.model_validate(row) for row in rows]

    async def list_for_task(self, task_id: UUID) -> list[ToolRunRecord]:
        async with reading("tool_run_list"):
            result = await self.db.execute(
                select(ToolRunModel)
                .where(ToolRunModel.task_id == task_id)
                .order_by(ToolRunModel.started_at)
            )
            rows = result.scalars().all()
        return [ToolRunRecord.model_validate(row) for row in rows]
