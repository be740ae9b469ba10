"""Append-only message storage."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.storage.models import MessageModel, MessageRecord
from survey_agent.storage.repositories._guard import committing, reading


class MessageRepository:
    """Insert and window reads over the messages table. There is no update path."""

    def __init__(self, db: AsyncSession):  # noqa: D107
        self.db = db

    async def add(self, record: MessageRecord) -> MessageRecord:
        async with committing(self.db, "message_append"):
            self.db.add(
                MessageModel(
                    id=record.id,
                    session_id=record.session_id,
                    role=record.role.value,
                    content=record.content,
                    tool_name=record.tool_name,
                    tool_input=record.tool_input,
                    tool_output=record.tool_output,
                    latency_ms=record.latency_ms,
                    created_at=record.created_at,
                )
            )
        return record

    async def latest(self, session_id: UUID, limit: int) -> list[MessageRecord]:
        """Newest ``limit`` messages of a session, newest first."""
        async with reading("message_window"):
            result = await self.db.execute(
                select(MessageModel)
                .where(MessageModel.session_id == session_id)
                .order_by(MessageModel.created_at.desc())
                .limit(limit)
            )
            rows = result.scalars().all()
        return [MessageRecord.model_validate(row) for row in rows]
