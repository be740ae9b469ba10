"""Session storage repository using Postgres."""

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.errors import NotFound
from survey_agent.storage.models import SessionModel, SessionRecord
from survey_agent.storage.repositories._guard import committing, reading

_COLUMN_NAMES = {"metadata": "metadata_"}


def _to_record(row: SessionModel) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        user_id=row.user_id,
        tenant_id=row.tenant_id,
        locale=row.locale,
        status=row.status,
        created_at=row.created_at,
        last_message_at=row.last_message_at,
        metadata=row.metadata_ or {},
    )


class SessionRepository:
    """Repository for conversation sessions.

    Usage:
        async with get_session_factory()() as db:
            repo = SessionRepository(db)
            session = await repo.get(session_id)
    """

    def __init__(self, db: AsyncSession):  # noqa: D107
        self.db = db

    async def create(self, record: SessionRecord) -> SessionRecord:
        """Insert a new session row."""
        async with committing(self.db, "session_create"):
            self.db.add(
                SessionModel(
                    id=record.id,
                    user_id=record.user_id,
                    tenant_id=record.tenant_id,
                    locale=record.locale,
                    status=record.status.value,
                    created_at=record.created_at,
                    last_message_at=record.last_message_at,
                    metadata_=dict(record.metadata),
                )
            )
        return record

    async def get(self, session_id: UUID) -> SessionRecord | None:
        """Point lookup by id; None if missing."""
        async with reading("session_get"):
            result = await self.db.execute(
                select(SessionModel).where(SessionModel.id == session_id)
            )
            row = result.scalar_one_or_none()
        return _to_record(row) if row is not None else None

    async def update(self, session_id: UUID, **fields: Any) -> SessionRecord:
        """Update columns of one session.

        Raises:
            NotFound: If the session does not exist.
        """
        values = {
            _COLUMN_NAMES.get(k, k): (v.value if hasattr(v, "value") else v)
            for k, v in fields.items()
        }
        async with committing(self.db, "session_update"):
            result = await self.db.execute(
                update(SessionModel).where(SessionModel.id == session_id).values(**values)
            )
        if result.rowcount == 0:
            raise NotFound(f"Session {session_id} does not exist")
        updated = await self.get(session_id)
        if updated is None:
            raise NotFound(f"Session {session_id} does not exist")
        return updated
