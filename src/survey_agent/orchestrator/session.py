"""Session management for the orchestrator.

Sessions are the aggregation root of a conversation: messages, tool runs,
and approval tasks all hang off one. A session belongs to exactly one caller.
"""

from datetime import UTC, datetime
from uuid import UUID

from survey_agent.errors import NotFound
from survey_agent.storage.base import SessionStore
from survey_agent.storage.models import SessionRecord, SessionStatus
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import (
    SESSION_CLOSED,
    SESSION_CREATED,
    SESSION_RESUME_REJECTED,
    SESSION_RESUMED,
)

log = get_logger(__name__)


def _parse_session_id(value: UUID | str | None) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SessionManager:
    """Creates, resumes, and closes caller-owned sessions.

    A requested session id that does not exist, belongs to another caller,
    or points at a closed session is not an error: a new session is created
    instead and the rejection is logged as a warning event.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    async def resume_or_create(
        self,
        caller_id: str,
        tenant_id: str | None = None,
        locale: str | None = None,
        requested_session_id: UUID | str | None = None,
    ) -> UUID:
        """Resolve the session for a turn.

        Args:
            caller_id: Identity of the caller.
            tenant_id: Optional company scope.
            locale: Optional locale recorded on new sessions.
            requested_session_id: Session the caller asked to continue.

        Returns:
            The id of the resumed or newly created session.
        """
        if requested_session_id is not None:
            reason = None
            session_id = _parse_session_id(requested_session_id)
            existing = await self.store.get(session_id) if session_id else None
            if session_id is None:
                reason = "malformed_id"
            elif existing is None:
                reason = "not_found"
            elif existing.user_id != caller_id:
                reason = "not_owner"
            elif existing.status == SessionStatus.CLOSED:
                reason = "closed"

            if reason is None and existing is not None:
                log.debug(SESSION_RESUMED, session_id=str(existing.id), user_id=caller_id)
                return existing.id

            log.warning(
                SESSION_RESUME_REJECTED,
                requested_session_id=str(requested_session_id),
                user_id=caller_id,
                reason=reason,
            )

        now = datetime.now(UTC)
        record = SessionRecord(
            user_id=caller_id,
            tenant_id=tenant_id,
            locale=locale,
            status=SessionStatus.ACTIVE,
            created_at=now,
            last_message_at=now,
        )
        created = await self.store.create(record)
        log.info(
            SESSION_CREATED, session_id=str(created.id), user_id=caller_id, tenant_id=tenant_id
        )
        return created.id

    async def touch(self, session_id: UUID) -> SessionRecord:
        """Advance ``last_message_at`` to now; it never moves backwards."""
        current = await self.store.get(session_id)
        if current is None:
            raise NotFound(f"Session {session_id} does not exist")
        now = max(datetime.now(UTC), current.last_message_at)
        return await self.store.update(session_id, last_message_at=now)

    async def get(self, session_id: UUID, caller_id: str) -> SessionRecord:
        """Owner-scoped lookup.

        Raises:
            NotFound: If the session is missing or owned by someone else.
        """
        session = await self.store.get(session_id)
        if session is None or session.user_id != caller_id:
            raise NotFound(f"Session {session_id} not found")
        return session

    async def close(self, session_id: UUID, caller_id: str) -> SessionRecord:
        """Mark a session closed. Closing twice is a no-op."""
        session = await self.get(session_id, caller_id)
        if session.status == SessionStatus.CLOSED:
            return session
        closed = await self.store.update(session_id, status=SessionStatus.CLOSED)
        log.info(SESSION_CLOSED, session_id=str(session_id), user_id=caller_id)
        return closed
