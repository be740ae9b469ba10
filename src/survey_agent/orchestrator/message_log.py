"""Append-only conversation log with bounded context windows."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic_core import to_jsonable_python

from survey_agent.storage.base import MessageStore
from survey_agent.storage.models import MessageRecord, MessageRole
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import CONTEXT_WINDOW_BUILT

log = get_logger(__name__)

_REPLAYED_ROLES = (MessageRole.USER, MessageRole.ASSISTANT)


class MessageLog:
    """Per-session record of user, assistant, and tool turns.

    Messages are never updated. ``created_at`` is strictly increasing within
    a session: a timestamp that would collide with or precede the latest
    message is moved one microsecond past it.
    """

    def __init__(self, store: MessageStore) -> None:
        self.store = store

    async def append(
        self,
        session_id: UUID,
        role: MessageRole,
        content: str | None = None,
        *,
        tool_name: str | None = None,
        tool_input: Any | None = None,
        tool_output: Any | None = None,
        latency_ms: float | None = None,
    ) -> MessageRecord:
        """Write one turn to the log.

        Args:
            session_id: Owning session.
            role: user, assistant, or tool.
            content: Free text for user/assistant turns.
            tool_name: Tool involved, for tool turns.
            tool_input: Arguments the tool was called with.
            tool_output: Result or status payload of the call.
            latency_ms: Reasoning engine latency for assistant turns.

        Returns:
            The stored message.
        """
        created_at = datetime.now(UTC)
        latest = await self.store.latest(session_id, 1)
        if latest and latest[0].created_at >= created_at:
            created_at = latest[0].created_at + timedelta(microseconds=1)

        record = MessageRecord(
            session_id=session_id,
            role=role,
            content=content or None,
            tool_name=tool_name,
            tool_input=to_jsonable_python(tool_input),
            tool_output=to_jsonable_python(tool_output),
            latency_ms=latency_ms,
            created_at=created_at,
        )
        return await self.store.add(record)

    async def recent_window(self, session_id: UUID, limit: int) -> list[MessageRecord]:
        """Return the newest ``limit`` messages ordered oldest to newest.

        Older context beyond the limit is dropped; callers must tolerate
        partial history.
        """
        if limit <= 0:
            return []
        newest_first = await self.store.latest(session_id, limit)
        return list(reversed(newest_first))

    async def build_history(
        self, session_id: UUID, limit: int, exclude_latest_user: bool = False
    ) -> list[dict[str, str]]:
        """Build the reasoning engine history for a session.

        Only user and assistant turns with content are replayed. Tool turns
        stay in the log for audit and are excluded here.

        Args:
            session_id: Session to read.
            limit: Window size, counted over all roles.
            exclude_latest_user: Drop the newest message if it is the user
                turn currently being handled.

        Returns:
            ``[{"role": ..., "content": ...}, ...]`` oldest first.
        """
        window = await self.recent_window(session_id, limit)
        if exclude_latest_user and window and window[-1].role == MessageRole.USER:
            window = window[:-1]

        history = [
            {"role": message.role.value, "content": message.content}
            for message in window
            if message.role in _REPLAYED_ROLES and message.content
        ]
        log.debug(
            CONTEXT_WINDOW_BUILT,
            session_id=str(session_id),
            window_size=len(window),
            history_size=len(history),
        )
        return history
