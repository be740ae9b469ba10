"""Tool run ledger: provenance records for every tool invocation.

Each run moves through ``pending -> running -> succeeded | failed``, or
``pending | running -> canceled``. Terminal transitions stamp
``completed_at`` and ``latency_ms``.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic_core import to_jsonable_python

from survey_agent.errors import InvalidTransition
from survey_agent.storage.base import ToolRunStore
from survey_agent.storage.models import ToolRunRecord, ToolRunStatus
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import (
    TOOL_CALL_CANCELED,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
)

log = get_logger(__name__)

_ALLOWED: dict[ToolRunStatus, frozenset[ToolRunStatus]] = {
    ToolRunStatus.PENDING: frozenset({ToolRunStatus.RUNNING, ToolRunStatus.CANCELED}),
    ToolRunStatus.RUNNING: frozenset(
        {ToolRunStatus.SUCCEEDED, ToolRunStatus.FAILED, ToolRunStatus.CANCELED}
    ),
}


def _elapsed_ms(started_at: datetime, now: datetime) -> float:
    return round(max((now - started_at).total_seconds(), 0.0) * 1000.0, 2)


class ToolRunLedger:
    """Creates tool runs and applies their status transitions."""

    def __init__(self, store: ToolRunStore) -> None:
        self.store = store

    async def start(
        self,
        session_id: UUID,
        tool_name: str,
        input: Any,
        *,
        message_id: UUID | None = None,
        task_id: UUID | None = None,
        step_id: UUID | None = None,
    ) -> ToolRunRecord:
        """Record a new pending run."""
        record = ToolRunRecord(
            session_id=session_id,
            message_id=message_id,
            task_id=task_id,
            step_id=step_id,
            tool_name=tool_name,
            input=to_jsonable_python(input),
            started_at=datetime.now(UTC),
        )
        return await self.store.add(record)

    async def mark_running(self, run: ToolRunRecord) -> ToolRunRecord:
        updated = await self._advance(run, ToolRunStatus.RUNNING)
        log.info(
            TOOL_CALL_STARTED,
            run_id=str(run.id),
            tool_name=run.tool_name,
            task_id=str(run.task_id) if run.task_id else None,
        )
        return updated

    async def succeed(self, run: ToolRunRecord, output: Any) -> ToolRunRecord:
        updated = await self._advance(
            run, ToolRunStatus.SUCCEEDED, output=to_jsonable_python(output)
        )
        log.info(
            TOOL_CALL_COMPLETED,
            run_id=str(run.id),
            tool_name=run.tool_name,
            latency_ms=updated.latency_ms,
        )
        return updated

    async def fail(self, run: ToolRunRecord, error: str) -> ToolRunRecord:
        updated = await self._advance(run, ToolRunStatus.FAILED, error=error or "unknown error")
        log.warning(
            TOOL_CALL_FAILED,
            run_id=str(run.id),
            tool_name=run.tool_name,
            error=updated.error,
            latency_ms=updated.latency_ms,
        )
        return updated

    async def cancel(self, run: ToolRunRecord, reason: str | None = None) -> ToolRunRecord:
        updated = await self._advance(run, ToolRunStatus.CANCELED)
        log.info(TOOL_CALL_CANCELED, run_id=str(run.id), tool_name=run.tool_name, reason=reason)
        return updated

    async def list_for_session(self, session_id: UUID) -> list[ToolRunRecord]:
        return await self.store.list_for_session(session_id)

    async def list_for_task(self, task_id: UUID) -> list[ToolRunRecord]:
        return await self.store.list_for_task(task_id)

    async def _advance(
        self, run: ToolRunRecord, target: ToolRunStatus, **fields: Any
    ) -> ToolRunRecord:
        if target not in _ALLOWED.get(run.status, frozenset()):
            raise InvalidTransition("tool run", run.status.value, target.value)

        changes: dict[str, Any] = {"status": target, **fields}
        if target.is_terminal:
            now = datetime.now(UTC)
            changes["completed_at"] = now
            changes["latency_ms"] = _elapsed_ms(run.started_at, now)
        return await self.store.replace(run.model_copy(update=changes))
