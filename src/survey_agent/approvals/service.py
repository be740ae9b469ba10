"""Approval gate for tools that mutate shared state.

A gated tool call becomes a Task with one Step holding the exact input the
approver is shown, with its targets resolved to ids. Nothing runs until an
explicit decision arrives through ``ApprovalService.decide``, possibly in
another request or process; the stored task is the only record of whether it
is still waiting.
"""

import asyncio
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel

from survey_agent.approvals.state_machine import TaskEvent, can_apply, next_status
from survey_agent.errors import NotFound, PersistenceFailure, SchemaViolation, StateConflict
from survey_agent.storage.base import TaskStore
from survey_agent.storage.models import (
    MessageRole,
    TaskRecord,
    TaskStatus,
    TaskStepRecord,
    ToolRunRecord,
)
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import (
    APPROVAL_DENIED,
    APPROVAL_DUPLICATE,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    STATE_TRANSITION,
    TASK_CANCELED,
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_STARTED,
)
from survey_agent.tools.executor import ToolCallOutcome, call_tool
from survey_agent.tools.registry import ToolRegistry
from survey_agent.tools.types import ToolContext, payload_to_input

if TYPE_CHECKING:
    from survey_agent.orchestrator.ledger import ToolRunLedger
    from survey_agent.orchestrator.message_log import MessageLog

log = get_logger(__name__)


class Decision(str, Enum):
    """Decision an approver can submit for a waiting task."""

    APPROVE = "approve"
    REJECT = "reject"


_DECISION_TARGET = {
    Decision.APPROVE: TaskStatus.SUCCEEDED,
    Decision.REJECT: TaskStatus.REJECTED,
}
_DECISION_EVENT = {
    Decision.APPROVE: TaskEvent.APPROVE,
    Decision.REJECT: TaskEvent.REJECT,
}


class TaskView(BaseModel):
    """A task with its steps and linked tool runs, for display."""

    task: TaskRecord
    steps: list[TaskStepRecord]
    tool_runs: list[ToolRunRecord] = []


class DecisionOutcome(BaseModel):
    """Result of a decision or cancellation.

    Attributes:
        task: Task state after the call.
        step: The task's step after the call.
        tool_run: Run created by execution, or the existing one for a duplicate.
        duplicate: True when the decision had already been applied.
    """

    task: TaskRecord
    step: TaskStepRecord
    tool_run: ToolRunRecord | None = None
    duplicate: bool = False


class ApprovalService:
    """Creates approval tasks and applies decisions to them."""

    def __init__(
        self,
        tasks: TaskStore,
        registry: ToolRegistry,
        ledger: "ToolRunLedger",
        messages: "MessageLog",
        tool_timeout_seconds: float = 30.0,
    ) -> None:
        self.tasks = tasks
        self.registry = registry
        self.ledger = ledger
        self.messages = messages
        self.tool_timeout_seconds = tool_timeout_seconds

    async def propose(
        self,
        session_id: UUID,
        caller_id: str,
        tenant_id: str | None,
        tool_name: str,
        payload: BaseModel | dict[str, Any],
        title: str,
        goal: str | None = None,
    ) -> tuple[TaskRecord, TaskStepRecord]:
        """Create one waiting task with one waiting step.

        Args:
            session_id: Session the proposal was made in.
            caller_id: Caller who must later decide on it.
            tenant_id: Caller's company scope.
            tool_name: Gated tool to run on approval.
            payload: Validated arguments or a preflight's resolved input; stored
                verbatim as the step input.
            title: Human-readable summary of the action.
            goal: Optional longer description.

        Returns:
            The created (task, step) pair.
        """
        step_input = payload_to_input(payload) if isinstance(payload, BaseModel) else dict(payload)
        now = datetime.now(UTC)
        task = TaskRecord(
            session_id=session_id,
            created_by=caller_id,
            tenant_id=tenant_id,
            title=title,
            goal=goal,
            status=TaskStatus.WAITING_APPROVAL,
            created_at=now,
            updated_at=now,
        )
        step = TaskStepRecord(
            task_id=task.id,
            step_order=1,
            tool_name=tool_name,
            input=step_input,
            requires_approval=True,
            status=TaskStatus.WAITING_APPROVAL,
            created_at=now,
            updated_at=now,
        )
        await self.tasks.add(task, step)
        log.info(
            APPROVAL_REQUIRED,
            task_id=str(task.id),
            session_id=str(session_id),
            tool_name=tool_name,
            title=title,
        )
        return task, step

    async def decide(self, task_id: UUID, caller_id: str, decision: Decision) -> DecisionOutcome:
        """Apply an approve or reject decision.

        Approving a waiting task executes its step immediately. Repeating a
        decision whose terminal state is already reached returns the current
        state unchanged.

        Raises:
            NotFound: If the task does not exist or was created by someone else.
            StateConflict: If the task is no longer waiting and the decision
                does not match its current terminal state.
        """
        decision = Decision(decision)
        task, step = await self._load(task_id, caller_id)
        if task.status != TaskStatus.WAITING_APPROVAL:
            return await self._duplicate_or_conflict(task, step, decision)

        applied = await self._apply(task, step, _DECISION_EVENT[decision])
        if applied is None:
            task, step = await self._load(task_id, caller_id)
            return await self._duplicate_or_conflict(task, step, decision)

        task, step = applied
        if decision == Decision.REJECT:
            log.info(APPROVAL_DENIED, task_id=str(task.id), tool_name=step.tool_name)
            return DecisionOutcome(task=task, step=step)

        log.info(APPROVAL_GRANTED, task_id=str(task.id), tool_name=step.tool_name)
        return await self._execute(task, step)

    async def cancel(self, task_id: UUID, caller_id: str) -> DecisionOutcome:
        """Abandon a task that has not finished.

        A task canceled while its executor is running keeps running to
        completion in the background request; its tool run is then recorded
        as canceled.

        Raises:
            NotFound: If the task does not exist or is not the caller's.
            StateConflict: If the task already finished.
        """
        task, step = await self._load(task_id, caller_id)
        if task.status == TaskStatus.CANCELED:
            return DecisionOutcome(task=task, step=step, duplicate=True)
        if not can_apply(task.status, TaskEvent.ABANDON):
            raise StateConflict(task.id, task.status.value, "cancel")

        applied = await self._apply(task, step, TaskEvent.ABANDON)
        if applied is None:
            task, step = await self._load(task_id, caller_id)
            if task.status == TaskStatus.CANCELED:
                return DecisionOutcome(task=task, step=step, duplicate=True)
            raise StateConflict(task.id, task.status.value, "cancel")

        task, step = applied
        log.info(TASK_CANCELED, task_id=str(task.id), tool_name=step.tool_name)
        return DecisionOutcome(task=task, step=step)

    async def get_task(self, task_id: UUID, caller_id: str) -> TaskView:
        """Return a caller-owned task with its steps and tool runs."""
        task = await self.tasks.get(task_id)
        if task is None or task.created_by != caller_id:
            raise NotFound(f"Task {task_id} not found")
        steps = await self.tasks.steps(task.id)
        runs = await self.ledger.list_for_task(task.id)
        return TaskView(task=task, steps=steps, tool_runs=runs)

    async def list_pending(self, session_id: UUID, caller_id: str) -> list[TaskRecord]:
        """Tasks in a session still waiting for the caller's decision."""
        tasks = await self.tasks.list_for_session(session_id, TaskStatus.WAITING_APPROVAL)
        return [t for t in tasks if t.created_by == caller_id]

    async def _load(self, task_id: UUID, caller_id: str) -> tuple[TaskRecord, TaskStepRecord]:
        task = await self.tasks.get(task_id)
        if task is None or task.created_by != caller_id:
            raise NotFound(f"Task {task_id} not found")
        steps = await self.tasks.steps(task.id)
        if not steps:
            raise NotFound(f"Task {task_id} has no steps")
        return task, steps[0]

    async def _apply(
        self,
        task: TaskRecord,
        step: TaskStepRecord,
        event: TaskEvent,
        error: str | None = None,
    ) -> tuple[TaskRecord, TaskStepRecord] | None:
        """Move task and step together; None if another writer got there first."""
        target = next_status(task.status, event)
        now = datetime.now(UTC)
        new_task = task.model_copy(update={"status": target, "updated_at": now})
        new_step = step.model_copy(
            update={
                "status": target,
                "error": error if error is not None else step.error,
                "updated_at": now,
            }
        )
        if not await self.tasks.save_status(new_task, new_step, expected=task.status):
            return None
        log.debug(
            STATE_TRANSITION,
            task_id=str(task.id),
            from_status=task.status.value,
            to_status=target.value,
            transition=event.value,
        )
        return new_task, new_step

    async def _duplicate_or_conflict(
        self, task: TaskRecord, step: TaskStepRecord, decision: Decision
    ) -> DecisionOutcome:
        if task.status != _DECISION_TARGET[decision]:
            raise StateConflict(task.id, task.status.value, decision.value)
        runs = await self.ledger.list_for_task(task.id)
        log.info(APPROVAL_DUPLICATE, task_id=str(task.id), decision=decision.value)
        return DecisionOutcome(
            task=task, step=step, tool_run=runs[-1] if runs else None, duplicate=True
        )

    async def _execute(self, task: TaskRecord, step: TaskStepRecord) -> DecisionOutcome:
        begun = await self._apply(task, step, TaskEvent.BEGIN)
        if begun is None:
            # Abandoned between approval and start.
            task, step = await self._load(task.id, task.created_by)
            return DecisionOutcome(task=task, step=step)
        task, step = begun
        log.info(TASK_STARTED, task_id=str(task.id), tool_name=step.tool_name)

        run: ToolRunRecord | None = None
        try:
            run = await self.ledger.start(
                task.session_id, step.tool_name, step.input, task_id=task.id, step_id=step.id
            )
            run = await self.ledger.mark_running(run)
            outcome = await self._invoke(task, step)
        except (asyncio.CancelledError, PersistenceFailure) as e:
            await self._interrupted(task, step, run, e)
            raise
        error = outcome.error

        finished = await self._apply(
            task, step, TaskEvent.SUCCEED if outcome.ok else TaskEvent.FAIL, error=error
        )
        if finished is None:
            run = await self.ledger.cancel(run, reason="task canceled during execution")
            task, step = await self._load(task.id, task.created_by)
        else:
            task, step = finished
            if outcome.ok:
                run = await self.ledger.succeed(run, outcome.output)
            else:
                run = await self.ledger.fail(run, error)

        await self.messages.append(
            task.session_id,
            MessageRole.TOOL,
            tool_name=step.tool_name,
            tool_input=step.input,
            tool_output={
                "task_id": str(task.id),
                "status": task.status.value,
                "result": run.output,
                "error": error,
            },
        )
        if task.status == TaskStatus.SUCCEEDED:
            log.info(
                TASK_COMPLETED,
                task_id=str(task.id),
                tool_name=step.tool_name,
                latency_ms=run.latency_ms,
            )
        elif task.status == TaskStatus.FAILED:
            log.warning(TASK_FAILED, task_id=str(task.id), tool_name=step.tool_name, error=error)
        return DecisionOutcome(task=task, step=step, tool_run=run)

    async def _invoke(self, task: TaskRecord, step: TaskStepRecord) -> ToolCallOutcome:
        ctx = ToolContext(
            caller_id=task.created_by, tenant_id=task.tenant_id, session_id=task.session_id
        )
        try:
            # The stored input is re-validated, never replaced.
            payload = self.registry.validate(step.tool_name, step.input)
        except SchemaViolation as e:
            return ToolCallOutcome(error=str(e))
        entry = self.registry.get_tool(step.tool_name)
        return await call_tool(
            entry.executor,
            payload,
            ctx,
            tool_name=step.tool_name,
            timeout_seconds=entry.definition.timeout_seconds or self.tool_timeout_seconds,
        )

    async def _interrupted(
        self,
        task: TaskRecord,
        step: TaskStepRecord,
        run: ToolRunRecord | None,
        cause: BaseException,
    ) -> None:
        """Leave an execution cut short in a terminal state before ``cause`` propagates."""
        canceled = isinstance(cause, asyncio.CancelledError)
        reason = str(cause) or type(cause).__name__
        try:
            await self._apply(
                task, step, TaskEvent.ABANDON if canceled else TaskEvent.FAIL, error=reason
            )
            if run is not None and not run.status.is_terminal:
                if canceled:
                    await self.ledger.cancel(run, reason=reason)
                else:
                    await self.ledger.fail(run, reason)
        except PersistenceFailure as e:
            log.error(
                TASK_FAILED,
                task_id=str(task.id),
                tool_name=step.tool_name,
                error=str(e),
                error_type=type(e).__name__,
                interrupted_by=type(cause).__name__,
            )
            return
        if canceled:
            log.warning(TASK_CANCELED, task_id=str(task.id), tool_name=step.tool_name)
        else:
            log.error(TASK_FAILED, task_id=str(task.id), tool_name=step.tool_name, error=reason)
