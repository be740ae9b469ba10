"""Turn orchestrator: the control loop behind every chat message.

One call to ``handle_turn`` resolves the session, records the user message,
asks the reasoning engine what to do, and then either replies, runs a direct
tool and asks again, or parks a gated tool call behind an approval task.
"""

import asyncio
import time
from typing import Any
from uuid import UUID

from survey_agent.approvals.service import ApprovalService
from survey_agent.config import AppConfig
from survey_agent.errors import PersistenceFailure, SchemaViolation, UpstreamUnavailable
from survey_agent.llm_client.types import (
    EngineResponse,
    EngineText,
    EngineToolCall,
    ReasoningEngine,
    ToolExchange,
)
from survey_agent.orchestrator.ledger import ToolRunLedger
from survey_agent.orchestrator.message_log import MessageLog
from survey_agent.orchestrator.prompts import (
    build_system_prompt,
    confirmation_reply,
    fallback_reply,
    invalid_input_reply,
)
from survey_agent.orchestrator.session import SessionManager
from survey_agent.orchestrator.types import INVALID_TOOL_INPUT, UPSTREAM_UNAVAILABLE, TurnResult
from survey_agent.security import UPSTREAM_FAILURE_REPLY
from survey_agent.storage.models import MessageRole, ToolRunRecord
from survey_agent.telemetry import TraceContext, get_logger
from survey_agent.telemetry.events import (
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_STARTED,
    REPLY_READY,
    SCHEMA_VIOLATION,
    TOOL_ROUNDS_EXHAUSTED,
    TURN_FAILED,
    TURN_RECEIVED,
)
from survey_agent.tools.executor import call_tool
from survey_agent.tools.registry import ToolRegistry
from survey_agent.tools.types import ToolContext, ToolEntry, ToolProposal, payload_to_input

log = get_logger(__name__)


class Orchestrator:
    """Coordinates sessions, the message log, tools, and the approval gate.

    At most one turn per session may be in flight; the service layer enforces
    that. Different sessions are independent.
    """

    def __init__(
        self,
        sessions: SessionManager,
        messages: MessageLog,
        ledger: ToolRunLedger,
        approvals: ApprovalService,
        registry: ToolRegistry,
        engine: ReasoningEngine,
        *,
        history_window: int = 20,
        max_tool_rounds: int = 8,
        reasoning_timeout_seconds: float = 60.0,
        tool_timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize orchestrator.

        Args:
            sessions: Session manager.
            messages: Conversation log.
            ledger: Tool run ledger for direct tools.
            approvals: Approval service for gated tools.
            registry: Registered tools.
            engine: Reasoning engine adapter.
            history_window: Messages read back into each turn.
            max_tool_rounds: Engine calls allowed per turn.
            reasoning_timeout_seconds: Bound on one engine call.
            tool_timeout_seconds: Default bound on one tool call.
        """
        self.sessions = sessions
        self.messages = messages
        self.ledger = ledger
        self.approvals = approvals
        self.registry = registry
        self.engine = engine
        self.history_window = history_window
        self.max_tool_rounds = max_tool_rounds
        self.reasoning_timeout_seconds = reasoning_timeout_seconds
        self.tool_timeout_seconds = tool_timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: AppConfig,
        *,
        sessions: SessionManager,
        messages: MessageLog,
        ledger: ToolRunLedger,
        approvals: ApprovalService,
        registry: ToolRegistry,
        engine: ReasoningEngine,
    ) -> "Orchestrator":
        """Build an orchestrator using the configured limits."""
        return cls(
            sessions,
            messages,
            ledger,
            approvals,
            registry,
            engine,
            history_window=settings.history_window_messages,
            max_tool_rounds=settings.max_tool_rounds,
            reasoning_timeout_seconds=settings.reasoning_timeout_seconds,
            tool_timeout_seconds=settings.tool_timeout_seconds,
        )

    async def handle_turn(
        self,
        caller_id: str,
        user_text: str,
        tenant_id: str | None = None,
        locale: str | None = None,
        session_id: UUID | str | None = None,
        trace_id: str | None = None,
    ) -> TurnResult:
        """Handle one user message end to end.

        Args:
            caller_id: Identity of the user.
            user_text: The user's message.
            tenant_id: Optional company scope.
            locale: Optional locale; falls back to the session's locale.
            session_id: Session to continue. Unknown, foreign, or closed ids
                start a new session.
            trace_id: Optional trace id from the entry point.

        Returns:
            TurnResult with the reply and any pending approval task.

        Raises:
            PersistenceFailure: If the turn cannot be durably recorded.
        """
        trace = TraceContext(trace_id=trace_id) if trace_id else TraceContext.new_trace()
        sid = await self.sessions.resume_or_create(caller_id, tenant_id, locale, session_id)
        trace = trace.with_session(str(sid))
        session = await self.sessions.touch(sid)
        locale = locale or session.locale

        log.info(
            TURN_RECEIVED,
            user_id=caller_id,
            message_length=len(user_text),
            **trace.as_log_fields(),
        )
        try:
            return await self._run_turn(sid, caller_id, tenant_id, locale, user_text, trace)
        except PersistenceFailure as e:
            log.error(
                TURN_FAILED,
                error=str(e),
                error_type=type(e).__name__,
                **trace.as_log_fields(),
            )
            raise

    async def _run_turn(
        self,
        sid: UUID,
        caller_id: str,
        tenant_id: str | None,
        locale: str | None,
        user_text: str,
        trace: TraceContext,
    ) -> TurnResult:
        # The user message must be durable before any remote call.
        user_message = await self.messages.append(sid, MessageRole.USER, user_text)

        history = await self.messages.build_history(
            sid, self.history_window, exclude_latest_user=True
        )
        history.append({"role": MessageRole.USER.value, "content": user_text})
        system = build_system_prompt(locale)
        tools = self.registry.get_tool_definitions_for_llm()
        ctx = ToolContext(caller_id=caller_id, tenant_id=tenant_id, locale=locale, session_id=sid)

        exchanges: list[ToolExchange] = []
        tool_runs: list[ToolRunRecord] = []

        for round_index in range(self.max_tool_rounds):
            started = time.perf_counter()
            try:
                response = await self._call_engine(system, history, tools, exchanges, trace)
            except UpstreamUnavailable as e:
                return await self._upstream_failure(sid, e, tool_runs, trace)
            latency_ms = round((time.perf_counter() - started) * 1000.0, 2)
            log.info(
                MODEL_CALL_COMPLETED,
                round=round_index,
                response_type=response.type,
                latency_ms=latency_ms,
                **trace.as_log_fields(),
            )

            if isinstance(response, EngineText):
                reply = response.content.strip() or fallback_reply(locale)
                return await self._reply(sid, reply, tool_runs, trace, latency_ms=latency_ms)

            try:
                payload = self.registry.validate(response.name, response.arguments)
            except SchemaViolation as e:
                log.warning(
                    SCHEMA_VIOLATION,
                    tool_name=e.tool_name,
                    issues=e.issues,
                    **trace.as_log_fields(),
                )
                reply = invalid_input_reply(e.tool_name, e.issues, locale)
                return await self._reply(
                    sid, reply, tool_runs, trace, latency_ms=latency_ms, error=INVALID_TOOL_INPUT
                )

            entry = self.registry.get_tool(response.name)
            if self.registry.requires_approval(response.name):
                proposal, error = await self._preflight(entry, payload, ctx)
                if proposal is None:
                    await self.messages.append(
                        sid,
                        MessageRole.TOOL,
                        tool_name=response.name,
                        tool_input=payload_to_input(payload),
                        tool_output={"status": "rejected", "error": error},
                    )
                    exchanges.append(ToolExchange(call=response, result=error, is_error=True))
                    continue

                task, step = await self.approvals.propose(
                    sid, caller_id, tenant_id, response.name, proposal.input, proposal.title
                )
                await self.messages.append(
                    sid,
                    MessageRole.TOOL,
                    tool_name=response.name,
                    tool_input=step.input,
                    tool_output={"status": "pending_confirmation", "task_id": str(task.id)},
                )
                result = await self._reply(
                    sid,
                    confirmation_reply(proposal.title, locale),
                    tool_runs,
                    trace,
                    latency_ms=latency_ms,
                )
                return result.model_copy(update={"pending_task": task})

            run, exchange = await self._run_direct(
                sid, entry, response, payload, ctx, user_message.id
            )
            tool_runs.append(run)
            exchanges.append(exchange)

        log.warning(TOOL_ROUNDS_EXHAUSTED, rounds=self.max_tool_rounds, **trace.as_log_fields())
        return await self._reply(sid, fallback_reply(locale), tool_runs, trace)

    async def _call_engine(
        self,
        system: str,
        history: list[dict[str, str]],
        tools: list[dict[str, Any]],
        exchanges: list[ToolExchange],
        trace: TraceContext,
    ) -> EngineResponse:
        log.debug(MODEL_CALL_STARTED, exchanges=len(exchanges), **trace.as_log_fields())
        try:
            return await asyncio.wait_for(
                self.engine.respond(system, history, tools, list(exchanges)),
                timeout=self.reasoning_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(
                f"Reasoning engine timed out after {self.reasoning_timeout_seconds:g}s"
            ) from e
        except UpstreamUnavailable:
            raise
        except Exception as e:
            log.error(
                MODEL_CALL_ERROR,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
                **trace.as_log_fields(),
            )
            raise UpstreamUnavailable(f"Reasoning engine failed: {type(e).__name__}") from e

    async def _preflight(
        self, entry: ToolEntry, payload: Any, ctx: ToolContext
    ) -> tuple[ToolProposal | None, str | None]:
        """Return (proposal, error); the proposal is None when the action may not proceed."""
        if entry.preflight is None:
            return entry.default_proposal(payload), None
        outcome = await call_tool(
            entry.preflight,
            payload,
            ctx,
            tool_name=entry.name,
            timeout_seconds=self.tool_timeout_seconds,
        )
        if not outcome.ok:
            return None, outcome.error
        return outcome.output, None

    async def _run_direct(
        self,
        sid: UUID,
        entry: ToolEntry,
        call: EngineToolCall,
        payload: Any,
        ctx: ToolContext,
        message_id: UUID,
    ) -> tuple[ToolRunRecord, ToolExchange]:
        tool_input = payload_to_input(payload)
        run = await self.ledger.start(sid, entry.name, tool_input, message_id=message_id)
        run = await self.ledger.mark_running(run)
        outcome = await call_tool(
            entry.executor,
            payload,
            ctx,
            tool_name=entry.name,
            timeout_seconds=entry.definition.timeout_seconds or self.tool_timeout_seconds,
        )
        if outcome.ok:
            run = await self.ledger.succeed(run, outcome.output)
            tool_output: Any = run.output
        else:
            run = await self.ledger.fail(run, outcome.error)
            tool_output = {"error": run.error}

        await self.messages.append(
            sid,
            MessageRole.TOOL,
            tool_name=entry.name,
            tool_input=tool_input,
            tool_output=tool_output,
        )
        result = run.output if outcome.ok else run.error
        return run, ToolExchange(call=call, result=result, is_error=not outcome.ok)

    async def _reply(
        self,
        sid: UUID,
        reply: str,
        tool_runs: list[ToolRunRecord],
        trace: TraceContext,
        latency_ms: float | None = None,
        error: str | None = None,
    ) -> TurnResult:
        await self.messages.append(sid, MessageRole.ASSISTANT, reply, latency_ms=latency_ms)
        log.info(
            REPLY_READY,
            reply_length=len(reply),
            tool_runs=len(tool_runs),
            error=error,
            **trace.as_log_fields(),
        )
        return TurnResult(
            session_id=sid,
            reply_text=reply,
            tool_runs=tool_runs,
            error=error,
            trace_id=trace.trace_id,
        )

    async def _upstream_failure(
        self,
        sid: UUID,
        error: UpstreamUnavailable,
        tool_runs: list[ToolRunRecord],
        trace: TraceContext,
    ) -> TurnResult:
        log.warning(
            TURN_FAILED,
            error=str(error),
            error_type=type(error).__name__,
            **trace.as_log_fields(),
        )
        return await self._reply(
            sid, UPSTREAM_FAILURE_REPLY, tool_runs, trace, error=UPSTREAM_UNAVAILABLE
        )
