"""FastAPI service application."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
from uuid import UUID

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from survey_agent.approvals.service import DecisionOutcome, TaskView
from survey_agent.config import get_settings
from survey_agent.errors import (
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    StateConflict,
    TurnInProgress,
)
from survey_agent.llm_client.claude import ClaudeReasoningEngine
from survey_agent.llm_client.types import ReasoningEngine
from survey_agent.runtime import Runtime, build_runtime
from survey_agent.security import sanitize_error_message
from survey_agent.service.models import (
    Caller,
    ChatRequest,
    ChatResponse,
    DecisionRequest,
    HealthResponse,
)
from survey_agent.storage.database import dispose_db, get_db_session, init_db
from survey_agent.storage.models import MessageRecord, SessionRecord, TaskRecord
from survey_agent.storage.repositories import (
    MessageRepository,
    SessionRepository,
    TaskRepository,
    ToolRunRepository,
)
from survey_agent.telemetry import configure_logging, get_logger
from survey_agent.tools.backend import SurveyBackend
from survey_agent.tools.registry import ToolRegistry
from survey_agent.tools.survey import build_survey_registry

log = get_logger(__name__)
settings = get_settings()

# Global instances (initialized lazily or in lifespan)
survey_backend: SurveyBackend | None = None
tool_registry: ToolRegistry | None = None
reasoning_engine: ReasoningEngine | None = None


class SessionTurnGuard:
    """Rejects a second concurrent turn on the same session.

    Turns on different sessions never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, session_id: str | None) -> AsyncIterator[None]:
        """Hold the session for the duration of a turn.

        Raises:
            TurnInProgress: If another turn already holds the session.
        """
        if not session_id:
            yield
            return
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            raise TurnInProgress(f"Session {session_id} is already handling a message")
        async with lock:
            try:
                yield
            finally:
                self._locks.pop(session_id, None)

    def is_busy(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()


turn_guard = SessionTurnGuard()


def set_survey_backend(backend: SurveyBackend) -> None:
    """Install the data layer the survey tools delegate to."""
    global survey_backend, tool_registry
    survey_backend = backend
    tool_registry = build_survey_registry(backend)
    log.info("survey_backend_configured", tools_count=len(tool_registry.list_tool_names()))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management."""
    configure_logging(
        settings.log_level, settings.log_dir, json_console=settings.log_format == "json"
    )
    log.info("service_starting", environment=settings.environment.value)

    await init_db()
    log.info("database_initialized")

    if survey_backend is None:
        log.warning("survey_backend_not_configured")

    log.info("service_ready", port=settings.service_port)

    yield

    log.info("service_shutting_down")
    await dispose_db()


app = FastAPI(
    title="Survey Agent Service",
    version=settings.version,
    lifespan=lifespan,
)


# ============================================================================
# Dependencies
# ============================================================================


def get_caller(
    x_user_id: str = Header(..., min_length=1),
    x_tenant_id: str | None = Header(None),
) -> Caller:
    """Caller identity from the trusted upstream headers."""
    return Caller(user_id=x_user_id, tenant_id=x_tenant_id or None)


def get_tool_registry() -> ToolRegistry:
    global tool_registry
    if tool_registry is None:
        tool_registry = ToolRegistry()
    return tool_registry


def get_reasoning_engine() -> ReasoningEngine:
    global reasoning_engine
    if reasoning_engine is None:
        reasoning_engine = ClaudeReasoningEngine(settings=settings)
    return reasoning_engine


async def get_runtime(
    db: AsyncSession = Depends(get_db_session),  # noqa: B008
    registry: ToolRegistry = Depends(get_tool_registry),  # noqa: B008
    engine: ReasoningEngine = Depends(get_reasoning_engine),  # noqa: B008
) -> Runtime:
    """Core components bound to this request's database session."""
    return build_runtime(
        session_store=SessionRepository(db),
        message_store=MessageRepository(db),
        tool_run_store=ToolRunRepository(db),
        task_store=TaskRepository(db),
        registry=registry,
        engine=engine,
        settings=settings,
    )


# ============================================================================
# Error Mapping
# ============================================================================


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": sanitize_error_message(exc)})


@app.exception_handler(StateConflict)
@app.exception_handler(InvalidTransition)
@app.exception_handler(TurnInProgress)
async def conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    log.error("request_persistence_failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": sanitize_error_message(exc)})


# ============================================================================
# Endpoints
# ============================================================================


@app.get("/health")
async def health_check() -> HealthResponse:
    """Service health check endpoint."""
    return {
        "status": "healthy",
        "components": {
            "survey_backend": "configured" if survey_backend is not None else "missing",
            "reasoning_engine": "configured"
            if reasoning_engine is not None or settings.anthropic_api_key
            else "missing",
            "tools": len(get_tool_registry().list_tool_names()),
        },
    }


@app.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> ChatResponse:
    """Process a chat message.

    This is the main entry point for user interactions. A missing, unknown,
    or foreign ``session_id`` starts a new session.
    """
    async with turn_guard.hold(request.session_id):
        result = await runtime.orchestrator.handle_turn(
            caller.user_id,
            request.message,
            tenant_id=caller.tenant_id,
            locale=request.locale,
            session_id=request.session_id,
        )
    return ChatResponse(
        session_id=result.session_id,
        reply=result.reply_text,
        pending_task=result.pending_task,
        tool_runs=result.tool_runs,
        error=result.error,
        trace_id=result.trace_id,
    )


@app.get("/tasks/{task_id}", response_model=TaskView)
async def get_task(
    task_id: UUID,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> TaskView:
    """Current task status with its steps and tool runs."""
    return await runtime.approvals.get_task(task_id, caller.user_id)


@app.post("/tasks/{task_id}/decision", response_model=DecisionOutcome)
async def decide_task(
    task_id: UUID,
    data: DecisionRequest,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> DecisionOutcome:
    """Approve or reject a waiting task. Approval executes it."""
    return await runtime.approvals.decide(task_id, caller.user_id, data.decision)


@app.post("/tasks/{task_id}/cancel", response_model=DecisionOutcome)
async def cancel_task(
    task_id: UUID,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> DecisionOutcome:
    """Abandon a task that has not finished."""
    return await runtime.approvals.cancel(task_id, caller.user_id)


@app.get("/sessions/{session_id}/messages", response_model=list[MessageRecord])
async def list_messages(
    session_id: UUID,
    limit: int = 50,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> list[MessageRecord]:
    """Most recent messages of a caller-owned session, oldest first."""
    await runtime.sessions.get(session_id, caller.user_id)
    return await runtime.messages.recent_window(session_id, max(1, min(limit, 200)))


@app.get("/sessions/{session_id}/pending-tasks", response_model=list[TaskRecord])
async def list_pending_tasks(
    session_id: UUID,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> list[TaskRecord]:
    """Tasks in the session still waiting for the caller's decision."""
    await runtime.sessions.get(session_id, caller.user_id)
    return await runtime.approvals.list_pending(session_id, caller.user_id)


@app.post("/sessions/{session_id}/close", response_model=SessionRecord)
async def close_session(
    session_id: UUID,
    caller: Caller = Depends(get_caller),  # noqa: B008
    runtime: Runtime = Depends(get_runtime),  # noqa: B008
) -> SessionRecord:
    """Close a caller-owned session; later turns with its id start a new one."""
    return await runtime.sessions.close(session_id, caller.user_id)
