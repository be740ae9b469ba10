"""Wiring of the core components over a set of stores.

The service builds one Runtime per request from SQL repositories bound to
that request's database session; tests build one from the in-memory stores.
"""

from dataclasses import dataclass

from survey_agent.approvals.service import ApprovalService
from survey_agent.config import AppConfig
from survey_agent.llm_client.types import ReasoningEngine
from survey_agent.orchestrator.ledger import ToolRunLedger
from survey_agent.orchestrator.message_log import MessageLog
from survey_agent.orchestrator.orchestrator import Orchestrator
from survey_agent.orchestrator.session import SessionManager
from survey_agent.storage.base import MessageStore, SessionStore, TaskStore, ToolRunStore
from survey_agent.tools.registry import ToolRegistry


@dataclass
class Runtime:
    sessions: SessionManager
    messages: MessageLog
    ledger: ToolRunLedger
    approvals: ApprovalService
    orchestrator: Orchestrator


def build_runtime(
    *,
    session_store: SessionStore,
    message_store: MessageStore,
    tool_run_store: ToolRunStore,
    task_store: TaskStore,
    registry: ToolRegistry,
    engine: ReasoningEngine,
    settings: AppConfig,
) -> Runtime:
    """Assemble the components sharing the given stores.

    Args:
        session_store: Sessions collection.
        message_store: Messages collection.
        tool_run_store: Tool runs collection.
        task_store: Tasks and task steps.
        registry: Registered tools.
        engine: Reasoning engine adapter.
        settings: Limits and timeouts.

    Returns:
        Runtime with every component wired.
    """
    sessions = SessionManager(session_store)
    messages = MessageLog(message_store)
    ledger = ToolRunLedger(tool_run_store)
    approvals = ApprovalService(
        task_store,
        registry,
        ledger,
        messages,
        tool_timeout_seconds=settings.tool_timeout_seconds,
    )
    orchestrator = Orchestrator.from_settings(
        settings,
        sessions=sessions,
        messages=messages,
        ledger=ledger,
        approvals=approvals,
        registry=registry,
        engine=engine,
    )
    return Runtime(
        sessions=sessions,
        messages=messages,
        ledger=ledger,
        approvals=approvals,
        orchestrator=orchestrator,
    )
