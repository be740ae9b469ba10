"""Orchestrator module: sessions, the message log, the tool run ledger, and the turn loop.

The Orchestrator coordinates end-to-end turns between the caller, the
reasoning engine, the tool registry, and the approval gate.
"""

from survey_agent.orchestrator.ledger import ToolRunLedger
from survey_agent.orchestrator.message_log import MessageLog
from survey_agent.orchestrator.orchestrator import Orchestrator
from survey_agent.orchestrator.prompts import build_system_prompt
from survey_agent.orchestrator.session import SessionManager
from survey_agent.orchestrator.types import TurnResult

__all__ = [
    # Public API
    "Orchestrator",
    "TurnResult",
    # Components
    "MessageLog",
    "SessionManager",
    "ToolRunLedger",
    "build_system_prompt",
]
