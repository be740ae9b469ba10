"""SQLAlchemy implementations of the storage protocols."""

from survey_agent.storage.repositories.message_repository import MessageRepository
from survey_agent.storage.repositories.session_repository import SessionRepository
from survey_agent.storage.repositories.task_repository import TaskRepository
from survey_agent.storage.repositories.tool_run_repository import ToolRunRepository

__all__ = [
    "MessageRepository",
    "SessionRepository",
    "TaskRepository",
    "ToolRunRepository",
]
