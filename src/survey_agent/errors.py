"""Error taxonomy for the conversational tool-orchestration core.

Every failure the core reports derives from SurveyAgentError so the service
layer can map it to a response in one place. Nothing here is retried
automatically; each error is reported once to its caller.
"""

from typing import Any


class SurveyAgentError(Exception):
    """Base exception for all survey agent errors."""

    pass


class SchemaViolation(SurveyAgentError):
    """Raised when tool-call arguments fail validation against the tool schema.

    Attributes:
        tool_name: Name of the tool the arguments were proposed for.
        issues: One ``"field: message"`` entry per offending field.
    """

    def __init__(self, tool_name: str, issues: list[str]) -> None:  # noqa: D107
        self.tool_name = tool_name
        self.issues = issues
        super().__init__(f"Invalid input for '{tool_name}': {'; '.join(issues)}")


class RegistryConflict(SurveyAgentError):
    """Raised when two tools are registered under the same name."""

    pass


class UpstreamUnavailable(SurveyAgentError):
    """Raised when the reasoning engine or a tool's remote dependency fails or times out."""

    pass


class InvalidTransition(SurveyAgentError):
    """Raised when a state machine edge is not permitted from the current state."""

    def __init__(self, entity: str, current: str, event: str) -> None:  # noqa: D107
        self.entity = entity
        self.current = current
        self.event = event
        super().__init__(f"Cannot apply '{event}' to {entity} in state '{current}'")


class StateConflict(SurveyAgentError):
    """Raised when an approval decision arrives for a task that is no longer waiting."""

    def __init__(self, task_id: Any, current: str, decision: str) -> None:  # noqa: D107
        self.task_id = task_id
        self.current = current
        self.decision = decision
        super().__init__(f"Task {task_id} is '{current}'; cannot {decision} it")


class NotFound(SurveyAgentError):
    """Raised when an entity does not exist or is not owned by the caller."""

    pass


class PersistenceFailure(SurveyAgentError):
    """Raised when a write to the log, ledger, or task store fails."""

    pass


class ToolError(SurveyAgentError):
    """Domain failure raised by a tool executor (e.g. survey is not in draft)."""

    def __init__(self, message: str, suggestions: list[str] | None = None) -> None:  # noqa: D107
        self.suggestions = suggestions or []
        super().__init__(message)


class TurnInProgress(SurveyAgentError):
    """Raised when a second turn arrives for a session that is already handling one."""

    pass
