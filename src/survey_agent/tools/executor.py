"""Timeout-bounded invocation of tool executors and preflight checks.

Domain failures, timeouts, and unexpected executor errors all become a
``ToolCallOutcome`` with ``error`` set, so callers record them in the ledger
instead of failing the turn. Persistence failures and cancellation propagate.
"""

import asyncio
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from survey_agent.errors import PersistenceFailure, SurveyAgentError, ToolError
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import TOOL_CALL_FAILED
from survey_agent.tools.types import ToolContext

log = get_logger(__name__)


class ToolCallOutcome(BaseModel):
    """Result of one guarded tool call."""

    output: Any = None
    error: str | None = Field(None, description="Error message if failed")

    @property
    def ok(self) -> bool:
        return self.error is None


def _describe(error: SurveyAgentError) -> str:
    if isinstance(error, ToolError) and error.suggestions:
        return f"{_message(error)} Did you mean: {', '.join(error.suggestions)}?"
    return _message(error)


def _message(error: SurveyAgentError) -> str:
    return str(error) or type(error).__name__


async def call_tool(
    func: Callable[[Any, ToolContext], Awaitable[Any]],
    payload: BaseModel,
    ctx: ToolContext,
    *,
    tool_name: str,
    timeout_seconds: float,
) -> ToolCallOutcome:
    """Await ``func(payload, ctx)`` under a timeout.

    Args:
        func: Executor or preflight callable.
        payload: Validated tool input.
        ctx: Caller identity.
        tool_name: Name used in error text and logs.
        timeout_seconds: Upper bound on the call.

    Returns:
        Outcome holding either the output or an error message.

    Raises:
        PersistenceFailure: Never converted; the turn must fail loudly.
    """
    try:
        output = await asyncio.wait_for(func(payload, ctx), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        return ToolCallOutcome(error=f"Tool '{tool_name}' timed out after {timeout_seconds:g}s")
    except PersistenceFailure:
        raise
    except SurveyAgentError as e:
        return ToolCallOutcome(error=_describe(e))
    except Exception as e:
        log.error(
            TOOL_CALL_FAILED,
            tool_name=tool_name,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return ToolCallOutcome(error=f"{type(e).__name__}: {e}")
    return ToolCallOutcome(output=output)
