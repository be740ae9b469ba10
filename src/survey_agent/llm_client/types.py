"""Type definitions for the reasoning engine boundary.

This module defines:
- EngineText / EngineToolCall: the two shapes a response can take
- ToolExchange: a tool call and its result, replayed within one turn
- ReasoningEngine: protocol implemented by engine adapters
- LLMInvalidResponse: raised for responses that fit neither shape
"""

from typing import Any, Literal, Protocol, Sequence

from pydantic import BaseModel, Field

from survey_agent.errors import UpstreamUnavailable


class EngineText(BaseModel):
    """Plain assistant reply."""

    type: Literal["text"] = "text"
    content: str = ""
    usage: dict[str, int] = Field(default_factory=dict)


class EngineToolCall(BaseModel):
    """Request to invoke a tool.

    Attributes:
        id: Engine-assigned identifier, echoed back with the result.
        name: Tool name; may not be registered.
        arguments: Untyped arguments, validated before any use.
    """

    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: Any = None
    usage: dict[str, int] = Field(default_factory=dict)


EngineResponse = EngineText | EngineToolCall


class ToolExchange(BaseModel):
    """A tool call from earlier in the current turn and what it returned."""

    call: EngineToolCall
    result: Any = None
    is_error: bool = False


class ReasoningEngine(Protocol):
    async def respond(
        self,
        system: str,
        history: list[dict[str, str]],
        tools: list[dict[str, Any]],
        exchanges: Sequence[ToolExchange] = (),
    ) -> EngineResponse:
        """Produce the next assistant action.

        Args:
            system: System prompt.
            history: ``{role, content}`` turns oldest first, ending with the
                current user message.
            tools: Tool declarations (``name``, ``description``, ``input_schema``).
            exchanges: Tool calls already made in this turn, with results.
        """
        ...


class LLMInvalidResponse(UpstreamUnavailable):
    """Raised when the engine returns something that is neither text nor a tool call."""

    pass
