"""Reasoning engine adapter for Anthropic's Claude models."""

import json
from typing import Any, Sequence

import anthropic
from anthropic import AsyncAnthropic

from survey_agent.config import AppConfig, get_settings
from survey_agent.errors import UpstreamUnavailable
from survey_agent.llm_client.types import (
    EngineResponse,
    EngineText,
    EngineToolCall,
    LLMInvalidResponse,
    ToolExchange,
)
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import MODEL_CALL_COMPLETED, MODEL_CALL_ERROR

log = get_logger(__name__)


def _to_claude_messages(
    history: list[dict[str, str]], exchanges: Sequence[ToolExchange]
) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [
        {"role": m["role"], "content": m["content"]}
        for m in history
        if m.get("role") in ("user", "assistant") and m.get("content")
    ]
    # Claude requires the conversation to open with a user turn.
    while messages and messages[0]["role"] != "user":
        messages.pop(0)

    for exchange in exchanges:
        arguments = exchange.call.arguments
        messages.append(
            {
                "role": "assistant",
                "content": [
                    {
                        "type": "tool_use",
                        "id": exchange.call.id,
                        "name": exchange.call.name,
                        "input": arguments if isinstance(arguments, dict) else {},
                    }
                ],
            }
        )
        content = (
            exchange.result
            if isinstance(exchange.result, str)
            else json.dumps(exchange.result, default=str)
        )
        messages.append(
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": exchange.call.id,
                        "content": content,
                        "is_error": exchange.is_error,
                    }
                ],
            }
        )
    return messages


class ClaudeReasoningEngine:
    """ReasoningEngine backed by the Anthropic Messages API.

    Usage:
        engine = ClaudeReasoningEngine()
        response = await engine.respond(system, history, registry.get_tool_definitions_for_llm())
    """

    def __init__(
        self, client: AsyncAnthropic | None = None, settings: AppConfig | None = None
    ) -> None:  # noqa: D107
        settings = settings or get_settings()
        if client is None:
            if not settings.anthropic_api_key:
                raise ValueError(
                    "Anthropic API key not configured. Set SURVEY_AGENT_ANTHROPIC_API_KEY "
                    "environment variable."
                )
            client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.client = client
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens

    async def respond(
        self,
        system: str,
        history: list[dict[str, str]],
        tools: list[dict[str, Any]],
        exchanges: Sequence[ToolExchange] = (),
    ) -> EngineResponse:
        """Call Claude once and normalize the reply.

        Raises:
            UpstreamUnavailable: On connection, timeout, or API status errors.
            LLMInvalidResponse: If the reply carries no usable content.
        """
        create_params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system,
            "messages": _to_claude_messages(history, exchanges),
        }
        if tools:
            create_params["tools"] = tools

        try:
            response = await self.client.messages.create(**create_params)
        except anthropic.APIError as e:
            log.error(
                MODEL_CALL_ERROR,
                model=self.model,
                error=str(e),
                error_type=type(e).__name__,
                component="claude_client",
            )
            raise UpstreamUnavailable(f"Claude request failed: {type(e).__name__}") from e

        if response is None or getattr(response, "content", None) is None:
            raise LLMInvalidResponse("Claude response has no content")

        usage = {}
        if getattr(response, "usage", None) is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        log.info(
            MODEL_CALL_COMPLETED,
            model=self.model,
            stop_reason=getattr(response, "stop_reason", None),
            component="claude_client",
            **usage,
        )

        tool_blocks = [block for block in response.content if block.type == "tool_use"]
        if tool_blocks:
            block = tool_blocks[0]
            return EngineToolCall(id=block.id, name=block.name, arguments=block.input, usage=usage)

        text = "".join(block.text for block in response.content if block.type == "text")
        return EngineText(content=text, usage=usage)
