"""Reasoning engine client module.

This module provides the ReasoningEngine protocol the orchestrator talks to
and the Claude adapter that implements it.
"""

from survey_agent.llm_client.claude import ClaudeReasoningEngine
from survey_agent.llm_client.types import (
    EngineResponse,
    EngineText,
    EngineToolCall,
    LLMInvalidResponse,
    ReasoningEngine,
    ToolExchange,
)

__all__ = [
    "ClaudeReasoningEngine",
    "EngineResponse",
    "EngineText",
    "EngineToolCall",
    "LLMInvalidResponse",
    "ReasoningEngine",
    "ToolExchange",
]
