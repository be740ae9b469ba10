"""Tool layer: definitions, registry, gating policy, and the survey catalogue.

This module provides:
- Tool registry for registration, argument validation, and LLM declarations
- Static approval policy for tools that mutate shared state
- The survey tool catalogue bound to a SurveyBackend
"""

from survey_agent.tools.backend import SurveyBackend, SurveySummary
from survey_agent.tools.executor import ToolCallOutcome, call_tool
from survey_agent.tools.policy import GATED_TOOLS, requires_approval
from survey_agent.tools.registry import ToolRegistry
from survey_agent.tools.survey import build_survey_registry, register_survey_tools
from survey_agent.tools.types import (
    ToolContext,
    ToolDefinition,
    ToolEntry,
    ToolProposal,
    payload_to_input,
)

__all__ = [
    "GATED_TOOLS",
    "SurveyBackend",
    "SurveySummary",
    "ToolCallOutcome",
    "ToolContext",
    "ToolDefinition",
    "ToolEntry",
    "ToolProposal",
    "ToolRegistry",
    "build_survey_registry",
    "call_tool",
    "payload_to_input",
    "register_survey_tools",
    "requires_approval",
]
