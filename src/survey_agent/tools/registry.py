"""Tool registry for tool discovery, registration, and argument validation.

This module provides the ToolRegistry class that stores tool definitions with
their executors, validates raw tool-call arguments against each tool's input
model, and renders the declarations handed to the reasoning engine.
"""

from typing import Any

from pydantic import BaseModel, ValidationError

from survey_agent.errors import RegistryConflict, SchemaViolation
from survey_agent.telemetry import get_logger
from survey_agent.telemetry.events import TOOL_REGISTERED
from survey_agent.tools.policy import requires_approval as _is_gated
from survey_agent.tools.types import ToolDefinition, ToolEntry, ToolExecutor, ToolPreflight

log = get_logger(__name__)


def _format_issues(error: ValidationError) -> list[str]:
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "input"
        issues.append(f"{location}: {item['msg']}")
    return issues


class ToolRegistry:
    """Central registry of available tools.

    Every tool, read-only or mutating, has the same shape; the only tool-level
    distinction the orchestrator makes is the approval policy lookup.
    """

    def __init__(self) -> None:
        """Initialize empty tool registry."""
        self._tools: dict[str, ToolEntry] = {}

    def register(
        self,
        tool_def: ToolDefinition,
        executor: ToolExecutor,
        preflight: ToolPreflight | None = None,
    ) -> ToolEntry:
        """Register a tool with its definition and executor.

        Args:
            tool_def: Tool definition with metadata and input model.
            executor: Async callable ``(payload, ctx) -> output``.
            preflight: Optional async check for gated tools, resolving the
                call into a ``ToolProposal`` or raising ToolError.

        Returns:
            The registered entry.

        Raises:
            RegistryConflict: If a tool with the same name is already registered.
        """
        if tool_def.name in self._tools:
            raise RegistryConflict(f"Tool '{tool_def.name}' is already registered")

        entry = ToolEntry(definition=tool_def, executor=executor, preflight=preflight)
        self._tools[tool_def.name] = entry
        log.debug(
            TOOL_REGISTERED,
            tool_name=tool_def.name,
            gated=_is_gated(tool_def.name),
        )
        return entry

    def get_tool(self, name: str) -> ToolEntry | None:
        """Retrieve a registered tool, or None if unknown."""
        return self._tools.get(name)

    def list_tool_names(self) -> list[str]:
        """List names of all registered tools in registration order."""
        return list(self._tools.keys())

    def validate(self, name: str, raw_input: Any) -> BaseModel:
        """Parse raw tool-call arguments into the tool's input model.

        Args:
            name: Tool name proposed by the reasoning engine.
            raw_input: Untyped arguments, normally a JSON object.

        Returns:
            The validated payload.

        Raises:
            SchemaViolation: If the tool is unknown or any field is invalid.
                ``issues`` lists every offending field.
        """
        entry = self._tools.get(name)
        if entry is None:
            raise SchemaViolation(name, [f"tool: unknown tool '{name}'"])
        if raw_input is None:
            raw_input = {}
        try:
            return entry.definition.input_model.model_validate(raw_input)
        except ValidationError as e:
            raise SchemaViolation(name, _format_issues(e)) from e

    def requires_approval(self, name: str) -> bool:
        """Whether the named tool is gated behind human approval."""
        return _is_gated(name)

    def get_tool_definitions_for_llm(self) -> list[dict[str, Any]]:
        """Get tool declarations in the reasoning engine's format.

        Returns:
            List of ``{name, description, input_schema}`` dicts.
        """
        return [
            {
                "name": entry.definition.name,
                "description": entry.definition.description,
                "input_schema": entry.definition.input_schema(),
            }
            for entry in self._tools.values()
        ]
