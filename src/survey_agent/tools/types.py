"""Type definitions for the tool layer.

A tool is a ``ToolDefinition`` (name, description, pydantic input model)
registered together with an async executor and, for gated tools, an optional
preflight check that runs before an approval task is proposed. The preflight
resolves the action into a ``ToolProposal``: the title shown to the approver
and the exact input the approved step will run with.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ToolExecutor = Callable[[Any, "ToolContext"], Awaitable[Any]]
ToolPreflight = Callable[[Any, "ToolContext"], Awaitable["ToolProposal"]]


class ToolContext(BaseModel):
    """Caller identity passed to every executor.

    Executors scope their data by these fields; they never read identity from
    tool arguments.
    """

    model_config = ConfigDict(frozen=True)

    caller_id: str = Field(..., description="User the call is made on behalf of")
    tenant_id: str | None = Field(None, description="Company scope, None for holding-wide callers")
    locale: str | None = Field(None, description="Caller locale, e.g. 'en' or 'mn'")
    session_id: UUID | None = Field(None, description="Session the call belongs to")


class ToolProposal(BaseModel):
    """A gated action resolved for approval.

    ``input`` names its targets by id, so the approved step runs against the
    records the approver was shown and never re-resolves a title or recency
    selector.
    """

    title: str = Field(..., description="Human-readable summary shown to the approver")
    input: dict[str, Any] = Field(..., description="Step input to run on approval")


class ToolDefinition(BaseModel):
    """Declaration of one tool the reasoning engine may call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Tool name (e.g., 'close_survey')")
    description: str = Field(..., description="Clear description for the LLM")
    input_model: type[BaseModel] = Field(..., description="Pydantic model validating arguments")
    timeout_seconds: int | None = Field(
        None, ge=1, description="Executor timeout; falls back to the configured default"
    )
    summarize: Callable[[Any], str] | None = Field(
        None, description="Formats a validated payload as a proposal title"
    )

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the input model as sent to the LLM."""
        return self.input_model.model_json_schema(by_alias=True)


@dataclass(frozen=True)
class ToolEntry:
    """A registered tool: its definition plus the callables bound to it."""

    definition: ToolDefinition
    executor: ToolExecutor
    preflight: ToolPreflight | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    def proposal_title(self, payload: BaseModel) -> str:
        """Title used when no preflight supplies one."""
        if self.definition.summarize is not None:
            return self.definition.summarize(payload)
        return f"Run {self.definition.name}"

    def default_proposal(self, payload: BaseModel) -> ToolProposal:
        """Proposal for a gated tool without a preflight: the arguments as given."""
        return ToolProposal(title=self.proposal_title(payload), input=payload_to_input(payload))


def payload_to_input(payload: BaseModel) -> dict[str, Any]:
    """Serialize validated arguments the way the reasoning engine supplied them.

    Only fields the engine actually set are kept, under their wire aliases, so
    a stored step input reads exactly like the proposed call.
    """
    return payload.model_dump(mode="json", by_alias=True, exclude_unset=True)
