"""Survey tool catalogue.

Input models, tool definitions, and executors for the assistant's survey
capabilities. Read tools run directly; the tools listed in
``policy.GATED_TOOLS`` get a preflight check that resolves the target survey
once, at proposal time. The stored step input names that survey by id, so an
approval always acts on the survey the approver was shown.
"""

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from survey_agent.errors import ToolError
from survey_agent.tools.backend import SurveyBackend, SurveyStatus, SurveySummary
from survey_agent.tools.registry import ToolRegistry
from survey_agent.tools.types import ToolContext, ToolDefinition, ToolProposal, payload_to_input

# ============================================================================
# Input Models
# ============================================================================


class _ToolInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SurveyLookupInput(_ToolInput):
    """Selects one survey by id, fuzzy title, or as the most recent one."""

    survey_id: UUID | None = Field(None, alias="surveyId", description="UUID of the survey.")
    title: str | None = Field(
        None, min_length=1, description="Survey title or partial title for fuzzy matching."
    )
    latest: bool | None = Field(
        None, description="Set to true to target the most recently created survey."
    )

    @model_validator(mode="after")
    def _require_selector(self) -> "SurveyLookupInput":
        if self.survey_id is None and not self.title and not self.latest:
            raise ValueError("one of surveyId, title or latest is required")
        return self


class SendRemindersInput(SurveyLookupInput):
    employee_ids: list[UUID] | None = Field(
        None,
        alias="employeeIds",
        description=(
            "Leave empty. Filled with the current non-respondents when the action is "
            "proposed for confirmation."
        ),
    )


class GetNonRespondentsInput(SurveyLookupInput):
    title: str | None = Field(
        None, min_length=2, description="Survey title or partial title for fuzzy matching."
    )
    limit: int = Field(
        50, ge=1, le=200, description="Maximum number of employees to return (1-200, default 50)."
    )


class GetSurveysInput(_ToolInput):
    status: Literal["draft", "active", "closed", "all"] = Field(
        "all", description='Filter by survey status. Default is "all".'
    )
    limit: int = Field(
        10, ge=1, le=50, description="Maximum number of surveys to return (1-50, default 10)."
    )


class GetCompaniesInput(_ToolInput):
    pass


class CreateSurveyInput(_ToolInput):
    title: str = Field(
        ..., min_length=2, max_length=200, description="Survey title (2-200 characters)."
    )
    scope: Literal["holding", "company"] = Field(
        "holding",
        description=(
            'Survey scope. "holding" spans all companies, "company" is for a single company. '
            'Defaults to "holding".'
        ),
    )
    description: str | None = Field(
        None, max_length=2000, description="Optional survey description (max 2000 characters)."
    )
    deadline: str | None = Field(
        None, description='Optional deadline in ISO 8601 format (e.g., "2025-03-15T00:00:00Z").'
    )
    company_id: UUID | None = Field(
        None,
        alias="companyId",
        description="Required for company-scope surveys. UUID of the target company.",
    )

    @model_validator(mode="after")
    def _company_scope_needs_company(self) -> "CreateSurveyInput":
        if self.scope == "company" and self.company_id is None:
            raise ValueError("companyId is required for company-scope surveys")
        return self


QuestionType = Literal["text", "scale", "multiple_choice", "single_choice", "rating", "date"]
_CHOICE_TYPES = {"multiple_choice", "single_choice"}


class QuestionInput(_ToolInput):
    question_code: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description='Unique code for the question (e.g., "Q1", "SAT_01").',
    )
    question_text: str = Field(
        ..., min_length=2, max_length=1000, description="The question text displayed to employees."
    )
    type: QuestionType = Field(..., description="Question type.")
    options: list[str] | None = Field(
        None,
        description="Answer options (required for multiple_choice and single_choice, min 2).",
    )
    section_name: str | None = Field(
        None, max_length=200, description="Optional section/category name for grouping questions."
    )
    is_required: bool = Field(
        True, description="Whether the question is mandatory. Defaults to true."
    )
    description: str | None = Field(
        None, max_length=500, description="Optional helper text or description for the question."
    )

    @model_validator(mode="after")
    def _choices_need_options(self) -> "QuestionInput":
        if self.type in _CHOICE_TYPES and len(self.options or []) < 2:
            raise ValueError(f"{self.type} questions need at least 2 options")
        return self


class AddSurveyQuestionsInput(_ToolInput):
    survey_id: UUID = Field(
        ..., alias="surveyId", description="UUID of the draft survey to add questions to."
    )
    questions: list[QuestionInput] = Field(
        ..., min_length=1, max_length=50, description="Array of questions to add (1-50)."
    )


class AssignSurveyToCompaniesInput(_ToolInput):
    survey_id: UUID = Field(
        ..., alias="surveyId", description="UUID of the holding-scope draft survey."
    )
    company_ids: list[UUID] = Field(
        ...,
        alias="companyIds",
        min_length=1,
        description="Array of company UUIDs to assign the survey to.",
    )


class SendSurveyInvitationsInput(_ToolInput):
    survey_id: UUID = Field(..., alias="surveyId", description="UUID of the active survey.")
    company_id: UUID | None = Field(
        None,
        alias="companyId",
        description=(
            "Optional company UUID to only send invitations to employees of a specific company."
        ),
    )


# ============================================================================
# Tool Definitions
# ============================================================================

get_survey_progress_tool = ToolDefinition(
    name="get_survey_progress",
    description=(
        "Get survey completion progress and statistics. Can look up by survey ID, title "
        "(fuzzy match), or get the latest survey. For holding-level surveys, returns "
        "per-company breakdown."
    ),
    input_model=SurveyLookupInput,
)

get_non_respondents_tool = ToolDefinition(
    name="get_non_respondents",
    description=(
        "Get a list of employees who have not completed a specific survey. Returns employee "
        "names, emails, departments. Useful when the user asks who hasn't responded or who "
        "is pending."
    ),
    input_model=GetNonRespondentsInput,
)

get_invitation_status_tool = ToolDefinition(
    name="get_invitation_status",
    description=(
        "Get email invitation delivery statistics for a survey. Shows how many invitations "
        "were sent, delivered, clicked, completed, failed, or bounced."
    ),
    input_model=SurveyLookupInput,
)

get_surveys_tool = ToolDefinition(
    name="get_surveys",
    description=(
        "List surveys with optional status filter. Use this when the user wants to see what "
        "surveys exist, how many there are, or browse by status."
    ),
    input_model=GetSurveysInput,
)

send_reminders_tool = ToolDefinition(
    name="send_reminders",
    description=(
        "Send reminder emails to employees who have not completed a survey. This action "
        "requires user confirmation before executing. Always call get_non_respondents first "
        "to know who needs reminders, then call this tool."
    ),
    input_model=SendRemindersInput,
)

activate_survey_tool = ToolDefinition(
    name="activate_survey",
    description=(
        'Activate a draft survey, changing its status from "draft" to "active". Only draft '
        "surveys can be activated. This action requires user confirmation."
    ),
    input_model=SurveyLookupInput,
)

close_survey_tool = ToolDefinition(
    name="close_survey",
    description=(
        'Close an active survey, changing its status from "active" to "closed". Only active '
        "surveys can be closed. Closed surveys no longer accept responses. This action "
        "requires user confirmation."
    ),
    input_model=SurveyLookupInput,
)

get_report_data_tool = ToolDefinition(
    name="get_report_data",
    description=(
        "Get report data and a link to the PDF report page for a survey. Returns question "
        "count, response count, completion rate, and the report URL."
    ),
    input_model=SurveyLookupInput,
)

trigger_sentiment_analysis_tool = ToolDefinition(
    name="trigger_sentiment_analysis",
    description=(
        "Trigger AI sentiment analysis on completed survey responses. Only admins and "
        "specialists can use this. This action requires user confirmation."
    ),
    input_model=SurveyLookupInput,
    timeout_seconds=60,
)

get_sentiment_results_tool = ToolDefinition(
    name="get_sentiment_results",
    description=(
        "Get the results of a previously run sentiment analysis for a survey. Returns "
        "analysis status, completion time, and results data."
    ),
    input_model=SurveyLookupInput,
)

get_companies_tool = ToolDefinition(
    name="get_companies",
    description=(
        "List all companies in the holding with their employee counts. Use this before "
        "assigning a survey to companies. Admin and specialist only."
    ),
    input_model=GetCompaniesInput,
)

create_survey_tool = ToolDefinition(
    name="create_survey",
    description=(
        "Create a new survey in draft status. The survey is invisible to employees until "
        "activated. For holding-scope surveys (default), no companyId is needed. For "
        "company-scope surveys, provide a companyId."
    ),
    input_model=CreateSurveyInput,
)

add_survey_questions_tool = ToolDefinition(
    name="add_survey_questions",
    description=(
        "Add questions to a draft survey. Choice questions need at least two options. "
        "Questions can only be added while the survey is a draft."
    ),
    input_model=AddSurveyQuestionsInput,
)

assign_survey_to_companies_tool = ToolDefinition(
    name="assign_survey_to_companies",
    description=(
        "Assign a holding-scope draft survey to one or more companies. This also creates "
        "employee assignments for all employees in those companies. This action requires "
        "user confirmation. Use get_companies first to see available companies."
    ),
    input_model=AssignSurveyToCompaniesInput,
)

send_survey_invitations_tool = ToolDefinition(
    name="send_survey_invitations",
    description=(
        "Send magic-link email invitations to employees assigned to a survey. Only works on "
        "active surveys. This action requires user confirmation. Optionally filter by a "
        "specific company."
    ),
    input_model=SendSurveyInvitationsInput,
)


# ============================================================================
# Executors
# ============================================================================


def _require_status(survey: SurveySummary, expected: SurveyStatus, action: str) -> None:
    if survey.status != expected:
        raise ToolError(
            f'Cannot {action} "{survey.title}": it is currently "{survey.status}". '
            f"Only {expected} surveys are accepted."
        )


def _survey_proposal(title: str, survey: SurveySummary) -> ToolProposal:
    return ToolProposal(title=title, input={"surveyId": str(survey.id)})


class SurveyToolset:
    """Executors and preflight checks bound to one backend."""

    def __init__(self, backend: SurveyBackend) -> None:
        self.backend = backend

    async def _lookup(self, payload: SurveyLookupInput, ctx: ToolContext) -> SurveySummary:
        return await self.backend.find_survey(
            ctx,
            survey_id=payload.survey_id,
            title=payload.title,
            latest=bool(payload.latest),
        )

    async def _by_id(self, survey_id: UUID, ctx: ToolContext) -> SurveySummary:
        return await self.backend.find_survey(ctx, survey_id=survey_id)

    # Read tools

    async def get_survey_progress(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> dict[str, Any]:
        return await self.backend.survey_progress(ctx, await self._lookup(payload, ctx))

    async def get_non_respondents(
        self, payload: GetNonRespondentsInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._lookup(payload, ctx)
        return await self.backend.non_respondents(ctx, survey, payload.limit)

    async def get_invitation_status(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> dict[str, Any]:
        return await self.backend.invitation_status(ctx, await self._lookup(payload, ctx))

    async def get_surveys(self, payload: GetSurveysInput, ctx: ToolContext) -> dict[str, Any]:
        status = None if payload.status == "all" else payload.status
        return await self.backend.list_surveys(ctx, status, payload.limit)

    async def get_report_data(self, payload: SurveyLookupInput, ctx: ToolContext) -> dict[str, Any]:
        return await self.backend.report_data(ctx, await self._lookup(payload, ctx))

    async def get_sentiment_results(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> dict[str, Any]:
        return await self.backend.sentiment_results(ctx, await self._lookup(payload, ctx))

    async def get_companies(self, payload: GetCompaniesInput, ctx: ToolContext) -> dict[str, Any]:
        return await self.backend.list_companies(ctx)

    async def create_survey(self, payload: CreateSurveyInput, ctx: ToolContext) -> dict[str, Any]:
        return await self.backend.create_survey(
            ctx,
            title=payload.title,
            scope=payload.scope,
            description=payload.description,
            deadline=payload.deadline,
            company_id=payload.company_id,
        )

    async def add_survey_questions(
        self, payload: AddSurveyQuestionsInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._by_id(payload.survey_id, ctx)
        if survey.status != "draft":
            raise ToolError(
                f'Cannot add questions to "{survey.title}": it is currently "{survey.status}". '
                "Questions can only be added to draft surveys."
            )
        questions = [q.model_dump(mode="json") for q in payload.questions]
        return await self.backend.add_questions(ctx, survey.id, questions)

    # Gated tools: preflight resolves the target survey into a ToolProposal whose
    # input carries the survey id; the executor runs only against that id.

    async def _proposed(self, payload: SurveyLookupInput, ctx: ToolContext) -> SurveySummary:
        if payload.survey_id is None:
            raise ToolError("Invalid action input: missing surveyId")
        return await self._by_id(payload.survey_id, ctx)

    async def preflight_send_reminders(
        self, payload: SendRemindersInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._lookup(payload, ctx)
        employee_ids = await self.backend.non_respondent_ids(ctx, survey)
        if not employee_ids:
            raise ToolError(f'Everyone has completed "{survey.title}". No reminders needed.')
        noun = "employee" if len(employee_ids) == 1 else "employees"
        return ToolProposal(
            title=f'Send reminders to {len(employee_ids)} {noun} for "{survey.title}"',
            input={
                "surveyId": str(survey.id),
                "employeeIds": [str(e) for e in employee_ids],
            },
        )

    async def send_reminders(
        self, payload: SendRemindersInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._proposed(payload, ctx)
        if not payload.employee_ids:
            raise ToolError("Invalid action input: missing employeeIds")
        return await self.backend.send_reminders(ctx, survey, payload.employee_ids)

    async def preflight_activate_survey(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._lookup(payload, ctx)
        _require_status(survey, "draft", "activate")
        return _survey_proposal(f'Activate survey "{survey.title}"', survey)

    async def activate_survey(self, payload: SurveyLookupInput, ctx: ToolContext) -> dict[str, Any]:
        survey = await self._proposed(payload, ctx)
        _require_status(survey, "draft", "activate")
        return await self.backend.set_survey_status(ctx, survey, "active")

    async def preflight_close_survey(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._lookup(payload, ctx)
        _require_status(survey, "active", "close")
        return _survey_proposal(f'Close survey "{survey.title}"', survey)

    async def close_survey(self, payload: SurveyLookupInput, ctx: ToolContext) -> dict[str, Any]:
        survey = await self._proposed(payload, ctx)
        _require_status(survey, "active", "close")
        return await self.backend.set_survey_status(ctx, survey, "closed")

    async def preflight_trigger_sentiment_analysis(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._lookup(payload, ctx)
        return _survey_proposal(f'Run sentiment analysis on "{survey.title}"', survey)

    async def trigger_sentiment_analysis(
        self, payload: SurveyLookupInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._proposed(payload, ctx)
        return await self.backend.trigger_sentiment_analysis(ctx, survey)

    async def _assignable(
        self, payload: AssignSurveyToCompaniesInput, ctx: ToolContext
    ) -> SurveySummary:
        survey = await self._by_id(payload.survey_id, ctx)
        if survey.scope != "holding":
            raise ToolError(
                f'Survey "{survey.title}" is company-scoped. Only holding-scope surveys can be '
                "assigned to companies."
            )
        if survey.status != "draft":
            raise ToolError(
                f'Cannot assign survey "{survey.title}": it is currently "{survey.status}". '
                "Only draft surveys can be assigned."
            )
        return survey

    async def preflight_assign_survey_to_companies(
        self, payload: AssignSurveyToCompaniesInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._assignable(payload, ctx)
        count = len(payload.company_ids)
        noun = "company" if count == 1 else "companies"
        return ToolProposal(
            title=f'Assign survey "{survey.title}" to {count} {noun}',
            input=payload_to_input(payload),
        )

    async def assign_survey_to_companies(
        self, payload: AssignSurveyToCompaniesInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._assignable(payload, ctx)
        return await self.backend.assign_to_companies(ctx, survey, payload.company_ids)

    async def preflight_send_survey_invitations(
        self, payload: SendSurveyInvitationsInput, ctx: ToolContext
    ) -> ToolProposal:
        survey = await self._by_id(payload.survey_id, ctx)
        _require_status(survey, "active", "send invitations for")
        return ToolProposal(
            title=f'Send invitations for "{survey.title}"', input=payload_to_input(payload)
        )

    async def send_survey_invitations(
        self, payload: SendSurveyInvitationsInput, ctx: ToolContext
    ) -> dict[str, Any]:
        survey = await self._by_id(payload.survey_id, ctx)
        _require_status(survey, "active", "send invitations for")
        return await self.backend.send_invitations(ctx, survey, payload.company_id)


# ============================================================================
# Registration
# ============================================================================


def register_survey_tools(registry: ToolRegistry, backend: SurveyBackend) -> None:
    """Register the survey tool catalogue with the registry.

    Args:
        registry: Tool registry to register tools with.
        backend: Data layer the executors delegate to.
    """
    tools = SurveyToolset(backend)

    registry.register(get_survey_progress_tool, tools.get_survey_progress)
    registry.register(get_non_respondents_tool, tools.get_non_respondents)
    registry.register(get_invitation_status_tool, tools.get_invitation_status)
    registry.register(get_surveys_tool, tools.get_surveys)
    registry.register(send_reminders_tool, tools.send_reminders, tools.preflight_send_reminders)
    registry.register(activate_survey_tool, tools.activate_survey, tools.preflight_activate_survey)
    registry.register(close_survey_tool, tools.close_survey, tools.preflight_close_survey)
    registry.register(get_report_data_tool, tools.get_report_data)
    registry.register(
        trigger_sentiment_analysis_tool,
        tools.trigger_sentiment_analysis,
        tools.preflight_trigger_sentiment_analysis,
    )
    registry.register(get_sentiment_results_tool, tools.get_sentiment_results)
    registry.register(get_companies_tool, tools.get_companies)
    registry.register(create_survey_tool, tools.create_survey)
    registry.register(add_survey_questions_tool, tools.add_survey_questions)
    registry.register(
        assign_survey_to_companies_tool,
        tools.assign_survey_to_companies,
        tools.preflight_assign_survey_to_companies,
    )
    registry.register(
        send_survey_invitations_tool,
        tools.send_survey_invitations,
        tools.preflight_send_survey_invitations,
    )


def build_survey_registry(backend: SurveyBackend) -> ToolRegistry:
    """Create a registry holding the full survey catalogue."""
    registry = ToolRegistry()
    register_survey_tools(registry, backend)
    return registry
