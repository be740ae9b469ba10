"""Interface to the survey platform's data layer.

The tool catalogue delegates all business logic to a ``SurveyBackend``. The
backend scopes every query by the ``ToolContext`` it receives and raises
``ToolError`` for domain failures (unknown survey, wrong company, and so on).
"""

from typing import Any, Literal, Protocol
from uuid import UUID

from pydantic import BaseModel

from survey_agent.tools.types import ToolContext

SurveyStatus = Literal["draft", "active", "closed"]
SurveyScope = Literal["holding", "company"]


class SurveySummary(BaseModel):
    """Minimal survey view used by lookups and preflight checks."""

    id: UUID
    title: str
    status: SurveyStatus
    scope: SurveyScope = "holding"
    company_id: UUID | None = None


class SurveyBackend(Protocol):
    async def find_survey(
        self,
        ctx: ToolContext,
        *,
        survey_id: UUID | None = None,
        title: str | None = None,
        latest: bool = False,
    ) -> SurveySummary:
        """Resolve a survey by id, fuzzy title, or recency; raise ToolError if none."""
        ...

    async def survey_progress(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]: ...

    async def non_respondents(
        self, ctx: ToolContext, survey: SurveySummary, limit: int
    ) -> dict[str, Any]: ...

    async def invitation_status(
        self, ctx: ToolContext, survey: SurveySummary
    ) -> dict[str, Any]: ...

    async def list_surveys(
        self, ctx: ToolContext, status: SurveyStatus | None, limit: int
    ) -> dict[str, Any]: ...

    async def report_data(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]: ...

    async def sentiment_results(
        self, ctx: ToolContext, survey: SurveySummary
    ) -> dict[str, Any]: ...

    async def list_companies(self, ctx: ToolContext) -> dict[str, Any]: ...

    async def create_survey(
        self,
        ctx: ToolContext,
        *,
        title: str,
        scope: SurveyScope,
        description: str | None,
        deadline: str | None,
        company_id: UUID | None,
    ) -> dict[str, Any]: ...

    async def add_questions(
        self, ctx: ToolContext, survey_id: UUID, questions: list[dict[str, Any]]
    ) -> dict[str, Any]: ...

    async def non_respondent_ids(self, ctx: ToolContext, survey: SurveySummary) -> list[UUID]:
        """Ids of every assigned employee who has not completed the survey."""
        ...

    async def send_reminders(
        self, ctx: ToolContext, survey: SurveySummary, employee_ids: list[UUID]
    ) -> dict[str, Any]: ...

    async def set_survey_status(
        self, ctx: ToolContext, survey: SurveySummary, status: SurveyStatus
    ) -> dict[str, Any]: ...

    async def trigger_sentiment_analysis(
        self, ctx: ToolContext, survey: SurveySummary
    ) -> dict[str, Any]: ...

    async def assign_to_companies(
        self, ctx: ToolContext, survey: SurveySummary, company_ids: list[UUID]
    ) -> dict[str, Any]: ...

    async def send_invitations(
        self, ctx: ToolContext, survey: SurveySummary, company_id: UUID | None
    ) -> dict[str, Any]: ...
