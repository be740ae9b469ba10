"""Shared fixtures: an in-memory runtime wired to a fake survey backend."""

import os
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

os.environ.setdefault("APP_ENV", "test")

from survey_agent.config import AppConfig  # noqa: E402
from survey_agent.errors import ToolError  # noqa: E402
from survey_agent.runtime import Runtime, build_runtime  # noqa: E402
from survey_agent.storage import (  # noqa: E402
    InMemoryMessageStore,
    InMemorySessionStore,
    InMemoryTaskStore,
    InMemoryToolRunStore,
)
from survey_agent.telemetry import configure_logging  # noqa: E402
from survey_agent.tools.backend import SurveyStatus, SurveySummary  # noqa: E402
from survey_agent.tools.registry import ToolRegistry  # noqa: E402
from survey_agent.tools.survey import build_survey_registry  # noqa: E402
from survey_agent.tools.types import ToolContext  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    configure_logging("WARNING", file_output=False)


class FakeSurveyBackend:
    """In-memory survey data layer recording every mutating call."""

    def __init__(self) -> None:
        self.surveys: dict[UUID, SurveySummary] = {}
        self.calls: list[tuple[str, str]] = []
        self.on_status_change: Any = None
        self.pending_employees: list[UUID] = [uuid4() for _ in range(3)]

    def add(
        self, title: str, status: SurveyStatus = "active", scope: str = "holding"
    ) -> SurveySummary:
        survey = SurveySummary(id=uuid4(), title=title, status=status, scope=scope)
        self.surveys[survey.id] = survey
        return survey

    def by_title(self, title: str) -> SurveySummary:
        return next(s for s in self.surveys.values() if s.title == title)

    async def find_survey(
        self,
        ctx: ToolContext,
        *,
        survey_id: UUID | None = None,
        title: str | None = None,
        latest: bool = False,
    ) -> SurveySummary:
        if survey_id is not None:
            if survey_id not in self.surveys:
                raise ToolError(f"Survey {survey_id} not found")
            return self.surveys[survey_id]
        if title:
            matches = [s for s in self.surveys.values() if title.lower() in s.title.lower()]
            if not matches:
                raise ToolError(
                    f'No survey found matching "{title}".',
                    suggestions=[s.title for s in self.surveys.values()][:3],
                )
            return matches[0]
        if latest and self.surveys:
            return list(self.surveys.values())[-1]
        raise ToolError("No surveys found")

    async def survey_progress(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]:
        return {"survey": survey.title, "completed": 12, "total": 20, "percentage": 60.0}

    async def non_respondents(
        self, ctx: ToolContext, survey: SurveySummary, limit: int
    ) -> dict[str, Any]:
        employees = [{"name": f"Employee {i}", "department": "Sales"} for i in range(8)]
        return {"survey": survey.title, "employees": employees[:limit]}

    async def invitation_status(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]:
        return {"survey": survey.title, "sent": 20, "delivered": 19, "bounced": 1}

    async def list_surveys(
        self, ctx: ToolContext, status: SurveyStatus | None, limit: int
    ) -> dict[str, Any]:
        self.calls.append(("list_surveys", str(status)))
        rows = [
            {"id": str(s.id), "title": s.title, "status": s.status}
            for s in self.surveys.values()
            if status is None or s.status == status
        ]
        return {"surveys": rows[:limit], "total": len(rows)}

    async def report_data(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]:
        return {"survey": survey.title, "report_url": f"/reports/{survey.id}"}

    async def sentiment_results(self, ctx: ToolContext, survey: SurveySummary) -> dict[str, Any]:
        return {"survey": survey.title, "status": "completed"}

    async def list_companies(self, ctx: ToolContext) -> dict[str, Any]:
        return {"companies": [{"name": "Acme", "employees": 40}]}

    async def create_survey(
        self,
        ctx: ToolContext,
        *,
        title: str,
        scope: str,
        description: str | None,
        deadline: str | None,
        company_id: UUID | None,
    ) -> dict[str, Any]:
        survey = self.add(title, "draft", scope)
        self.calls.append(("create_survey", title))
        return {"id": str(survey.id), "title": title, "status": "draft"}

    async def add_questions(
        self, ctx: ToolContext, survey_id: UUID, questions: list[dict[str, Any]]
    ) -> dict[str, Any]:
        self.calls.append(("add_questions", str(survey_id)))
        return {"added": len(questions)}

    async def non_respondent_ids(self, ctx: ToolContext, survey: SurveySummary) -> list[UUID]:
        return list(self.pending_employees)

    async def send_reminders(
        self, ctx: ToolContext, survey: SurveySummary, employee_ids: list[UUID]
    ) -> dict[str, Any]:
        self.calls.append(("send_reminders", f"{survey.title}:{len(employee_ids)}"))
        return {"sent": len(employee_ids)}

    async def set_survey_status(
        self, ctx: ToolContext, survey: SurveySummary, status: SurveyStatus
    ) -> dict[str, Any]:
        if self.on_status_change is not None:
            await self.on_status_change()
        self.calls.append(("set_survey_status", f"{survey.title}:{status}"))
        self.surveys[survey.id] = survey.model_copy(update={"status": status})
        return {"id": str(survey.id), "title": survey.title, "status": status}

    async def trigger_sentiment_analysis(
        self, ctx: ToolContext, survey: SurveySummary
    ) -> dict[str, Any]:
        self.calls.append(("trigger_sentiment_analysis", survey.title))
        return {"status": "queued"}

    async def assign_to_companies(
        self, ctx: ToolContext, survey: SurveySummary, company_ids: list[UUID]
    ) -> dict[str, Any]:
        self.calls.append(("assign_to_companies", survey.title))
        return {"assigned": len(company_ids)}

    async def send_invitations(
        self, ctx: ToolContext, survey: SurveySummary, company_id: UUID | None
    ) -> dict[str, Any]:
        self.calls.append(("send_invitations", survey.title))
        return {"sent": 20}


class ScriptedEngine:
    """Reasoning engine returning queued responses in order.

    A queued exception is raised; a queued coroutine function is awaited.
    """

    def __init__(self) -> None:
        self.responses: list[Any] = []
        self.calls: list[dict[str, Any]] = []

    def script(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def respond(self, system, history, tools, exchanges=()):
        self.calls.append(
            {
                "system": system,
                "history": [dict(m) for m in history],
                "tools": tools,
                "exchanges": list(exchanges),
            }
        )
        if not self.responses:
            raise RuntimeError("no scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item()
        return item


@pytest.fixture
def backend() -> FakeSurveyBackend:
    """Backend holding one active and one draft survey."""
    fake = FakeSurveyBackend()
    fake.add("Q1 Engagement", "active")
    fake.add("Onboarding Pulse", "draft")
    return fake


@pytest.fixture
def registry(backend: FakeSurveyBackend) -> ToolRegistry:
    return build_survey_registry(backend)


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def stores() -> SimpleNamespace:
    return SimpleNamespace(
        sessions=InMemorySessionStore(),
        messages=InMemoryMessageStore(),
        tool_runs=InMemoryToolRunStore(),
        tasks=InMemoryTaskStore(),
    )


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig(
        tool_timeout_seconds=2.0,
        reasoning_timeout_seconds=2.0,
        history_window_messages=20,
        max_tool_rounds=8,
    )


@pytest.fixture
def runtime(
    stores: SimpleNamespace,
    registry: ToolRegistry,
    engine: ScriptedEngine,
    settings: AppConfig,
) -> Runtime:
    return build_runtime(
        session_store=stores.sessions,
        message_store=stores.messages,
        tool_run_store=stores.tool_runs,
        task_store=stores.tasks,
        registry=registry,
        engine=engine,
        settings=settings,
    )
