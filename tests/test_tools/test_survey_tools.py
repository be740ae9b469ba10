"""Tests for the survey tool catalogue."""

from uuid import uuid4

import pytest

from survey_agent.errors import SchemaViolation, ToolError
from survey_agent.tools.policy import GATED_TOOLS
from survey_agent.tools.types import ToolContext, payload_to_input

CTX = ToolContext(caller_id="user-1", tenant_id="acme")


def _issues(registry, name: str, raw: dict) -> list[str]:
    with pytest.raises(SchemaViolation) as exc_info:
        registry.validate(name, raw)
    return exc_info.value.issues


def test_catalogue_registers_all_tools(registry) -> None:
    """Test that every survey tool is registered once."""
    names = registry.list_tool_names()

    assert len(names) == 15
    assert GATED_TOOLS <= set(names)
    assert {n for n in names if registry.requires_approval(n)} == GATED_TOOLS


def test_schemas_use_wire_names(registry) -> None:
    """Test that declarations expose camelCase argument names."""
    definitions = {d["name"]: d for d in registry.get_tool_definitions_for_llm()}

    close_props = definitions["close_survey"]["input_schema"]["properties"]
    assert set(close_props) == {"surveyId", "title", "latest"}
    assign_props = definitions["assign_survey_to_companies"]["input_schema"]["properties"]
    assert set(assign_props) == {"surveyId", "companyIds"}


def test_lookup_requires_a_selector(registry) -> None:
    """Test that a survey lookup without id, title or latest is rejected."""
    issues = _issues(registry, "get_survey_progress", {})

    assert len(issues) == 1
    assert "one of surveyId, title or latest is required" in issues[0]


def test_non_respondents_limit_bounds(registry) -> None:
    """Test the limit range of get_non_respondents."""
    issues = _issues(registry, "get_non_respondents", {"title": "Q1", "limit": 500})

    assert issues[0].startswith("limit:")


def test_company_scope_needs_company_id(registry) -> None:
    """Test that company-scope surveys require companyId."""
    issues = _issues(registry, "create_survey", {"title": "Team Pulse", "scope": "company"})

    assert "companyId is required" in issues[0]


def test_question_batch_reports_each_bad_field(registry) -> None:
    """Test that invalid questions are reported per field."""
    raw = {
        "surveyId": "not-a-uuid",
        "questions": [
            {
                "question_code": "Q1",
                "question_text": "Pick one",
                "type": "single_choice",
                "options": ["A"],
            },
        ],
    }

    issues = _issues(registry, "add_survey_questions", raw)

    assert any(i.startswith("surveyId:") for i in issues)
    assert any(i.startswith("questions.0") and "at least 2 options" in i for i in issues)


def test_payload_to_input_keeps_supplied_fields_only(registry) -> None:
    """Test that stored inputs mirror what the engine proposed."""
    survey_id = str(uuid4())

    payload = registry.validate("close_survey", {"surveyId": survey_id})

    assert payload_to_input(payload) == {"surveyId": survey_id}


@pytest.mark.asyncio
async def test_close_preflight_resolves_survey_id(registry, backend) -> None:
    """Test that preflight pins a fuzzy title to the matched survey's id."""
    survey = backend.by_title("Q1 Engagement")
    entry = registry.get_tool("close_survey")
    payload = registry.validate("close_survey", {"title": "engagement"})

    proposal = await entry.preflight(payload, CTX)

    assert proposal.title == 'Close survey "Q1 Engagement"'
    assert proposal.input == {"surveyId": str(survey.id)}
    assert backend.calls == []


@pytest.mark.asyncio
async def test_latest_selector_is_resolved_at_proposal(registry, backend) -> None:
    """Test that a recency selector is stored as the survey it pointed to."""
    draft = backend.by_title("Onboarding Pulse")
    entry = registry.get_tool("activate_survey")

    proposal = await entry.preflight(registry.validate("activate_survey", {"latest": True}), CTX)

    assert proposal.input == {"surveyId": str(draft.id)}


@pytest.mark.asyncio
async def test_activate_preflight_rejects_active_survey(registry) -> None:
    """Test that only draft surveys can be proposed for activation."""
    entry = registry.get_tool("activate_survey")
    payload = registry.validate("activate_survey", {"title": "Q1"})

    with pytest.raises(ToolError, match="Only draft surveys"):
        await entry.preflight(payload, CTX)


@pytest.mark.asyncio
async def test_reminder_preflight_snapshots_recipients(registry, backend) -> None:
    """Test that reminders are proposed for the current non-respondents."""
    survey = backend.by_title("Q1 Engagement")
    entry = registry.get_tool("send_reminders")

    proposal = await entry.preflight(registry.validate("send_reminders", {"title": "Q1"}), CTX)

    assert proposal.title == 'Send reminders to 3 employees for "Q1 Engagement"'
    assert proposal.input == {
        "surveyId": str(survey.id),
        "employeeIds": [str(e) for e in backend.pending_employees],
    }

    backend.pending_employees.append(uuid4())
    result = await entry.executor(registry.validate("send_reminders", proposal.input), CTX)

    assert result == {"sent": 3}
    assert backend.calls == [("send_reminders", "Q1 Engagement:3")]


@pytest.mark.asyncio
async def test_reminder_preflight_with_everyone_done(registry, backend) -> None:
    """Test that no reminder task is proposed when nobody is pending."""
    backend.pending_employees.clear()
    entry = registry.get_tool("send_reminders")

    with pytest.raises(ToolError, match="No reminders needed"):
        await entry.preflight(registry.validate("send_reminders", {"title": "Q1"}), CTX)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tool_name", ["close_survey", "activate_survey", "trigger_sentiment_analysis"]
)
async def test_gated_executors_need_survey_id(registry, tool_name: str) -> None:
    """Test that approved survey actions never re-resolve a title."""
    entry = registry.get_tool(tool_name)

    with pytest.raises(ToolError, match="missing surveyId"):
        await entry.executor(registry.validate(tool_name, {"title": "Q1"}), CTX)


@pytest.mark.asyncio
async def test_assign_preflight_counts_companies(registry, backend) -> None:
    """Test the assignment proposal title."""
    draft = backend.by_title("Onboarding Pulse")
    entry = registry.get_tool("assign_survey_to_companies")
    company_ids = [str(uuid4()), str(uuid4())]
    payload = registry.validate(
        "assign_survey_to_companies", {"surveyId": str(draft.id), "companyIds": company_ids}
    )

    proposal = await entry.preflight(payload, CTX)

    assert proposal.title == 'Assign survey "Onboarding Pulse" to 2 companies'
    assert proposal.input == {"surveyId": str(draft.id), "companyIds": company_ids}


@pytest.mark.asyncio
async def test_assign_rejects_company_scoped_survey(registry, backend) -> None:
    """Test that company-scope surveys cannot be assigned."""
    survey = backend.add("Plant Safety", "draft", "company")
    entry = registry.get_tool("assign_survey_to_companies")
    payload = registry.validate(
        "assign_survey_to_companies", {"surveyId": str(survey.id), "companyIds": [str(uuid4())]}
    )

    with pytest.raises(ToolError, match="company-scoped"):
        await entry.preflight(payload, CTX)


@pytest.mark.asyncio
async def test_get_surveys_all_means_no_filter(registry, backend) -> None:
    """Test that status "all" is passed to the backend as no filter."""
    entry = registry.get_tool("get_surveys")

    result = await entry.executor(registry.validate("get_surveys", {}), CTX)

    assert result["total"] == 2
    assert backend.calls == [("list_surveys", "None")]


@pytest.mark.asyncio
async def test_add_questions_requires_draft(registry, backend) -> None:
    """Test that questions cannot be added to an active survey."""
    active = backend.by_title("Q1 Engagement")
    entry = registry.get_tool("add_survey_questions")
    payload = registry.validate(
        "add_survey_questions",
        {
            "surveyId": str(active.id),
            "questions": [{"question_code": "Q1", "question_text": "How are you?", "type": "text"}],
        },
    )

    with pytest.raises(ToolError, match="only be added to draft surveys"):
        await entry.executor(payload, CTX)


@pytest.mark.asyncio
async def test_create_survey_returns_draft(registry, backend) -> None:
    """Test that create_survey delegates to the backend."""
    entry = registry.get_tool("create_survey")

    result = await entry.executor(registry.validate("create_survey", {"title": "Exit Survey"}), CTX)

    assert result["status"] == "draft"
    assert backend.by_title("Exit Survey").status == "draft"
