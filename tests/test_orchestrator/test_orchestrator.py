"""Tests for the turn orchestrator."""

import asyncio
from uuid import uuid4

import pytest

from survey_agent.approvals import Decision
from survey_agent.errors import PersistenceFailure
from survey_agent.llm_client.types import EngineText, EngineToolCall
from survey_agent.orchestrator.prompts import fallback_reply
from survey_agent.orchestrator.types import INVALID_TOOL_INPUT, UPSTREAM_UNAVAILABLE
from survey_agent.security import UPSTREAM_FAILURE_REPLY
from survey_agent.storage.models import MessageRole, TaskStatus, ToolRunStatus
from survey_agent.tools.backend import SurveySummary


def _call(name: str, arguments: dict, call_id: str = "call-1") -> EngineToolCall:
    return EngineToolCall(id=call_id, name=name, arguments=arguments)


def _roles(stores, session_id) -> list[MessageRole]:
    return [m.role for m in stores.messages.all(session_id)]


@pytest.mark.asyncio
async def test_text_reply_records_user_and_assistant_turns(runtime, engine, stores) -> None:
    """Test that a plain reply creates a session and logs both turns."""
    engine.script(EngineText(content="Hi! I can help with your surveys."))

    result = await runtime.orchestrator.handle_turn("user-1", "hello")

    assert result.reply_text == "Hi! I can help with your surveys."
    assert result.error is None
    assert result.pending_task is None
    assert result.trace_id is not None
    assert _roles(stores, result.session_id) == [MessageRole.USER, MessageRole.ASSISTANT]
    assert engine.calls[0]["history"] == [{"role": "user", "content": "hello"}]
    assert len(engine.calls[0]["tools"]) == 15


@pytest.mark.asyncio
async def test_off_topic_question_runs_no_tools(runtime, engine, stores) -> None:
    """Test that a declined request leaves no tool runs or tasks behind."""
    engine.script(EngineText(content="I can only help with HR surveys."))

    result = await runtime.orchestrator.handle_turn("user-1", "What's the weather?")

    messages = stores.messages.all(result.session_id)
    assistant = [m for m in messages if m.role == MessageRole.ASSISTANT]
    assert len(assistant) == 1
    assert await stores.tool_runs.list_for_session(result.session_id) == []
    assert await stores.tasks.list_for_session(result.session_id) == []
    assert result.tool_runs == []


@pytest.mark.asyncio
async def test_empty_text_falls_back(runtime, engine) -> None:
    """Test that an empty engine reply is replaced by the fallback text."""
    engine.script(EngineText(content="   "))

    result = await runtime.orchestrator.handle_turn("user-1", "hello")

    assert result.reply_text == fallback_reply()


@pytest.mark.asyncio
async def test_invalid_tool_arguments_end_turn_without_side_effects(
    runtime, engine, stores
) -> None:
    """Test that a schema violation yields one error turn and nothing else."""
    engine.script(_call("close_survey", {"surveyId": "not-a-uuid"}))

    result = await runtime.orchestrator.handle_turn("user-1", "close it")

    assert result.error == INVALID_TOOL_INPUT
    assert "surveyId" in result.reply_text
    assert _roles(stores, result.session_id) == [MessageRole.USER, MessageRole.ASSISTANT]
    assert await stores.tool_runs.list_for_session(result.session_id) == []
    assert await stores.tasks.list_for_session(result.session_id) == []
    assert len(engine.calls) == 1


@pytest.mark.asyncio
async def test_unknown_tool_is_a_schema_violation(runtime, engine) -> None:
    """Test that a call to an unregistered tool is reported, not executed."""
    engine.script(_call("delete_all_surveys", {}))

    result = await runtime.orchestrator.handle_turn("user-1", "delete everything")

    assert result.error == INVALID_TOOL_INPUT
    assert "unknown tool" in result.reply_text


@pytest.mark.asyncio
async def test_gated_tool_waits_for_approval_then_runs_once(
    runtime, engine, stores, backend
) -> None:
    """Test the close_survey flow from proposal to approved execution."""
    survey = backend.by_title("Q1 Engagement")
    engine.script(_call("close_survey", {"surveyId": str(survey.id)}))

    result = await runtime.orchestrator.handle_turn("user-1", "Close the Q1 engagement survey")

    task = result.pending_task
    assert task is not None
    assert task.status == TaskStatus.WAITING_APPROVAL
    assert task.title == 'Close survey "Q1 Engagement"'
    assert result.reply_text.startswith('Close survey "Q1 Engagement".')
    steps = await stores.tasks.steps(task.id)
    assert len(steps) == 1
    assert steps[0].input == {"surveyId": str(survey.id)}
    assert steps[0].tool_name == "close_survey"
    assert await stores.tool_runs.list_for_session(result.session_id) == []
    assert backend.surveys[survey.id].status == "active"

    tool_turn = stores.messages.all(result.session_id)[1]
    assert tool_turn.role == MessageRole.TOOL
    assert tool_turn.tool_output == {"status": "pending_confirmation", "task_id": str(task.id)}

    outcome = await runtime.approvals.decide(task.id, "user-1", Decision.APPROVE)

    assert outcome.task.status == TaskStatus.SUCCEEDED
    runs = await stores.tool_runs.list_for_task(task.id)
    assert len(runs) == 1
    assert runs[0].status == ToolRunStatus.SUCCEEDED
    assert runs[0].input == steps[0].input
    assert runs[0].step_id == steps[0].id
    assert backend.surveys[survey.id].status == "closed"


@pytest.mark.asyncio
async def test_gated_tool_by_title_stores_resolved_survey(
    runtime, engine, stores, backend
) -> None:
    """Test that approval closes the survey named in the proposal, not a later match."""
    survey = backend.by_title("Q1 Engagement")
    engine.script(_call("close_survey", {"title": "Engagement"}))

    result = await runtime.orchestrator.handle_turn("user-1", "Close the engagement survey")

    task = result.pending_task
    steps = await stores.tasks.steps(task.id)
    assert task.title == 'Close survey "Q1 Engagement"'
    assert steps[0].input == {"surveyId": str(survey.id)}
    assert stores.messages.all(result.session_id)[1].tool_input == steps[0].input

    pilot = SurveySummary(id=uuid4(), title="Engagement Pilot", status="active")
    backend.surveys = {pilot.id: pilot, **backend.surveys}

    outcome = await runtime.approvals.decide(task.id, "user-1", Decision.APPROVE)

    assert outcome.task.status == TaskStatus.SUCCEEDED
    assert backend.calls == [("set_survey_status", "Q1 Engagement:closed")]
    assert backend.surveys[pilot.id].status == "active"


@pytest.mark.asyncio
async def test_gated_preflight_failure_is_fed_back_to_engine(
    runtime, engine, stores
) -> None:
    """Test that a gated call on a survey in the wrong state creates no task."""
    engine.script(
        _call("activate_survey", {"title": "Q1 Engagement"}),
        EngineText(content="That survey is already active."),
    )

    result = await runtime.orchestrator.handle_turn("user-1", "Activate Q1 Engagement")

    assert result.pending_task is None
    assert result.reply_text == "That survey is already active."
    assert await stores.tasks.list_for_session(result.session_id) == []
    exchange = engine.calls[1]["exchanges"][0]
    assert exchange.is_error
    assert 'Cannot activate "Q1 Engagement"' in exchange.result


@pytest.mark.asyncio
async def test_direct_tool_result_is_fed_back_to_engine(runtime, engine, stores) -> None:
    """Test that a read tool runs immediately and its result reaches the engine."""
    engine.script(
        _call("get_survey_progress", {"title": "Q1"}),
        EngineText(content="Q1 Engagement is 60% complete (12/20)."),
    )

    result = await runtime.orchestrator.handle_turn("user-1", "How is Q1 going?")

    assert result.reply_text == "Q1 Engagement is 60% complete (12/20)."
    assert len(result.tool_runs) == 1
    run = result.tool_runs[0]
    assert run.status == ToolRunStatus.SUCCEEDED
    assert run.task_id is None
    user_message = stores.messages.all(result.session_id)[0]
    assert run.message_id == user_message.id
    assert _roles(stores, result.session_id) == [
        MessageRole.USER,
        MessageRole.TOOL,
        MessageRole.ASSISTANT,
    ]
    exchange = engine.calls[1]["exchanges"][0]
    assert not exchange.is_error
    assert exchange.result["percentage"] == 60.0


@pytest.mark.asyncio
async def test_direct_tool_failure_is_recorded(runtime, engine, stores) -> None:
    """Test that a tool error becomes a failed run and an error exchange."""
    engine.script(
        _call("get_survey_progress", {"title": "Exit Interview"}),
        EngineText(content="I couldn't find that survey."),
    )

    result = await runtime.orchestrator.handle_turn("user-1", "Exit interview progress?")

    run = result.tool_runs[0]
    assert run.status == ToolRunStatus.FAILED
    assert "Did you mean: Q1 Engagement" in run.error
    assert engine.calls[1]["exchanges"][0].is_error


@pytest.mark.asyncio
async def test_tool_rounds_are_bounded(runtime, engine) -> None:
    """Test that a turn stops after the configured number of engine calls."""
    runtime.orchestrator.max_tool_rounds = 2
    engine.script(
        _call("get_surveys", {}, "call-1"),
        _call("get_surveys", {}, "call-2"),
        EngineText(content="never reached"),
    )

    result = await runtime.orchestrator.handle_turn("user-1", "list surveys forever")

    assert result.reply_text == fallback_reply()
    assert len(result.tool_runs) == 2
    assert len(engine.calls) == 2


@pytest.mark.asyncio
async def test_engine_timeout_is_upstream_unavailable(runtime, engine, stores) -> None:
    """Test that a slow engine produces the recoverable failure reply."""

    async def slow():
        await asyncio.sleep(1)
        return EngineText(content="too late")

    runtime.orchestrator.reasoning_timeout_seconds = 0.05
    engine.script(slow)

    result = await runtime.orchestrator.handle_turn("user-1", "hello")

    assert result.error == UPSTREAM_UNAVAILABLE
    assert result.reply_text == UPSTREAM_FAILURE_REPLY
    messages = stores.messages.all(result.session_id)
    assert messages[0].content == "hello"
    assert messages[-1].content == UPSTREAM_FAILURE_REPLY


@pytest.mark.asyncio
async def test_engine_error_keeps_session_usable(runtime, engine) -> None:
    """Test that an engine crash is reported and the next turn still works."""
    engine.script(RuntimeError("connection reset"), EngineText(content="Back online."))

    first = await runtime.orchestrator.handle_turn("user-1", "hello")
    second = await runtime.orchestrator.handle_turn(
        "user-1", "hello again", session_id=first.session_id
    )

    assert first.error == UPSTREAM_UNAVAILABLE
    assert second.session_id == first.session_id
    assert second.reply_text == "Back online."


@pytest.mark.asyncio
async def test_resumed_session_replays_history(runtime, engine) -> None:
    """Test that a second turn sees the first turn's user and assistant messages."""
    engine.script(EngineText(content="Hello!"), EngineText(content="You said hello."))

    first = await runtime.orchestrator.handle_turn("user-1", "hello")
    await runtime.orchestrator.handle_turn(
        "user-1", "what did I say?", session_id=str(first.session_id)
    )

    assert engine.calls[1]["history"] == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "what did I say?"},
    ]


@pytest.mark.asyncio
async def test_foreign_session_id_starts_new_session(runtime, engine) -> None:
    """Test that another caller's session id is never resumed."""
    engine.script(EngineText(content="one"), EngineText(content="two"))

    first = await runtime.orchestrator.handle_turn("user-1", "hello")
    second = await runtime.orchestrator.handle_turn(
        "user-2", "hello", session_id=first.session_id
    )

    assert second.session_id != first.session_id
    assert engine.calls[1]["history"] == [{"role": "user", "content": "hello"}]


@pytest.mark.asyncio
async def test_mongolian_locale_changes_system_prompt(runtime, engine) -> None:
    """Test that the session locale selects the reply language."""
    engine.script(EngineText(content="Сайн байна уу"))

    await runtime.orchestrator.handle_turn("user-1", "сайн уу", locale="mn")

    assert "Mongolian" in engine.calls[0]["system"]


@pytest.mark.asyncio
async def test_persistence_failure_fails_the_turn(runtime, engine, stores) -> None:
    """Test that a failed log write is raised instead of replying."""

    async def broken_add(record):
        raise PersistenceFailure("message_append failed")

    stores.messages.add = broken_add
    engine.script(EngineText(content="unused"))

    with pytest.raises(PersistenceFailure):
        await runtime.orchestrator.handle_turn("user-1", "hello")

    assert engine.calls == []
