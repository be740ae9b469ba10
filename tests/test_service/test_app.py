"""Tests for the HTTP service."""

import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from survey_agent.errors import TurnInProgress
from survey_agent.llm_client.types import EngineText, EngineToolCall
from survey_agent.service.app import SessionTurnGuard, app, get_runtime

USER = {"X-User-Id": "user-1", "X-Tenant-Id": "acme"}
OTHER_USER = {"X-User-Id": "user-2"}


@pytest.fixture
def client(runtime):
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


def _propose_close(client, engine, backend) -> dict:
    survey = backend.by_title("Q1 Engagement")
    engine.script(
        EngineToolCall(id="call-1", name="close_survey", arguments={"surveyId": str(survey.id)})
    )
    response = client.post("/chat", json={"message": "close Q1"}, headers=USER)
    assert response.status_code == 200
    return response.json()


def test_health(client) -> None:
    """Test the health endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_chat_requires_caller_header(client) -> None:
    """Test that requests without a user id are rejected."""
    response = client.post("/chat", json={"message": "hello"})

    assert response.status_code == 422


def test_chat_returns_reply(client, engine) -> None:
    """Test a plain chat turn over HTTP."""
    engine.script(EngineText(content="Hello from the survey assistant."))

    response = client.post("/chat", json={"message": "hello"}, headers=USER)

    body = response.json()
    assert response.status_code == 200
    assert body["reply"] == "Hello from the survey assistant."
    assert body["pending_task"] is None
    assert body["error"] is None
    assert body["session_id"]


def test_approve_pending_task(client, engine, backend) -> None:
    """Test proposing a gated action and approving it twice."""
    body = _propose_close(client, engine, backend)
    task_id = body["pending_task"]["id"]

    first = client.post(f"/tasks/{task_id}/decision", json={"decision": "approve"}, headers=USER)
    second = client.post(f"/tasks/{task_id}/decision", json={"decision": "approve"}, headers=USER)

    assert first.status_code == 200
    assert first.json()["task"]["status"] == "succeeded"
    assert first.json()["tool_run"]["status"] == "succeeded"
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["tool_run"]["id"] == first.json()["tool_run"]["id"]

    view = client.get(f"/tasks/{task_id}", headers=USER).json()
    assert len(view["tool_runs"]) == 1


def test_reject_then_approve_is_conflict(client, engine, backend) -> None:
    """Test that a conflicting decision maps to 409."""
    task_id = _propose_close(client, engine, backend)["pending_task"]["id"]

    client.post(f"/tasks/{task_id}/decision", json={"decision": "reject"}, headers=USER)
    response = client.post(
        f"/tasks/{task_id}/decision", json={"decision": "approve"}, headers=USER
    )

    assert response.status_code == 409
    assert "rejected" in response.json()["detail"]


def test_other_caller_cannot_see_task(client, engine, backend) -> None:
    """Test that tasks of another caller map to 404."""
    task_id = _propose_close(client, engine, backend)["pending_task"]["id"]

    response = client.post(
        f"/tasks/{task_id}/decision", json={"decision": "approve"}, headers=OTHER_USER
    )

    assert response.status_code == 404
    assert client.get(f"/tasks/{uuid4()}", headers=USER).status_code == 404


def test_unknown_decision_is_rejected(client, engine, backend) -> None:
    """Test that only approve and reject are accepted."""
    task_id = _propose_close(client, engine, backend)["pending_task"]["id"]

    response = client.post(f"/tasks/{task_id}/decision", json={"decision": "maybe"}, headers=USER)

    assert response.status_code == 422


def test_session_messages_and_pending_tasks(client, engine, backend) -> None:
    """Test the session read endpoints and owner scoping."""
    body = _propose_close(client, engine, backend)
    session_id = body["session_id"]

    messages = client.get(f"/sessions/{session_id}/messages", headers=USER).json()
    pending = client.get(f"/sessions/{session_id}/pending-tasks", headers=USER).json()
    foreign = client.get(f"/sessions/{session_id}/messages", headers=OTHER_USER)

    assert [m["role"] for m in messages] == ["user", "tool", "assistant"]
    assert [t["id"] for t in pending] == [body["pending_task"]["id"]]
    assert foreign.status_code == 404


def test_closed_session_starts_new_one(client, engine) -> None:
    """Test that a closed session id is not resumed."""
    engine.script(EngineText(content="one"), EngineText(content="two"))
    first = client.post("/chat", json={"message": "hello"}, headers=USER).json()

    closed = client.post(f"/sessions/{first['session_id']}/close", headers=USER)
    second = client.post(
        "/chat", json={"message": "hello", "session_id": first["session_id"]}, headers=USER
    ).json()

    assert closed.json()["status"] == "closed"
    assert second["session_id"] != first["session_id"]


@pytest.mark.asyncio
async def test_turn_guard_rejects_concurrent_turn() -> None:
    """Test that a second turn on a busy session is refused."""
    guard = SessionTurnGuard()

    async with guard.hold("session-a"):
        assert guard.is_busy("session-a")
        with pytest.raises(TurnInProgress):
            async with guard.hold("session-a"):
                pass
        async with guard.hold("session-b"):
            assert guard.is_busy("session-b")

    assert not guard.is_busy("session-a")


@pytest.mark.asyncio
async def test_turn_guard_serializes_nothing_without_session() -> None:
    """Test that turns without a session id are never blocked."""
    guard = SessionTurnGuard()

    async def turn():
        async with guard.hold(None):
            await asyncio.sleep(0)

    await asyncio.gather(turn(), turn())
