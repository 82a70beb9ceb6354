"""Integration tests for the communications API endpoints.

Tests the full communication lifecycle with httpx AsyncClient against
the FastAPI application, backed by the JSON state store and audit log
in a temporary data directory.
"""

import json

import pytest

BASE = "/api/v1/communications"


async def _create(async_client, session_key="S1", **overrides):
    body = {
        "session_key": session_key,
        "initiating_agent": "pm",
        "target_agent": "dev",
        "initial_context": {"ticket": "ABC-1"},
        **overrides,
    }
    return await async_client.post(BASE, json=body)


async def _send(async_client, from_agent, to_agent, content, session_key="S1", **extra):
    body = {
        "from_agent": from_agent,
        "to_agent": to_agent,
        "message_type": "question",
        "content": content,
        **extra,
    }
    return await async_client.post(f"{BASE}/{session_key}/messages", json=body)


@pytest.mark.asyncio
async def test_create_communication(async_client, test_settings):
    """Test initializing a communication."""
    response = await _create(async_client)

    assert response.status_code == 201
    data = response.json()
    assert data["session_key"] == "S1"
    assert data["status"] == "active"
    assert data["current_speaker"] == "pm"
    assert data["exchange_count"] == 0
    assert data["max_exchanges"] == 5
    assert data["exchanges"] == []
    assert data["context"] == {"ticket": "ABC-1"}

    state_file = test_settings.resolved_state_dir / "S1.state.json"
    state = json.loads(state_file.read_text(encoding="utf-8"))
    assert state["data"]["agent_communication"]["status"] == "active"


@pytest.mark.asyncio
async def test_create_duplicate_returns_409(async_client):
    """Test that a session key can only be initialized once."""
    await _create(async_client)

    response = await _create(async_client, initiating_agent="qa")

    assert response.status_code == 409
    assert "already exists" in response.json()["detail"]


@pytest.mark.asyncio
async def test_create_with_unsafe_session_key_returns_400(async_client):
    """Test that session keys that are not plain file names are rejected."""
    response = await _create(async_client, session_key="team/S1")

    assert response.status_code == 400
    assert "Invalid session key" in response.json()["detail"]


@pytest.mark.asyncio
async def test_create_missing_fields_returns_422(async_client):
    response = await async_client.post(BASE, json={"session_key": "S1"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_unknown_communication_returns_404(async_client):
    response = await async_client.get(f"{BASE}/missing")

    assert response.status_code == 404
    assert "not found" in response.json()["detail"]


@pytest.mark.asyncio
async def test_send_message(async_client):
    """Test sending the first message."""
    await _create(async_client)

    response = await _send(async_client, "pm", "dev", "What is X?", metadata={"cost": 0.5})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["status"] == "sent"
    assert data["exchange_number"] == 1
    assert data["exchange_count"] == 1
    assert data["warning"] is None
    assert data["next_speaker"] == "dev"

    record = (await async_client.get(f"{BASE}/S1")).json()
    assert record["current_speaker"] == "dev"
    assert record["exchanges"][0]["content"] == "What is X?"
    assert record["exchanges"][0]["metadata"] == {"cost": 0.5}


@pytest.mark.asyncio
async def test_send_invalid_message_type_returns_422(async_client):
    await _create(async_client)

    response = await _send(async_client, "pm", "dev", "hi", message_type="gossip")

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_exchange_limit_escalates(async_client, test_settings):
    """Test the warning band and the escalation once the ceiling is reached."""
    await _create(async_client)
    agents = ["pm", "dev"]

    warnings = []
    for i in range(5):
        response = await _send(async_client, agents[i % 2], agents[(i + 1) % 2], f"m{i}")
        assert response.json()["status"] == "sent"
        warnings.append(response.json()["warning"])

    assert warnings[:2] == [None, None]
    assert warnings[2] == "Approaching exchange limit: 2 exchanges remaining"

    response = await _send(async_client, "dev", "pm", "one more")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["status"] == "escalated"
    assert data["reason"] == "exchange_limit_exceeded"

    record = (await async_client.get(f"{BASE}/S1")).json()
    assert record["status"] == "escalated"
    assert record["exchange_count"] == 5

    response = await _send(async_client, "dev", "pm", "still there?")
    assert response.status_code == 409

    audit_log = test_settings.resolved_audit_dir / "session-S1.jsonl"
    types = [
        json.loads(line)["type"]
        for line in audit_log.read_text(encoding="utf-8").splitlines()
    ]
    assert types[0] == "agent_communication_init"
    assert types.count("agent_exchange") == 5
    assert types[-1] == "agent_communication_escalate"


@pytest.mark.asyncio
async def test_process_message(async_client):
    """Test recording the reply to a question."""
    await _create(async_client)
    await _send(async_client, "pm", "dev", "Status?")

    response = await async_client.post(
        f"{BASE}/S1/responses",
        json={"receiving_agent": "dev", "content": "Done.", "metadata": {"cost": 0.25}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "processed"
    assert data["exchange_number"] == 2
    assert data["response_time"] >= 0

    record = (await async_client.get(f"{BASE}/S1")).json()
    reply = record["exchanges"][1]
    assert reply["from_agent"] == "dev"
    assert reply["to_agent"] == "pm"
    assert reply["message_type"] == "response"
    assert reply["metadata"]["respondingTo"] == 1
    assert record["current_speaker"] == "pm"


@pytest.mark.asyncio
async def test_process_errors(async_client):
    """Test the 400 responses for replies that cannot be recorded."""
    await _create(async_client)

    response = await async_client.post(
        f"{BASE}/S1/responses", json={"receiving_agent": "dev", "content": "?"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No messages to process"

    await _send(async_client, "pm", "dev", "Status?")
    response = await async_client.post(
        f"{BASE}/S1/responses", json={"receiving_agent": "qa", "content": "not mine"}
    )
    assert response.status_code == 400
    assert "not directed to qa" in response.json()["detail"]


@pytest.mark.asyncio
async def test_complete_communication(async_client):
    """Test completing and the terminal state afterwards."""
    await _create(async_client)
    await _send(async_client, "pm", "dev", "Ready?")

    response = await async_client.post(
        f"{BASE}/S1/complete",
        json={"reason": "agreed", "final_outcome": {"decision": "ship"}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["completion_reason"] == "agreed"
    assert data["final_outcome"] == {"decision": "ship"}

    response = await async_client.post(f"{BASE}/S1/complete", json={"reason": "again"})
    assert response.status_code == 409
    assert "completed" in response.json()["detail"]

    # Escalating a completed communication leaves it unchanged
    response = await async_client.post(f"{BASE}/S1/escalate", json={"reason": "late"})
    assert response.status_code == 200
    assert response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_escalate_is_idempotent(async_client):
    """Test that escalating twice keeps the first escalation."""
    await _create(async_client)

    first = await async_client.post(f"{BASE}/S1/escalate", json={"reason": "stuck"})
    second = await async_client.post(f"{BASE}/S1/escalate", json={"reason": "again"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["escalation_reason"] == "stuck"
    assert second.json()["escalated_at"] == first.json()["escalated_at"]


@pytest.mark.asyncio
async def test_stats_and_summary(async_client):
    """Test the statistics and summary endpoints."""
    await _create(async_client)
    await _send(async_client, "pm", "dev", "Q", metadata={"cost": 0.5})
    await async_client.post(
        f"{BASE}/S1/responses",
        json={"receiving_agent": "dev", "content": "A", "metadata": {"cost": 0.25}},
    )

    stats = (await async_client.get(f"{BASE}/S1/stats")).json()
    assert stats["total_exchanges"] == 2
    assert stats["exchange_limit"] == 5
    assert stats["utilization_percent"] == 40
    assert stats["total_cost"] == pytest.approx(0.75)
    assert stats["message_types"] == {"question": 1, "response": 1}
    assert stats["agent_participation"] == {"pm": 1, "dev": 1}

    summary = (await async_client.get(f"{BASE}/S1/summary")).json()
    assert summary["session_key"] == "S1"
    assert summary["status"] == "active"
    assert summary["exchange_count"] == 2
    assert summary["total_cost"] == pytest.approx(0.75)


@pytest.mark.asyncio
async def test_stats_unknown_communication_returns_404(async_client):
    response = await async_client.get(f"{BASE}/missing/stats")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_history(async_client):
    """Test the plain-text history endpoint."""
    await _create(async_client)
    await _send(async_client, "pm", "dev", "What is X?")

    response = await async_client.get(f"{BASE}/S1/history")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("Agent Communication History (Session: S1)")
    assert "PM → DEV (Exchange 1): [question]" in response.text
    assert "What is X?" in response.text

    preview = await async_client.get(
        f"{BASE}/S1/history", params={"include_content": "false"}
    )
    assert "question: What is X?" in preview.text
