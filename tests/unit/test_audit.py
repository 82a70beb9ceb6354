"""Unit tests for the audit sinks."""

import json
import logging

import pytest

from devshop_server.communication import (
    CompositeAuditSink,
    JsonlAuditSink,
    LoggingAuditSink,
)


@pytest.mark.asyncio
async def test_jsonl_sink_appends_entries(tmp_path):
    """Test that each entry is one JSON line in the session's log file."""
    sink = JsonlAuditSink(tmp_path / "logs")

    await sink.log_interaction("agent_exchange", "first", {"sessionKey": "S1", "n": 1})
    await sink.log_interaction("agent_exchange", "second", {"sessionKey": "S1", "n": 2})

    lines = (tmp_path / "logs" / "session-S1.jsonl").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    assert [e["content"] for e in entries] == ["first", "second"]
    assert entries[0]["type"] == "agent_exchange"
    assert entries[0]["sessionKey"] == "S1"
    assert entries[1]["n"] == 2
    assert entries[0]["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_jsonl_sink_sanitizes_session_key(tmp_path):
    """Test that slashes in a session key do not create subdirectories."""
    sink = JsonlAuditSink(tmp_path)

    await sink.log_interaction("agent_exchange", "x", {"sessionKey": "team/S1"})

    assert (tmp_path / "session-team_S1.jsonl").exists()


@pytest.mark.asyncio
async def test_jsonl_sink_write_failure_is_logged(tmp_path, caplog):
    """Test that an unwritable log directory does not raise."""
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("file", encoding="utf-8")
    sink = JsonlAuditSink(blocker)

    with caplog.at_level(logging.WARNING, logger="devshop_server.communication.audit"):
        await sink.log_interaction("agent_exchange", "x", {"sessionKey": "S1"})

    assert "Could not log interaction for session S1" in caplog.text


@pytest.mark.asyncio
async def test_logging_sink_emits_info_record(caplog):
    """Test that entries are logged on the audit logger with structured extras."""
    sink = LoggingAuditSink()

    with caplog.at_level(logging.INFO, logger="devshop_server.audit"):
        await sink.log_interaction(
            "agent_communication_init", "started", {"sessionKey": "S1"}
        )

    record = next(r for r in caplog.records if r.name == "devshop_server.audit")
    assert record.getMessage() == "started"
    assert record.interaction_type == "agent_communication_init"
    assert record.audit == {"sessionKey": "S1"}


@pytest.mark.asyncio
async def test_composite_sink_fans_out(tmp_path):
    """Test that every sink receives every entry."""
    first = JsonlAuditSink(tmp_path / "a")
    second = JsonlAuditSink(tmp_path / "b")
    sink = CompositeAuditSink(first, second)

    await sink.log_interaction("agent_exchange", "x", {"sessionKey": "S1"})

    assert (tmp_path / "a" / "session-S1.jsonl").exists()
    assert (tmp_path / "b" / "session-S1.jsonl").exists()
