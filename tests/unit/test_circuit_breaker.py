"""Unit tests for the consecutive-failure circuit breaker."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from devshop_server.mcp import (
    CircuitBreaker,
    RemoteToolError,
    RequestTimeoutError,
    Tool,
    TooManyErrorsError,
)


@pytest.fixture
def mock_client():
    """Tool client whose call_tool is an AsyncMock."""
    client = MagicMock()
    client.call_tool = AsyncMock(return_value={"ok": True})
    client.list_tools.return_value = [Tool(name="echo")]
    return client


def test_threshold_must_be_positive(mock_client):
    """Test that a breaker needs a threshold of at least one."""
    with pytest.raises(ValueError):
        CircuitBreaker(mock_client, threshold=0)


@pytest.mark.asyncio
async def test_success_passes_result_through(mock_client):
    """Test that results, arguments and timeouts pass through unchanged."""
    breaker = CircuitBreaker(mock_client)

    result = await breaker.call_tool("echo", {"a": 1}, timeout=2.5)

    assert result == {"ok": True}
    mock_client.call_tool.assert_awaited_once_with("echo", {"a": 1}, timeout=2.5)
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_first_failures_reraise_original_error(mock_client):
    """Test that failures up to the threshold surface the underlying error."""
    mock_client.call_tool.side_effect = RemoteToolError(-32000, "boom")
    breaker = CircuitBreaker(mock_client, threshold=3)

    for expected_count in (1, 2, 3):
        with pytest.raises(RemoteToolError):
            await breaker.call_tool("fail")
        assert breaker.failure_count == expected_count

    assert breaker.is_open is True


@pytest.mark.asyncio
async def test_failure_past_threshold_raises_too_many_errors(mock_client):
    """Test that the fourth consecutive failure is reported as TooManyErrorsError."""
    last_error = RequestTimeoutError("tools/call", 1.0)
    mock_client.call_tool.side_effect = last_error
    breaker = CircuitBreaker(mock_client, threshold=3)

    for _ in range(3):
        with pytest.raises(RequestTimeoutError):
            await breaker.call_tool("slow")

    with pytest.raises(TooManyErrorsError) as exc_info:
        await breaker.call_tool("slow")

    assert exc_info.value.threshold == 3
    assert exc_info.value.last_error is last_error
    assert exc_info.value.__cause__ is last_error
    assert "Too many errors (3)" in str(exc_info.value)

    # Stays tripped while failures continue
    with pytest.raises(TooManyErrorsError):
        await breaker.call_tool("slow")
    assert breaker.failure_count == 5


@pytest.mark.asyncio
async def test_success_resets_counter(mock_client):
    """Test that one success clears the consecutive failure count."""
    breaker = CircuitBreaker(mock_client, threshold=3)
    mock_client.call_tool.side_effect = [
        RemoteToolError(-32000, "boom"),
        RemoteToolError(-32000, "boom"),
        RemoteToolError(-32000, "boom"),
        {"ok": True},
        RemoteToolError(-32000, "boom"),
    ]

    for _ in range(3):
        with pytest.raises(RemoteToolError):
            await breaker.call_tool("flaky")

    assert await breaker.call_tool("flaky") == {"ok": True}
    assert breaker.failure_count == 0
    assert breaker.is_open is False

    # Counting starts over, so the next failure is the original error again
    with pytest.raises(RemoteToolError):
        await breaker.call_tool("flaky")
    assert breaker.failure_count == 1


@pytest.mark.asyncio
async def test_counter_is_shared_across_tool_names(mock_client):
    """Test that failures on different tools add up."""
    mock_client.call_tool.side_effect = RemoteToolError(-32000, "boom")
    breaker = CircuitBreaker(mock_client, threshold=2)

    with pytest.raises(RemoteToolError):
        await breaker.call_tool("first")
    with pytest.raises(RemoteToolError):
        await breaker.call_tool("second")
    with pytest.raises(TooManyErrorsError):
        await breaker.call_tool("third")


@pytest.mark.asyncio
async def test_reset_clears_failures(mock_client):
    """Test that reset closes a tripped breaker."""
    mock_client.call_tool.side_effect = RemoteToolError(-32000, "boom")
    breaker = CircuitBreaker(mock_client, threshold=1)

    with pytest.raises(RemoteToolError):
        await breaker.call_tool("fail")
    assert breaker.is_open is True

    breaker.reset()

    assert breaker.failure_count == 0
    with pytest.raises(RemoteToolError):
        await breaker.call_tool("fail")


def test_list_tools_delegates(mock_client):
    """Test that tool discovery is passed through to the wrapped client."""
    breaker = CircuitBreaker(mock_client)

    assert breaker.list_tools() == [Tool(name="echo")]
