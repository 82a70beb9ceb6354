"""Consecutive-failure guard around the tool client."""

import logging
from typing import Any, Protocol

from devshop_server.mcp.errors import TooManyErrorsError
from devshop_server.mcp.types import Tool

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 3


class ToolCaller(Protocol):
    """The slice of MCPClient the breaker wraps."""

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any: ...

    def list_tools(self) -> list[Tool]: ...


class CircuitBreaker:
    """Pass-through wrapper counting consecutive tool call failures.

    One counter is shared by every tool name. Any success resets it. The
    first ``threshold`` consecutive failures are re-raised unchanged; every
    failure after that is raised as TooManyErrorsError so callers stop
    retrying an endpoint that should be considered unusable.
    """

    def __init__(self, client: ToolCaller, threshold: int = DEFAULT_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.client = client
        self.threshold = threshold
        self._failures = 0

    @property
    def failure_count(self) -> int:
        """Consecutive failures since the last success."""
        return self._failures

    @property
    def is_open(self) -> bool:
        """True once the next failure would be reported as TooManyErrorsError."""
        return self._failures >= self.threshold

    def reset(self) -> None:
        self._failures = 0

    def list_tools(self) -> list[Tool]:
        return self.client.list_tools()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Call a tool through the wrapped client.

        Raises:
            TooManyErrorsError: On a failure once the threshold was reached
            Exception: Any error of the wrapped client, unchanged, before that
        """
        try:
            result = await self.client.call_tool(name, arguments, timeout=timeout)
        except Exception as e:
            tripped = self._failures >= self.threshold
            self._failures += 1
            if tripped:
                logger.error(
                    f"Tool {name} failed after {self.threshold} consecutive errors: {e}"
                )
                raise TooManyErrorsError(self.threshold, e) from e
            logger.warning(
                f"Tool {name} failed ({self._failures}/{self.threshold}): {e}"
            )
            raise

        self._failures = 0
        return result
