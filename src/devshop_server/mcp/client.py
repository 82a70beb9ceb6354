"""Async JSON-RPC client for a tool server subprocess.

This module provides the MCPClient class which spawns the tool server,
performs the initialize/initialized handshake, caches the discovered
tools and correlates replies to requests by id. The client is designed to
be created once at startup and reused; any number of calls may be in
flight at the same time.
"""

import asyncio
import itertools
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from devshop_server.mcp.errors import (
    AlreadyConnectedError,
    ClientDisconnectedError,
    HandshakeError,
    NotConnectedError,
    RemoteToolError,
    RequestTimeoutError,
)
from devshop_server.mcp.framer import LineFramer
from devshop_server.mcp.types import Tool, make_notification, make_request

logger = logging.getLogger(__name__)

DEFAULT_PROTOCOL_VERSION = "2024-11-05"

NotificationListener = Callable[[dict[str, Any]], None]
DisconnectListener = Callable[[int | None], None]


@dataclass
class PendingRequest:
    """An outstanding request in the correlation table."""

    id: int
    method: str
    completion: asyncio.Future[Any]
    deadline: float
    timer: asyncio.TimerHandle


class MCPClient:
    """Client for a tool server speaking newline-delimited JSON-RPC 2.0.

    The correlation table is owned by the instance, so several clients can
    coexist in one process. Id allocation and table insertion happen in
    the same synchronous step, which is what makes concurrent calls safe
    on a single event loop.

    Attributes:
        command: argv used to spawn the tool server
        request_timeout: Default deadline in seconds
        llm_request_timeout: Deadline in seconds for LLM tools
        llm_tool_prefix: Tool names with this prefix count as LLM tools
    """

    def __init__(
        self,
        command: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        request_timeout: float = 30.0,
        llm_request_timeout: float = 60.0,
        llm_tool_prefix: str = "llm_",
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        client_name: str = "devshop-server",
        client_version: str = "0.1.0",
        on_notification: Iterable[NotificationListener] = (),
        on_disconnect: Iterable[DisconnectListener] = (),
    ) -> None:
        """Initialize the client without spawning anything.

        Args:
            command: argv of the tool server
            cwd: Optional working directory for the subprocess
            env: Optional extra environment variables for the subprocess
            request_timeout: Default request deadline in seconds
            llm_request_timeout: Deadline for tools named with llm_tool_prefix
            llm_tool_prefix: Prefix identifying LLM tools
            protocol_version: Protocol version sent in ``initialize``
            client_name: Name sent in ``clientInfo``
            client_version: Version sent in ``clientInfo``
            on_notification: Callbacks receiving server notifications
            on_disconnect: Callbacks receiving the subprocess exit code
        """
        if not command:
            raise ValueError("command must not be empty")

        self.command = list(command)
        self.cwd = cwd
        self.env = env
        self.request_timeout = request_timeout
        self.llm_request_timeout = llm_request_timeout
        self.llm_tool_prefix = llm_tool_prefix
        self.protocol_version = protocol_version
        self.client_name = client_name
        self.client_version = client_version

        self._notification_listeners = list(on_notification)
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._tools: dict[str, Tool] = {}
        self._server_info: dict[str, Any] = {}
        self._connected = False
        self._framer = LineFramer(
            on_message=[self._handle_message],
            on_disconnect=[self._handle_disconnect, *on_disconnect],
        )

    async def __aenter__(self) -> "MCPClient":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        """True once the handshake completed and the subprocess is alive."""
        process = self._framer.process
        return self._connected and process is not None and process.returncode is None

    @property
    def pending_count(self) -> int:
        """Number of requests waiting for a reply."""
        return len(self._pending)

    @property
    def server_info(self) -> dict[str, Any]:
        """The result of the ``initialize`` request."""
        return dict(self._server_info)

    async def connect(self) -> None:
        """Spawn the tool server, perform the handshake and discover tools.

        Raises:
            AlreadyConnectedError: If the subprocess is already running
            HandshakeError: If ``initialize`` returns an error envelope
            OSError: If the subprocess cannot be spawned
        """
        if self._framer.process is not None:
            raise AlreadyConnectedError()

        process_env = None
        if self.env:
            process_env = {**os.environ, **self.env}

        process = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
            env=process_env,
        )
        logger.info(f"Spawned tool server pid={process.pid}: {' '.join(self.command)}")
        self._framer.attach(process)

        try:
            await self._initialize()
            await self._load_tools()
        except BaseException:
            await self._terminate()
            raise

        self._connected = True
        logger.info(f"Connected to tool server with {len(self._tools)} tools")

    async def _initialize(self) -> None:
        try:
            result = await self.request(
                "initialize",
                {
                    "protocolVersion": self.protocol_version,
                    "capabilities": {"tools": {}},
                    "clientInfo": {
                        "name": self.client_name,
                        "version": self.client_version,
                    },
                },
            )
        except RemoteToolError as e:
            raise HandshakeError(e.message, code=e.code) from e

        self._server_info = result if isinstance(result, dict) else {}
        await self.notify("notifications/initialized", {})
        logger.debug(f"Handshake completed: {self._server_info}")

    async def _load_tools(self) -> None:
        self._tools = {}
        try:
            result = await self.request("tools/list", {})
        except (RemoteToolError, RequestTimeoutError) as e:
            logger.warning(f"Failed to load tools: {e}")
            return

        tools: dict[str, Tool] = {}
        for entry in (result or {}).get("tools", []):
            try:
                tool = Tool.from_dict(entry)
            except ValueError as e:
                logger.warning(f"Skipping invalid tool descriptor: {e}")
                continue
            tools[tool.name] = tool

        self._tools = tools
        logger.debug(f"Discovered tools: {sorted(tools)}")

    def list_tools(self) -> list[Tool]:
        """Return the tool descriptors cached during connect.

        The subprocess is never queried again; reconnect for fresh results.
        """
        return list(self._tools.values())

    def get_tool(self, name: str) -> Tool | None:
        """Return the cached descriptor for a tool, if it exists."""
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        """Check whether the tool server advertised a tool."""
        return name in self._tools

    def timeout_for(self, tool_name: str) -> float:
        """Return the deadline used for a tool.

        LLM tools (named with ``llm_tool_prefix``) get the longer bound.
        """
        if self.llm_tool_prefix and tool_name.startswith(self.llm_tool_prefix):
            return self.llm_request_timeout
        return self.request_timeout

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Invoke a remote tool and wait for its result.

        The result payload is returned as sent by the server; its shape is
        tool-specific.

        Args:
            name: Tool name
            arguments: Tool arguments
            timeout: Optional deadline overriding the per-tool default

        Returns:
            Any: The ``result`` member of the reply

        Raises:
            NotConnectedError: If the subprocess is not running
            RequestTimeoutError: If no reply arrives in time
            RemoteToolError: If the server replies with an error envelope
            ClientDisconnectedError: If the subprocess goes away first
        """
        if timeout is None:
            timeout = self.timeout_for(name)

        logger.debug(f"Calling tool {name}")
        return await self.request(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
            timeout=timeout,
        )

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and suspend until its reply, deadline or disconnect.

        Args:
            method: JSON-RPC method name
            params: Method parameters
            timeout: Deadline in seconds (default: request_timeout)

        Returns:
            Any: The ``result`` member of the reply

        Raises:
            NotConnectedError: If the subprocess is not running
            RequestTimeoutError: If no reply arrives in time
            RemoteToolError: If the reply carries an error member
            ClientDisconnectedError: If the subprocess goes away first
        """
        if self._framer.process is None:
            raise NotConnectedError()

        if timeout is None:
            timeout = self.request_timeout

        loop = asyncio.get_running_loop()
        request_id = next(self._ids)
        completion: asyncio.Future[Any] = loop.create_future()
        timer = loop.call_later(timeout, self._expire, request_id, timeout)
        self._pending[request_id] = PendingRequest(
            id=request_id,
            method=method,
            completion=completion,
            deadline=loop.time() + timeout,
            timer=timer,
        )

        try:
            await self._framer.write(make_request(request_id, method, params or {}))
        except BaseException:
            self._discard(request_id)
            raise

        try:
            return await completion
        finally:
            # Only reached with a live entry when the caller was cancelled.
            self._discard(request_id)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification; no reply is expected.

        Raises:
            NotConnectedError: If the subprocess is not running
        """
        await self._framer.write(make_notification(method, params or {}))

    async def disconnect(self) -> None:
        """Kill the tool server and fail every pending request.

        Calling this more than once is a no-op.
        """
        if self._framer.process is None and not self._pending:
            # Reap readers left over from a server that exited on its own.
            await self._framer.close()
            return

        self._fail_all("Client disconnected")
        await self._terminate()
        logger.info("Disconnected from tool server")

    async def _terminate(self) -> None:
        self._connected = False
        process = self._framer.process
        if process is not None and process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await self._framer.close()

    def _handle_message(self, message: dict[str, Any]) -> None:
        if "method" in message:
            if "id" in message:
                logger.debug(f"Ignoring server request: {message['method']}")
                return
            for listener in self._notification_listeners:
                listener(message)
            return

        request_id = message.get("id")
        pending = None
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug(f"Dropping reply for unknown or expired request id {request_id!r}")
            return

        pending.timer.cancel()
        if pending.completion.done():
            return

        error = message.get("error")
        if error is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            pending.completion.set_exception(
                RemoteToolError(
                    code=error.get("code", -32603),
                    message=error.get("message") or "Unknown error",
                    data=error.get("data"),
                )
            )
        else:
            pending.completion.set_result(message.get("result"))

    def _handle_disconnect(self, exit_code: int | None) -> None:
        self._connected = False
        if self._pending:
            logger.warning(
                f"Tool server exited with {len(self._pending)} requests in flight"
            )
        self._fail_all(f"Server exited with code {exit_code}", exit_code=exit_code)

    def _expire(self, request_id: int, timeout: float) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.completion.done():
            return
        logger.warning(f"Request {request_id} ({pending.method}) timed out")
        pending.completion.set_exception(RequestTimeoutError(pending.method, timeout))

    def _discard(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.timer.cancel()

    def _fail_all(self, reason: str, exit_code: int | None = None) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.timer.cancel()
            if not entry.completion.done():
                entry.completion.set_exception(
                    ClientDisconnectedError(reason, exit_code=exit_code)
                )
