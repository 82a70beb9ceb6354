"""Newline-delimited JSON-RPC framing over a subprocess's standard streams.

This module provides the LineFramer class which handles:
- Accumulating stdout bytes and splitting them on newline boundaries
- Parsing complete lines into JSON-RPC envelopes
- Writing envelopes as single newline-terminated lines to stdin
- Surfacing stderr for logging only
- Emitting exactly one disconnect signal per subprocess lifetime
"""

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from typing import Any

from devshop_server.mcp.errors import NotConnectedError

logger = logging.getLogger(__name__)

MessageListener = Callable[[dict[str, Any]], None]
DisconnectListener = Callable[[int | None], None]

# Cheap pre-filter; json.loads stays the source of truth.
ENVELOPE_MARKER = b'"jsonrpc"'

_READ_CHUNK = 64 * 1024
_CLOSE_WAIT = 5.0
_STDERR_LOG_LIMIT = 2000


class LineFramer:
    """Turns a subprocess byte stream into JSON-RPC envelopes and back.

    Listeners are registered at construction time. Message listeners are
    called once per parsed envelope, in arrival order. Disconnect listeners
    are called exactly once per attached subprocess with its exit code.
    """

    def __init__(
        self,
        on_message: Iterable[MessageListener] = (),
        on_disconnect: Iterable[DisconnectListener] = (),
    ) -> None:
        """Initialize the framer.

        Args:
            on_message: Callbacks receiving every parsed envelope
            on_disconnect: Callbacks receiving the subprocess exit code
        """
        self._message_listeners = list(on_message)
        self._disconnect_listeners = list(on_disconnect)
        self._buffer = b""
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._disconnected = True

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        """The attached subprocess, or None once it has exited."""
        return self._process

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """Start reading from a freshly spawned subprocess.

        Args:
            process: Subprocess created with piped stdin, stdout and stderr
        """
        self._process = process
        self._buffer = b""
        self._disconnected = False
        self._tasks = [asyncio.create_task(self._read_stdout(process))]
        if process.stderr is not None:
            self._tasks.append(asyncio.create_task(self._read_stderr(process)))
        logger.debug(f"Framer attached to subprocess pid={process.pid}")

    async def write(self, envelope: dict[str, Any]) -> None:
        """Write one envelope as a single newline-terminated JSON line.

        Args:
            envelope: JSON-serializable request, notification or reply

        Raises:
            NotConnectedError: If no subprocess is attached or its stdin is closed
        """
        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise NotConnectedError()

        # json.dumps escapes newlines inside strings, so one envelope is one line.
        data = (json.dumps(envelope, separators=(",", ":")) + "\n").encode("utf-8")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise NotConnectedError(f"Tool server input closed: {e}") from e

        logger.debug(f"Sent envelope: {data[:200]!r}")

    def feed(self, data: bytes) -> list[dict[str, Any]]:
        """Append bytes to the buffer and return every complete envelope.

        A trailing partial line stays buffered for the next chunk. Lines that
        are not JSON-RPC envelopes are dropped.

        Args:
            data: Raw bytes read from the subprocess stdout

        Returns:
            list[dict]: Parsed envelopes in arrival order
        """
        self._buffer += data
        envelopes: list[dict[str, Any]] = []

        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1 :]

            envelope = self._parse_line(line)
            if envelope is not None:
                envelopes.append(envelope)

        return envelopes

    @property
    def buffered(self) -> bytes:
        """Bytes of the current incomplete line."""
        return self._buffer

    async def close(self) -> None:
        """Wait for the readers to finish after the subprocess was killed.

        Emits the disconnect signal if the stdout reader has not already
        done so.
        """
        process = self._process
        tasks, self._tasks = self._tasks, []
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=_CLOSE_WAIT)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if process is not None:
            self._emit_disconnect(process.returncode)

    def _parse_line(self, line: bytes) -> dict[str, Any] | None:
        """Parse one line, returning None for anything that is not an envelope."""
        line = line.strip()
        if not line:
            return None

        if ENVELOPE_MARKER not in line:
            logger.debug(f"Ignoring non-protocol output: {line[:200]!r}")
            return None

        try:
            message = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to parse JSON-RPC message: {line[:200]!r}: {e}")
            return None

        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object JSON-RPC message: {line[:200]!r}")
            return None

        return message

    def _dispatch(self, envelope: dict[str, Any]) -> None:
        for listener in self._message_listeners:
            try:
                listener(envelope)
            except Exception:
                logger.exception("Message listener failed")

    def _emit_disconnect(self, exit_code: int | None) -> None:
        if self._disconnected:
            return
        self._disconnected = True
        self._process = None

        logger.info(f"Tool server exited with code {exit_code}")
        for listener in self._disconnect_listeners:
            try:
                listener(exit_code)
            except Exception:
                logger.exception("Disconnect listener failed")

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None

        while True:
            chunk = await process.stdout.read(_READ_CHUNK)
            if not chunk:
                break
            for envelope in self.feed(chunk):
                self._dispatch(envelope)

        if self._buffer.strip():
            logger.debug(f"Discarding unterminated output: {self._buffer[:200]!r}")
        self._buffer = b""

        exit_code = await process.wait()
        self._emit_disconnect(exit_code)

    async def _read_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None

        # Chunked like stdout: readline() gives up on lines over the stream
        # limit, and an undrained stderr pipe blocks the tool server.
        pending = b""
        while True:
            chunk = await process.stderr.read(_READ_CHUNK)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for line in lines:
                self._log_stderr(line)
            if len(pending) > _READ_CHUNK:
                self._log_stderr(pending)
                pending = b""

        self._log_stderr(pending)

    @staticmethod
    def _log_stderr(line: bytes) -> None:
        text = line.decode("utf-8", errors="replace").rstrip()
        if text:
            logger.debug(f"Tool server stderr: {text[:_STDERR_LOG_LIMIT]}")
