"""Error taxonomy for the tool subprocess transport and RPC client.

Every failure mode is its own class carrying structured attributes, so
callers can tell them apart without inspecting messages.
"""

from typing import Any


class MCPError(Exception):
    """Base class for transport, RPC and resilience errors."""


class NotConnectedError(MCPError):
    """Raised when writing to a subprocess that is not running."""

    def __init__(self, message: str = "Not connected") -> None:
        super().__init__(message)


class AlreadyConnectedError(MCPError):
    """Raised when connect() is called while the subprocess is still running."""

    def __init__(self, message: str = "Already connected") -> None:
        super().__init__(message)


class HandshakeError(MCPError):
    """Raised when the initialize request returns an error envelope."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(f"Initialization failed: {message}")
        self.code = code


class RequestTimeoutError(MCPError, TimeoutError):
    """Raised when no reply arrives before the request deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"Request timeout: {method} (after {timeout:g}s)")
        self.method = method
        self.timeout = timeout


class RemoteToolError(MCPError):
    """Raised when the remote side answers with an error envelope."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data


class ClientDisconnectedError(MCPError):
    """Raised for every in-flight request when the subprocess goes away.

    ``exit_code`` is set when the subprocess exited on its own and is
    ``None`` when the client was disconnected explicitly.
    """

    def __init__(self, reason: str, exit_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.exit_code = exit_code


class TooManyErrorsError(MCPError):
    """Raised by the circuit breaker once consecutive failures pass its threshold."""

    def __init__(self, threshold: int, last_error: BaseException) -> None:
        super().__init__(
            f"Too many errors ({threshold}) calling tools. Last error: {last_error}"
        )
        self.threshold = threshold
        self.last_error = last_error
