"""Tool subprocess transport, RPC client and circuit breaker.

This package provides the newline-delimited JSON-RPC framing over a
subprocess's standard streams, the async client that correlates remote
tool calls, and the circuit breaker guarding sequences of calls.
"""

from devshop_server.mcp.circuit_breaker import CircuitBreaker
from devshop_server.mcp.client import MCPClient, PendingRequest
from devshop_server.mcp.errors import (
    AlreadyConnectedError,
    ClientDisconnectedError,
    HandshakeError,
    MCPError,
    NotConnectedError,
    RemoteToolError,
    RequestTimeoutError,
    TooManyErrorsError,
)
from devshop_server.mcp.framer import LineFramer
from devshop_server.mcp.types import Tool

__all__ = [
    # Core classes
    "CircuitBreaker",
    "LineFramer",
    "MCPClient",
    "PendingRequest",
    "Tool",
    # Errors
    "MCPError",
    "AlreadyConnectedError",
    "ClientDisconnectedError",
    "HandshakeError",
    "NotConnectedError",
    "RemoteToolError",
    "RequestTimeoutError",
    "TooManyErrorsError",
]
