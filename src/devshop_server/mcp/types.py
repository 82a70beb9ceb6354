"""Type definitions for the tool subprocess protocol.

This module contains the immutable tool descriptor and the helpers that
build JSON-RPC 2.0 envelopes.
"""

from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"


@dataclass(frozen=True)
class Tool:
    """A named remote operation exposed by the tool subprocess.

    Attributes:
        name: Unique tool name (e.g., "llm_chat_completion")
        description: Human-readable description
        input_schema: Optional JSON schema describing the tool arguments
    """

    name: str
    description: str = ""
    input_schema: dict[str, Any] | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Tool":
        """Create a Tool from a ``tools/list`` entry.

        Args:
            data: One element of the ``tools`` array

        Returns:
            Tool: Parsed descriptor

        Raises:
            ValueError: If the entry has no name
        """
        name = data.get("name")
        if not name:
            raise ValueError(f"Tool entry without a name: {data!r}")
        return Tool(
            name=name,
            description=data.get("description") or "",
            input_schema=data.get("inputSchema"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the wire representation."""
        data: dict[str, Any] = {"name": self.name, "description": self.description}
        if self.input_schema is not None:
            data["inputSchema"] = self.input_schema
        return data


def make_request(request_id: int, method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Build a request envelope."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": params,
    }


def make_notification(method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Build a notification envelope (no id, no reply expected)."""
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": params}
