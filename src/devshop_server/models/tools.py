"""Pydantic models for tool API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


class ToolResponse(BaseModel):
    """A tool advertised by the tool server."""

    name: str = Field(..., description="Unique tool name")
    description: str = Field("", description="Tool description")
    input_schema: dict[str, Any] | None = Field(
        None, description="JSON schema of the tool arguments"
    )


class ToolListResponse(BaseModel):
    """Response for listing tools."""

    tools: list[ToolResponse]


class CallToolRequest(BaseModel):
    """Request body for invoking a tool."""

    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Tool arguments"
    )
    timeout: float | None = Field(
        None, gt=0, description="Optional deadline in seconds"
    )


class CallToolResponse(BaseModel):
    """Raw result payload of a tool call."""

    tool: str = Field(..., description="Invoked tool name")
    result: Any = Field(None, description="Tool-specific result payload")
