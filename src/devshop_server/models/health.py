"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of devshop-server.
        tool_server_connected: Whether the tool server subprocess is connected.
        tool_count: Number of tools discovered during the handshake.
        consecutive_tool_failures: Circuit breaker failure counter.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of devshop-server")
    tool_server_connected: bool = Field(
        default=False,
        description="Whether the tool server subprocess is connected",
    )
    tool_count: int = Field(default=0, description="Number of cached tools")
    consecutive_tool_failures: int = Field(
        default=0,
        description="Consecutive tool call failures since the last success",
    )
