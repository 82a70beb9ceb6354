"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from devshop_server.models.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of the devshop-server,
    along with the state of the tool server connection if one is configured.

    Args:
        request: The FastAPI request object.

    Returns:
        HealthResponse: Health status and version information.
    """
    connected = False
    tool_count = 0
    failures = 0

    if hasattr(request.app.state, "tool_client"):
        tool_client = request.app.state.tool_client
        connected = request.app.state.mcp_client.is_connected
        tool_count = len(tool_client.list_tools())
        failures = tool_client.failure_count
        logger.debug(f"Tool server connected: {connected}, tools: {tool_count}")

    return HealthResponse(
        status="ok",
        version="0.1.0",
        tool_server_connected=connected,
        tool_count=tool_count,
        consecutive_tool_failures=failures,
    )
