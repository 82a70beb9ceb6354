"""Tools router for invoking tool server operations.

Every call goes through the circuit breaker, so a tool server that keeps
failing is reported as unavailable instead of being retried.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from devshop_server.dependencies import get_tool_client
from devshop_server.mcp import (
    CircuitBreaker,
    ClientDisconnectedError,
    NotConnectedError,
    RemoteToolError,
    RequestTimeoutError,
    TooManyErrorsError,
)
from devshop_server.models.tools import (
    CallToolRequest,
    CallToolResponse,
    ToolListResponse,
    ToolResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


@router.get("", response_model=ToolListResponse, summary="List tools")
async def list_tools(
    tool_client: Annotated[CircuitBreaker, Depends(get_tool_client)],
) -> ToolListResponse:
    """List the tools discovered when the tool server was connected.

    Raises:
        HTTPException: 503 if no tool server is connected
    """
    return ToolListResponse(
        tools=[
            ToolResponse(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
            )
            for tool in tool_client.list_tools()
        ]
    )


@router.post(
    "/{name}/call",
    response_model=CallToolResponse,
    summary="Call a tool",
)
async def call_tool(
    name: str,
    request: CallToolRequest,
    tool_client: Annotated[CircuitBreaker, Depends(get_tool_client)],
) -> CallToolResponse:
    """Invoke a tool and return its raw result payload.

    Raises:
        HTTPException: 502 if the tool server answers with an error
        HTTPException: 503 if the tool server is gone or failing repeatedly
        HTTPException: 504 if the tool does not answer in time
    """
    try:
        result = await tool_client.call_tool(
            name, request.arguments, timeout=request.timeout
        )
    except TooManyErrorsError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e
    except RequestTimeoutError as e:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e)
        ) from e
    except RemoteToolError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": e.code, "message": e.message},
        ) from e
    except (ClientDisconnectedError, NotConnectedError) as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e

    return CallToolResponse(tool=name, result=result)
