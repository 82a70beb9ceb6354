"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for the tool
server subprocess and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devshop_server.config import DevShopSettings
from devshop_server.mcp import CircuitBreaker, MCPClient, MCPError
from devshop_server.routers import communications, health, tools

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    The tool server subprocess is spawned once at startup and the connected
    client, wrapped in a circuit breaker, is stored in app.state for reuse
    across all requests. The subprocess is always killed on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: DevShopSettings = app.state.settings

    client: MCPClient | None = None
    if settings.mcp_server_command:
        client = MCPClient(
            settings.mcp_server_command,
            cwd=settings.mcp_server_cwd,
            request_timeout=settings.request_timeout,
            llm_request_timeout=settings.llm_request_timeout,
            llm_tool_prefix=settings.llm_tool_prefix,
            protocol_version=settings.protocol_version,
            client_name=settings.client_name,
            client_version=settings.client_version,
        )
        try:
            await client.connect()
        except (MCPError, OSError) as e:
            logger.error(f"Could not connect to tool server: {e}")
        else:
            app.state.mcp_client = client
            app.state.tool_client = CircuitBreaker(
                client, threshold=settings.circuit_breaker_threshold
            )
            logger.info("Tool server connected")
    else:
        logger.info("No tool server command configured, tool calls are disabled")

    try:
        yield
    finally:
        # Shutdown: Kill the tool server and fail anything still in flight
        if client is not None:
            await client.disconnect()
            logger.info("Tool server client closed")


def create_app(settings: DevShopSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional DevShopSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from devshop_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="devshop-server",
        description="Bounded agent-to-agent communication and tool subprocess RPC",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(health.router)
    app.include_router(communications.router)
    app.include_router(tools.router)

    return app
