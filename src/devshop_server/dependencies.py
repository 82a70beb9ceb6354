"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject common dependencies like settings and services.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from devshop_server.communication import (
    CommunicationLedger,
    CompositeAuditSink,
    JsonFileStateStore,
    JsonlAuditSink,
    LoggingAuditSink,
)
from devshop_server.config import DevShopSettings
from devshop_server.mcp import CircuitBreaker


@lru_cache
def get_settings() -> DevShopSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the DEVSHOP_ prefix.

    Returns:
        DevShopSettings: The application configuration settings.
    """
    return DevShopSettings()


def get_tool_client(request: Request) -> CircuitBreaker:
    """Get the circuit-breaker-wrapped tool client from app state.

    Args:
        request: The FastAPI request object.

    Returns:
        CircuitBreaker: The guarded tool client.

    Raises:
        HTTPException: If no tool server is connected (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "tool_client"):
        raise HTTPException(
            status_code=503,
            detail="Tool server not connected",
        )
    return request.app.state.tool_client


def get_ledger(request: Request) -> CommunicationLedger:
    """Get a CommunicationLedger instance with app configuration.

    Creates a new ledger for each request over the JSON state store and
    audit log directories from settings. Concurrent writes to the same
    session are detected by the ledger and reported as 409 Conflict.

    Args:
        request: The FastAPI request object.

    Returns:
        CommunicationLedger: A new CommunicationLedger instance.
    """
    # Use settings from app.state instead of cached get_settings()
    # This ensures tests can use their own isolated settings
    settings: DevShopSettings = request.app.state.settings

    return CommunicationLedger(
        store=JsonFileStateStore(settings.resolved_state_dir),
        audit=CompositeAuditSink(
            LoggingAuditSink(),
            JsonlAuditSink(settings.resolved_audit_dir),
        ),
        max_exchanges=settings.max_exchanges,
        exchange_warning_threshold=settings.exchange_warning_threshold,
    )
