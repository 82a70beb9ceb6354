"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from devshop_server.models.communications import (
    CommunicationResponse,
    CommunicationStatsResponse,
    CommunicationSummaryResponse,
    CompleteCommunicationRequest,
    CreateCommunicationRequest,
    EscalateCommunicationRequest,
    ExchangeResponse,
    ProcessMessageRequest,
    ProcessMessageResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from devshop_server.models.health import HealthResponse
from devshop_server.models.tools import (
    CallToolRequest,
    CallToolResponse,
    ToolListResponse,
    ToolResponse,
)

__all__ = [
    "CallToolRequest",
    "CallToolResponse",
    "CommunicationResponse",
    "CommunicationStatsResponse",
    "CommunicationSummaryResponse",
    "CompleteCommunicationRequest",
    "CreateCommunicationRequest",
    "EscalateCommunicationRequest",
    "ExchangeResponse",
    "HealthResponse",
    "ProcessMessageRequest",
    "ProcessMessageResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    "ToolListResponse",
    "ToolResponse",
]
