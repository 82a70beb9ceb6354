"""Pydantic models for agent communication API requests and responses."""

from typing import Any

from pydantic import BaseModel, Field

from devshop_server.communication import MessageType


class CreateCommunicationRequest(BaseModel):
    """Request body for initializing a communication."""

    session_key: str = Field(..., min_length=1, description="Session identifier")
    initiating_agent: str = Field(..., min_length=1, description="Agent speaking first")
    target_agent: str = Field(..., min_length=1, description="Agent being contacted")
    initial_context: dict[str, Any] = Field(
        default_factory=dict, description="Free-form initial context"
    )


class SendMessageRequest(BaseModel):
    """Request body for sending a message from one agent to the other."""

    from_agent: str = Field(..., min_length=1, description="Sending agent")
    to_agent: str = Field(..., min_length=1, description="Receiving agent")
    message_type: MessageType = Field(..., description="Kind of message")
    content: str = Field(..., description="Message text")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Free-form metadata, including cost"
    )


class ProcessMessageRequest(BaseModel):
    """Request body for recording a reply to the latest message."""

    receiving_agent: str = Field(..., min_length=1, description="Replying agent")
    content: str = Field(..., description="Reply text")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Free-form metadata, including cost"
    )


class CompleteCommunicationRequest(BaseModel):
    """Request body for completing a communication."""

    reason: str = Field(..., description="Why the communication is complete")
    final_outcome: dict[str, Any] = Field(
        default_factory=dict, description="Outcome data to record"
    )


class EscalateCommunicationRequest(BaseModel):
    """Request body for escalating a communication to a human."""

    reason: str = Field(..., description="Why the agents could not resolve it")


class ExchangeResponse(BaseModel):
    """One exchange of a communication."""

    exchange_number: int
    from_agent: str
    to_agent: str
    message_type: MessageType
    content: str
    metadata: dict[str, Any]
    timestamp: str
    response_time: int | None = Field(None, description="Milliseconds until reply")


class CommunicationResponse(BaseModel):
    """Full communication record."""

    session_key: str
    initiating_agent: str
    target_agent: str
    current_speaker: str
    status: str
    exchange_count: int
    max_exchanges: int
    exchanges: list[ExchangeResponse]
    context: dict[str, Any]
    created_at: str
    last_activity: str
    completion_reason: str | None = None
    final_outcome: dict[str, Any] | None = None
    completed_at: str | None = None
    escalation_reason: str | None = None
    escalated_at: str | None = None


class SendMessageResponse(BaseModel):
    """Outcome of sending a message."""

    success: bool
    status: str = Field(..., description="sent or escalated")
    exchange_count: int
    max_exchanges: int
    exchange_number: int | None = None
    warning: str | None = None
    next_speaker: str | None = None
    reason: str | None = None
    message: str | None = None


class ProcessMessageResponse(BaseModel):
    """Outcome of recording a reply."""

    success: bool
    status: str = Field(..., description="processed or escalated")
    exchange_count: int
    max_exchanges: int
    response_time: int | None = None
    exchange_number: int | None = None
    reason: str | None = None
    message: str | None = None


class CommunicationStatsResponse(BaseModel):
    """Derived statistics for a communication."""

    total_exchanges: int
    exchange_limit: int
    utilization_percent: int
    total_cost: float
    average_response_time: int
    message_types: dict[str, int]
    agent_participation: dict[str, int]


class CommunicationSummaryResponse(BaseModel):
    """Condensed view of a communication."""

    session_key: str
    initiating_agent: str
    target_agent: str
    status: str
    exchange_count: int
    max_exchanges: int
    total_cost: float
    average_response_time: int
    created_at: str
    last_activity: str
    completed_at: str | None = None
    escalated_at: str | None = None
