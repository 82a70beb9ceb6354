"""Communications router for bounded agent-to-agent conversations.

This module provides REST API endpoints for:
- Initializing a communication between two agents
- Retrieving the communication record
- Sending messages and recording replies
- Completing or escalating a communication
- Getting statistics, a summary and a plain-text history
"""

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from devshop_server.communication import (
    AlreadyExistsError,
    Communication,
    CommunicationError,
    CommunicationLedger,
    ConcurrentModificationError,
    MisdirectedMessageError,
    NoMessagesError,
    NotActiveError,
    NotFoundError,
)
from devshop_server.dependencies import get_ledger
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

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/communications", tags=["communications"])

_ERROR_STATUS: list[tuple[type[CommunicationError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (NotActiveError, status.HTTP_409_CONFLICT),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (MisdirectedMessageError, status.HTTP_400_BAD_REQUEST),
    (NoMessagesError, status.HTTP_400_BAD_REQUEST),
]


def _raise_http_error(error: Exception) -> NoReturn:
    """Translate a ledger error into an HTTPException."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(error, error_type):
            raise HTTPException(status_code=status_code, detail=str(error)) from error

    if isinstance(error, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)
        ) from error

    raise error


def _to_response(communication: Communication) -> CommunicationResponse:
    return CommunicationResponse(
        session_key=communication.session_key,
        initiating_agent=communication.initiating_agent,
        target_agent=communication.target_agent,
        current_speaker=communication.current_speaker,
        status=communication.status.value,
        exchange_count=communication.exchange_count,
        max_exchanges=communication.max_exchanges,
        exchanges=[
            ExchangeResponse(
                exchange_number=exchange.exchange_number,
                from_agent=exchange.from_agent,
                to_agent=exchange.to_agent,
                message_type=exchange.message_type,
                content=exchange.content,
                metadata=exchange.metadata,
                timestamp=exchange.timestamp,
                response_time=exchange.response_time,
            )
            for exchange in communication.exchanges
        ],
        context=communication.context,
        created_at=communication.created_at,
        last_activity=communication.last_activity,
        completion_reason=communication.completion_reason,
        final_outcome=communication.final_outcome,
        completed_at=communication.completed_at,
        escalation_reason=communication.escalation_reason,
        escalated_at=communication.escalated_at,
    )


@router.post(
    "",
    response_model=CommunicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Initialize a communication",
)
async def create_communication(
    request: CreateCommunicationRequest,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationResponse:
    """Start a bounded conversation between two agents.

    Raises:
        HTTPException: 409 if a communication already exists for the session key
    """
    try:
        communication = await ledger.initialize_communication(
            request.session_key,
            request.initiating_agent,
            request.target_agent,
            request.initial_context,
        )
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return _to_response(communication)


@router.get(
    "/{session_key}",
    response_model=CommunicationResponse,
    summary="Get a communication",
)
async def get_communication(
    session_key: str,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationResponse:
    """Get the full communication record including every exchange.

    Raises:
        HTTPException: 404 if the communication does not exist
    """
    try:
        communication = await ledger.get_communication(session_key)
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return _to_response(communication)


@router.post(
    "/{session_key}/messages",
    response_model=SendMessageResponse,
    summary="Send a message",
)
async def send_message(
    session_key: str,
    request: SendMessageRequest,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> SendMessageResponse:
    """Send a message from one agent to the other.

    Reaching the exchange limit escalates the communication; that outcome
    is returned with status "escalated" rather than as an error.

    Raises:
        HTTPException: 404 if the communication does not exist
        HTTPException: 409 if the communication is completed or escalated
    """
    try:
        result = await ledger.send_message(
            session_key,
            request.from_agent,
            request.to_agent,
            request.message_type,
            request.content,
            request.metadata,
        )
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return SendMessageResponse(**result.to_dict())


@router.post(
    "/{session_key}/responses",
    response_model=ProcessMessageResponse,
    summary="Record a reply",
)
async def process_message(
    session_key: str,
    request: ProcessMessageRequest,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> ProcessMessageResponse:
    """Record the receiving agent's reply to the latest message.

    Raises:
        HTTPException: 400 if nothing was sent yet or the reply comes from the wrong agent
        HTTPException: 404 if the communication does not exist
        HTTPException: 409 if the communication is completed or escalated
    """
    try:
        result = await ledger.process_message(
            session_key,
            request.receiving_agent,
            request.content,
            request.metadata,
        )
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return ProcessMessageResponse(**result.to_dict())


@router.post(
    "/{session_key}/complete",
    response_model=CommunicationResponse,
    summary="Complete a communication",
)
async def complete_communication(
    session_key: str,
    request: CompleteCommunicationRequest,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationResponse:
    """Mark the communication as successfully resolved.

    Raises:
        HTTPException: 404 if the communication does not exist
        HTTPException: 409 if the communication is already terminal
    """
    try:
        communication = await ledger.complete_communication(
            session_key, request.reason, request.final_outcome
        )
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return _to_response(communication)


@router.post(
    "/{session_key}/escalate",
    response_model=CommunicationResponse,
    summary="Escalate a communication to the user",
)
async def escalate_communication(
    session_key: str,
    request: EscalateCommunicationRequest,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationResponse:
    """Hand the communication over to a human.

    Escalating an already terminal communication returns it unchanged.

    Raises:
        HTTPException: 404 if the communication does not exist
    """
    try:
        communication = await ledger.escalate_to_user(session_key, request.reason)
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return _to_response(communication)


@router.get(
    "/{session_key}/stats",
    response_model=CommunicationStatsResponse,
    summary="Get communication statistics",
)
async def get_communication_stats(
    session_key: str,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationStatsResponse:
    try:
        stats = await ledger.get_communication_stats(session_key)
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return CommunicationStatsResponse(
        total_exchanges=stats.total_exchanges,
        exchange_limit=stats.exchange_limit,
        utilization_percent=stats.utilization_percent,
        total_cost=stats.total_cost,
        average_response_time=stats.average_response_time,
        message_types=stats.message_types,
        agent_participation=stats.agent_participation,
    )


@router.get(
    "/{session_key}/summary",
    response_model=CommunicationSummaryResponse,
    summary="Get a communication summary",
)
async def get_communication_summary(
    session_key: str,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
) -> CommunicationSummaryResponse:
    try:
        summary = await ledger.get_communication_summary(session_key)
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)

    return CommunicationSummaryResponse(
        session_key=summary.session_key,
        initiating_agent=summary.initiating_agent,
        target_agent=summary.target_agent,
        status=summary.status.value,
        exchange_count=summary.exchange_count,
        max_exchanges=summary.max_exchanges,
        total_cost=summary.total_cost,
        average_response_time=summary.average_response_time,
        created_at=summary.created_at,
        last_activity=summary.last_activity,
        completed_at=summary.completed_at,
        escalated_at=summary.escalated_at,
    )


@router.get(
    "/{session_key}/history",
    response_class=PlainTextResponse,
    summary="Get the communication history as text",
)
async def get_communication_history(
    session_key: str,
    ledger: Annotated[CommunicationLedger, Depends(get_ledger)],
    include_content: Annotated[bool, Query()] = True,
) -> str:
    """Render the conversation as plain text for auditing.

    Args:
        session_key: The communication's session key
        ledger: Injected CommunicationLedger
        include_content: Show message bodies instead of short previews

    Raises:
        HTTPException: 404 if the communication does not exist
    """
    try:
        return await ledger.format_communication_history(session_key, include_content)
    except (CommunicationError, ValueError) as e:
        _raise_http_error(e)
