"""CommunicationLedger for bounded conversations between two agents.

This module provides the CommunicationLedger class which handles:
- Initializing a communication between an initiating and a target agent
- Appending numbered exchanges with an exchange ceiling and early warnings
- Recording replies and their response times
- Completing or escalating a communication (terminal states)
- Deriving statistics, summaries and a plain-text audit history

The ledger is a pure state machine over one persisted record per session
key. Calls against the same session key must be serialized by the caller;
concurrent writers are detected through the record's version counter.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any

from devshop_server.communication.audit import AuditSink
from devshop_server.communication.errors import (
    AlreadyExistsError,
    ConcurrentModificationError,
    MisdirectedMessageError,
    NoMessagesError,
    NotActiveError,
    NotFoundError,
)
from devshop_server.communication.store import StateStore
from devshop_server.communication.types import (
    Communication,
    CommunicationStats,
    CommunicationStatus,
    CommunicationSummary,
    Exchange,
    MessageType,
    ProcessResult,
    SendResult,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_EXCHANGES = 5
DEFAULT_EXCHANGE_WARNING_THRESHOLD = 3

EXCHANGE_LIMIT_EXCEEDED = "exchange_limit_exceeded"

_HISTORY_CONTENT_LIMIT = 500
_HISTORY_PREVIEW_LIMIT = 100


class CommunicationLedger:
    """Exchange-limited, escalating state machine for agent conversations.

    States are ``active -> completed`` and ``active -> escalated``. Running
    out of exchanges is an expected outcome and is reported as an
    escalated result, never raised.
    """

    def __init__(
        self,
        store: StateStore,
        audit: AuditSink | None = None,
        max_exchanges: int = DEFAULT_MAX_EXCHANGES,
        exchange_warning_threshold: int = DEFAULT_EXCHANGE_WARNING_THRESHOLD,
    ):
        """Initialize the ledger.

        Args:
            store: Durable key-value store holding one record per session key
            audit: Optional sink receiving one entry per exchange and transition
            max_exchanges: Ceiling applied to newly initialized communications
            exchange_warning_threshold: Exchange count from which sends carry a warning
        """
        if max_exchanges < 1:
            raise ValueError("max_exchanges must be at least 1")
        if exchange_warning_threshold < 1:
            raise ValueError("exchange_warning_threshold must be at least 1")

        self.store = store
        self.audit = audit
        self.max_exchanges = max_exchanges
        self.exchange_warning_threshold = exchange_warning_threshold

    async def initialize_communication(
        self,
        session_key: str,
        initiating_agent: str,
        target_agent: str,
        initial_context: dict[str, Any] | None = None,
    ) -> Communication:
        """Create and persist a new active communication.

        Args:
            session_key: Identifier the record is persisted under
            initiating_agent: Agent starting the conversation (speaks first)
            target_agent: Agent being contacted
            initial_context: Free-form context stored with the record

        Returns:
            The newly created Communication

        Raises:
            AlreadyExistsError: If a record already exists for session_key
        """
        if await self.store.exists(session_key):
            raise AlreadyExistsError(session_key)

        now = utc_now()
        communication = Communication(
            session_key=session_key,
            initiating_agent=initiating_agent,
            target_agent=target_agent,
            current_speaker=initiating_agent,
            max_exchanges=self.max_exchanges,
            context=dict(initial_context or {}),
            created_at=now,
            last_activity=now,
        )
        await self._save(communication)

        logger.info(
            f"Agent communication initialized for {session_key}: "
            f"{initiating_agent} -> {target_agent}"
        )
        await self._audit(
            "agent_communication_init",
            f"Agent communication started: {initiating_agent} → {target_agent}",
            {
                "sessionKey": session_key,
                "transition": "initialized",
                "initiatingAgent": initiating_agent,
                "targetAgent": target_agent,
                "timestamp": now,
            },
        )
        return communication

    async def send_message(
        self,
        session_key: str,
        from_agent: str,
        to_agent: str,
        message_type: MessageType | str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> SendResult:
        """Append a message from one agent to the other.

        Once the ceiling is reached the communication is escalated and an
        escalated result is returned instead of appending.

        Args:
            session_key: The communication's session key
            from_agent: Sending agent
            to_agent: Receiving agent (becomes the current speaker)
            message_type: question, clarification, response or handoff
            content: Message text (surrounding whitespace is stripped)
            metadata: Free-form metadata; ``cost`` is summed in statistics

        Returns:
            SendResult with status "sent" or "escalated"

        Raises:
            NotFoundError: If the session key is unknown
            NotActiveError: If the communication is completed or escalated
            ValueError: If message_type is not a known message type
        """
        message_type = MessageType(message_type)
        communication = await self.get_communication(session_key)
        self._require_active(communication)

        if communication.exchange_count >= communication.max_exchanges:
            return SendResult(**await self._escalate_at_limit(communication))

        now = utc_now()
        exchange = Exchange(
            exchange_number=communication.exchange_count + 1,
            from_agent=from_agent,
            to_agent=to_agent,
            message_type=message_type,
            content=content.strip(),
            metadata=dict(metadata or {}),
            timestamp=now,
        )
        communication.exchanges.append(exchange)
        communication.current_speaker = to_agent
        communication.last_activity = now

        warning = self._warning_for(communication)
        if warning:
            logger.warning(f"{session_key}: {warning}")

        await self._save(communication)
        await self._log_exchange(communication, exchange, warning)

        return SendResult(
            success=True,
            status="sent",
            exchange_number=exchange.exchange_number,
            exchange_count=communication.exchange_count,
            max_exchanges=communication.max_exchanges,
            warning=warning,
            next_speaker=to_agent,
        )

    async def process_message(
        self,
        session_key: str,
        receiving_agent: str,
        response_content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ProcessResult:
        """Record the receiving agent's reply to the latest exchange.

        The latest exchange gets its response time (milliseconds since it
        was sent) and a response exchange addressed back to its sender is
        appended.

        Args:
            session_key: The communication's session key
            receiving_agent: Agent the latest exchange was sent to
            response_content: Reply text (surrounding whitespace is stripped)
            metadata: Free-form metadata for the response exchange

        Returns:
            ProcessResult with status "processed" or "escalated"

        Raises:
            NotFoundError: If the session key is unknown
            NotActiveError: If the communication is completed or escalated
            NoMessagesError: If nothing has been sent yet
            MisdirectedMessageError: If the latest exchange went to another agent
        """
        communication = await self.get_communication(session_key)
        self._require_active(communication)

        latest = communication.latest_exchange
        if latest is None:
            raise NoMessagesError(session_key)
        if latest.to_agent != receiving_agent:
            raise MisdirectedMessageError(session_key, latest.to_agent, receiving_agent)

        if communication.exchange_count >= communication.max_exchanges:
            return ProcessResult(**await self._escalate_at_limit(communication))

        elapsed = datetime.now(timezone.utc) - parse_timestamp(latest.timestamp)
        response_time = max(0, int(elapsed.total_seconds() * 1000))
        latest.response_time = response_time

        now = utc_now()
        response = Exchange(
            exchange_number=communication.exchange_count + 1,
            from_agent=receiving_agent,
            to_agent=latest.from_agent,
            message_type=MessageType.RESPONSE,
            content=response_content.strip(),
            metadata={
                **(metadata or {}),
                "respondingTo": latest.exchange_number,
                "responseTime": response_time,
            },
            timestamp=now,
        )
        communication.exchanges.append(response)
        communication.current_speaker = response.to_agent
        communication.last_activity = now

        await self._save(communication)
        await self._log_exchange(communication, response)

        return ProcessResult(
            success=True,
            status="processed",
            response_time=response_time,
            exchange_number=response.exchange_number,
            exchange_count=communication.exchange_count,
            max_exchanges=communication.max_exchanges,
        )

    async def complete_communication(
        self,
        session_key: str,
        reason: str,
        final_outcome: dict[str, Any] | None = None,
    ) -> Communication:
        """Mark an active communication as successfully completed.

        Raises:
            NotFoundError: If the session key is unknown
            NotActiveError: If the communication is already terminal
        """
        communication = await self.get_communication(session_key)
        self._require_active(communication)

        now = utc_now()
        communication.status = CommunicationStatus.COMPLETED
        communication.completion_reason = reason
        communication.final_outcome = dict(final_outcome or {})
        communication.completed_at = now
        communication.last_activity = now
        await self._save(communication)

        logger.info(f"Agent communication {session_key} completed: {reason}")
        await self._audit(
            "agent_communication_complete",
            f"Agent communication completed: {reason}",
            {
                "sessionKey": session_key,
                "transition": "completed",
                "initiatingAgent": communication.initiating_agent,
                "targetAgent": communication.target_agent,
                "exchangeCount": communication.exchange_count,
                "completionReason": reason,
                "finalOutcome": communication.final_outcome,
                "timestamp": now,
            },
        )
        return communication

    async def escalate_to_user(self, session_key: str, reason: str) -> Communication:
        """Hand an active communication over to a human.

        Escalating a communication that is already terminal is a no-op that
        returns the existing record unchanged.

        Raises:
            NotFoundError: If the session key is unknown
        """
        communication = await self.get_communication(session_key)
        if communication.status.is_terminal:
            logger.info(
                f"Agent communication {session_key} is already "
                f"{communication.status.value}, escalation ignored"
            )
            return communication

        await self._escalate(communication, reason)
        return communication

    async def get_communication(self, session_key: str) -> Communication:
        """Load a communication.

        Raises:
            NotFoundError: If the session key is unknown
        """
        data = await self.store.get(session_key)
        if data is None:
            raise NotFoundError(session_key)
        return Communication.from_dict(data)

    async def communication_exists(self, session_key: str) -> bool:
        return await self.store.exists(session_key)

    async def get_communication_stats(self, session_key: str) -> CommunicationStats:
        """Derive monitoring statistics for a communication."""
        communication = await self.get_communication(session_key)

        message_types: dict[str, int] = {}
        participation = {
            communication.initiating_agent: 0,
            communication.target_agent: 0,
        }
        for exchange in communication.exchanges:
            message_types[exchange.message_type.value] = (
                message_types.get(exchange.message_type.value, 0) + 1
            )
            participation[exchange.from_agent] = (
                participation.get(exchange.from_agent, 0) + 1
            )

        return CommunicationStats(
            total_exchanges=communication.exchange_count,
            exchange_limit=communication.max_exchanges,
            utilization_percent=_round_half_up(
                communication.exchange_count / communication.max_exchanges * 100
            ),
            total_cost=_total_cost(communication),
            average_response_time=_average_response_time(communication.exchanges),
            message_types=message_types,
            agent_participation=participation,
        )

    async def get_communication_summary(self, session_key: str) -> CommunicationSummary:
        communication = await self.get_communication(session_key)
        return CommunicationSummary(
            session_key=session_key,
            initiating_agent=communication.initiating_agent,
            target_agent=communication.target_agent,
            status=communication.status,
            exchange_count=communication.exchange_count,
            max_exchanges=communication.max_exchanges,
            total_cost=_total_cost(communication),
            average_response_time=_average_response_time(communication.exchanges),
            created_at=communication.created_at,
            last_activity=communication.last_activity,
            completed_at=communication.completed_at,
            escalated_at=communication.escalated_at,
        )

    async def format_communication_history(
        self, session_key: str, include_content: bool = True
    ) -> str:
        """Render the conversation as plain text for the audit trail.

        Args:
            session_key: The communication's session key
            include_content: Show message bodies (truncated) instead of a short preview

        Returns:
            Multi-line history text
        """
        communication = await self.get_communication(session_key)

        lines = [
            f"Agent Communication History (Session: {session_key})",
            f"{communication.initiating_agent} → {communication.target_agent} "
            f"• Status: {communication.status.value} "
            f"• Exchanges: {communication.exchange_count}/{communication.max_exchanges}",
            "",
        ]

        for exchange in communication.exchanges:
            header = (
                f"{exchange.from_agent.upper()} → {exchange.to_agent.upper()} "
                f"(Exchange {exchange.exchange_number}): "
                f"[{exchange.message_type.value}] {exchange.timestamp}"
            )
            if exchange.cost > 0:
                header += f" [${exchange.cost:.4f}]"
            if exchange.response_time:
                header += f" ({exchange.response_time}ms)"
            lines.append(header)

            if include_content:
                lines.append(_truncate(exchange.content, _HISTORY_CONTENT_LIMIT))
            else:
                preview = _truncate(exchange.content, _HISTORY_PREVIEW_LIMIT)
                lines.append(f"{exchange.message_type.value}: {preview}")
            lines.append("")

        if communication.status is CommunicationStatus.COMPLETED:
            lines.append(f"Communication completed: {communication.completion_reason}")
        elif communication.status is CommunicationStatus.ESCALATED:
            lines.append(f"Communication escalated: {communication.escalation_reason}")

        return "\n".join(lines).rstrip() + "\n"

    def _warning_for(self, communication: Communication) -> str | None:
        count = communication.exchange_count
        if self.exchange_warning_threshold <= count < communication.max_exchanges:
            remaining = communication.max_exchanges - count
            return f"Approaching exchange limit: {remaining} exchanges remaining"
        return None

    @staticmethod
    def _require_active(communication: Communication) -> None:
        if communication.status is not CommunicationStatus.ACTIVE:
            raise NotActiveError(communication.session_key, communication.status.value)

    async def _escalate_at_limit(self, communication: Communication) -> dict[str, Any]:
        logger.warning(
            f"Exchange limit reached ({communication.max_exchanges}) for "
            f"{communication.session_key}, escalating to user"
        )
        await self._escalate(communication, EXCHANGE_LIMIT_EXCEEDED)
        return {
            "success": False,
            "status": CommunicationStatus.ESCALATED.value,
            "exchange_count": communication.exchange_count,
            "max_exchanges": communication.max_exchanges,
            "reason": EXCHANGE_LIMIT_EXCEEDED,
            "message": "Communication escalated to user due to exchange limit",
        }

    async def _escalate(self, communication: Communication, reason: str) -> None:
        now = utc_now()
        communication.status = CommunicationStatus.ESCALATED
        communication.escalation_reason = reason
        communication.escalated_at = now
        communication.last_activity = now
        await self._save(communication)

        logger.warning(
            f"Agent communication {communication.session_key} escalated to user: {reason}"
        )
        await self._audit(
            "agent_communication_escalate",
            f"Communication escalated: {reason}",
            {
                "sessionKey": communication.session_key,
                "transition": "escalated",
                "initiatingAgent": communication.initiating_agent,
                "targetAgent": communication.target_agent,
                "exchangeCount": communication.exchange_count,
                "escalationReason": reason,
                "timestamp": now,
            },
        )

    async def _save(self, communication: Communication) -> None:
        stored = await self.store.get(communication.session_key)
        actual_version = stored.get("version", 0) if stored else 0
        if actual_version != communication.version:
            raise ConcurrentModificationError(
                communication.session_key, communication.version, actual_version
            )

        communication.version += 1
        await self.store.set(communication.session_key, communication.to_dict())

    async def _log_exchange(
        self,
        communication: Communication,
        exchange: Exchange,
        warning: str | None = None,
    ) -> None:
        logger.debug(
            f"{communication.session_key} exchange {exchange.exchange_number}: "
            f"{exchange.from_agent} -> {exchange.to_agent} [{exchange.message_type.value}]"
        )
        await self._audit(
            "agent_exchange",
            f"Agent exchange {exchange.exchange_number}: "
            f"{exchange.from_agent} → {exchange.to_agent}",
            {
                "sessionKey": communication.session_key,
                "exchangeNumber": exchange.exchange_number,
                "fromAgent": exchange.from_agent,
                "toAgent": exchange.to_agent,
                "messageType": exchange.message_type.value,
                "contentLength": len(exchange.content),
                "cost": exchange.cost,
                "responseTime": exchange.response_time,
                "warning": warning,
                "timestamp": exchange.timestamp,
            },
        )

    async def _audit(
        self, interaction_type: str, content: str, metadata: dict[str, Any]
    ) -> None:
        if self.audit is not None:
            await self.audit.log_interaction(interaction_type, content, metadata)


def _total_cost(communication: Communication) -> float:
    return sum(exchange.cost for exchange in communication.exchanges)


def _average_response_time(exchanges: list[Exchange]) -> int:
    times = [e.response_time for e in exchanges if e.response_time is not None]
    if not times:
        return 0
    return _round_half_up(sum(times) / len(times))


def _round_half_up(value: float) -> int:
    # Halves round up, not to even.
    return math.floor(value + 0.5)


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text
