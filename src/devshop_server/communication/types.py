"""Data types for agent-to-agent communication.

This module defines the persisted Communication aggregate, its Exchange
records, and the result values returned by the ledger operations.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CommunicationStatus(str, Enum):
    """Lifecycle of a Communication. Terminal states never revert."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ESCALATED = "escalated"

    @property
    def is_terminal(self) -> bool:
        return self is not CommunicationStatus.ACTIVE


class MessageType(str, Enum):
    """Kinds of messages two agents exchange."""

    QUESTION = "question"
    CLARIFICATION = "clarification"
    RESPONSE = "response"
    HANDOFF = "handoff"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by utc_now()."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class Exchange:
    """One directed message within a Communication.

    Exchanges are never modified after being appended, except that
    ``response_time`` is filled in once the receiving agent replies.
    """

    exchange_number: int
    from_agent: str
    to_agent: str
    message_type: MessageType
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""
    response_time: int | None = None  # milliseconds

    @property
    def cost(self) -> float:
        """Cost recorded in the exchange metadata.

        Metadata is free-form, so a missing or non-numeric cost counts as 0.
        """
        value = self.metadata.get("cost")
        if not value:
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                f"Ignoring non-numeric cost {value!r} on exchange {self.exchange_number}"
            )
            return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchangeNumber": self.exchange_number,
            "fromAgent": self.from_agent,
            "toAgent": self.to_agent,
            "messageType": self.message_type.value,
            "content": self.content,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "responseTime": self.response_time,
            "cost": self.cost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Exchange":
        metadata = dict(data.get("metadata") or {})
        # Older records kept cost next to the metadata instead of inside it.
        if "cost" not in metadata and data.get("cost"):
            metadata["cost"] = data["cost"]
        return cls(
            exchange_number=data["exchangeNumber"],
            from_agent=data["fromAgent"],
            to_agent=data["toAgent"],
            message_type=MessageType(data["messageType"]),
            content=data.get("content", ""),
            metadata=metadata,
            timestamp=data.get("timestamp", ""),
            response_time=data.get("responseTime"),
        )


@dataclass
class Communication:
    """The bounded conversation between two agents for one session.

    Persisted as a single JSON document keyed by ``session_key``.
    """

    session_key: str
    initiating_agent: str
    target_agent: str
    current_speaker: str
    max_exchanges: int
    exchanges: list[Exchange] = field(default_factory=list)
    status: CommunicationStatus = CommunicationStatus.ACTIVE
    context: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    last_activity: str = ""
    completion_reason: str | None = None
    final_outcome: dict[str, Any] | None = None
    completed_at: str | None = None
    escalation_reason: str | None = None
    escalated_at: str | None = None
    version: int = 0

    @property
    def exchange_count(self) -> int:
        return len(self.exchanges)

    @property
    def latest_exchange(self) -> Exchange | None:
        return self.exchanges[-1] if self.exchanges else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON document."""
        return {
            "sessionKey": self.session_key,
            "initiatingAgent": self.initiating_agent,
            "targetAgent": self.target_agent,
            "currentSpeaker": self.current_speaker,
            "exchanges": [exchange.to_dict() for exchange in self.exchanges],
            "exchangeCount": self.exchange_count,
            "maxExchanges": self.max_exchanges,
            "status": self.status.value,
            "context": self.context,
            "createdAt": self.created_at,
            "lastActivity": self.last_activity,
            "completionReason": self.completion_reason,
            "finalOutcome": self.final_outcome,
            "completedAt": self.completed_at,
            "escalationReason": self.escalation_reason,
            "escalatedAt": self.escalated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Communication":
        """Load from the persisted JSON document.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the status or a message type is unknown
        """
        return cls(
            session_key=data["sessionKey"],
            initiating_agent=data["initiatingAgent"],
            target_agent=data["targetAgent"],
            current_speaker=data["currentSpeaker"],
            max_exchanges=data["maxExchanges"],
            exchanges=[Exchange.from_dict(item) for item in data.get("exchanges", [])],
            status=CommunicationStatus(data.get("status", "active")),
            context=data.get("context") or {},
            created_at=data.get("createdAt", ""),
            last_activity=data.get("lastActivity", ""),
            completion_reason=data.get("completionReason"),
            final_outcome=data.get("finalOutcome"),
            completed_at=data.get("completedAt"),
            escalation_reason=data.get("escalationReason"),
            escalated_at=data.get("escalatedAt"),
            version=data.get("version", 0),
        )


@dataclass
class SendResult:
    """Outcome of sending a message.

    ``status`` is "sent" or "escalated". An escalated result is a normal
    outcome: the exchange ceiling was reached and nothing was appended.
    """

    success: bool
    status: str
    exchange_count: int
    max_exchanges: int
    exchange_number: int | None = None
    warning: str | None = None
    next_speaker: str | None = None
    reason: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessResult:
    """Outcome of recording a reply. ``status`` is "processed" or "escalated"."""

    success: bool
    status: str
    exchange_count: int
    max_exchanges: int
    response_time: int | None = None
    exchange_number: int | None = None
    reason: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CommunicationStats:
    """Derived, read-only statistics for monitoring."""

    total_exchanges: int
    exchange_limit: int
    utilization_percent: int
    total_cost: float
    average_response_time: int
    message_types: dict[str, int] = field(default_factory=dict)
    agent_participation: dict[str, int] = field(default_factory=dict)


@dataclass
class CommunicationSummary:
    """Condensed view of a Communication for display."""

    session_key: str
    initiating_agent: str
    target_agent: str
    status: CommunicationStatus
    exchange_count: int
    max_exchanges: int
    total_cost: float
    average_response_time: int
    created_at: str
    last_activity: str
    completed_at: str | None = None
    escalated_at: str | None = None
