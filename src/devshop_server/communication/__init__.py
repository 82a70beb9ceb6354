"""Bounded, audited communication between two agents.

This package provides the exchange-limited communication ledger, its
persisted data types, and the pluggable state store and audit sink it
depends on.
"""

from devshop_server.communication.audit import (
    AuditSink,
    CompositeAuditSink,
    JsonlAuditSink,
    LoggingAuditSink,
)
from devshop_server.communication.errors import (
    AlreadyExistsError,
    CommunicationError,
    ConcurrentModificationError,
    MisdirectedMessageError,
    NoMessagesError,
    NotActiveError,
    NotFoundError,
)
from devshop_server.communication.ledger import (
    EXCHANGE_LIMIT_EXCEEDED,
    CommunicationLedger,
)
from devshop_server.communication.store import (
    InMemoryStateStore,
    JsonFileStateStore,
    StateStore,
)
from devshop_server.communication.types import (
    Communication,
    CommunicationStats,
    CommunicationStatus,
    CommunicationSummary,
    Exchange,
    MessageType,
    ProcessResult,
    SendResult,
)

__all__ = [
    # Core classes
    "CommunicationLedger",
    "EXCHANGE_LIMIT_EXCEEDED",
    # Data types
    "Communication",
    "CommunicationStats",
    "CommunicationStatus",
    "CommunicationSummary",
    "Exchange",
    "MessageType",
    "ProcessResult",
    "SendResult",
    # Collaborators
    "AuditSink",
    "CompositeAuditSink",
    "JsonlAuditSink",
    "LoggingAuditSink",
    "InMemoryStateStore",
    "JsonFileStateStore",
    "StateStore",
    # Errors
    "CommunicationError",
    "AlreadyExistsError",
    "ConcurrentModificationError",
    "MisdirectedMessageError",
    "NoMessagesError",
    "NotActiveError",
    "NotFoundError",
]
