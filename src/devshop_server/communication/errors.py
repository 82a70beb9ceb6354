"""Errors raised by the communication ledger.

Reaching the exchange limit is not an error; it produces an escalated
result instead.
"""


class CommunicationError(Exception):
    """Base class for ledger errors."""

    def __init__(self, message: str, session_key: str) -> None:
        super().__init__(message)
        self.session_key = session_key


class AlreadyExistsError(CommunicationError):
    """A communication is already persisted under this session key."""

    def __init__(self, session_key: str) -> None:
        super().__init__(
            f"Agent communication session {session_key} already exists", session_key
        )


class NotFoundError(CommunicationError):
    """No communication is persisted under this session key."""

    def __init__(self, session_key: str) -> None:
        super().__init__(
            f"Agent communication session {session_key} not found", session_key
        )


class NotActiveError(CommunicationError):
    """A mutation was attempted on a completed or escalated communication."""

    def __init__(self, session_key: str, status: str) -> None:
        super().__init__(
            f"Communication session is {status}, cannot send new messages",
            session_key,
        )
        self.status = status


class MisdirectedMessageError(CommunicationError):
    """A reply was recorded by an agent the latest message was not sent to."""

    def __init__(
        self, session_key: str, expected_agent: str, receiving_agent: str
    ) -> None:
        super().__init__(
            f"Message was not directed to {receiving_agent} "
            f"(latest message is addressed to {expected_agent})",
            session_key,
        )
        self.expected_agent = expected_agent
        self.receiving_agent = receiving_agent


class NoMessagesError(CommunicationError):
    """A reply was recorded before any message was sent."""

    def __init__(self, session_key: str) -> None:
        super().__init__("No messages to process", session_key)


class ConcurrentModificationError(CommunicationError):
    """The stored record changed between load and save."""

    def __init__(
        self, session_key: str, expected_version: int, actual_version: int
    ) -> None:
        super().__init__(
            f"Agent communication session {session_key} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            session_key,
        )
        self.expected_version = expected_version
        self.actual_version = actual_version
