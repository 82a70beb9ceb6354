"""Audit sinks receiving one entry per exchange and per state transition.

The audit trail is consumed by operators; the ledger never reads it back.
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from devshop_server.communication.types import utc_now

logger = logging.getLogger(__name__)

audit_logger = logging.getLogger("devshop_server.audit")


class AuditSink(Protocol):
    """Receiver for structured audit entries."""

    async def log_interaction(
        self, interaction_type: str, content: str, metadata: dict[str, Any]
    ) -> None: ...


class LoggingAuditSink:
    """Emits each entry as an INFO record on the ``devshop_server.audit`` logger."""

    async def log_interaction(
        self, interaction_type: str, content: str, metadata: dict[str, Any]
    ) -> None:
        audit_logger.info(
            content,
            extra={"interaction_type": interaction_type, "audit": metadata},
        )


class JsonlAuditSink:
    """Appends entries as JSON lines to ``<log_dir>/session-<key>.jsonl``.

    Write failures are logged and never fail the ledger operation that
    produced the entry.
    """

    def __init__(self, log_dir: Path) -> None:
        self.log_dir = log_dir

    async def log_interaction(
        self, interaction_type: str, content: str, metadata: dict[str, Any]
    ) -> None:
        session_key = str(metadata.get("sessionKey") or "unknown").replace("/", "_")
        entry = {
            "timestamp": utc_now(),
            "type": interaction_type,
            "content": content,
            **metadata,
        }
        file_path = self.log_dir / f"session-{session_key}.jsonl"

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(file_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            logger.warning(f"Could not log interaction for session {session_key}: {e}")


class CompositeAuditSink:
    """Fans every entry out to several sinks in order."""

    def __init__(self, *sinks: AuditSink) -> None:
        self.sinks = list(sinks)

    async def log_interaction(
        self, interaction_type: str, content: str, metadata: dict[str, Any]
    ) -> None:
        for sink in self.sinks:
            await sink.log_interaction(interaction_type, content, metadata)
