"""Key-value state stores backing the communication ledger.

The ledger reads and writes one JSON document per session key and only
needs get/set semantics from a store.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Protocol

from devshop_server.communication.types import utc_now

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Durable get/set storage keyed by session key."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def set(self, key: str, value: dict[str, Any]) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...


class InMemoryStateStore:
    """Dict-backed store. Values are copied so callers never share state."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._data


class JsonFileStateStore:
    """Store keeping one JSON state file per session.

    Each file is shaped ``{session_id, created_at, updated_at, data}`` and
    the record lives under ``data[namespace]``, so other consumers can keep
    their own keys in the same session file.
    """

    def __init__(self, state_dir: Path, namespace: str = "agent_communication"):
        """Initialize the store.

        Args:
            state_dir: Directory where state files are stored
            namespace: Key of the record inside the file's data object
        """
        self.state_dir = state_dir
        self.namespace = namespace
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid session key: {key!r}")
        return self.state_dir / f"{key}.state.json"

    def _read(self, key: str) -> dict[str, Any] | None:
        file_path = self._path(key)
        if not file_path.exists():
            return None
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, key: str, state: dict[str, Any]) -> None:
        file_path = self._path(key)
        tmp_path = file_path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, ensure_ascii=False)
        tmp_path.replace(file_path)
        logger.debug(f"Saved state for session {key} to {file_path}")

    async def get(self, key: str) -> dict[str, Any] | None:
        state = self._read(key)
        if state is None:
            return None
        return state.get("data", {}).get(self.namespace)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        now = utc_now()
        state = self._read(key) or {
            "session_id": key,
            "created_at": now,
            "data": {},
        }
        state.setdefault("data", {})[self.namespace] = value
        state["updated_at"] = now
        self._write(key, state)

    async def delete(self, key: str) -> None:
        state = self._read(key)
        if state is None:
            return
        state.get("data", {}).pop(self.namespace, None)
        if state.get("data"):
            state["updated_at"] = utc_now()
            self._write(key, state)
        else:
            self._path(key).unlink()

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None
