"""Key-value persistence for per-session config overrides and history.

Layout::

    ~/.agent-sensei/state.json
      {"<session_id>:config": {...}, "<session_id>:history": [...]}
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol

from loguru import logger


def session_key(session_id: str, name: str) -> str:
    """Build a session-scoped store key."""
    return f"{session_id}:{name}"


def default_store_path() -> Path:
    return Path.home() / ".agent-sensei" / "state.json"


class KeyValueStore(Protocol):
    """get/set by key. Values must be JSON-serializable."""

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or ``default``."""

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``."""


class MemoryStore:
    """In-process store."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """Single JSON document on disk, rewritten atomically on every set."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_store_path()
        self._lock = threading.Lock()
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(f"[store] Failed to read {self.path}: {exc}; starting empty")
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
