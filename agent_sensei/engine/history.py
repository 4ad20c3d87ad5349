"""Bounded per-session audit log of requests and responses."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable

from loguru import logger


class HistoryKind(str, Enum):
    REQUEST = "request"
    AGENT_RESPONSE = "agent_response"
    AUTOMATED_RESPONSE = "automated_response"


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: float
    kind: HistoryKind
    content: str
    approved: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "content": self.content,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        approved = data.get("approved")
        return cls(
            timestamp=float(data.get("timestamp", 0.0)),
            kind=HistoryKind(str(data.get("kind", HistoryKind.REQUEST.value))),
            content=str(data.get("content", "")),
            approved=None if approved is None else bool(approved),
        )


class HistoryLog:
    """Ordered log that drops its oldest entries past ``limit``."""

    def __init__(
        self,
        limit: int = 200,
        clock: Callable[[], float] = time.time,
        on_change: Callable[["HistoryLog"], None] | None = None,
    ) -> None:
        self.limit = max(1, int(limit))
        self._entries: deque[HistoryEntry] = deque(maxlen=self.limit)
        self._clock = clock
        self._on_change = on_change

    def set_listener(self, on_change: Callable[["HistoryLog"], None] | None) -> None:
        self._on_change = on_change

    def resize(self, limit: int) -> None:
        """Change the bound, keeping the newest entries."""
        self.limit = max(1, int(limit))
        self._entries = deque(self._entries, maxlen=self.limit)

    def append(
        self,
        kind: HistoryKind,
        content: str,
        approved: bool | None = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            timestamp=self._clock(),
            kind=kind,
            content=content,
            approved=approved,
        )
        self._entries.append(entry)
        self._notify()
        return entry

    def extend_from(self, items: Iterable[dict[str, Any]]) -> int:
        """Load persisted entries. Malformed items are skipped."""
        loaded = 0
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                self._entries.append(HistoryEntry.from_dict(item))
            except (TypeError, ValueError) as exc:
                logger.warning(f"[history] Skipping malformed entry: {exc}")
                continue
            loaded += 1
        return loaded

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def count(self, kind: HistoryKind | None = None) -> int:
        if kind is None:
            return len(self._entries)
        return sum(1 for entry in self._entries if entry.kind is kind)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            logger.exception("[history] Change listener failed")
