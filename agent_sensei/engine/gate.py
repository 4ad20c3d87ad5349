"""Decide whether a closed epoch becomes a pending approval."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from loguru import logger

from agent_sensei.engine.filters import filter_epoch_content
from agent_sensei.engine.history import HistoryKind, HistoryLog


class RateLimiter:
    """Minimum interval between two dispatches. Refusals are never queued."""

    def __init__(self, min_interval_s: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.min_interval_s = max(0.0, float(min_interval_s))
        self._clock = clock
        self.last_dispatch_at: float | None = None

    def remaining(self) -> float:
        """Seconds left before the next dispatch is allowed."""
        if self.last_dispatch_at is None:
            return 0.0
        elapsed = self._clock() - self.last_dispatch_at
        return max(0.0, self.min_interval_s - elapsed)

    def record(self) -> None:
        self.last_dispatch_at = self._clock()


def _new_pending_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class PendingApproval:
    filtered_content: str
    raw_content: str
    created_at: float
    id: str = field(default_factory=_new_pending_id)

    def as_dict(self) -> dict[str, str]:
        return {
            "filtered_content": self.filtered_content,
            "raw_content": self.raw_content,
        }


class GateDecision(str, Enum):
    STAGED = "staged"
    ALREADY_PENDING = "already_pending"
    RATE_LIMITED = "rate_limited"
    EMPTY = "empty"
    ALREADY_PROCESSED = "already_processed"


@dataclass(frozen=True)
class GateResult:
    decision: GateDecision
    pending: PendingApproval | None = None
    remaining_s: float = 0.0

    @property
    def staged(self) -> bool:
        return self.decision is GateDecision.STAGED


class ResponseGate:
    """Holds at most one pending approval per session."""

    def __init__(
        self,
        limiter: RateLimiter,
        history: HistoryLog,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limiter = limiter
        self.history = history
        self._clock = clock
        self.pending: PendingApproval | None = None
        self._last_processed: str | None = None

    @property
    def last_processed(self) -> str | None:
        return self._last_processed

    def request_approval(self, epoch_content: str | Sequence[str]) -> GateResult:
        """Stage ``epoch_content`` for approval, or say why not."""
        if isinstance(epoch_content, str):
            lines = epoch_content.split("\n")
        else:
            lines = list(epoch_content)
        raw = "\n".join(lines)

        if self.pending is not None:
            self.mark_processed(raw)
            logger.debug(f"[gate] Approval {self.pending.id} already pending, dropping newer content")
            return GateResult(GateDecision.ALREADY_PENDING, pending=self.pending)

        remaining = self.limiter.remaining()
        if remaining > 0:
            logger.info(f"[gate] Rate limited, {remaining:.1f}s until next dispatch")
            return GateResult(GateDecision.RATE_LIMITED, remaining_s=remaining)

        filtered = "\n".join(filter_epoch_content(lines)).strip()
        if not filtered:
            logger.debug("[gate] Nothing left after filtering, discarding epoch")
            return GateResult(GateDecision.EMPTY)

        if raw == self._last_processed:
            logger.debug("[gate] Content already processed, skipping")
            return GateResult(GateDecision.ALREADY_PROCESSED)

        self.pending = PendingApproval(
            filtered_content=filtered,
            raw_content=raw,
            created_at=self._clock(),
        )
        self.history.append(HistoryKind.AGENT_RESPONSE, filtered)
        logger.info(f"[gate] Staged approval {self.pending.id} ({len(filtered)} chars)")
        return GateResult(GateDecision.STAGED, pending=self.pending)

    def is_current(self, pending: PendingApproval | None) -> bool:
        return pending is not None and self.pending is not None and pending.id == self.pending.id

    def clear(self, pending: PendingApproval | None = None) -> bool:
        """Drop the pending approval. With ``pending`` given, only if it is current."""
        if self.pending is None:
            return False
        if pending is not None and not self.is_current(pending):
            return False
        self.pending = None
        return True

    def mark_processed(self, raw_content: str) -> None:
        self._last_processed = raw_content
