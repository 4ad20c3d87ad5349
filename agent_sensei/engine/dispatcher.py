"""Act on a pending approval: type it into the terminal, or drop it."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from loguru import logger

from agent_sensei.engine.accumulator import TranscriptAccumulator
from agent_sensei.engine.epoch import EpochTracker
from agent_sensei.engine.gate import PendingApproval, RateLimiter, ResponseGate
from agent_sensei.engine.history import HistoryKind, HistoryLog

if TYPE_CHECKING:
    from agent_sensei.providers.supervisor import ProcessSupervisor, SessionHandle


@dataclass(frozen=True)
class DispatchResult:
    sent: bool
    reason: str
    text: str = ""
    remaining_s: float = 0.0
    error: str = ""


class Dispatcher:
    """The only writer of pending-approval and rate-limiter state on send."""

    def __init__(
        self,
        session_id: str,
        supervisor: ProcessSupervisor,
        handle: SessionHandle,
        gate: ResponseGate,
        limiter: RateLimiter,
        tracker: EpochTracker,
        accumulator: TranscriptAccumulator,
        history: HistoryLog,
        log_length: Callable[[], int],
        inject_timeout_s: float = 10.0,
    ) -> None:
        self.session_id = session_id
        self.supervisor = supervisor
        self.handle = handle
        self.gate = gate
        self.limiter = limiter
        self.tracker = tracker
        self.accumulator = accumulator
        self.history = history
        self._log_length = log_length
        self.inject_timeout_s = inject_timeout_s

    async def approve(self, pending: PendingApproval | None, text: str | None = None) -> DispatchResult:
        """Send ``text`` (or the filtered content) and reset per-epoch state."""
        sid = self.session_id
        if not self.gate.is_current(pending):
            logger.debug(f"[dispatch] {sid}: stale approval ignored")
            return DispatchResult(sent=False, reason="stale")
        assert pending is not None

        remaining = self.limiter.remaining()
        if remaining > 0:
            logger.info(f"[dispatch] {sid}: cooldown active, {remaining:.1f}s remaining")
            return DispatchResult(sent=False, reason="rate_limited", remaining_s=remaining)

        payload = pending.filtered_content if text is None else text
        if not payload.strip():
            return DispatchResult(sent=False, reason="empty")

        try:
            await asyncio.wait_for(self._inject(payload), timeout=self.inject_timeout_s)
        except asyncio.TimeoutError:
            # The worker thread cannot be cancelled and may still deliver the
            # keys, so the approval is consumed to rule out a second send.
            logger.warning(f"[dispatch] {sid}: injection timed out after {self.inject_timeout_s:.1f}s")
            self._settle(pending, payload)
            return DispatchResult(
                sent=False,
                reason="timeout",
                text=payload,
                error="injection timed out, input may still arrive",
            )
        except (RuntimeError, OSError) as exc:
            logger.warning(f"[dispatch] {sid}: injection failed: {exc}")
            return DispatchResult(sent=False, reason="error", error=str(exc))

        self._settle(pending, payload)
        logger.info(f"[dispatch] {sid}: sent {len(payload)} chars")
        return DispatchResult(sent=True, reason="sent", text=payload)

    def reject(self, pending: PendingApproval | None) -> bool:
        """Clear the pending approval without sending anything."""
        if not self.gate.is_current(pending):
            logger.debug(f"[dispatch] {self.session_id}: stale rejection ignored")
            return False
        assert pending is not None
        self.gate.clear(pending)
        self.gate.mark_processed(pending.raw_content)
        self.history.append(HistoryKind.REQUEST, pending.filtered_content, approved=False)
        logger.info(f"[dispatch] {self.session_id}: approval {pending.id} rejected")
        return True

    def _settle(self, pending: PendingApproval, payload: str) -> None:
        # Approved content is not marked processed, so a repeated question
        # stages again once the cooldown ends.
        self.tracker.reset()
        self.accumulator.reset(self._log_length())
        self.gate.clear(pending)
        self.limiter.record()
        self.history.append(HistoryKind.REQUEST, pending.filtered_content, approved=True)
        self.history.append(HistoryKind.AUTOMATED_RESPONSE, payload, approved=True)

    async def _inject(self, payload: str) -> None:
        await asyncio.to_thread(self._send, payload)

    def _send(self, payload: str) -> None:
        # Keys and Enter run as one unit so a timeout never splits them.
        self.supervisor.send_keys(self.handle, payload)
        self.supervisor.send_control(self.handle, "enter")
