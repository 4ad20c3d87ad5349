"""One session's whole pipeline: capture, normalize, detect, epoch, gate, dispatch."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from agent_sensei.bus import DispatchRequest, MessageBus, SuggestionFailed
from agent_sensei.config.schema import EngineConfig
from agent_sensei.engine import (
    BusyDetector,
    ClosedEpoch,
    ContentSelector,
    DispatchResult,
    Dispatcher,
    EpochState,
    EpochTracker,
    GateResult,
    HistoryLog,
    PendingApproval,
    RateLimiter,
    ResponseGate,
    TranscriptAccumulator,
    parse_frame,
)
from agent_sensei.providers.base import CompletionProvider
from agent_sensei.providers.supervisor import ProcessSupervisor, SessionHandle

EpochCallback = Callable[[str, "PendingApproval | None"], None]
ErrorCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class TickResult:
    """What one poll tick did."""

    busy: bool
    state: EpochState
    closed_epoch: ClosedEpoch | None = None
    gate: GateResult | None = None
    captured: bool = True

    @property
    def staged(self) -> PendingApproval | None:
        if self.gate is not None and self.gate.staged:
            return self.gate.pending
        return None


class SessionContext:
    """Owns every piece of per-session state and the lock that serializes it.

    Ticks never overlap: a tick that finds the lock held is dropped.
    Explicit approve/reject calls wait for the lock instead.
    """

    def __init__(
        self,
        session_id: str,
        handle: SessionHandle,
        supervisor: ProcessSupervisor,
        config: EngineConfig | None = None,
        history: HistoryLog | None = None,
        suggester: CompletionProvider | None = None,
        on_epoch_closed: EpochCallback | None = None,
        on_error: ErrorCallback | None = None,
        bus: MessageBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.session_id = session_id
        self.handle = handle
        self.supervisor = supervisor
        self.config = config or EngineConfig()
        self.suggester = suggester
        self.on_epoch_closed = on_epoch_closed
        self.on_error = on_error
        self.bus = bus or MessageBus()

        self.busy_detector = BusyDetector(self.config.busy_markers)
        self.selector = ContentSelector(
            self.busy_detector,
            self.config.content_start_markers,
            self.config.content_end_patterns,
        )
        self.accumulator = TranscriptAccumulator(self.selector)
        self.tracker = EpochTracker(
            self.accumulator,
            self.busy_detector,
            quiet_window_s=self.config.quiet_window_s,
            clock=clock,
        )
        if history is None:
            history = HistoryLog(self.config.history_limit, clock=wall_clock)
        self.history = history
        self.limiter = RateLimiter(self.config.min_dispatch_interval_s, clock=clock)
        self.gate = ResponseGate(self.limiter, self.history, clock=wall_clock)
        self.dispatcher = Dispatcher(
            session_id,
            supervisor,
            handle,
            self.gate,
            self.limiter,
            self.tracker,
            self.accumulator,
            self.history,
            log_length=lambda: self._full_length,
            inject_timeout_s=self.config.inject_timeout_s,
        )

        self.auto_refresh = True
        self.closed = False
        self.last_error: str = ""
        self.last_dispatch: DispatchResult | None = None
        self._full_length = 0
        self._lock = asyncio.Lock()
        self._suggestion_task: asyncio.Task[None] | None = None

    # ── Configuration ────────────────────────────────────────────────

    def apply_config(self, config: EngineConfig) -> None:
        """Swap tunables in place. Accumulated epoch state is kept."""
        self.config = config
        self.busy_detector = BusyDetector(config.busy_markers)
        self.selector = ContentSelector(
            self.busy_detector,
            config.content_start_markers,
            config.content_end_patterns,
        )
        self.accumulator.selector = self.selector
        self.tracker.busy_detector = self.busy_detector
        self.tracker.quiet_window_s = config.quiet_window_s
        self.limiter.min_interval_s = config.min_dispatch_interval_s
        self.dispatcher.inject_timeout_s = config.inject_timeout_s
        self.history.resize(config.history_limit)
        logger.debug(f"[session] {self.session_id}: config updated")

    # ── Pipeline ─────────────────────────────────────────────────────

    @property
    def last_epoch_result(self) -> dict[str, str] | None:
        """The outstanding approval as ``{filtered_content, raw_content}``."""
        pending = self.gate.pending
        return pending.as_dict() if pending is not None else None

    async def tick(self) -> TickResult | None:
        """Run one poll tick. Returns None when the tick was dropped."""
        if self.closed:
            return None
        if self._lock.locked():
            logger.debug(f"[poller] {self.session_id}: tick in flight, dropping")
            return None
        async with self._lock:
            await self._process_bus()
            raw = await self._capture()
            if raw is None:
                return TickResult(busy=False, state=self.tracker.state, captured=False)
            return self.process_frame(raw)

    def process_frame(self, raw: str) -> TickResult:
        """Push one raw capture through the engine. Caller holds the lock."""
        frame = parse_frame(raw, display_limit=self.config.display_limit)
        self._full_length = len(frame.full)
        busy = self.busy_detector.is_busy(frame.display)

        closed = self.tracker.step(frame.display, frame.full)
        if closed is None:
            return TickResult(busy=busy, state=self.tracker.state)

        gate_result: GateResult | None = None
        if closed.awaiting_input:
            gate_result = self.gate.request_approval(closed.lines)
        else:
            logger.debug(f"[session] {self.session_id}: tail {closed.tail!r} is not a prompt, epoch discarded")

        result = TickResult(
            busy=busy,
            state=self.tracker.state,
            closed_epoch=closed,
            gate=gate_result,
        )
        self._fire_epoch_closed(result.staged)
        return result

    async def _capture(self) -> str | None:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.supervisor.capture_pane, self.handle),
                timeout=self.config.capture_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[poller] {self.session_id}: capture timed out after {self.config.capture_timeout_s:.1f}s"
            )
        except (RuntimeError, OSError) as exc:
            logger.warning(f"[poller] {self.session_id}: capture failed: {exc}")
        return None

    # ── Approvals ────────────────────────────────────────────────────

    async def approve(self, text: str | None = None) -> DispatchResult:
        async with self._lock:
            return await self._dispatch(self.gate.pending, text)

    async def reject(self) -> bool:
        async with self._lock:
            return self.dispatcher.reject(self.gate.pending)

    async def process_requests(self) -> list[DispatchResult]:
        """Handle queued completion results now instead of on the next tick."""
        async with self._lock:
            return await self._process_bus()

    def request_suggestion(self) -> asyncio.Task[None] | None:
        """Ask the completion provider for input in a separate task."""
        pending = self.gate.pending
        if pending is None or self.suggester is None:
            return None
        if self._suggestion_task is not None and not self._suggestion_task.done():
            logger.debug(f"[completion] {self.session_id}: suggestion already in flight")
            return self._suggestion_task
        self._suggestion_task = asyncio.create_task(self._suggest(pending))
        return self._suggestion_task

    async def _suggest(self, pending: PendingApproval) -> None:
        assert self.suggester is not None
        message: DispatchRequest | SuggestionFailed
        try:
            text = await asyncio.wait_for(
                self.suggester.suggest_next_input(pending.filtered_content),
                timeout=self.config.completion_timeout_s,
            )
        except asyncio.TimeoutError:
            message = SuggestionFailed(self.session_id, pending.id, "completion timed out")
        except Exception as exc:
            logger.warning(f"[completion] {self.session_id}: suggestion failed: {exc}")
            message = SuggestionFailed(self.session_id, pending.id, str(exc))
        else:
            message = DispatchRequest(self.session_id, pending.id, text)
        await self.bus.publish(message)

    async def _process_bus(self) -> list[DispatchResult]:
        results: list[DispatchResult] = []
        for message in self.bus.drain():
            if message.session_id != self.session_id:
                logger.warning(f"[bus] {self.session_id}: message for {message.session_id} ignored")
                continue
            if isinstance(message, SuggestionFailed):
                self._report_error(message.error)
                continue

            pending = self.gate.pending
            if pending is None or pending.id != message.pending_id:
                logger.debug(f"[bus] {self.session_id}: suggestion for stale approval {message.pending_id}")
                continue
            if message.text.strip():
                results.append(await self._dispatch(pending, message.text))
            else:
                logger.info(f"[completion] {self.session_id}: empty suggestion, rejecting")
                self.dispatcher.reject(pending)
        return results

    async def _dispatch(self, pending: PendingApproval | None, text: str | None) -> DispatchResult:
        result = await self.dispatcher.approve(pending, text)
        self.last_dispatch = result
        if result.error:
            self._report_error(result.error)
        return result

    # ── Callbacks ────────────────────────────────────────────────────

    def _fire_epoch_closed(self, pending: PendingApproval | None) -> None:
        if self.on_epoch_closed is None:
            return
        try:
            self.on_epoch_closed(self.session_id, pending)
        except Exception:
            logger.exception(f"[session] {self.session_id}: epoch callback failed")

    def _report_error(self, error: str) -> None:
        self.last_error = error
        logger.warning(f"[session] {self.session_id}: {error}")
        if self.on_error is None:
            return
        try:
            self.on_error(self.session_id, error)
        except Exception:
            logger.exception(f"[session] {self.session_id}: error callback failed")

    # ── Lifecycle ────────────────────────────────────────────────────

    def cancel_timers(self) -> None:
        self.tracker.cancel_timer()

    def close(self) -> None:
        """Release all per-session state."""
        self.closed = True
        if self._suggestion_task is not None and not self._suggestion_task.done():
            self._suggestion_task.cancel()
        self._suggestion_task = None
        self.tracker.reset()
        self.gate.clear()
        self.bus.drain()
