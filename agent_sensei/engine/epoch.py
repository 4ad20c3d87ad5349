"""Busy-to-idle cycle tracking.

An epoch opens when a busy marker first appears on screen and closes once
the screen has stayed idle for the quiet window.  The quiet window is a
deadline checked on each poll tick rather than a timer callback, so the
tracker stays a plain synchronous object that the session drives.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from loguru import logger

from agent_sensei.engine.accumulator import TranscriptAccumulator
from agent_sensei.engine.busy import BusyDetector
from agent_sensei.engine.prompt import looks_like_input_prompt


class EpochState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    DISAPPEARED_WAITING = "disappeared_waiting"


@dataclass
class GenerationEpoch:
    """One open busy-to-idle cycle."""

    start_offset: int
    lines: list[str] = field(default_factory=list)
    disappeared_at: float | None = None
    closed: bool = False


@dataclass(frozen=True)
class ClosedEpoch:
    """What an epoch produced, handed to the response gate."""

    lines: tuple[str, ...]
    start_offset: int
    tail: str
    awaiting_input: bool

    @property
    def content(self) -> str:
        return "\n".join(self.lines)


class EpochTracker:
    """State machine: idle -> generating -> disappeared-waiting -> idle."""

    def __init__(
        self,
        accumulator: TranscriptAccumulator,
        busy_detector: BusyDetector,
        quiet_window_s: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.accumulator = accumulator
        self.busy_detector = busy_detector
        self.quiet_window_s = max(0.0, float(quiet_window_s))
        self._clock = clock
        self._state = EpochState.IDLE
        self._epoch: GenerationEpoch | None = None
        self._deadline: float | None = None

    @property
    def state(self) -> EpochState:
        return self._state

    @property
    def epoch(self) -> GenerationEpoch | None:
        return self._epoch

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def step(self, display_lines: Sequence[str], full_lines: Sequence[str]) -> ClosedEpoch | None:
        """Advance one poll tick. Returns the closed epoch when one closes."""
        busy = self.busy_detector.is_busy(display_lines)

        if self._epoch is None:
            if busy:
                self._open()
                self._feed(full_lines)
            else:
                self.accumulator.skip(full_lines)
            return None

        if busy:
            if self._state is EpochState.DISAPPEARED_WAITING:
                logger.debug("[epoch] Busy again inside quiet window, resuming")
                self._epoch.disappeared_at = None
                self._deadline = None
                self._state = EpochState.GENERATING
            self._feed(full_lines)
            return None

        now = self._clock()
        if self._state is EpochState.GENERATING:
            self._epoch.disappeared_at = now
            self._deadline = now + self.quiet_window_s
            self._state = EpochState.DISAPPEARED_WAITING
            logger.debug(f"[epoch] Busy marker gone, quiet window {self.quiet_window_s:.2f}s")
            return None

        if self._deadline is None:
            # Timer was cancelled while waiting; arm it again.
            self._deadline = now + self.quiet_window_s
            return None
        if now < self._deadline:
            return None
        return self._close(full_lines)

    def cancel_timer(self) -> None:
        """Disarm the quiet window. Accumulated lines stay."""
        if self._deadline is not None:
            logger.debug("[epoch] Quiet window cancelled")
        self._deadline = None

    def reset(self) -> None:
        """Drop any open epoch and return to idle."""
        if self._epoch is not None:
            logger.debug(f"[epoch] Reset from {self._state.value} with {len(self._epoch.lines)} lines")
        self._epoch = None
        self._deadline = None
        self._state = EpochState.IDLE

    def _open(self) -> None:
        self._epoch = GenerationEpoch(start_offset=self.accumulator.high_water_mark)
        self._deadline = None
        self._state = EpochState.GENERATING
        logger.debug(f"[epoch] Opened at offset {self._epoch.start_offset}")

    def _feed(self, full_lines: Sequence[str]) -> None:
        assert self._epoch is not None
        self._epoch.lines = self.accumulator.ingest(full_lines, self._epoch.lines)

    def _close(self, full_lines: Sequence[str]) -> ClosedEpoch:
        assert self._epoch is not None
        self._feed(full_lines)
        epoch = self._epoch
        epoch.closed = True

        tail = full_lines[-1] if full_lines else ""
        closed = ClosedEpoch(
            lines=tuple(epoch.lines),
            start_offset=epoch.start_offset,
            tail=tail,
            awaiting_input=looks_like_input_prompt(full_lines),
        )
        self._epoch = None
        self._deadline = None
        self._state = EpochState.IDLE
        logger.info(
            f"[epoch] Closed: {len(closed.lines)} lines, awaiting_input={closed.awaiting_input}"
        )
        return closed
