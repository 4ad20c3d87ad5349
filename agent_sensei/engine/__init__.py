"""Terminal-output reconciliation and automated-response engine."""

from agent_sensei.engine.accumulator import TranscriptAccumulator, looks_complete, reconcile
from agent_sensei.engine.busy import DEFAULT_BUSY_MARKERS, BusyDetector
from agent_sensei.engine.dispatcher import DispatchResult, Dispatcher
from agent_sensei.engine.epoch import ClosedEpoch, EpochState, EpochTracker, GenerationEpoch
from agent_sensei.engine.filters import ContentSelector, filter_epoch_content
from agent_sensei.engine.gate import (
    GateDecision,
    GateResult,
    PendingApproval,
    RateLimiter,
    ResponseGate,
)
from agent_sensei.engine.history import HistoryEntry, HistoryKind, HistoryLog
from agent_sensei.engine.normalizer import Frame, normalize, normalize_line, parse_frame
from agent_sensei.engine.prompt import looks_like_input_prompt

__all__ = [
    "BusyDetector",
    "ClosedEpoch",
    "ContentSelector",
    "DEFAULT_BUSY_MARKERS",
    "DispatchResult",
    "Dispatcher",
    "EpochState",
    "EpochTracker",
    "Frame",
    "GateDecision",
    "GateResult",
    "GenerationEpoch",
    "HistoryEntry",
    "HistoryKind",
    "HistoryLog",
    "PendingApproval",
    "RateLimiter",
    "ResponseGate",
    "TranscriptAccumulator",
    "filter_epoch_content",
    "looks_complete",
    "looks_like_input_prompt",
    "normalize",
    "normalize_line",
    "parse_frame",
    "reconcile",
]
