"""Messages flowing from completion tasks back into a session's pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class DispatchRequest:
    """Text to send for a pending approval. Empty text means reject."""

    session_id: str
    pending_id: str
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SuggestionFailed:
    """The completion call for a pending approval failed."""

    session_id: str
    pending_id: str
    error: str
    timestamp: datetime = field(default_factory=datetime.now)


BusMessage = DispatchRequest | SuggestionFailed
