"""Per-session orchestration around the engine."""

from agent_sensei.session.context import SessionContext, TickResult
from agent_sensei.session.poller import SessionPoller
from agent_sensei.session.registry import SessionNotFoundError, SessionRegistry
from agent_sensei.session.store import JsonFileStore, KeyValueStore, MemoryStore, session_key

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionContext",
    "SessionNotFoundError",
    "SessionPoller",
    "SessionRegistry",
    "TickResult",
    "session_key",
]
