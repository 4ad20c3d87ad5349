"""Message bus module for completion results re-entering the pipeline."""

from agent_sensei.bus.events import BusMessage, DispatchRequest, SuggestionFailed
from agent_sensei.bus.queue import MessageBus

__all__ = ["BusMessage", "DispatchRequest", "MessageBus", "SuggestionFailed"]
