"""Collaborators: tmux supervision and completion providers."""

from agent_sensei.providers.base import CompletionError, CompletionProvider, LLMProvider, LLMResponse
from agent_sensei.providers.openai_compat import OpenAICompatProvider
from agent_sensei.providers.suggester import TerminalSuggester, clean_suggestion
from agent_sensei.providers.supervisor import ProcessSupervisor, SessionHandle, TmuxSupervisor

__all__ = [
    "CompletionError",
    "CompletionProvider",
    "LLMProvider",
    "LLMResponse",
    "OpenAICompatProvider",
    "ProcessSupervisor",
    "SessionHandle",
    "TerminalSuggester",
    "TmuxSupervisor",
    "clean_suggestion",
]
