"""Ask a chat model what to type into the terminal next."""

from __future__ import annotations

import re

from loguru import logger

from agent_sensei.providers.base import LLMProvider

DEFAULT_SYSTEM_PROMPT = """You are an AI assistant helping with a development project called "{project_name}" at path "{project_path}".
You are monitoring terminal output and should provide helpful responses when needed.

Rules:
1. Only respond with executable commands or very brief answers
2. If the terminal is asking a yes/no question, respond with just "y" or "n"
3. If the terminal needs a selection, respond with just the number or letter
4. If it's showing an error, suggest a fix command
5. If it's waiting for input but context is unclear, respond with "?" to get more info
6. Never use backticks or markdown formatting - just plain text
7. Keep responses under 100 characters when possible

Context shows new terminal output since monitoring started."""

USER_PROMPT_TEMPLATE = "Terminal output:\n{context}\n\nWhat should I type next? (or empty if no action needed)"

_FENCED_BLOCK_RE = re.compile(r"```[^`]*```")


def clean_suggestion(text: str | None) -> str:
    """Drop fenced blocks and stray backticks from a model answer."""
    if not text:
        return ""
    return _FENCED_BLOCK_RE.sub("", text).replace("`", "").strip()


class TerminalSuggester:
    """CompletionProvider backed by a chat model."""

    def __init__(
        self,
        provider: LLMProvider,
        project_name: str = "",
        project_path: str = "",
        model: str | None = None,
        system_prompt: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> None:
        self.provider = provider
        self.project_name = project_name
        self.project_path = project_path
        self.model = model
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_messages(self, context: str) -> list[dict[str, str]]:
        system = self.system_prompt or DEFAULT_SYSTEM_PROMPT.format(
            project_name=self.project_name or "project",
            project_path=self.project_path or ".",
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": USER_PROMPT_TEMPLATE.format(context=context)},
        ]

    async def suggest_next_input(self, context: str) -> str:
        logger.debug(f"[completion] Asking for next input ({len(context)} chars of context)")
        response = await self.provider.chat(
            self.build_messages(context),
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        suggestion = clean_suggestion(response.content)
        logger.info(f"[completion] Suggestion: {suggestion[:80]!r}")
        return suggestion
