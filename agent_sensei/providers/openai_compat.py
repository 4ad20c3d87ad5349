"""OpenAI-compatible chat-completions provider over plain urllib."""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any

from loguru import logger

from agent_sensei.providers.base import CompletionError, LLMProvider, LLMResponse


class OpenAICompatProvider(LLMProvider):
    """Blocking HTTP request run off the event loop."""

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = "https://api.openai.com",
        endpoint: str = "/v1/chat/completions",
        default_model: str = "gpt-4o-mini",
        request_timeout_s: float = 60.0,
    ) -> None:
        super().__init__(api_key=api_key, api_base=(api_base or "").rstrip("/"))
        self.endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        self.default_model = default_model
        self.request_timeout_s = request_timeout_s

    def get_default_model(self) -> str:
        return self.default_model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> LLMResponse:
        payload: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        return await asyncio.to_thread(self._request, payload)

    def _request(self, payload: dict[str, Any]) -> LLMResponse:
        url = f"{self.api_base}{self.endpoint}"
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        req = urllib.request.Request(url=url, data=body, headers=headers, method="POST")
        logger.debug(f"[completion] POST {url} model={payload['model']}")

        try:
            with urllib.request.urlopen(req, timeout=self.request_timeout_s) as resp:
                raw = resp.read().decode("utf-8", errors="ignore")
        except urllib.error.HTTPError as exc:
            body_text = exc.read().decode("utf-8", errors="ignore")
            raise CompletionError(f"Completion API HTTP {exc.code}: {body_text or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise CompletionError(f"Completion API connection error: {exc.reason}") from exc
        except TimeoutError as exc:
            raise CompletionError("Completion API request timed out") from exc

        return self._parse_response(raw)

    def _parse_response(self, raw: str) -> LLMResponse:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CompletionError(f"Completion API returned invalid JSON: {raw[:200]}") from exc

        err = data.get("error") if isinstance(data, dict) else None
        if err:
            message = err.get("message") if isinstance(err, dict) else str(err)
            raise CompletionError(f"Completion API error: {message}")

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            return LLMResponse(content="")

        first = choices[0] if isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return LLMResponse(
            content=_normalize_content(message.get("content")),
            finish_reason=str(first.get("finish_reason") or "stop"),
            usage={k: int(v) for k, v in usage.items() if isinstance(v, int)},
        )


def _normalize_content(content: object) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
                continue
            if isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    parts.append(text)
        return "".join(parts)
    return ""
