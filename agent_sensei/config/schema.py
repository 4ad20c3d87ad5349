"""Configuration schema for agent-sensei."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from agent_sensei.engine.busy import DEFAULT_BUSY_MARKERS
from agent_sensei.engine.filters import DEFAULT_CONTENT_END_PATTERNS, DEFAULT_CONTENT_START_MARKERS


class EngineConfig(BaseModel):
    """Per-session engine tunables. Every field can be overridden per session."""

    model_config = ConfigDict(validate_assignment=True)

    busy_markers: list[str] = Field(default_factory=lambda: list(DEFAULT_BUSY_MARKERS))
    quiet_window_s: float = Field(default=2.0, ge=0.0)
    min_dispatch_interval_s: float = Field(default=60.0, ge=0.0)
    poll_interval_s: float = Field(default=0.1, gt=0.0)
    capture_timeout_s: float = Field(default=3.0, gt=0.0)
    inject_timeout_s: float = Field(default=10.0, gt=0.0)
    history_limit: int = Field(default=200, ge=1)
    display_limit: int = Field(default=500, ge=1)
    content_start_markers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTENT_START_MARKERS)
    )
    content_end_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTENT_END_PATTERNS)
    )
    completion_timeout_s: float = Field(default=60.0, gt=0.0)

    def with_overrides(self, **fields: Any) -> "EngineConfig":
        """Return a validated copy with ``fields`` replaced."""
        unknown = sorted(set(fields) - set(type(self).model_fields))
        if unknown:
            raise ValueError(f"Unknown engine setting(s): {', '.join(unknown)}")
        data = self.model_dump()
        data.update(fields)
        return type(self).model_validate(data)


class SupervisorConfig(BaseModel):
    """tmux session supervision."""

    command: str = "opencode"
    session_prefix: str = "sensei"
    log_dir: str = "/tmp"
    scrollback_lines: int = Field(default=1000, ge=0)
    chunk_size: int = Field(default=50, ge=1)
    chunk_delay_s: float = Field(default=0.01, ge=0.0)
    command_timeout_s: float = Field(default=3.0, gt=0.0)


class CompletionConfig(BaseModel):
    """OpenAI-compatible completion endpoint."""

    enabled: bool = False
    base_url: str = "https://api.openai.com"
    api_key: str = ""
    endpoint: str = "/v1/chat/completions"
    model: str = "gpt-4o-mini"
    request_timeout_s: float = 60.0
    max_tokens: int = 4096
    temperature: float = 0.3
    system_prompt: str = ""
    project_name: str = ""


class Config(BaseSettings):
    """Root configuration for agent-sensei."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    data_dir: str = "~/.agent-sensei"

    @property
    def data_path(self) -> Path:
        """Get expanded data directory path."""
        return Path(self.data_dir).expanduser()

    model_config = ConfigDict(
        env_prefix="AGENT_SENSEI_",
        env_nested_delimiter="__",
        extra="ignore",
    )
