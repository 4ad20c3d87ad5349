"""Config file loading and saving. Keys are camelCase on disk."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from agent_sensei.config.schema import Config

_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


def get_config_path() -> Path:
    """Default config file location."""
    return Path.home() / ".agent-sensei" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load config from disk, falling back to defaults when missing or broken."""
    config_path = path or get_config_path()
    if not config_path.exists():
        return Config()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
        return Config.model_validate(convert_keys(data))
    except (json.JSONDecodeError, OSError, ValidationError) as exc:
        logger.warning(f"[config] Failed to load {config_path}: {exc}; using defaults")
        return Config()


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write config to disk as camelCase JSON."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    return config_path


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case, recursively."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase, recursively."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)
