"""Configuration module for agent-sensei."""

from agent_sensei.config.loader import get_config_path, load_config, save_config
from agent_sensei.config.schema import CompletionConfig, Config, EngineConfig, SupervisorConfig

__all__ = [
    "CompletionConfig",
    "Config",
    "EngineConfig",
    "SupervisorConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
