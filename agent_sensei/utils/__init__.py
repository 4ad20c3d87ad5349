"""Utility functions for agent-sensei."""

from agent_sensei.utils.helpers import ensure_dir, get_data_path, get_state_path

__all__ = ["ensure_dir", "get_data_path", "get_state_path"]
