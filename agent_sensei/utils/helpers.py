"""Small filesystem helpers."""

from __future__ import annotations

from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Create ``path`` (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path(data_dir: str = "~/.agent-sensei") -> Path:
    """Expanded data directory, created on first use."""
    return ensure_dir(Path(data_dir).expanduser())


def get_state_path(data_dir: str = "~/.agent-sensei") -> Path:
    """Location of the persisted session state document."""
    return get_data_path(data_dir) / "state.json"
