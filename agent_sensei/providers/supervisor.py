"""Process supervision: driven CLI agents run inside tmux sessions."""

from __future__ import annotations

import shlex
import subprocess
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from loguru import logger

from agent_sensei.engine.normalizer import TMUX_SEPARATOR

# Symbolic key names accepted by send_control, mapped to tmux key names.
CONTROL_KEYS: dict[str, str] = {
    "enter": "Enter",
    "ctrl-c": "C-c",
    "ctrl-d": "C-d",
    "escape": "Escape",
    "tab": "Tab",
    "backspace": "BSpace",
    "up": "Up",
    "down": "Down",
}


@dataclass
class SessionHandle:
    """One supervised tmux session."""

    session_id: str
    name: str
    working_directory: str
    log_path: Path
    created_at: float = field(default_factory=time.time)


class ProcessSupervisor(Protocol):
    """Minimal process supervision contract."""

    def spawn_session(self, working_directory: str) -> SessionHandle:
        """Start the driven process in a new session."""

    def capture_pane(self, handle: SessionHandle) -> str:
        """Return the raw frame, display and full log joined by the separator."""

    def send_keys(self, handle: SessionHandle, text: str) -> None:
        """Type literal characters."""

    def send_control(self, handle: SessionHandle, key: str) -> None:
        """Press a named key such as ``enter`` or ``ctrl-c``."""

    def kill_session(self, handle: SessionHandle) -> None:
        """Stop the session and release its resources."""


class TmuxSupervisor:
    """Drive sessions through the tmux CLI.

    The visible pane comes from ``capture-pane``.  The full output history is
    piped by ``pipe-pane`` into a per-session log file.
    """

    def __init__(
        self,
        command: str = "opencode",
        session_prefix: str = "sensei",
        log_dir: str | Path = "/tmp",
        scrollback_lines: int = 1000,
        chunk_size: int = 50,
        chunk_delay_s: float = 0.01,
        command_timeout_s: float = 3.0,
    ) -> None:
        self.command = command
        self.session_prefix = session_prefix
        self.log_dir = Path(log_dir).expanduser()
        self.scrollback_lines = max(0, int(scrollback_lines))
        self.chunk_size = max(1, int(chunk_size))
        self.chunk_delay_s = max(0.0, float(chunk_delay_s))
        self.command_timeout_s = command_timeout_s

    def _run_tmux(self, args: list[str]) -> tuple[int, str, str]:
        try:
            proc = subprocess.run(
                ["tmux", *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.command_timeout_s,
                check=False,
            )
            return int(proc.returncode), (proc.stdout or ""), (proc.stderr or "")
        except subprocess.TimeoutExpired:
            return 124, "", "tmux timeout"
        except OSError as exc:
            return 1, "", str(exc)

    def _check(self, args: list[str], action: str) -> str:
        code, out, err = self._run_tmux(args)
        if code != 0:
            raise RuntimeError(f"tmux {action} failed: {err.strip() or f'exit {code}'}")
        return out

    def spawn_session(self, working_directory: str) -> SessionHandle:
        session_id = uuid.uuid4().hex[:8]
        name = f"{self.session_prefix}-{session_id}"
        workdir = str(Path(working_directory).expanduser())
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_path = self.log_dir / f"tmux-{name}.log"
        log_path.write_text("", encoding="utf-8")

        self._check(["new-session", "-d", "-s", name, "-c", workdir, self.command], "new-session")
        try:
            self._check(
                ["pipe-pane", "-t", name, "-o", f"cat >> {shlex.quote(str(log_path))}"],
                "pipe-pane",
            )
        except RuntimeError:
            self._run_tmux(["kill-session", "-t", name])
            log_path.unlink(missing_ok=True)
            raise

        logger.info(f"[tmux] Spawned {name} in {workdir}: {self.command}")
        return SessionHandle(
            session_id=session_id,
            name=name,
            working_directory=workdir,
            log_path=log_path,
        )

    def capture_pane(self, handle: SessionHandle) -> str:
        display = self._check(
            [
                "capture-pane",
                "-t",
                handle.name,
                "-p",
                "-e",
                "-S",
                f"-{self.scrollback_lines}",
                "-E",
                "-",
            ],
            "capture-pane",
        ).rstrip("\n")
        try:
            log_text = handle.log_path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return display
        return f"{display}{TMUX_SEPARATOR}{log_text}"

    def send_keys(self, handle: SessionHandle, text: str) -> None:
        """Type ``text`` literally, in chunks with a short pause between them."""
        chunks = [text[i : i + self.chunk_size] for i in range(0, len(text), self.chunk_size)]
        for index, chunk in enumerate(chunks):
            if index and self.chunk_delay_s:
                time.sleep(self.chunk_delay_s)
            self._check(["send-keys", "-t", handle.name, "-l", chunk], "send-keys")
        logger.debug(f"[tmux] {handle.name}: sent {len(text)} chars in {len(chunks)} chunk(s)")

    def send_control(self, handle: SessionHandle, key: str) -> None:
        tmux_key = CONTROL_KEYS.get(key.strip().lower())
        if tmux_key is None:
            raise ValueError(f"Unknown control key: {key!r}")
        self._check(["send-keys", "-t", handle.name, tmux_key], "send-keys")

    def kill_session(self, handle: SessionHandle) -> None:
        self._run_tmux(["pipe-pane", "-t", handle.name])
        handle.log_path.unlink(missing_ok=True)
        code, _, err = self._run_tmux(["kill-session", "-t", handle.name])
        if code != 0 and not _session_gone(err):
            raise RuntimeError(f"tmux kill-session failed: {err.strip()}")
        logger.info(f"[tmux] Killed {handle.name}")


def _session_gone(stderr: str) -> bool:
    text = stderr.lower()
    return "session not found" in text or "can't find session" in text or "no server running" in text
