from __future__ import annotations

from pathlib import Path

import pytest

from agent_sensei.engine.normalizer import TMUX_SEPARATOR
from agent_sensei.providers.supervisor import SessionHandle


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSupervisor:
    """Replays queued frames; the full log is every frame so far, one per line."""

    def __init__(self, frames: list[str] | None = None) -> None:
        self.frames: list[str] = list(frames or [])
        self.log: list[str] = []
        self.current = ""
        self.sent_keys: list[str] = []
        self.controls: list[str] = []
        self.spawned: list[str] = []
        self.killed: list[str] = []
        self.fail_capture = False
        self.fail_send = False
        self._counter = 0

    def spawn_session(self, working_directory: str) -> SessionHandle:
        self._counter += 1
        session_id = f"s{self._counter}"
        self.spawned.append(working_directory)
        return SessionHandle(
            session_id=session_id,
            name=f"sensei-{session_id}",
            working_directory=working_directory,
            log_path=Path("/nonexistent") / f"{session_id}.log",
        )

    def push(self, *frames: str) -> None:
        self.frames.extend(frames)

    def capture_pane(self, handle: SessionHandle) -> str:
        if self.fail_capture:
            raise RuntimeError("tmux capture-pane failed: no server running")
        if self.frames:
            self.current = self.frames.pop(0)
        self.log.append(self.current)
        return f"{self.current}{TMUX_SEPARATOR}" + "\n".join(self.log)

    def send_keys(self, handle: SessionHandle, text: str) -> None:
        if self.fail_send:
            raise RuntimeError("tmux send-keys failed: pane is dead")
        self.sent_keys.append(text)

    def send_control(self, handle: SessionHandle, key: str) -> None:
        if self.fail_send:
            raise RuntimeError("tmux send-keys failed: pane is dead")
        self.controls.append(key)

    def kill_session(self, handle: SessionHandle) -> None:
        self.killed.append(handle.session_id)


class FakeSuggester:
    def __init__(self, answer: str = "y", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.contexts: list[str] = []

    async def suggest_next_input(self, context: str) -> str:
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def handle(supervisor: FakeSupervisor) -> SessionHandle:
    return supervisor.spawn_session("/work/project")
