"""Fixed-interval pull loop driving one session."""

from __future__ import annotations

import asyncio

from loguru import logger

from agent_sensei.session.context import SessionContext


class SessionPoller:
    """Calls ``context.tick()`` every ``interval_s`` until stopped.

    The stop event is checked at the top of every iteration.
    """

    def __init__(self, context: SessionContext, interval_s: float = 0.1) -> None:
        self.context = context
        self.interval_s = interval_s
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self.running:
            assert self._task is not None
            return self._task
        self._stop.clear()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def run(self) -> None:
        sid = self.context.session_id
        logger.debug(f"[poller] {sid}: started, interval {self.interval_s:.3f}s")
        while not self._stop.is_set():
            try:
                await self.context.tick()
            except Exception:
                logger.exception(f"[poller] {sid}: tick failed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                pass
        logger.debug(f"[poller] {sid}: stopped")

    async def stop(self) -> None:
        """Signal the loop and wait for the in-flight tick to finish."""
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            await task
