"""Bounded async queue between completion tasks and the poller."""

from __future__ import annotations

import asyncio

from agent_sensei.bus.events import BusMessage


class MessageBus:
    """In-memory bounded queue, drained at the top of each poll tick."""

    def __init__(self, maxsize: int = 16) -> None:
        self._queue: asyncio.Queue[BusMessage] = asyncio.Queue(maxsize=maxsize)

    async def publish(self, message: BusMessage) -> None:
        await self._queue.put(message)

    def drain(self) -> list[BusMessage]:
        """Take every queued message, oldest first."""
        items: list[BusMessage] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items

    @property
    def size(self) -> int:
        return self._queue.qsize()
