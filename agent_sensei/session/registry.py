"""Session registry: every per-session map lives on one explicit object."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from loguru import logger

from agent_sensei.config.schema import EngineConfig
from agent_sensei.engine import DispatchResult, HistoryEntry, HistoryLog
from agent_sensei.providers.base import CompletionProvider
from agent_sensei.providers.supervisor import ProcessSupervisor
from agent_sensei.session.context import EpochCallback, ErrorCallback, SessionContext
from agent_sensei.session.poller import SessionPoller
from agent_sensei.session.store import KeyValueStore, MemoryStore, session_key


class SessionNotFoundError(KeyError):
    """No open session with this id."""


class SessionRegistry:
    """Open, drive and close supervised sessions."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        config: EngineConfig | None = None,
        store: KeyValueStore | None = None,
        suggester: CompletionProvider | None = None,
        on_epoch_closed: EpochCallback | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.supervisor = supervisor
        self.config = config or EngineConfig()
        self.store: KeyValueStore = store if store is not None else MemoryStore()
        self.suggester = suggester
        self._epoch_callback = on_epoch_closed
        self.on_error = on_error
        self._clock = clock
        self._contexts: dict[str, SessionContext] = {}
        self._pollers: dict[str, SessionPoller] = {}
        self._overrides: dict[str, dict[str, Any]] = {}

    @property
    def session_ids(self) -> list[str]:
        return list(self._contexts)

    def get(self, session_id: str) -> SessionContext:
        ctx = self._contexts.get(session_id)
        if ctx is None:
            raise SessionNotFoundError(session_id)
        return ctx

    async def open_session(
        self,
        working_directory: str,
        overrides: dict[str, Any] | None = None,
        auto_refresh: bool = True,
    ) -> SessionContext:
        """Spawn a supervised process and start watching it."""
        overrides = dict(overrides or {})
        # Validate before spawning so a bad override leaves nothing behind.
        config = self.config.with_overrides(**overrides)

        handle = await asyncio.to_thread(self.supervisor.spawn_session, working_directory)
        sid = handle.session_id

        stored = self.store.get(session_key(sid, "config"))
        if isinstance(stored, dict) and stored:
            overrides = {**stored, **overrides}
            try:
                config = self.config.with_overrides(**overrides)
            except ValueError:
                logger.warning(f"[registry] Stored overrides for {sid} are invalid, killing session")
                await asyncio.to_thread(self.supervisor.kill_session, handle)
                raise
        if overrides:
            self.store.set(session_key(sid, "config"), overrides)
        self._overrides[sid] = overrides

        history = HistoryLog(config.history_limit)
        persisted = self.store.get(session_key(sid, "history"))
        if isinstance(persisted, list):
            history.extend_from(persisted)
        history.set_listener(self._history_saver(sid))

        ctx = SessionContext(
            sid,
            handle,
            self.supervisor,
            config=config,
            history=history,
            suggester=self.suggester,
            on_epoch_closed=self._epoch_callback,
            on_error=self.on_error,
            clock=self._clock,
        )
        self._contexts[sid] = ctx
        logger.info(f"[registry] Opened session {sid} in {handle.working_directory}")

        ctx.auto_refresh = auto_refresh
        if auto_refresh:
            self._start_poller(ctx)
        return ctx

    async def close_session(self, session_id: str) -> None:
        ctx = self._contexts.pop(session_id, None)
        if ctx is None:
            raise SessionNotFoundError(session_id)
        poller = self._pollers.pop(session_id, None)
        if poller is not None:
            await poller.stop()
        ctx.close()
        self._overrides.pop(session_id, None)
        try:
            await asyncio.to_thread(self.supervisor.kill_session, ctx.handle)
        except (RuntimeError, OSError) as exc:
            logger.warning(f"[registry] Failed to kill {session_id}: {exc}")
        logger.info(f"[registry] Closed session {session_id}")

    async def close_all(self) -> None:
        for session_id in list(self._contexts):
            await self.close_session(session_id)

    async def set_auto_refresh(self, session_id: str, enabled: bool) -> None:
        """Pause or resume polling. Pausing keeps accumulated epoch state."""
        ctx = self.get(session_id)
        ctx.auto_refresh = enabled
        if enabled:
            self._start_poller(ctx)
            return
        poller = self._pollers.pop(session_id, None)
        if poller is not None:
            await poller.stop()
        ctx.cancel_timers()
        logger.info(f"[registry] Auto-refresh off for {session_id}")

    async def approve(self, session_id: str, text: str | None = None) -> DispatchResult | None:
        """Approve the pending response.

        Without ``text`` and with a suggester configured, a suggestion is
        requested and dispatched once it arrives; None is returned then.
        """
        ctx = self.get(session_id)
        if text is None and ctx.suggester is not None and ctx.gate.pending is not None:
            ctx.request_suggestion()
            return None
        return await ctx.approve(text)

    async def reject(self, session_id: str) -> bool:
        return await self.get(session_id).reject()

    def get_history(self, session_id: str) -> list[HistoryEntry]:
        return self.get(session_id).history.entries()

    def on_epoch_closed(self, session_id: str) -> dict[str, str] | None:
        return self.get(session_id).last_epoch_result

    def update_config(self, session_id: str, **overrides: Any) -> EngineConfig:
        """Apply and persist per-session overrides."""
        ctx = self.get(session_id)
        merged = {**self._overrides.get(session_id, {}), **overrides}
        config = self.config.with_overrides(**merged)
        ctx.apply_config(config)
        self._overrides[session_id] = merged
        self.store.set(session_key(session_id, "config"), merged)
        poller = self._pollers.get(session_id)
        if poller is not None:
            poller.interval_s = config.poll_interval_s
        return config

    def _start_poller(self, ctx: SessionContext) -> None:
        poller = self._pollers.get(ctx.session_id)
        if poller is None:
            poller = SessionPoller(ctx, ctx.config.poll_interval_s)
            self._pollers[ctx.session_id] = poller
        poller.start()

    def _history_saver(self, session_id: str) -> Callable[[HistoryLog], None]:
        def save(log: HistoryLog) -> None:
            self.store.set(session_key(session_id, "history"), log.to_list())

        return save
