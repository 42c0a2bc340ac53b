from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Optional

from hrms.core.config import settings
from hrms.repositories.remote_store import StoreFactory
from hrms.services.session_manager import SessionManager


logger = logging.getLogger(__name__)


class SessionRegistry:
    """Keeps one ``SessionManager`` per browser session key.

    Each manager gets a store client of its own so signed-in state never leaks
    between browsers. Entries idle for longer than ``idle_timeout`` seconds are
    closed, and at most ``max_sessions`` are held; the least recently used
    entry goes first.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        failure_policy: str = settings.profile_failure_policy,
        max_sessions: int = settings.max_sessions,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.store_factory = store_factory
        self.failure_policy = failure_policy
        self.max_sessions = max_sessions
        # A key outlives its cookie only as long as the cookie is valid.
        self.idle_timeout = idle_timeout if idle_timeout is not None else settings.session_max_age_minutes * 60
        self._clock = clock
        self._managers: OrderedDict[str, SessionManager] = OrderedDict()
        self._last_used: dict[str, float] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def new_key() -> str:
        return secrets.token_urlsafe(32)

    def __contains__(self, key: str) -> bool:
        return key in self._managers

    def __len__(self) -> int:
        return len(self._managers)

    def __bool__(self) -> bool:
        return True

    def _touch(self, key: str) -> None:
        self._managers.move_to_end(key)
        self._last_used[key] = self._clock()

    def _pop(self, key: str) -> Optional[SessionManager]:
        self._last_used.pop(key, None)
        return self._managers.pop(key, None)

    async def _close(self, manager: SessionManager) -> None:
        await manager.close()
        await manager.store.close()

    async def _evict(self, keep: str) -> None:
        now = self._clock()
        expired = [
            key
            for key, used in self._last_used.items()
            if key != keep and now - used > self.idle_timeout
        ]
        for key in expired:
            await self._close(self._pop(key))
        while len(self._managers) > self.max_sessions:
            oldest = next(iter(self._managers))
            if oldest == keep:
                break
            await self._close(self._pop(oldest))
        if expired:
            logger.debug("Closed %d idle session manager(s)", len(expired))

    async def get(self, key: str) -> SessionManager:
        manager = self._managers.get(key)
        if manager is not None:
            self._touch(key)
            return manager

        async with self._lock:
            manager = self._managers.get(key)
            if manager is None:
                store = await self.store_factory()
                manager = SessionManager(store, failure_policy=self.failure_policy)
                await manager.initialize()
                self._managers[key] = manager
                logger.debug("Opened session manager (%d active)", len(self._managers))
            self._touch(key)
            await self._evict(keep=key)
        return manager

    def rekey(self, old_key: str, new_key: str) -> None:
        """Move a manager to a fresh key, e.g. after sign-in."""
        manager = self._pop(old_key)
        if manager is not None:
            self._managers[new_key] = manager
            self._touch(new_key)

    async def discard(self, key: str) -> None:
        manager = self._pop(key)
        if manager is None:
            return
        await self._close(manager)

    async def close_all(self) -> None:
        for key in list(self._managers):
            await self.discard(key)
