"""Tracks the live session schedulers of connected observers."""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from verdifi.domain.enums import SessionPhase
from verdifi.services.session_scheduler import SessionScheduler

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Registry of one SessionScheduler per connected observer.

    The registry only holds references for counting and shutdown; each
    scheduler still owns its own state.
    """

    def __init__(self) -> None:
        self._sessions: dict[UUID, SessionScheduler] = {}
        self._lock = asyncio.Lock()

    async def register(self, scheduler: SessionScheduler) -> None:
        async with self._lock:
            self._sessions[scheduler.session_id] = scheduler
        logger.info("Observer session %s registered (%d total)", scheduler.session_id, len(self._sessions))

    async def release(self, session_id: UUID) -> None:
        """Disconnect a session and wait for its loop to exit."""
        async with self._lock:
            scheduler = self._sessions.pop(session_id, None)
        if scheduler is None:
            return
        scheduler.disconnect()
        await scheduler.wait_closed()
        logger.info("Observer session %s released (%d remaining)", session_id, len(self._sessions))

    async def shutdown(self) -> None:
        """Disconnect every session, e.g. on application shutdown."""
        async with self._lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            await self.release(session_id)

    def summaries(self) -> list[dict]:
        return [s.session.summary() for s in self._sessions.values()]

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    @property
    def running_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.phase == SessionPhase.RUNNING)
