"""In-memory session store with inactivity expiry and per-session locks."""

import asyncio
import logging
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from concierge.config import settings
from concierge.schemas.session_schema import Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Holds conversation sessions keyed by session id.

    Sessions idle for longer than ``ttl_minutes`` are dropped on access.
    When ``max_sessions`` is reached the least recently used idle session
    is evicted. ``lock(session_id)`` serialises turns of one conversation;
    a session with a turn running or queued is never evicted and its lock
    is never dropped. While every session is busy the store may
    run over the limit, and it shrinks back as turns finish.
    """

    def __init__(
        self,
        ttl_minutes: Optional[int] = None,
        max_sessions: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        cfg = settings.orchestration
        self._ttl = timedelta(minutes=ttl_minutes or cfg.session_ttl_minutes)
        self._max_sessions = max_sessions or cfg.max_active_sessions
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: "OrderedDict[str, Session]" = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}
        # Turns holding or waiting for each session lock.
        self._busy: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: Session) -> bool:
        return self._clock() - session.updated_at > self._ttl

    def is_busy(self, session_id: str) -> bool:
        return self._busy.get(session_id, 0) > 0

    def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if self._expired(session):
            logger.info("Session %s expired after inactivity", session_id)
            self._discard(session_id)
            return None
        self._sessions.move_to_end(session_id)
        return session

    def get_or_create(self, session_id: str, restaurant_id: str) -> Session:
        """Return the live session, starting a fresh one if absent, expired or for another venue."""
        session = self.get(session_id)
        if session is not None and session.restaurant_id == restaurant_id:
            return session

        self.cleanup()
        self._sessions.pop(session_id, None)
        self._evict_idle(self._max_sessions - 1)

        session = Session(
            session_id=session_id,
            restaurant_id=restaurant_id,
            updated_at=self._clock(),
        )
        self._sessions[session_id] = session
        logger.info("Session %s started for restaurant %s", session_id, restaurant_id)
        return session

    def touch(self, session: Session) -> None:
        """Refresh a stored session. A session no longer held is left out."""
        session.updated_at = self._clock()
        if self._sessions.get(session.session_id) is session:
            self._sessions.move_to_end(session.session_id)

    def cleanup(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        expired = [
            sid for sid, s in self._sessions.items()
            if self._expired(s) and not self.is_busy(sid)
        ]
        for sid in expired:
            self._discard(sid)
        if expired:
            logger.info("Cleaned up %d expired sessions", len(expired))
        return len(expired)

    def _evict_idle(self, limit: int) -> None:
        """Drop least recently used idle sessions until at most ``limit`` remain."""
        idle = [sid for sid in self._sessions if not self.is_busy(sid)]
        while len(self._sessions) > limit and idle:
            evicted = idle.pop(0)
            self._discard(evicted)
            logger.warning("Session limit reached, evicted %s", evicted)
        if len(self._sessions) > limit:
            logger.warning(
                "Session limit reached with %d busy sessions, none evicted", len(self._sessions)
            )

    def _discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        if not self.is_busy(session_id):
            self._locks.pop(session_id, None)

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the per-session lock for the duration of one turn."""
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._busy[session_id] = self._busy.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._busy[session_id] -= 1
            if not self._busy[session_id]:
                del self._busy[session_id]
                if session_id not in self._sessions:
                    self._locks.pop(session_id, None)
                self._evict_idle(self._max_sessions)
