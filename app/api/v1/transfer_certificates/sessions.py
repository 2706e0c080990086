"""In-process registry of open TC issuance sessions, one per operator screen."""

import logging
import time
from typing import Callable, Dict, Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import NotFoundError

from .guard import IssuanceSession

logger = logging.getLogger(__name__)


class IssuanceSessionStore:
    """
    Sessions idle for longer than `ttl_seconds` are evicted whenever a session is opened
    or looked up. A lookup refreshes the session's last-touched time.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: Dict[UUID, IssuanceSession] = {}
        self._last_touched: Dict[UUID, float] = {}
        self.ttl_seconds = settings.tc_session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_idle(self, now: float) -> None:
        expired = [sid for sid, touched in self._last_touched.items() if now - touched > self.ttl_seconds]
        for sid in expired:
            self._sessions.pop(sid, None)
            self._last_touched.pop(sid, None)
        if expired:
            logger.info("Evicted %d idle TC session(s)", len(expired))

    def open(self, school_id: str, academic_year: str) -> IssuanceSession:
        now = self._clock()
        self._evict_idle(now)
        session = IssuanceSession(school_id=school_id, academic_year=academic_year)
        self._sessions[session.session_id] = session
        self._last_touched[session.session_id] = now
        logger.info("Opened TC session %s (%s, %s)", session.session_id, school_id, academic_year)
        return session

    def get(self, session_id: UUID) -> IssuanceSession:
        now = self._clock()
        self._evict_idle(now)
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("TC session not found")
        self._last_touched[session_id] = now
        return session

    def close(self, session_id: UUID) -> None:
        self._last_touched.pop(session_id, None)
        if self._sessions.pop(session_id, None) is None:
            raise NotFoundError("TC session not found")


_store = IssuanceSessionStore()


def get_session_store() -> IssuanceSessionStore:
    return _store
