"""Thread-safe registry of live reconciliation sessions with idle TTL.

WHY: The HTTP service holds one engine per meeting being captured.
Capture clients come and go; a session nobody has touched for hours is
abandoned and must not pin memory forever.

HOW: Two components work together:
  LiveSession      — dataclass holding the handle, engine and timing
  SessionRegistry  — dict-based store with create/get/list/delete and
                     idle-TTL cleanup, guarded by a threading.Lock

RULES:
- All registry mutations are protected by threading.Lock
- Handles are UUID4 hex strings generated at creation time
- get() bumps last_activity; list_sessions() does not
- create() raises ValueError when max_sessions is reached
- Expiry is measured from last_activity
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from caption_reconciler.config import MAX_LIVE_SESSIONS, SESSION_IDLE_TTL
from caption_reconciler.core.engine import ReconciliationEngine
from caption_reconciler.core.session import MeetingInfo

logger = logging.getLogger(__name__)


@dataclass
class LiveSession:
    """One meeting being reconciled by the service.

    RULES:
    - id: UUID4 hex, used in URLs
    - engine: owns all transcript state for the meeting
    - created_at / last_activity: epoch seconds
    """

    id: str
    engine: ReconciliationEngine
    meeting: MeetingInfo
    created_at: float
    last_activity: float


class SessionRegistry:
    """Thread-safe in-memory registry of live sessions."""

    def __init__(
        self,
        ttl_seconds: float = SESSION_IDLE_TTL,
        max_sessions: int = MAX_LIVE_SESSIONS,
        engine_factory: Callable[[], ReconciliationEngine] = ReconciliationEngine,
    ) -> None:
        self._sessions: Dict[str, LiveSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._engine_factory = engine_factory

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, meeting: MeetingInfo) -> LiveSession:
        """Create a live session with a fresh engine.

        The meeting header is not added here; callers restore stored
        content first and then call engine.start_meeting().
        """
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of live sessions ({}) reached".format(self.max_sessions)
                )
            now = time.time()
            live = LiveSession(
                id=uuid.uuid4().hex,
                engine=self._engine_factory(),
                meeting=meeting,
                created_at=now,
                last_activity=now,
            )
            self._sessions[live.id] = live

        logger.info("Created live session %s for meeting %r", live.id, meeting.title)
        return live

    def get(self, handle: str) -> Optional[LiveSession]:
        with self._lock:
            live = self._sessions.get(handle)
            if live is not None:
                live.last_activity = time.time()
            return live

    def list_sessions(self) -> List[LiveSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def delete(self, handle: str) -> bool:
        with self._lock:
            live = self._sessions.pop(handle, None)
        if live is None:
            return False
        logger.info("Deleted live session %s", handle)
        return True

    def cleanup_expired(self) -> int:
        """Remove sessions idle for longer than the TTL."""
        now = time.time()
        with self._lock:
            expired = [
                self._sessions.pop(handle)
                for handle, live in list(self._sessions.items())
                if now - live.last_activity > self._ttl_seconds
            ]
        for live in expired:
            logger.info("Expired live session %s (idle %.0fs)", live.id, now - live.last_activity)
        return len(expired)
