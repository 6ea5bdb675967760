"""In-memory SessionStore for tests and the HTTP service without a disk."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional

from caption_reconciler.core.session import Session
from caption_reconciler.storage.base import SessionStore, guard_regression


class MemorySessionStore(SessionStore):
    """Dict-backed store; sessions are copied in and out."""

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def save(self, session: Session) -> Session:
        with self._lock:
            stored = guard_regression(self._sessions.get(session.session_id), session)
            self._sessions[session.session_id] = replace(stored)
            return stored

    def load(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return replace(session) if session is not None else None

    def list_sessions(self) -> List[Session]:
        with self._lock:
            sessions = [replace(s) for s in self._sessions.values()]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None
