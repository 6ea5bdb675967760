"""Session store contract and the shared save/resume rules.

WHY: The recorder, CLI and HTTP service persist sessions the same way
regardless of the backend. Resume selection and the "never shrink a
buffer" guard are policy, not storage detail, so they live here once.

HOW: SessionStore is an ABC with four primitive operations (save, load,
list_sessions, delete). load_most_recent_matching() and cleanup_expired()
are built on top of them. guard_regression() merges an incoming session
with the stored one before a backend writes it.

RULES:
- save() returns the session as actually stored (after the guard)
- Backends raise StorageError for any I/O or decoding failure
- Resume: exact meeting_id match, newest updated_at first, first session
  with content, and only if updated within max_age_s
- Expiry is measured from created_at
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import List, Optional

from caption_reconciler.config import CACHE_MAX_AGE, RESUME_WINDOW
from caption_reconciler.core.session import BUFFER_FIELDS, Session

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a session store cannot read or write.

    WHY: Callers fall back to the ContentCache on any store failure and
    should not need to know which backend or OS error was involved.

    RULES:
    - The original exception is chained via ``raise ... from``
    """


def line_count(text: str) -> int:
    return len(text.split("\n")) if text else 0


def guard_regression(existing: Optional[Session], incoming: Session) -> Session:
    """Apply the regression guard to a session about to be saved.

    HOW: Keeps the stored created_at. For each buffer, if the stored text
    has more lines than the incoming text, the stored text is kept.

    RULES:
    - Equal line counts → incoming wins (last write wins)
    - An empty incoming buffer never replaces a non-empty stored one
    """
    if existing is None:
        return incoming

    updates = {}
    if existing.created_at:
        updates["created_at"] = existing.created_at

    for name in BUFFER_FIELDS:
        stored = getattr(existing, name)
        fresh = getattr(incoming, name)
        if stored and line_count(fresh) < line_count(stored):
            logger.info(
                "Preserving existing %s content for %s (%d lines vs %d lines)",
                name, incoming.session_id, line_count(stored), line_count(fresh),
            )
            updates[name] = stored

    return replace(incoming, **updates)


class SessionStore(ABC):
    """Abstract base for session persistence backends.

    To add a backend:
    1. Subclass SessionStore
    2. Implement save, load, list_sessions and delete
    3. Raise StorageError on failure
    """

    @abstractmethod
    def save(self, session: Session) -> Session:
        """Persist a session, applying guard_regression() against the stored copy."""

    @abstractmethod
    def load(self, session_id: str) -> Optional[Session]:
        """Return the stored session, or None if unknown."""

    @abstractmethod
    def list_sessions(self) -> List[Session]:
        """Return every stored session, newest updated_at first."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session; returns False if it did not exist."""

    def load_most_recent_matching(
        self,
        meeting_id: str,
        max_age_s: float = RESUME_WINDOW,
        now: Optional[float] = None,
    ) -> Optional[Session]:
        """Find the session to resume for a meeting.

        Returns None when no session for the meeting has content, or when
        the newest such session is older than ``max_age_s``.
        """
        now = time.time() if now is None else now
        matches = [s for s in self.list_sessions() if s.meeting_id == meeting_id]
        matches.sort(key=lambda s: s.updated_at or s.created_at, reverse=True)
        logger.info("Found %d sessions with meeting id %r", len(matches), meeting_id)

        candidate = next((s for s in matches if s.has_content()), None)
        if candidate is None:
            return None

        age = now - (candidate.updated_at or candidate.created_at)
        if age > max_age_s:
            logger.info(
                "Newest session %s is too old to resume (%.0f minutes)",
                candidate.session_id, age / 60,
            )
            return None
        return candidate

    def cleanup_expired(self, max_age_s: float = CACHE_MAX_AGE, now: Optional[float] = None) -> int:
        """Delete sessions created more than ``max_age_s`` ago."""
        now = time.time() if now is None else now
        removed = 0
        for session in self.list_sessions():
            if now - session.created_at > max_age_s:
                if self.delete(session.session_id):
                    logger.info("Cleaned up old session %s", session.session_id)
                    removed += 1
        return removed
