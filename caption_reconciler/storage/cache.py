"""Secondary content cache used when the session store fails.

WHY: If the primary store is unavailable (disk full, permissions, locked
volume) the last rendered buffers should still be recoverable after a
restart. The cache is deliberately simple: one entry per content type,
written at most once per update interval.

HOW: Each content type (transcript, chat, comments, combined) is kept as
{"content": ..., "timestamp": ...}. With a directory the entries are
JSON files; without one they live in memory. Entries older than max_age
are removed on load.

RULES:
- save() is throttled per content type unless force=True
- Cache failures are logged and never raised; the cache is best-effort
- load_session() returns None when no content type has a live entry
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from caption_reconciler.config import CACHE_MAX_AGE, CACHE_UPDATE_INTERVAL
from caption_reconciler.core.session import BUFFER_FIELDS, MeetingInfo, Session

logger = logging.getLogger(__name__)


class ContentCache:
    """Throttled, expiring cache of rendered session buffers."""

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        update_interval: float = CACHE_UPDATE_INTERVAL,
        max_age: float = CACHE_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory) if directory is not None else None
        self.update_interval = update_interval
        self.max_age = max_age
        self.clock = clock
        self._last_update: Dict[str, float] = {}
        self._memory: Dict[str, Dict[str, object]] = {}

    def save(self, content_type: str, content: str, force: bool = False) -> bool:
        """Cache one buffer; returns True if it was written."""
        now = self.clock()
        last = self._last_update.get(content_type)
        if not force and last is not None and now - last < self.update_interval:
            return False

        entry = {"content": content, "timestamp": now}
        try:
            self._put(content_type, entry)
        except (OSError, TypeError, ValueError):
            logger.exception("Cache save failed for %s", content_type)
            return False

        self._last_update[content_type] = now
        logger.debug("Saved %s to cache", content_type)
        return True

    def load(self, content_type: str) -> Optional[str]:
        try:
            entry = self._get(content_type)
        except (OSError, ValueError):
            logger.exception("Cache load failed for %s", content_type)
            return None
        if entry is None:
            return None

        age = self.clock() - float(entry.get("timestamp", 0))
        if age > self.max_age:
            self.clear(content_type)
            return None
        content = entry.get("content")
        return content if isinstance(content, str) else None

    def clear(self, content_type: Optional[str] = None) -> None:
        for name in (content_type,) if content_type else BUFFER_FIELDS:
            self._memory.pop(name, None)
            self._last_update.pop(name, None)
            if self.directory is not None:
                try:
                    self._path(name).unlink()
                except FileNotFoundError:
                    pass
                except OSError:
                    logger.warning("Failed to remove cache entry %s", name)

    def save_session(self, session: Session, force: bool = False) -> int:
        """Cache every non-empty buffer of a session; returns the write count."""
        written = 0
        for name in BUFFER_FIELDS:
            content = getattr(session, name)
            if content and self.save(name, content, force=force):
                written += 1
        return written

    def load_session(self, session_id: str, meeting: MeetingInfo) -> Optional[Session]:
        """Rebuild a session from cached buffers for the given meeting."""
        buffers = {name: self.load(name) or "" for name in BUFFER_FIELDS}
        if not any(content.strip() for content in buffers.values()):
            return None

        now = self.clock()
        return Session(
            session_id=session_id,
            meeting_id=meeting.meeting_id,
            meeting_title=meeting.title,
            organizer=meeting.organizer,
            created_at=now,
            updated_at=now,
            **buffers,
        )

    def _path(self, content_type: str) -> Path:
        return self.directory / "cache_{}.json".format(content_type)

    def _put(self, content_type: str, entry: Dict[str, object]) -> None:
        if self.directory is None:
            self._memory[content_type] = entry
            return
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(content_type).write_text(json.dumps(entry, ensure_ascii=False), encoding="utf-8")

    def _get(self, content_type: str) -> Optional[Dict[str, object]]:
        if self.directory is None:
            return self._memory.get(content_type)
        path = self._path(content_type)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else None
