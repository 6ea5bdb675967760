"""JSON-file session store.

WHY: Sessions must survive process restarts, and a plain directory of
JSON files is easy to inspect, back up and delete by hand.

HOW: One file per session, named by the SHA-1 of the session id (ids
contain brackets and spaces). Writes go to a temp file in the same
directory and are moved into place with os.replace(), so a crash never
leaves a half-written session. A threading.Lock serializes the
read-guard-write sequence within the process.

RULES:
- The directory is created lazily on first save
- Unreadable or corrupt files raise StorageError on load, and are
  skipped with a warning by list_sessions()
- All OSError/ValueError failures are wrapped in StorageError
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

from caption_reconciler.core.session import Session
from caption_reconciler.storage.base import SessionStore, StorageError, guard_regression

logger = logging.getLogger(__name__)


class JsonFileSessionStore(SessionStore):
    """Persist sessions as JSON files in one directory."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, session_id: str) -> Path:
        digest = hashlib.sha1(session_id.encode("utf-8")).hexdigest()
        return self.directory / "{}.json".format(digest)

    def save(self, session: Session) -> Session:
        with self._lock:
            stored = guard_regression(self._read(self.path_for(session.session_id)), session)
            self._write(stored)
        logger.debug("Saved session %s", session.session_id)
        return stored

    def load(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._read(self.path_for(session_id))

    def list_sessions(self) -> List[Session]:
        if not self.directory.exists():
            return []

        sessions = []
        with self._lock:
            for path in sorted(self.directory.glob("*.json")):
                try:
                    session = self._read(path)
                except StorageError:
                    logger.warning("Skipping unreadable session file: %s", path)
                    continue
                if session is not None:
                    sessions.append(session)
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    def delete(self, session_id: str) -> bool:
        path = self.path_for(session_id)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StorageError("Failed to delete session {}: {}".format(session_id, exc)) from exc
        logger.info("Deleted session %s", session_id)
        return True

    def _read(self, path: Path) -> Optional[Session]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError("Failed to read {}: {}".format(path, exc)) from exc

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise StorageError("Corrupt session file {}: {}".format(path, exc)) from exc
        if not isinstance(data, dict):
            raise StorageError("Corrupt session file {}: expected an object".format(path))
        return Session.from_dict(data)

    def _write(self, session: Session) -> None:
        path = self.path_for(session.session_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".session_", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(session.to_dict(), handle, ensure_ascii=False, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StorageError("Failed to write session {}: {}".format(session.session_id, exc)) from exc
