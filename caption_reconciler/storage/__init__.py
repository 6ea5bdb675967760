"""Session persistence backends.

WHY: A capture that crashes or restarts mid-meeting must be able to pick
up where it left off, and a failing primary store must not lose the
last known transcript.

HOW: base.py defines the SessionStore contract and the shared
regression guard, json_store.py and memory.py implement it, and
cache.py provides the secondary ContentCache used as a fallback.

RULES:
- Store failures surface as StorageError, never as raw OSError
- Saves never shrink a stored buffer (regression guard)
"""

from caption_reconciler.storage.base import SessionStore, StorageError
from caption_reconciler.storage.cache import ContentCache
from caption_reconciler.storage.json_store import JsonFileSessionStore
from caption_reconciler.storage.memory import MemorySessionStore

__all__ = [
    "ContentCache",
    "JsonFileSessionStore",
    "MemorySessionStore",
    "SessionStore",
    "StorageError",
]
