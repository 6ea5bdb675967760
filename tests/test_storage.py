"""Tests for session stores, the regression guard, resume and the cache.

WHY: Persistence is what makes a capture survive a restart. A store
that lets a fresh, nearly empty snapshot overwrite an hour of captured
transcript, or that resumes the wrong meeting, loses real work.

HOW: Tests are organized by concern:
  - TestRegressionGuard: guard_regression() buffer-by-buffer rules
  - TestJsonFileSessionStore: file round trip, listing, corruption
  - TestResumeSelection: load_most_recent_matching() policy
  - TestCleanup: cleanup_expired() on created_at
  - TestContentCache: throttling, expiry, session rebuild

RULES:
- File stores live under pytest's tmp_path
- Time-dependent policy is driven through explicit ``now`` arguments or
  an injected clock, never time.sleep()
"""

from __future__ import annotations

import pytest

from caption_reconciler.core.session import MeetingInfo, Session
from caption_reconciler.storage import (
    ContentCache,
    JsonFileSessionStore,
    MemorySessionStore,
    StorageError,
)
from caption_reconciler.storage.base import guard_regression, line_count


def _session(session_id: str = "s1", meeting_id: str = "123", **kwargs) -> Session:
    kwargs.setdefault("transcript", "a\nb")
    kwargs.setdefault("created_at", 1000.0)
    kwargs.setdefault("updated_at", 1000.0)
    return Session(session_id=session_id, meeting_id=meeting_id, **kwargs)


# ---------------------------------------------------------------------------
# TestRegressionGuard
# ---------------------------------------------------------------------------


class TestRegressionGuard:

    def test_line_count(self):
        assert line_count("") == 0
        assert line_count("one") == 1
        assert line_count("one\ntwo") == 2

    def test_no_existing_session(self):
        incoming = _session()
        assert guard_regression(None, incoming) is incoming

    def test_keeps_longer_stored_buffer(self):
        existing = _session(transcript="a\nb\nc", chat="x")
        incoming = _session(transcript="a\nb", chat="x\ny", updated_at=2000.0)
        stored = guard_regression(existing, incoming)
        assert stored.transcript == "a\nb\nc"
        assert stored.chat == "x\ny"
        assert stored.updated_at == 2000.0

    def test_equal_line_counts_take_incoming(self):
        existing = _session(transcript="a\nold")
        incoming = _session(transcript="a\nnew")
        assert guard_regression(existing, incoming).transcript == "a\nnew"

    def test_empty_incoming_never_erases(self):
        existing = _session(comments="[10:00:00 AM] - [Injected Comment]: note")
        incoming = _session(comments="")
        assert guard_regression(existing, incoming).comments == existing.comments

    def test_keeps_original_created_at(self):
        existing = _session(created_at=500.0)
        incoming = _session(created_at=900.0)
        assert guard_regression(existing, incoming).created_at == 500.0


# ---------------------------------------------------------------------------
# TestJsonFileSessionStore
# ---------------------------------------------------------------------------


class TestJsonFileSessionStore:

    def test_save_and_load(self, tmp_path):
        store = JsonFileSessionStore(tmp_path / "sessions")
        session = _session(session_id="[03-05] - Weekly Sync - MoM - 123")
        store.save(session)
        assert store.load(session.session_id) == session
        assert store.path_for(session.session_id).is_file()

    def test_unknown_session(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        assert store.load("missing") is None
        assert store.list_sessions() == []
        assert store.delete("missing") is False

    def test_save_applies_guard(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session(transcript="a\nb\nc"))
        stored = store.save(_session(transcript="a"))
        assert stored.transcript == "a\nb\nc"
        assert store.load("s1").transcript == "a\nb\nc"

    def test_list_newest_first(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session("old", updated_at=1000.0))
        store.save(_session("new", updated_at=3000.0))
        store.save(_session("mid", updated_at=2000.0))
        assert [s.session_id for s in store.list_sessions()] == ["new", "mid", "old"]

    def test_delete(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session())
        assert store.delete("s1") is True
        assert store.load("s1") is None

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session())
        assert [p.suffix for p in tmp_path.iterdir()] == [".json"]

    def test_corrupt_file_raises_on_load(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.path_for("bad").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            store.load("bad")

    def test_corrupt_file_skipped_in_listing(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session())
        store.path_for("bad").write_text("[]", encoding="utf-8")
        assert [s.session_id for s in store.list_sessions()] == ["s1"]

    def test_unwritable_directory_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        store = JsonFileSessionStore(blocker)
        with pytest.raises(StorageError):
            store.save(_session())


# ---------------------------------------------------------------------------
# TestResumeSelection
# ---------------------------------------------------------------------------


@pytest.fixture
def populated_store() -> MemorySessionStore:
    store = MemorySessionStore()
    store.save(_session("older", "123", updated_at=1000.0))
    store.save(_session("newer", "123", updated_at=2000.0))
    store.save(_session("empty", "123", transcript="", updated_at=2400.0))
    store.save(_session("other", "999", updated_at=3000.0))
    return store


class TestResumeSelection:

    def test_newest_session_with_content(self, populated_store):
        session = populated_store.load_most_recent_matching("123", max_age_s=3600, now=2500.0)
        assert session.session_id == "newer"

    def test_exact_meeting_id_match(self, populated_store):
        session = populated_store.load_most_recent_matching("999", max_age_s=3600, now=3100.0)
        assert session.session_id == "other"
        assert populated_store.load_most_recent_matching("12", max_age_s=3600, now=2500.0) is None

    def test_too_old_to_resume(self, populated_store):
        assert populated_store.load_most_recent_matching("123", max_age_s=100, now=2500.0) is None


# ---------------------------------------------------------------------------
# TestCleanup
# ---------------------------------------------------------------------------


class TestCleanup:

    def test_removes_sessions_by_creation_age(self, tmp_path):
        store = JsonFileSessionStore(tmp_path)
        store.save(_session("expired", created_at=850.0, updated_at=990.0))
        store.save(_session("fresh", created_at=950.0))
        assert store.cleanup_expired(max_age_s=100, now=1000.0) == 1
        assert [s.session_id for s in store.list_sessions()] == ["fresh"]


# ---------------------------------------------------------------------------
# TestContentCache
# ---------------------------------------------------------------------------


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestContentCache:

    def test_save_is_throttled_per_type(self, tmp_path):
        clock = _Clock()
        cache = ContentCache(tmp_path, update_interval=60, clock=clock)
        assert cache.save("transcript", "a")
        assert not cache.save("transcript", "b")
        assert cache.save("chat", "x")
        assert cache.load("transcript") == "a"

        assert cache.save("transcript", "b", force=True)
        clock.now += 61
        assert cache.save("transcript", "c")
        assert cache.load("transcript") == "c"
        assert (tmp_path / "cache_transcript.json").is_file()

    def test_entries_expire(self, tmp_path):
        clock = _Clock()
        cache = ContentCache(tmp_path, max_age=3600, clock=clock)
        cache.save("transcript", "a")
        clock.now += 3601
        assert cache.load("transcript") is None
        assert not (tmp_path / "cache_transcript.json").exists()

    def test_in_memory_without_directory(self):
        cache = ContentCache()
        cache.save("comments", "note")
        assert cache.load("comments") == "note"
        cache.clear()
        assert cache.load("comments") is None

    def test_corrupt_entry_is_ignored(self, tmp_path):
        (tmp_path / "cache_chat.json").write_text("{", encoding="utf-8")
        assert ContentCache(tmp_path).load("chat") is None

    def test_session_round_trip(self, tmp_path):
        clock = _Clock()
        cache = ContentCache(tmp_path, clock=clock)
        assert cache.save_session(_session(chat="x", combined="a\nb\nx")) == 3

        meeting = MeetingInfo("Weekly Sync", "123")
        restored = cache.load_session("sid", meeting)
        assert restored.session_id == "sid"
        assert restored.meeting_title == "Weekly Sync"
        assert restored.transcript == "a\nb"
        assert restored.chat == "x"
        assert restored.comments == ""

    def test_no_session_when_empty(self, tmp_path):
        assert ContentCache(tmp_path).load_session("sid", MeetingInfo()) is None
