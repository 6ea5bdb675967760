"""Tests for the asyncio TranscriptRecorder.

WHY: The recorder glues a capture source, the engine and persistence
together on three timers. It must resume the right session, tolerate a
missing or failing source, fall back to the cache when the store fails,
and survive stop/start without duplicating lines.

HOW: Poll and flush steps are awaited directly for determinism; the
timer test uses tiny intervals. Async code is driven with asyncio.run(),
so no pytest plugin is needed.

RULES:
- Adapters are ReplayCaptureAdapter or small in-file doubles
- Stores are MemorySessionStore or a double that always fails
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from caption_reconciler.capture.adapter import (
    CaptureAdapter,
    CaptureMissError,
    ReplayCaptureAdapter,
)
from caption_reconciler.capture.recorder import TranscriptRecorder
from caption_reconciler.core.ir import CaptionFragment, ChatMessage, ReconcileAction
from caption_reconciler.core.session import MeetingInfo, Session
from caption_reconciler.core.timestamps import TimestampTag
from caption_reconciler.storage.base import SessionStore, StorageError
from caption_reconciler.storage.cache import ContentCache
from caption_reconciler.storage.memory import MemorySessionStore

DORON = "Hetz, Doron"


class StaticAdapter(CaptureAdapter):
    """Shows the same caption rows on every poll, like a paused panel."""

    def __init__(self, rows: List[CaptionFragment], meeting: Optional[MeetingInfo] = None) -> None:
        self.rows = rows
        self.meeting = meeting
        self.polls = 0

    async def fetch_captions(self) -> List[CaptionFragment]:
        self.polls += 1
        return list(self.rows)

    async def fetch_chat(self) -> List[ChatMessage]:
        return []

    async def fetch_meeting(self) -> Optional[MeetingInfo]:
        return self.meeting

    async def fetch_attendees(self) -> List[str]:
        return []


class MissingAdapter(StaticAdapter):
    """Caption panel never rendered."""

    async def fetch_captions(self) -> List[CaptionFragment]:
        raise CaptureMissError("captions not available")


class FailingStore(SessionStore):
    def save(self, session: Session) -> Session:
        raise StorageError("disk full")

    def load(self, session_id: str) -> Optional[Session]:
        raise StorageError("disk full")

    def list_sessions(self) -> List[Session]:
        raise StorageError("disk full")

    def delete(self, session_id: str) -> bool:
        raise StorageError("disk full")


class TestPolling:

    def test_caption_frames_reconcile_into_one_line(self, engine, meeting):
        adapter = ReplayCaptureAdapter(
            caption_frames=[
                [CaptionFragment(DORON, "This is a test 12")],
                [CaptionFragment(DORON, "This is a test 12"), CaptionFragment(DORON, "This is a test, 123.")],
            ],
            meeting=meeting,
            attendees=[DORON],
        )
        recorder = TranscriptRecorder(engine, adapter)

        async def scenario():
            first = await recorder.poll_captions()
            second = await recorder.poll_captions()
            third = await recorder.poll_captions()
            return first, second, third

        first, second, third = asyncio.run(scenario())
        assert [r.action for r in first] == [ReconcileAction.APPENDED]
        assert [r.action for r in second] == [ReconcileAction.DISCARDED, ReconcileAction.MERGED]
        assert third == []
        assert [line.text for line in engine.history] == ["This is a test, 123."]
        assert engine.attendees == "Doron Hetz"
        assert adapter.exhausted

    def test_chat_frames(self, engine):
        adapter = ReplayCaptureAdapter(chat_frames=[
            [ChatMessage("Lopez, Ana", "Here is the deck", TimestampTag(10, 5))],
            [ChatMessage("Lopez, Ana", "Here is the deck", TimestampTag(10, 5))],
        ])
        recorder = TranscriptRecorder(engine, adapter)

        async def scenario():
            await recorder.poll_chat()
            await recorder.poll_chat()

        asyncio.run(scenario())
        assert [line.render() for line in engine.chat_history] == [
            "[10:05:00 AM] - Ana Lopez: Here is the deck",
        ]

    def test_consecutive_misses_warn_once(self, engine, caplog):
        recorder = TranscriptRecorder(engine, MissingAdapter([]), max_retries=3)

        async def scenario():
            for _ in range(5):
                assert await recorder.poll_captions() == []

        with caplog.at_level(logging.WARNING, logger="caption_reconciler.capture.recorder"):
            asyncio.run(scenario())
        warnings = [r for r in caplog.records if "consecutive" in r.getMessage()]
        assert len(warnings) == 1


class TestFlush:

    def test_flush_saves_to_store(self, engine, meeting):
        store = MemorySessionStore()
        recorder = TranscriptRecorder(engine, StaticAdapter([]), store=store)
        recorder.meeting = meeting
        engine.start_meeting(meeting)
        engine.reconcile(DORON, "Good morning everyone")

        session = asyncio.run(recorder.flush())
        assert session.session_id == "[03-05] - Weekly Sync - MoM - 123456789"
        assert store.load(session.session_id).transcript.endswith("Good morning everyone")

    def test_nothing_to_flush(self, engine):
        store = MemorySessionStore()
        recorder = TranscriptRecorder(engine, StaticAdapter([]), store=store)
        assert asyncio.run(recorder.flush()) is None
        assert store.list_sessions() == []

    def test_store_failure_falls_back_to_cache(self, engine, meeting):
        cache = ContentCache()
        recorder = TranscriptRecorder(engine, StaticAdapter([]), store=FailingStore(), cache=cache)
        engine.start_meeting(meeting)
        engine.reconcile(DORON, "Good morning everyone")

        session = asyncio.run(recorder.flush())
        assert session is not None
        assert cache.load("transcript") == session.transcript
        assert cache.load("combined") == session.combined


class TestResume:

    def test_resume_from_store(self, engine, meeting):
        store = MemorySessionStore()
        store.save(Session(
            session_id="[03-04] - Weekly Sync - MoM - 123456789",
            meeting_id=meeting.meeting_id,
            meeting_title=meeting.title,
            transcript="Meeting Title: [03-04] - Weekly Sync\nDoron Hetz [9:59:00 AM]: Earlier words here",
            created_at=time.time() - 60,
            updated_at=time.time(),
        ))
        recorder = TranscriptRecorder(engine, StaticAdapter([], meeting), store=store)

        assert asyncio.run(recorder.resume()) is True
        assert engine.resumed
        assert engine.session_id == "[03-04] - Weekly Sync - MoM - 123456789"
        assert engine.history[0].text == "Earlier words here"

    def test_resume_falls_back_to_cache(self, engine, meeting):
        cache = ContentCache()
        cache.save("transcript", "Doron Hetz [9:59:00 AM]: Earlier words here")
        recorder = TranscriptRecorder(engine, StaticAdapter([], meeting), store=FailingStore(), cache=cache)

        assert asyncio.run(recorder.resume()) is True
        assert engine.session_id == "[03-05] - Weekly Sync - MoM - 123456789"
        assert engine.history[0].speaker == "Doron Hetz"

    def test_nothing_to_resume(self, engine, meeting):
        recorder = TranscriptRecorder(engine, StaticAdapter([], meeting), store=MemorySessionStore())
        assert asyncio.run(recorder.resume()) is False
        assert not engine.resumed

    def test_missing_meeting_uses_defaults(self, engine):
        recorder = TranscriptRecorder(engine, StaticAdapter([]))
        meeting = asyncio.run(recorder.load_meeting())
        assert meeting == MeetingInfo()


class TestTimers:

    def test_stop_and_restart_does_not_reprocess(self, engine, meeting):
        store = MemorySessionStore()
        adapter = StaticAdapter([CaptionFragment(DORON, "We will ship the release on Friday")], meeting)
        recorder = TranscriptRecorder(
            engine, adapter, store=store,
            caption_interval=0.01, chat_interval=0.01, flush_interval=0.01,
        )

        async def scenario():
            await recorder.start()
            assert recorder.is_running
            await asyncio.sleep(0.05)
            await recorder.stop()
            assert not recorder.is_running
            polls = adapter.polls
            await recorder.start()
            await asyncio.sleep(0.05)
            session = await recorder.stop()
            return polls, session

        polls, session = asyncio.run(scenario())
        assert polls >= 1
        assert adapter.polls > polls
        assert [line.text for line in engine.history] == ["We will ship the release on Friday"]
        assert len(engine.header) == 2
        assert store.load(session.session_id) is not None

    def test_start_while_running_is_noop(self, engine, meeting):
        recorder = TranscriptRecorder(engine, StaticAdapter([], meeting), caption_interval=10)

        async def scenario():
            await recorder.start()
            tasks = list(recorder._tasks)
            await recorder.start()
            same = tasks == recorder._tasks
            await recorder.stop(flush=False)
            return same

        assert asyncio.run(scenario())
