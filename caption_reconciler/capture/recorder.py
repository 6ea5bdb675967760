"""Asyncio recorder: poll a capture adapter, reconcile, persist.

WHY: Captions change every second, chat far less often, and writing the
session to disk on every caption tick would be wasteful. Three timers at
different rates keep the transcript current while bounding I/O, and a
resume step at start lets a restarted capture continue the same session.

HOW: TranscriptRecorder owns three asyncio tasks:
  caption poll  — fetch_captions() → engine.reconcile() per row
  chat poll     — fetch_chat() → engine.add_chat_message() per message
  flush         — engine.snapshot() → store.save() via asyncio.to_thread

Engine calls are synchronous, so each completes between timer ticks. On
StorageError the snapshot is written to the ContentCache instead.

RULES:
- start() while running is a no-op; stop() cancels only the timer tasks
- start() after stop() continues with the same engine state (fingerprints
  stop re-observed rows from being appended again)
- Resume is attempted once, on the first start()
- CAPTURE_MAX_RETRIES consecutive caption misses log one warning
- No capture or storage error stops the timers
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from caption_reconciler.capture.adapter import CaptureAdapter, CaptureMissError, CaptureSourceError
from caption_reconciler.config import (
    CAPTION_POLL_INTERVAL,
    CAPTURE_MAX_RETRIES,
    CHAT_POLL_INTERVAL,
    RESUME_WINDOW,
    STORE_FLUSH_INTERVAL,
)
from caption_reconciler.core.engine import ReconciliationEngine
from caption_reconciler.core.ir import ReconcileAction, ReconcileResult
from caption_reconciler.core.session import MeetingInfo, Session, build_session_id
from caption_reconciler.storage.base import SessionStore, StorageError
from caption_reconciler.storage.cache import ContentCache

logger = logging.getLogger(__name__)


class TranscriptRecorder:
    """Drive an engine from a capture adapter on periodic timers.

    Attributes:
        engine: The reconciliation engine receiving observations.
        adapter: Source of caption rows, chat and meeting metadata.
        store: Primary session store, or None for cache-only operation.
        cache: Secondary cache written when the store fails.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        adapter: CaptureAdapter,
        store: Optional[SessionStore] = None,
        cache: Optional[ContentCache] = None,
        caption_interval: float = CAPTION_POLL_INTERVAL,
        chat_interval: float = CHAT_POLL_INTERVAL,
        flush_interval: float = STORE_FLUSH_INTERVAL,
        max_retries: int = CAPTURE_MAX_RETRIES,
        resume_window: float = RESUME_WINDOW,
    ) -> None:
        self.engine = engine
        self.adapter = adapter
        self.store = store
        self.cache = cache
        self.caption_interval = caption_interval
        self.chat_interval = chat_interval
        self.flush_interval = flush_interval
        self.max_retries = max_retries
        self.resume_window = resume_window

        self.meeting: Optional[MeetingInfo] = None
        self._tasks: List[asyncio.Task] = []
        self._resume_checked = False
        self._caption_misses = 0

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self.is_running:
            return

        if self.meeting is None:
            await self.load_meeting()
        if not self._resume_checked:
            self._resume_checked = True
            await self.resume()
        self.engine.start_meeting(self.meeting)

        self._tasks = [
            asyncio.create_task(self._run_periodic(self.poll_captions, self.caption_interval)),
            asyncio.create_task(self._run_periodic(self.poll_chat, self.chat_interval)),
            asyncio.create_task(self._run_periodic(self.flush, self.flush_interval)),
        ]
        logger.info("Started capture timers for %s", self.engine.session_id)

    async def stop(self, flush: bool = True) -> Optional[Session]:
        """Cancel the timers; optionally flush one last time."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Stopped capture timers")
        if flush:
            return await self.flush()
        return None

    async def load_meeting(self) -> MeetingInfo:
        try:
            meeting = await self.adapter.fetch_meeting()
        except (CaptureMissError, CaptureSourceError) as exc:
            logger.warning("Meeting details unavailable, using defaults: %s", exc)
            meeting = None
        self.meeting = meeting or MeetingInfo()
        return self.meeting

    async def resume(self) -> bool:
        """Restore the most recent matching session from store or cache."""
        meeting = self.meeting or await self.load_meeting()
        session = None

        if self.store is not None:
            try:
                session = await asyncio.to_thread(
                    self.store.load_most_recent_matching,
                    meeting.meeting_id,
                    self.resume_window,
                )
            except StorageError:
                logger.warning("Session store unavailable during resume", exc_info=True)

        source = "store"
        if session is None and self.cache is not None:
            session = self.cache.load_session(build_session_id(meeting, self.engine.clock()), meeting)
            source = "cache"

        if session is None:
            logger.info("No session to resume for meeting %r", meeting.meeting_id)
            return False

        self.engine.restore(session)
        logger.info("Resumed session %s from %s", session.session_id, source)
        return True

    async def poll_captions(self) -> List[ReconcileResult]:
        try:
            rows = await self.adapter.fetch_captions()
        except CaptureMissError:
            self._caption_misses += 1
            if self._caption_misses == self.max_retries:
                logger.warning(
                    "Caption source missing for %d consecutive polls, will keep retrying",
                    self._caption_misses,
                )
            return []
        except CaptureSourceError as exc:
            logger.warning("Caption poll failed: %s", exc)
            return []
        self._caption_misses = 0

        await self._update_attendees()

        results = [self.engine.reconcile(row.speaker, row.text, row.observed_at) for row in rows]
        changed = sum(1 for result in results if result.action != ReconcileAction.DISCARDED)
        if changed:
            logger.debug("Caption poll: %d of %d rows changed the history", changed, len(rows))
        return results

    async def poll_chat(self) -> List[ReconcileResult]:
        try:
            messages = await self.adapter.fetch_chat()
        except CaptureMissError:
            return []
        except CaptureSourceError as exc:
            logger.warning("Chat poll failed: %s", exc)
            return []

        results = [
            self.engine.add_chat_message(m.sender, m.message, m.sent_at, m.observed_at)
            for m in messages
        ]
        added = sum(1 for result in results if result.action == ReconcileAction.APPENDED)
        if added:
            logger.debug("Added %d new chat messages", added)
        return results

    async def flush(self) -> Optional[Session]:
        """Persist a snapshot; returns the stored (or cached) session."""
        self.engine.trim_fingerprints()
        if not self.engine.has_content():
            return None

        session = self.engine.snapshot(self.meeting)
        if self.store is not None:
            try:
                return await asyncio.to_thread(self.store.save, session)
            except StorageError:
                logger.warning("Session store failed, falling back to cache", exc_info=True)

        if self.cache is not None:
            self.cache.save_session(session)
        return session

    async def _update_attendees(self) -> None:
        try:
            names = await self.adapter.fetch_attendees()
        except (CaptureMissError, CaptureSourceError):
            return
        if names:
            self.engine.set_attendees(names)

    async def _run_periodic(self, tick: Callable[[], Awaitable[object]], interval: float) -> None:
        while True:
            try:
                await tick()
            except Exception:
                logger.exception("Error in %s", getattr(tick, "__name__", "timer"))
            await asyncio.sleep(interval)
