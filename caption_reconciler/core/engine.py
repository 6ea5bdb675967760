"""Per-speaker reconciliation of live caption fragments.

WHY: A live caption source re-shows the same rows on every poll while it
keeps revising them: words are appended, numbers corrected, punctuation
added. Copying every observation produces a transcript full of truncated
and repeated lines. The engine decides, for each observed (speaker, text)
pair, whether it is a duplicate, a revision of a recent line, or new
content, so the history only ever grows by distinct utterances.

HOW: Four cheap-to-expensive stages per fragment:
  1. Guards       — empty text and the one-off system notice
  2. Fingerprint  — "speaker:text" already processed → discard in O(1)
  3. Window scan  — the speaker's last k history positions, newest first,
                    each compared with prefix rules and the matcher
  4. Append       — nothing decided → new line

The same engine also owns the chat and injected-comment streams, the
meeting header and the attendee list, and can snapshot itself to a
Session or restore from one.

RULES:
- Merges replace text and timestamp in place; positions never move
- Only the speaker's own recency window is consulted (cross-speaker
  fragments never merge)
- The most recent deciding candidate wins; older lines are settled
- reconcile() never raises on malformed input; it discards
- Nothing here awaits or performs I/O
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional

from caption_reconciler.config import (
    ATTENDEES_PREFIX,
    CAPTION_WINDOW_SIZE,
    SHORT_MESSAGE_WORDS,
    SYSTEM_CAPTION_MARKER,
    SYSTEM_MESSAGE,
    SYSTEM_SENDER,
    TITLE_PREFIX,
)
from caption_reconciler.core.fingerprints import FingerprintSet, make_fingerprint
from caption_reconciler.core.ir import (
    LineKind,
    ReconcileAction,
    ReconcileResult,
    TranscriptLine,
)
from caption_reconciler.core.merger import ChronologicalMerger
from caption_reconciler.core.session import (
    MeetingInfo,
    Session,
    build_session_id,
    format_meeting_header,
)
from caption_reconciler.core.similarity import SimilarityMatcher, build_matcher
from caption_reconciler.core.text import format_attendees, format_speaker_name, word_count
from caption_reconciler.core.timestamps import TimestampTag

logger = logging.getLogger(__name__)


def is_system_notice(speaker: str, text: str) -> bool:
    """True for the source's "captions are machine generated" notice."""
    return (speaker or "").strip() == SYSTEM_SENDER and SYSTEM_CAPTION_MARKER in (text or "")


class ReconciliationEngine:
    """Stateful reconciler for one meeting.

    WHY: Callers (recorder, HTTP service, CLI replay) each need their own
    independent transcript state; nothing is shared through module globals.

    HOW: history holds TranscriptLines in discovery order. _windows maps a
    speaker to a bounded deque of their most recent history positions.
    Header lines live apart from history so history positions stay stable
    when the attendee list changes.

    RULES:
    - window_size must be >= 1 and short_message_words >= 0
    - clock() supplies timestamps for fragments without observed_at
    """

    def __init__(
        self,
        matcher: Optional[SimilarityMatcher] = None,
        window_size: int = CAPTION_WINDOW_SIZE,
        short_message_words: int = SHORT_MESSAGE_WORDS,
        fingerprints: Optional[FingerprintSet] = None,
        clock: Optional[Callable[[], datetime]] = None,
        merger: Optional[ChronologicalMerger] = None,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1, got {}".format(window_size))
        if short_message_words < 0:
            raise ValueError(
                "short_message_words must not be negative, got {}".format(short_message_words)
            )

        self.matcher = matcher or build_matcher()
        self.window_size = window_size
        self.short_message_words = short_message_words
        self.fingerprints = fingerprints if fingerprints is not None else FingerprintSet()
        self.clock = clock or datetime.now
        self.merger = merger or ChronologicalMerger(
            clock=self.clock,
            window_size=window_size,
            short_message_words=short_message_words,
        )

        self.history: List[TranscriptLine] = []
        self.chat_history: List[TranscriptLine] = []
        self.comments: List[TranscriptLine] = []
        self.header: List[TranscriptLine] = []
        self.attendees: str = ""

        self.meeting: Optional[MeetingInfo] = None
        self.session_id: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.resumed = False

        self._windows: Dict[str, Deque[int]] = {}
        self._chat_fingerprints = FingerprintSet(
            capacity=self.fingerprints.capacity,
            retain=self.fingerprints.retain,
        )
        self._system_message_added = False

    # ------------------------------------------------------------------
    # Captions
    # ------------------------------------------------------------------

    def reconcile(
        self,
        speaker: str,
        text: str,
        observed_at: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Decide what one observed caption fragment means for the history.

        Returns:
            ReconcileResult with action appended, merged or discarded. For
            discards caused by an existing line, ``line`` and ``index``
            point at that line.
        """
        if not text or not text.strip():
            return ReconcileResult(ReconcileAction.DISCARDED)

        if is_system_notice(speaker, text):
            if self._system_message_added:
                return ReconcileResult(ReconcileAction.DISCARDED)
            self._system_message_added = True
            line = TranscriptLine(kind=LineKind.SYSTEM, text=SYSTEM_MESSAGE)
            self.history.append(line)
            logger.debug("Added system caption notice")
            return ReconcileResult(ReconcileAction.APPENDED, line, len(self.history) - 1)

        speaker = format_speaker_name(speaker)
        fingerprint = make_fingerprint(speaker, text)
        if fingerprint in self.fingerprints:
            return ReconcileResult(ReconcileAction.DISCARDED)
        self.fingerprints.add(fingerprint)

        current = text.strip()
        timestamp = TimestampTag.from_datetime(observed_at or self.clock())
        window = self._windows.setdefault(speaker, deque(maxlen=self.window_size))

        for index in reversed(window):
            candidate = self.history[index]
            action = self._decide(current, candidate.text.strip())
            if action is None:
                continue

            if action == ReconcileAction.DISCARDED:
                logger.debug("Discarded fragment from %s: %r", speaker, current)
                return ReconcileResult(action, candidate, index)

            previous_text = candidate.text
            candidate.text = current
            candidate.timestamp = timestamp
            logger.debug("Merged fragment from %s at %d: %r -> %r", speaker, index, previous_text, current)
            return ReconcileResult(action, candidate, index, previous_text)

        line = TranscriptLine(
            kind=LineKind.TRANSCRIPT,
            text=current,
            speaker=speaker,
            timestamp=timestamp,
        )
        self.history.append(line)
        index = len(self.history) - 1
        window.append(index)
        logger.debug("Appended line %d from %s: %r", index, speaker, current)
        return ReconcileResult(ReconcileAction.APPENDED, line, index)

    def _decide(self, current: str, candidate: str) -> Optional[ReconcileAction]:
        """Compare a fragment with one candidate line; None means undecided."""
        if current == candidate:
            return ReconcileAction.DISCARDED

        if word_count(current) <= self.short_message_words:
            if candidate.startswith(current + " "):
                return ReconcileAction.DISCARDED
            if current.startswith(candidate + " "):
                return ReconcileAction.MERGED
            return None

        if word_count(candidate) <= self.short_message_words:
            if current.startswith(candidate + " "):
                return ReconcileAction.MERGED
            return None

        if self.matcher.matches(current, candidate):
            return ReconcileAction.MERGED
        if current.startswith(candidate) or candidate.startswith(current):
            if len(current) > len(candidate):
                return ReconcileAction.MERGED
            return ReconcileAction.DISCARDED
        return None

    # ------------------------------------------------------------------
    # Meeting header, chat and comments
    # ------------------------------------------------------------------

    def start_meeting(self, meeting: MeetingInfo, now: Optional[datetime] = None) -> str:
        """Record meeting metadata and add the header block once.

        Returns the session id, which is fixed on the first call.
        """
        self.meeting = meeting
        if self.started_at is None:
            self.started_at = now or self.clock()
        if self.session_id is None:
            self.session_id = build_session_id(meeting, self.started_at)

        if not any(line.text.startswith(TITLE_PREFIX) for line in self.header):
            title_line, date_line = format_meeting_header(meeting.title, self.started_at)
            self.header = [
                TranscriptLine(kind=LineKind.HEADER, text=title_line),
                TranscriptLine(kind=LineKind.HEADER, text=date_line),
            ] + self.header
            logger.info("Started meeting %r (session %s)", meeting.title, self.session_id)
        return self.session_id

    def set_attendees(self, names: List[str]) -> bool:
        """Update the attendee list; returns True when it changed."""
        attendees = format_attendees(names)
        if not attendees or attendees == self.attendees:
            return False
        self.attendees = attendees
        logger.debug("Updated attendees: %s", attendees)
        return True

    def add_chat_message(
        self,
        sender: str,
        message: str,
        sent_at: Optional[TimestampTag] = None,
        observed_at: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Append a chat message unless it was already captured."""
        body = (message or "").strip()
        if not body or is_system_notice(sender, body):
            return ReconcileResult(ReconcileAction.DISCARDED)

        sender = format_speaker_name(sender)
        fingerprint = make_fingerprint(sender, body)
        if fingerprint in self._chat_fingerprints:
            return ReconcileResult(ReconcileAction.DISCARDED)
        self._chat_fingerprints.add(fingerprint)

        for index, existing in enumerate(self.chat_history):
            if existing.text.strip() == body:
                return ReconcileResult(ReconcileAction.DISCARDED, existing, index)

        moment = observed_at or self.clock()
        if sent_at is None:
            timestamp = TimestampTag.from_datetime(moment)
        else:
            timestamp = sent_at.with_seconds(moment.second)

        line = TranscriptLine(kind=LineKind.CHAT, text=body, speaker=sender, timestamp=timestamp)
        self.chat_history.append(line)
        logger.debug("Added chat message from %s", sender)
        return ReconcileResult(ReconcileAction.APPENDED, line, len(self.chat_history) - 1)

    def add_comment(self, text: str, observed_at: Optional[datetime] = None) -> ReconcileResult:
        """Append an injected comment, timestamped at observation time."""
        body = (text or "").strip()
        if not body:
            return ReconcileResult(ReconcileAction.DISCARDED)

        line = TranscriptLine(
            kind=LineKind.COMMENT,
            text=body,
            timestamp=TimestampTag.from_datetime(observed_at or self.clock()),
        )
        rendered = line.render()
        for index, existing in enumerate(self.comments):
            if existing.render() == rendered:
                return ReconcileResult(ReconcileAction.DISCARDED, existing, index)

        self.comments.append(line)
        return ReconcileResult(ReconcileAction.APPENDED, line, len(self.comments) - 1)

    def trim_fingerprints(self) -> int:
        """Apply the fingerprint bound to the caption and chat sets."""
        return self.fingerprints.trim() + self._chat_fingerprints.trim()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def transcript_lines(self) -> List[TranscriptLine]:
        """Header (with attendees after the title) followed by history."""
        header = list(self.header)
        if self.attendees:
            for position, line in enumerate(header):
                if line.text.startswith(TITLE_PREFIX):
                    header.insert(position + 1, TranscriptLine(
                        kind=LineKind.HEADER,
                        text=ATTENDEES_PREFIX + self.attendees,
                    ))
                    break
        return header + self.history

    def get_transcript_content(self) -> str:
        if not self.history and not self.header:
            return ""
        return "\n".join(line.render() for line in self.transcript_lines())

    def get_chat_content(self) -> str:
        return "\n".join(line.render() for line in self.chat_history)

    def get_comments_content(self) -> str:
        return "\n".join(line.render() for line in self.comments)

    def combined_lines(self, apply_dedup: bool = True) -> List[TranscriptLine]:
        if not self.has_content() and not self.header:
            return []
        return self.merger.merge(
            {
                "transcript": self.transcript_lines(),
                "chat": self.chat_history,
                "comments": self.comments,
            },
            apply_dedup=apply_dedup,
        )

    def get_combined_content(self, apply_dedup: bool = True) -> str:
        return "\n".join(line.render() for line in self.combined_lines(apply_dedup))

    def has_content(self) -> bool:
        return bool(self.history or self.chat_history or self.comments)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def snapshot(self, meeting: Optional[MeetingInfo] = None, apply_dedup: bool = True) -> Session:
        """Render the current state into a Session ready to be stored."""
        meeting = meeting or self.meeting or MeetingInfo()
        now = self.clock()
        started = self.started_at or now
        session_id = self.session_id or build_session_id(meeting, started)

        return Session(
            session_id=session_id,
            meeting_id=meeting.meeting_id,
            meeting_title=meeting.title,
            organizer=meeting.organizer,
            transcript=self.get_transcript_content(),
            chat=self.get_chat_content(),
            comments=self.get_comments_content(),
            combined=self.get_combined_content(apply_dedup),
            created_at=started.timestamp(),
            updated_at=now.timestamp(),
        )

    def restore(self, session: Session) -> None:
        """Replace engine state with a persisted session.

        HOW: Each buffer is parsed line by line with TranscriptLine.from_text().
        Transcript lines rebuild history, recency windows and fingerprints,
        so fragments still shown by the source are not appended again.
        """
        self.history = []
        self.chat_history = []
        self.comments = []
        self.header = []
        self.attendees = ""
        self._windows = {}
        self.fingerprints.clear()
        self._chat_fingerprints.clear()
        self._system_message_added = False

        for raw in session.transcript.split("\n"):
            if not raw.strip():
                continue
            line = TranscriptLine.from_text(raw)
            if line.kind == LineKind.HEADER:
                if line.text.startswith(ATTENDEES_PREFIX):
                    self.attendees = line.text[len(ATTENDEES_PREFIX):]
                else:
                    self.header.append(line)
                continue

            self.history.append(line)
            if line.kind == LineKind.SYSTEM and line.text == SYSTEM_MESSAGE:
                self._system_message_added = True
            elif line.kind == LineKind.TRANSCRIPT:
                self._windows.setdefault(
                    line.speaker, deque(maxlen=self.window_size)
                ).append(len(self.history) - 1)
                self.fingerprints.add(make_fingerprint(line.speaker, line.text))

        for raw in session.chat.split("\n"):
            if not raw.strip():
                continue
            line = TranscriptLine.from_text(raw)
            self.chat_history.append(line)
            if line.kind == LineKind.CHAT:
                self._chat_fingerprints.add(make_fingerprint(line.speaker, line.text))

        for raw in session.comments.split("\n"):
            if raw.strip():
                self.comments.append(TranscriptLine.from_text(raw))

        self.meeting = MeetingInfo(
            title=session.meeting_title,
            meeting_id=session.meeting_id,
            organizer=session.organizer,
        )
        self.session_id = session.session_id
        if session.created_at:
            self.started_at = datetime.fromtimestamp(session.created_at)
        self.resumed = True
        logger.info(
            "Restored session %s: %d transcript, %d chat, %d comment lines",
            session.session_id, len(self.history), len(self.chat_history), len(self.comments),
        )
