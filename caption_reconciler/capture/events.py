"""Recorded capture events (JSON Lines) and their replay.

WHY: Reproducing a reconciliation problem needs the exact sequence of
observations a live source produced. A JSONL file of capture events can
be recorded once and replayed through the engine as often as needed,
from the CLI or from tests.

HOW: Each line is one JSON object with a "type" field. CaptureEvent
parses it with from_dict(); load_events() reads a whole file;
apply_event() feeds one event to an engine; to_replay_adapter() turns
the events into frames for the recorder.

RULES:
- Types: caption {speaker, text}, chat {sender, message, time?},
  comment {text}, attendees {names}, meeting {title, meeting_id, organizer}
- Every event may carry "at": an ISO-8601 observation instant
- Blank lines are skipped; anything else malformed raises ValueError
  naming the line number
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from caption_reconciler.capture.adapter import ReplayCaptureAdapter
from caption_reconciler.config import DEFAULT_MEETING_TITLE
from caption_reconciler.core.engine import ReconciliationEngine
from caption_reconciler.core.ir import CaptionFragment, ChatMessage, ReconcileResult
from caption_reconciler.core.session import MeetingInfo
from caption_reconciler.core.timestamps import TimestampTag

logger = logging.getLogger(__name__)

EVENT_TYPES = ("caption", "chat", "comment", "attendees", "meeting")


@dataclass
class CaptureEvent:
    """One recorded observation from a capture source.

    Attributes:
        kind: One of EVENT_TYPES.
        speaker: Caption speaker or chat sender.
        text: Caption text, chat message or comment text.
        sent_at: Clock time displayed next to a chat message.
        names: Attendee display names.
        meeting: Meeting metadata for "meeting" events.
        at: Observation instant, or None for "engine clock".
    """

    kind: str
    speaker: str = ""
    text: str = ""
    sent_at: Optional[TimestampTag] = None
    names: List[str] = field(default_factory=list)
    meeting: Optional[MeetingInfo] = None
    at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> CaptureEvent:
        """Parse one event object.

        Raises:
            ValueError: Unknown type, wrong field types or a bad "at" value.
        """
        kind = data.get("type")
        if kind not in EVENT_TYPES:
            raise ValueError("Unknown event type {!r}".format(kind))

        at = None
        if data.get("at"):
            at = datetime.fromisoformat(str(data["at"]))

        if kind == "caption":
            return cls(kind=kind, speaker=str(data.get("speaker") or ""),
                       text=str(data.get("text") or ""), at=at)
        if kind == "chat":
            return cls(
                kind=kind,
                speaker=str(data.get("sender") or ""),
                text=str(data.get("message") or ""),
                sent_at=TimestampTag.parse(str(data.get("time") or "")),
                at=at,
            )
        if kind == "comment":
            return cls(kind=kind, text=str(data.get("text") or ""), at=at)
        if kind == "attendees":
            names = data.get("names") or []
            if not isinstance(names, list):
                raise ValueError("attendees.names must be a list")
            return cls(kind=kind, names=[str(name) for name in names], at=at)

        return cls(
            kind=kind,
            meeting=MeetingInfo(
                title=str(data.get("title") or DEFAULT_MEETING_TITLE),
                meeting_id=str(data.get("meeting_id") or ""),
                organizer=str(data.get("organizer") or ""),
            ),
            at=at,
        )


def load_events(path: Union[str, Path]) -> List[CaptureEvent]:
    """Read a JSONL event file."""
    events = []
    with open(path, "r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                events.append(CaptureEvent.from_dict(data))
            except ValueError as exc:
                raise ValueError("{}:{}: {}".format(path, line_number, exc)) from exc
    logger.debug("Loaded %d events from %s", len(events), path)
    return events


def apply_event(engine: ReconciliationEngine, event: CaptureEvent) -> Optional[ReconcileResult]:
    """Feed one event to an engine; returns the engine's result, if any."""
    if event.kind == "caption":
        return engine.reconcile(event.speaker, event.text, event.at)
    if event.kind == "chat":
        return engine.add_chat_message(event.speaker, event.text, event.sent_at, event.at)
    if event.kind == "comment":
        return engine.add_comment(event.text, event.at)
    if event.kind == "attendees":
        engine.set_attendees(event.names)
        return None
    if event.meeting is not None:
        engine.start_meeting(event.meeting, event.at)
    return None


def to_replay_adapter(events: List[CaptureEvent]) -> ReplayCaptureAdapter:
    """Build a replay adapter: one caption or chat event per frame."""
    caption_frames = []
    chat_frames = []
    meeting = None
    attendees: List[str] = []
    for event in events:
        if event.kind == "caption":
            caption_frames.append([CaptionFragment(event.speaker, event.text, event.at)])
        elif event.kind == "chat":
            chat_frames.append([ChatMessage(event.speaker, event.text, event.sent_at, event.at)])
        elif event.kind == "meeting" and meeting is None:
            meeting = event.meeting
        elif event.kind == "attendees":
            attendees = event.names
    return ReplayCaptureAdapter(caption_frames, chat_frames, meeting, attendees)
