"""Dataclasses for caption fragments, transcript lines and reconcile results.

WHY: The capture side emits raw (speaker, text) observations; exporters and
the session store need rendered lines in a stable text format; the engine
needs to tell callers what it did with each fragment. A small set of typed
containers keeps those three concerns decoupled.

HOW: Five types:
  CaptionFragment  — one raw observation from the capture source
  LineKind         — the five kinds of history lines
  TranscriptLine   — one unit of history with an explicit TimestampTag
  ReconcileAction  — appended / merged / discarded
  ReconcileResult  — the action plus the resulting line and its position

RULES:
- TranscriptLine.render() is the persisted text format
- Transcript lines render as "{speaker} [{time}]: {text}"
- Chat lines render as "[{time}] - {sender}: {message}"
- Comment lines render as "[{time}] - [Injected Comment]: {text}"
- Header and system lines render their text verbatim
- TranscriptLine.from_text() is the only place rendered text is parsed back
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from caption_reconciler.config import COMMENT_MARKER, HEADER_PREFIXES, SYSTEM_MESSAGE
from caption_reconciler.core.timestamps import TimestampTag

_TS = r"(\d{1,2}:\d{2}(?::\d{2})?\s[AP]M)"

_COMMENT_LINE_RE = re.compile(r"^\[" + _TS + r"\] - " + re.escape(COMMENT_MARKER) + r":\s?(.*)$")
_CHAT_LINE_RE = re.compile(r"^\[" + _TS + r"\] - (.*?):\s?(.*)$")
_TRANSCRIPT_LINE_RE = re.compile(r"^(.*?)\s*\[" + _TS + r"\]:\s*(.*)$")


class LineKind(str, enum.Enum):
    """Kinds of lines held in a transcript history."""

    TRANSCRIPT = "transcript"
    CHAT = "chat"
    COMMENT = "comment"
    SYSTEM = "system"
    HEADER = "header"


class ReconcileAction(str, enum.Enum):
    """What the engine did with an incoming fragment."""

    APPENDED = "appended"
    MERGED = "merged"
    DISCARDED = "discarded"


@dataclass
class CaptionFragment:
    """One (speaker, text) observation from the capture source.

    Attributes:
        speaker: Raw speaker display name as shown by the source.
        text: Raw caption text at observation time.
        observed_at: Wall-clock instant of capture, or None to use the
                     engine clock.
    """

    speaker: str
    text: str
    observed_at: Optional[datetime] = None


@dataclass
class ChatMessage:
    """One chat message observed in the meeting chat panel.

    Attributes:
        sender: Sender display name.
        message: Message body.
        sent_at: The clock time displayed next to the message, if any.
        observed_at: Wall-clock instant of capture.
    """

    sender: str
    message: str
    sent_at: Optional[TimestampTag] = None
    observed_at: Optional[datetime] = None


@dataclass
class TranscriptLine:
    """A rendered unit of transcript history.

    WHY: History entries must be both machine-comparable (speaker, text,
    timestamp) and exportable as plain text. Keeping the parts separate
    means the engine never re-parses its own output.

    RULES:
    - speaker is "" for header, system and comment lines
    - timestamp is None for header and system lines
    - render() output round-trips through from_text()
    """

    kind: LineKind
    text: str
    speaker: str = ""
    timestamp: Optional[TimestampTag] = None

    def render(self) -> str:
        if self.kind == LineKind.TRANSCRIPT:
            return "{} {}: {}".format(self.speaker, _bracket(self.timestamp), self.text).strip()
        if self.kind == LineKind.CHAT:
            return "{} - {}: {}".format(_bracket(self.timestamp), self.speaker, self.text)
        if self.kind == LineKind.COMMENT:
            return "{} - {}: {}".format(_bracket(self.timestamp), COMMENT_MARKER, self.text)
        return self.text

    @property
    def is_header(self) -> bool:
        """Header lines and the system caption notice open every export."""
        if self.kind == LineKind.SYSTEM:
            return self.text == SYSTEM_MESSAGE
        return self.kind == LineKind.HEADER

    @classmethod
    def from_text(cls, raw: str) -> TranscriptLine:
        """Parse one persisted line back into a TranscriptLine.

        HOW: Tries header prefixes, the system notice, the comment form,
        the chat form and the transcript form, in that order. Anything
        else is kept verbatim as a system line so no content is lost.
        """
        line = raw.rstrip("\n")
        if line.startswith(HEADER_PREFIXES):
            return cls(kind=LineKind.HEADER, text=line)
        if line == SYSTEM_MESSAGE:
            return cls(kind=LineKind.SYSTEM, text=line)

        match = _COMMENT_LINE_RE.match(line)
        if match:
            return cls(
                kind=LineKind.COMMENT,
                text=match.group(2),
                timestamp=TimestampTag.parse(match.group(1)),
            )

        match = _CHAT_LINE_RE.match(line)
        if match:
            return cls(
                kind=LineKind.CHAT,
                speaker=match.group(2),
                text=match.group(3),
                timestamp=TimestampTag.parse(match.group(1)),
            )

        match = _TRANSCRIPT_LINE_RE.match(line)
        if match:
            return cls(
                kind=LineKind.TRANSCRIPT,
                speaker=match.group(1).strip(),
                text=match.group(3).strip(),
                timestamp=TimestampTag.parse(match.group(2)),
            )

        return cls(kind=LineKind.SYSTEM, text=line)


@dataclass
class ReconcileResult:
    """Outcome of one engine decision.

    Attributes:
        action: appended, merged, or discarded.
        line: The appended/merged line, the existing line that made the
              fragment redundant, or None for malformed input.
        index: Position of ``line`` in its history, or None.
        previous_text: For merges, the text that was replaced.
    """

    action: ReconcileAction
    line: Optional[TranscriptLine] = None
    index: Optional[int] = None
    previous_text: Optional[str] = None


def _bracket(tag: Optional[TimestampTag]) -> str:
    return tag.bracketed() if tag is not None else "[]"
