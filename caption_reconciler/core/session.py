"""Persisted session model, meeting metadata and session identifiers.

WHY: A meeting transcript must survive restarts of the capture process.
The persisted unit (Session) holds rendered text buffers rather than
engine internals, so it stays readable on disk and can be resumed by any
later engine. Its identifier has to be reproducible from the meeting
metadata alone so that a restarted capture finds the same session.

HOW: MeetingInfo carries the title, meeting id and organizer. Session is a
dataclass with to_dict()/from_dict() for JSON round-tripping.
build_session_id() and build_file_name_id() derive the identifiers from
the meeting date (in SESSION_TIMEZONE), the sanitized title and the
meeting id.

RULES:
- Session id: "[MM-DD] - {sanitized title} - MoM - {meeting id without whitespace}"
- File name id: "[MM-DD] - {sanitized title} - MoM"
- Header title line: "Meeting Title: [MM-DD] - {title}"
- Header date line: "Meeting Date: MM/DD"
- created_at/updated_at are epoch seconds
- from_dict() tolerates missing keys (older records) with empty defaults
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from caption_reconciler.config import (
    DEFAULT_MEETING_TITLE,
    MEETING_DATE_PREFIX,
    SESSION_FILE_SUFFIX,
    SESSION_TIMEZONE,
    TITLE_PREFIX,
)
from caption_reconciler.core.text import sanitize_filename

_WHITESPACE_RE = re.compile(r"\s+")

BUFFER_FIELDS = ("transcript", "chat", "comments", "combined")


@dataclass
class MeetingInfo:
    """Metadata describing the meeting being captured.

    Attributes:
        title: Meeting title as shown by the source.
        meeting_id: Source meeting identifier; may contain spaces.
        organizer: Organizer display name, if known.
    """

    title: str = DEFAULT_MEETING_TITLE
    meeting_id: str = ""
    organizer: str = ""


@dataclass
class Session:
    """A persisted, resumable transcript unit.

    WHY: Storage and resume work on rendered text so that a session saved
    by one version of the engine can be restored by another.

    RULES:
    - Buffers are newline-joined rendered lines ("" when empty)
    - session_id is derived, never user-chosen
    - has_content() is True if any buffer holds non-whitespace text
    """

    session_id: str
    meeting_id: str = ""
    meeting_title: str = DEFAULT_MEETING_TITLE
    organizer: str = ""
    transcript: str = ""
    chat: str = ""
    comments: str = ""
    combined: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0

    def has_content(self) -> bool:
        return any(getattr(self, name).strip() for name in BUFFER_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Session:
        return cls(
            session_id=str(data.get("session_id", "")),
            meeting_id=data.get("meeting_id") or "",
            meeting_title=data.get("meeting_title") or DEFAULT_MEETING_TITLE,
            organizer=data.get("organizer") or "",
            transcript=data.get("transcript") or "",
            chat=data.get("chat") or "",
            comments=data.get("comments") or "",
            combined=data.get("combined") or "",
            created_at=float(data.get("created_at") or 0.0),
            updated_at=float(data.get("updated_at") or 0.0),
        )


def session_date(now: Optional[datetime] = None, timezone: str = SESSION_TIMEZONE) -> date:
    """Calendar date of *now* in the session timezone.

    Naive datetimes are taken as local time before conversion.
    """
    moment = now if now is not None else datetime.now().astimezone()
    return moment.astimezone(ZoneInfo(timezone)).date()


def format_month_day(day: date, separator: str = "-") -> str:
    return "{:02d}{}{:02d}".format(day.month, separator, day.day)


def build_file_name_id(
    title: str,
    now: Optional[datetime] = None,
    timezone: str = SESSION_TIMEZONE,
) -> str:
    """Export file stem for a meeting: "[MM-DD] - {title} - MoM"."""
    day = session_date(now, timezone)
    return "[{}] - {} - {}".format(
        format_month_day(day), sanitize_filename(title), SESSION_FILE_SUFFIX
    )


def build_session_id(
    meeting: MeetingInfo,
    now: Optional[datetime] = None,
    timezone: str = SESSION_TIMEZONE,
) -> str:
    """Deterministic session id from date, sanitized title and meeting id.

    >>> build_session_id(MeetingInfo("Weekly Sync", "123 456 789"),
    ...                  datetime(2024, 3, 5, 18, 0, tzinfo=ZoneInfo("UTC")))
    '[03-05] - Weekly Sync - MoM - 123456789'
    """
    meeting_id = _WHITESPACE_RE.sub("", meeting.meeting_id or "")
    return "{} - {}".format(build_file_name_id(meeting.title, now, timezone), meeting_id)


def format_meeting_header(
    title: str,
    now: Optional[datetime] = None,
    timezone: str = SESSION_TIMEZONE,
) -> Tuple[str, str]:
    """Return the (title line, date line) pair that opens a transcript."""
    day = session_date(now, timezone)
    title_line = "{}[{}] - {}".format(TITLE_PREFIX, format_month_day(day), title)
    date_line = "{}{}".format(MEETING_DATE_PREFIX, format_month_day(day, "/"))
    return title_line, date_line
