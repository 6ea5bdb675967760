"""Text normalization and name/filename helpers.

WHY: Live captions for the same utterance differ in punctuation, casing and
spacing from one poll to the next ("This is a test 12" vs "This is a test,
12,"). Similarity decisions must ignore that noise. Speaker names and
session titles need similarly deterministic cleanup so that persisted
sessions can be matched on resume.

HOW: normalize() lowercases, strips a fixed punctuation class and collapses
whitespace. The remaining helpers are small pure functions for speaker
names, attendee lists and filesystem-safe titles.

RULES:
- Every function here is pure, total and deterministic; none raise
- Punctuation class removed by normalize(): . , / # ! $ % ^ & * ; : { } = - _ ` ~ ( )
- Speaker names: "Last, First" → "First Last"; anything else unchanged
- sanitize_filename() output is part of the session id and must stay stable
"""

from __future__ import annotations

import re
from typing import Iterable, List

from caption_reconciler.config import ATTENDEES_SEPARATOR, UNKNOWN_SPEAKER

_PUNCTUATION_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")
_WHITESPACE_RE = re.compile(r"\s+")

_FILENAME_FORBIDDEN_RE = re.compile(r'[<>:"/\\|?*,]')
_DASH_RUN_RE = re.compile(r"--+")
_EDGE_DASH_RE = re.compile(r"^-|-$")

MAX_FILENAME_LENGTH = 200


def normalize(text: str) -> str:
    """Normalize text for comparison.

    >>> normalize("  This is a TEST, 12. ")
    'this is a test 12'
    """
    if not text:
        return ""
    lowered = _PUNCTUATION_RE.sub("", text.lower())
    return _WHITESPACE_RE.sub(" ", lowered).strip()


def tokenize(text: str) -> List[str]:
    """Split text on whitespace, dropping empty tokens."""
    return text.split() if text else []


def word_count(text: str) -> int:
    return len(tokenize(text))


def format_speaker_name(raw: str) -> str:
    """Convert "Last, First" display names to "First Last".

    WHY: The caption source shows directory-style names while chat and
    attendee lists read better in natural order.

    RULES:
    - Exactly two ", "-separated parts → swapped
    - Any other shape → returned unchanged (stripped)
    - Empty → "Unknown Speaker"
    """
    name = (raw or "").strip()
    if not name:
        return UNKNOWN_SPEAKER
    parts = name.split(", ")
    if len(parts) == 2:
        return "{} {}".format(parts[1], parts[0])
    return name


def format_attendees(names: Iterable[str]) -> str:
    """Build the attendee list shown in the transcript header.

    HOW: Each name is converted with format_speaker_name(); conference
    rooms (names wrapped in ‹ ›) and blanks are skipped; the result is
    de-duplicated, sorted and joined with ", ".
    """
    attendees = set()
    for raw in names:
        name = (raw or "").strip()
        if not name:
            continue
        if name.startswith("‹") and name.endswith("›"):
            continue
        attendees.add(format_speaker_name(name))
    return ATTENDEES_SEPARATOR.join(sorted(attendees))


def sanitize_filename(text: str) -> str:
    """Make a meeting title safe for file names and session ids.

    RULES:
    - Forbidden characters  < > : " / \\ | ? * ,  become "-"
    - Whitespace runs collapse to one space
    - Runs of "-" collapse to one "-"
    - One leading and one trailing "-" are removed, then the result is trimmed
    - Truncated to 200 characters
    """
    cleaned = _FILENAME_FORBIDDEN_RE.sub("-", text or "")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    cleaned = _DASH_RUN_RE.sub("-", cleaned)
    cleaned = _EDGE_DASH_RE.sub("", cleaned)
    return cleaned.strip()[:MAX_FILENAME_LENGTH]
