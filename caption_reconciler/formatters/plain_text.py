"""Plain text export of the combined transcript.

WHY: The everyday deliverable of a captured meeting is one readable text
file: the header, then captions, chat and comments in time order. This
is what gets pasted into meeting notes.

HOW: Writes the session's combined buffer as-is. The buffer was already
merged chronologically and scrubbed when the snapshot was taken.

RULES:
- Output suffix: ".txt"
- Media type: "text/plain"
- Ends with exactly one newline when non-empty
"""

from __future__ import annotations

from typing import List

from caption_reconciler.core.session import Session
from caption_reconciler.formatters.base import BaseFormatter, FormatterOutput


class PlainTextFormatter(BaseFormatter):
    """Combined transcript as plain text."""

    @property
    def name(self) -> str:
        return "Plain text transcript"

    @property
    def suffix(self) -> str:
        return ".txt"

    def format(self, session: Session) -> List[FormatterOutput]:
        content = session.combined.rstrip("\n")
        if content:
            content += "\n"
        return [FormatterOutput(suffix=self.suffix, content=content, media_type="text/plain")]
