"""Plain text export with one section per stream.

WHY: Reviewers sometimes want the spoken transcript without chat noise,
or the chat log on its own. Keeping the three captured streams in
separate sections serves both without a second export.

HOW: Emits the transcript, chat and comments buffers under underlined
section titles, skipping streams that are empty.

RULES:
- Section order: Transcript, Chat, Comments
- One blank line between sections
- Output suffix: "-streams.txt"
"""

from __future__ import annotations

from typing import List

from caption_reconciler.core.session import Session
from caption_reconciler.formatters.base import BaseFormatter, FormatterOutput

_SECTIONS = (
    ("Transcript", "transcript"),
    ("Chat", "chat"),
    ("Comments", "comments"),
)


class SeparateTextFormatter(BaseFormatter):
    """Transcript, chat and comments as separate text sections."""

    @property
    def name(self) -> str:
        return "Separate streams text"

    @property
    def suffix(self) -> str:
        return "-streams.txt"

    def format(self, session: Session) -> List[FormatterOutput]:
        blocks = []
        for title, field_name in _SECTIONS:
            body = getattr(session, field_name).strip("\n")
            if not body.strip():
                continue
            blocks.append("{}\n{}\n{}".format(title, "=" * len(title), body))

        content = "\n\n".join(blocks)
        if content:
            content += "\n"
        return [FormatterOutput(suffix=self.suffix, content=content, media_type="text/plain")]
