"""Chronological merge of caption, chat and comment streams.

WHY: Captions, chat and injected comments are captured independently and
on different timers, so their histories interleave only by clock time.
The combined export has to read as one document: meeting header first,
then every line in time order, without the near-duplicate transcript
lines that slip past the live engine (e.g. after a resume).

HOW: merge() hoists header lines, then stable-sorts the rest by their
TimestampTag projected onto a reference date. Lines without a tag sort
as "now". scrub() walks the merged sequence and drops transcript lines
that repeat, or are contained in, a recent line from the same speaker.

RULES:
- Header lines (title, date, attendees, system notice) keep their
  original order at the front
- Ties keep stream order, then intra-stream order (stable sort)
- scrub() never drops blank, header, system, chat or comment lines
- Transcript content of short_message_words words or fewer is always kept
- When a new line contains an earlier longer-than-short line from the same
  speaker, the earlier one is removed (the longer line wins)
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, List, Mapping, Optional, Sequence, Set

from caption_reconciler.config import CAPTION_WINDOW_SIZE, SHORT_MESSAGE_WORDS
from caption_reconciler.core.ir import LineKind, TranscriptLine
from caption_reconciler.core.text import word_count
from caption_reconciler.core.timestamps import TimestampTag, find_timestamp

logger = logging.getLogger(__name__)


class ChronologicalMerger:
    """Merge line streams by clock time and scrub residual duplicates.

    Attributes:
        clock: Returns "now"; also fixes the reference date for projection.
        window_size: Recent same-speaker lines compared by scrub().
        short_message_words: Word count at or below which scrub() keeps
                             transcript content unconditionally.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        window_size: int = CAPTION_WINDOW_SIZE,
        short_message_words: int = SHORT_MESSAGE_WORDS,
    ) -> None:
        self.clock = clock or datetime.now
        self.window_size = window_size
        self.short_message_words = short_message_words

    def merge(
        self,
        streams: Mapping[str, Sequence[TranscriptLine]],
        apply_dedup: bool = False,
    ) -> List[TranscriptLine]:
        """Merge labelled streams into one chronologically ordered list."""
        now = self.clock()
        reference_date = now.date()

        headers: List[TranscriptLine] = []
        body: List[TranscriptLine] = []
        for lines in streams.values():
            for line in lines:
                if line.is_header:
                    headers.append(line)
                elif line.text.strip():
                    body.append(line)

        def sort_key(line: TranscriptLine) -> datetime:
            tag = _line_timestamp(line)
            if tag is None:
                return now
            return tag.on_date(reference_date, now.tzinfo)

        merged = headers + sorted(body, key=sort_key)
        logger.debug(
            "Merged %d streams: %d header lines, %d body lines",
            len(streams), len(headers), len(body),
        )
        if apply_dedup:
            return self.scrub(merged)
        return merged

    def scrub(self, lines: Sequence[TranscriptLine]) -> List[TranscriptLine]:
        """Drop transcript lines duplicated by recent same-speaker lines."""
        return [lines[position] for position in self._stable_positions(lines)]

    def scrub_text(self, text: str) -> str:
        """Scrub newline-joined rendered text, preserving kept lines verbatim."""
        if not text:
            return ""
        raw_lines = text.split("\n")
        parsed = [
            TranscriptLine.from_text(raw) if raw.strip() else TranscriptLine(LineKind.SYSTEM, raw)
            for raw in raw_lines
        ]
        return "\n".join(raw_lines[position] for position in self._stable_positions(parsed))

    def _stable_positions(self, lines: Sequence[TranscriptLine]) -> List[int]:
        """Repeat single passes until nothing more is dropped.

        A "longer wins" removal frees a window slot, which can expose an
        older line that a later line duplicates. Passing again until the
        result is stable makes scrub(scrub(x)) == scrub(x).
        """
        positions = list(range(len(lines)))
        while True:
            subset = [lines[position] for position in positions]
            kept = self._kept_positions(subset)
            if len(kept) == len(subset):
                return positions
            positions = [positions[index] for index in sorted(kept)]

    def _kept_positions(self, lines: Sequence[TranscriptLine]) -> Set[int]:
        kept: Set[int] = set()
        recent: Dict[str, Deque[int]] = {}

        for position, line in enumerate(lines):
            content = line.text.strip()
            if line.kind != LineKind.TRANSCRIPT or not content:
                kept.add(position)
                continue

            window = recent.setdefault(line.speaker, deque(maxlen=self.window_size))

            if word_count(content) > self.short_message_words:
                if self._is_duplicate(content, lines, window):
                    logger.debug("Scrubbed duplicate line from %s: %r", line.speaker, content)
                    continue
                for earlier in list(window):
                    previous = lines[earlier].text.strip()
                    if (
                        previous in content
                        and word_count(previous) > self.short_message_words
                    ):
                        kept.discard(earlier)
                        window.remove(earlier)

            kept.add(position)
            window.append(position)

        return kept

    @staticmethod
    def _is_duplicate(
        content: str,
        lines: Sequence[TranscriptLine],
        window: Deque[int],
    ) -> bool:
        for earlier in window:
            previous = lines[earlier].text.strip()
            if content == previous:
                return True
            if (content in previous or previous in content) and len(content) <= len(previous):
                return True
        return False


def _line_timestamp(line: TranscriptLine) -> Optional[TimestampTag]:
    if line.timestamp is not None:
        return line.timestamp
    return find_timestamp(line.render())
