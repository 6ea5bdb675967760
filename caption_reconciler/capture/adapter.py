"""Capture adapter contract, capture errors and the replay adapter.

WHY: The recorder polls "whatever shows the meeting right now". Keeping
that behind an async interface lets the same recorder run against a live
HTTP source, a recorded session, or a test double.

HOW: CaptureAdapter is an ABC with four async fetch methods and async
context-manager support. ReplayCaptureAdapter serves prerecorded frames:
each fetch returns the next frame of its stream, the way a live source
shows a new set of visible rows on every poll.

RULES:
- fetch_captions() returns the rows currently visible, oldest first
- A source element that is not present yet raises CaptureMissError
- An unreachable or broken source raises CaptureSourceError
- Replay frames, once exhausted, yield empty lists
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from caption_reconciler.core.ir import CaptionFragment, ChatMessage
from caption_reconciler.core.session import MeetingInfo


class CaptureMissError(Exception):
    """Raised when the capture source has no element to read this tick.

    WHY: A caption panel that has not rendered yet is normal during the
    first seconds of a meeting. The recorder counts consecutive misses and
    only warns once the retry budget is spent.
    """


class CaptureSourceError(Exception):
    """Raised when the capture source is unreachable or returns garbage.

    RULES:
    - status_code is set for HTTP error responses, else None
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class CaptureAdapter(ABC):
    """Abstract source of caption rows, chat messages and meeting metadata.

    To add a new source:
    1. Subclass CaptureAdapter
    2. Implement the four fetch methods
    3. Override close() if the source holds resources
    """

    async def __aenter__(self) -> CaptureAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()

    async def close(self) -> None:
        """Release any resources held by the adapter."""

    @abstractmethod
    async def fetch_captions(self) -> List[CaptionFragment]:
        """Return the caption rows currently shown by the source."""

    @abstractmethod
    async def fetch_chat(self) -> List[ChatMessage]:
        """Return the chat messages currently shown by the source."""

    @abstractmethod
    async def fetch_meeting(self) -> Optional[MeetingInfo]:
        """Return meeting metadata, or None if not available yet."""

    @abstractmethod
    async def fetch_attendees(self) -> List[str]:
        """Return raw attendee display names."""


class ReplayCaptureAdapter(CaptureAdapter):
    """Serve prerecorded caption and chat frames in order."""

    def __init__(
        self,
        caption_frames: Sequence[Sequence[CaptionFragment]] = (),
        chat_frames: Sequence[Sequence[ChatMessage]] = (),
        meeting: Optional[MeetingInfo] = None,
        attendees: Sequence[str] = (),
    ) -> None:
        self._caption_frames = [list(frame) for frame in caption_frames]
        self._chat_frames = [list(frame) for frame in chat_frames]
        self._meeting = meeting
        self._attendees = list(attendees)
        self._caption_position = 0
        self._chat_position = 0

    @property
    def exhausted(self) -> bool:
        return (
            self._caption_position >= len(self._caption_frames)
            and self._chat_position >= len(self._chat_frames)
        )

    async def fetch_captions(self) -> List[CaptionFragment]:
        if self._caption_position >= len(self._caption_frames):
            return []
        frame = self._caption_frames[self._caption_position]
        self._caption_position += 1
        return list(frame)

    async def fetch_chat(self) -> List[ChatMessage]:
        if self._chat_position >= len(self._chat_frames):
            return []
        frame = self._chat_frames[self._chat_position]
        self._chat_position += 1
        return list(frame)

    async def fetch_meeting(self) -> Optional[MeetingInfo]:
        return self._meeting

    async def fetch_attendees(self) -> List[str]:
        return list(self._attendees)
