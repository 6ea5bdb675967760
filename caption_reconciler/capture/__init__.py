"""Capture side: adapters that read a live caption source, and the recorder.

WHY: The engine reasons only about strings. Where those strings come from
(a browser-side scraper over HTTP, a recorded event file) is a detail that
must stay swappable and testable without a real meeting.

HOW: adapter.py defines the CaptureAdapter contract and its errors,
http_adapter.py polls a JSON capture source with httpx, events.py reads
recorded JSONL event files and replays them, and recorder.py drives an
adapter on asyncio timers and persists snapshots.

RULES:
- Adapters deliver plain text; they never touch engine state
- A missing source element is a CaptureMissError, not a failure
"""

from caption_reconciler.capture.adapter import (
    CaptureAdapter,
    CaptureMissError,
    CaptureSourceError,
    ReplayCaptureAdapter,
)
from caption_reconciler.capture.recorder import TranscriptRecorder

__all__ = [
    "CaptureAdapter",
    "CaptureMissError",
    "CaptureSourceError",
    "ReplayCaptureAdapter",
    "TranscriptRecorder",
]
