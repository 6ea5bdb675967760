"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Each endpoint pair (request + response) has its own model. Enums
represent closed sets like export format names. All models include
Field descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values match internal constants exactly (format keys, actions)
- Response models never expose engine internals
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from caption_reconciler.config import DEFAULT_MEETING_TITLE


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ExportFormat(str, Enum):
    """Available export format identifiers.

    RULES:
    - Values match keys in caption_reconciler.formatters.FORMATTERS exactly
    """

    plain_text = "plain_text"
    separate_text = "separate_text"
    session_json = "session_json"


class Action(str, Enum):
    """What the engine did with a submitted fragment."""

    appended = "appended"
    merged = "merged"
    discarded = "discarded"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    """Meeting metadata for a new live session.

    RULES:
    - title defaults to "Subject" when the source shows none
    - resume=True restores the newest stored session for meeting_id
    """

    title: str = Field(default=DEFAULT_MEETING_TITLE, description="Meeting title as shown by the source.")
    meeting_id: str = Field(default="", description="Source meeting identifier; spaces are ignored.")
    organizer: str = Field(default="", description="Organizer display name.")
    resume: bool = Field(
        default=True,
        description="Restore the most recent stored session for this meeting id, if any.",
    )


class CaptionIn(BaseModel):
    """One observed caption row."""

    speaker: str = Field(default="", description="Speaker display name, e.g. 'Hetz, Doron'.")
    text: str = Field(description="Caption text as currently shown.")
    observed_at: Optional[datetime] = Field(
        default=None,
        description="Observation instant; defaults to the server clock.",
    )


class CaptionBatchRequest(BaseModel):
    """Caption rows observed in one poll, oldest first."""

    captions: List[CaptionIn] = Field(description="Observed caption rows.")


class ChatIn(BaseModel):
    """One observed chat message."""

    sender: str = Field(description="Sender display name.")
    message: str = Field(description="Message body.")
    time: Optional[str] = Field(
        default=None,
        description="Clock time shown next to the message, e.g. '10:05 AM'.",
    )
    observed_at: Optional[datetime] = Field(
        default=None,
        description="Observation instant; defaults to the server clock.",
    )


class ChatBatchRequest(BaseModel):
    """Chat messages observed in one poll."""

    messages: List[ChatIn] = Field(description="Observed chat messages.")


class CommentRequest(BaseModel):
    """An injected comment."""

    text: str = Field(min_length=1, description="Comment text.")
    observed_at: Optional[datetime] = Field(
        default=None,
        description="Comment instant; defaults to the server clock.",
    )


class AttendeesRequest(BaseModel):
    """Current attendee roster."""

    names: List[str] = Field(description="Attendee display names; conference rooms are skipped.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Summary of a live session."""

    id: str = Field(description="Live session handle used in URLs.")
    session_id: str = Field(description="Persisted session identifier.")
    meeting_title: str = Field(description="Meeting title.")
    meeting_id: str = Field(description="Source meeting identifier.")
    resumed: bool = Field(description="Whether stored content was restored.")
    transcript_lines: int = Field(description="Number of transcript history lines.")
    chat_messages: int = Field(description="Number of chat messages.")
    comments: int = Field(description="Number of injected comments.")
    created_at: float = Field(description="Live session creation time (Unix epoch seconds).")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "550e8400e29b41d4a716446655440000",
                "session_id": "[03-05] - Weekly Sync - MoM - 123456789",
                "meeting_title": "Weekly Sync",
                "meeting_id": "123 456 789",
                "resumed": False,
                "transcript_lines": 12,
                "chat_messages": 2,
                "comments": 0,
                "created_at": 1709661600.0,
            }
        ]
    }}


class SessionDetailResponse(SessionResponse):
    """Live session with its rendered buffers."""

    attendees: str = Field(description="Formatted attendee list.")
    transcript: str = Field(description="Rendered transcript buffer.")
    chat: str = Field(description="Rendered chat buffer.")
    comments_text: str = Field(description="Rendered comments buffer.")


class ReconcileResultOut(BaseModel):
    """Engine decision for one submitted fragment."""

    action: Action = Field(description="appended, merged or discarded.")
    index: Optional[int] = Field(default=None, description="Position of the affected line.")
    line: Optional[str] = Field(default=None, description="Rendered affected line.")
    previous_text: Optional[str] = Field(default=None, description="Replaced text, for merges.")


class ReconcileBatchResponse(BaseModel):
    """Engine decisions, one per submitted fragment, in order."""

    results: List[ReconcileResultOut] = Field(description="Per-fragment decisions.")


class AttendeesResponse(BaseModel):
    attendees: str = Field(description="Formatted attendee list.")
    changed: bool = Field(description="Whether the list differs from the previous one.")


class FlushResponse(BaseModel):
    """Result of persisting a live session."""

    session_id: str = Field(description="Persisted session identifier.")
    stored: bool = Field(description="False when there was nothing to store yet.")
    updated_at: Optional[float] = Field(default=None, description="Stored update time (Unix epoch seconds).")


class FormatInfo(BaseModel):
    """Description of an available export format."""

    key: str = Field(description="Format identifier used in API requests.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix produced (e.g. '.txt').")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    live_sessions: int = Field(description="Number of live sessions held in memory.")
