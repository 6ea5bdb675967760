"""FastAPI application exposing live caption reconciliation over HTTP.

WHY: Capture clients (a browser-side scraper, a meeting bot, curl) need
to push observed captions, chat and comments to one long-lived engine
per meeting, and fetch clean exports at any time. FastAPI provides
request validation and automatic OpenAPI documentation.

HOW: A single FastAPI app exposes session, ingest, export and health
endpoints grouped by tags. Live sessions are held in a SessionRegistry;
flushes go to a SessionStore (JSON files under SESSION_STORE_DIR).
A lifespan task expires idle live sessions and old stored sessions.

RULES:
- Error responses use a consistent ErrorResponse schema
- Unknown session → 404, registry full → 429, store failure → 503
- Engine calls are synchronous; store I/O runs via asyncio.to_thread
- The registry and store are module-level, created at import
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Annotated, List

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from caption_reconciler import __version__
from caption_reconciler.config import CACHE_MAX_AGE, DEFAULT_MEETING_TITLE, load_store_dir
from caption_reconciler.core.ir import ReconcileResult
from caption_reconciler.core.session import MeetingInfo, build_file_name_id
from caption_reconciler.core.timestamps import TimestampTag
from caption_reconciler.formatters import FORMATTERS
from caption_reconciler.server.models import (
    AttendeesRequest,
    AttendeesResponse,
    CaptionBatchRequest,
    ChatBatchRequest,
    CommentRequest,
    CreateSessionRequest,
    ErrorResponse,
    ExportFormat,
    FlushResponse,
    FormatInfo,
    HealthResponse,
    ReconcileBatchResponse,
    ReconcileResultOut,
    SessionDetailResponse,
    SessionResponse,
)
from caption_reconciler.server.registry import LiveSession, SessionRegistry
from caption_reconciler.storage.base import SessionStore, StorageError
from caption_reconciler.storage.json_store import JsonFileSessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

registry = SessionRegistry()
session_store: SessionStore = JsonFileSessionStore(load_store_dir())


async def _periodic_cleanup() -> None:
    """Expire idle live sessions and old stored sessions every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        registry.cleanup_expired()
        try:
            await asyncio.to_thread(session_store.cleanup_expired, CACHE_MAX_AGE)
        except StorageError:
            logger.warning("Stored session cleanup failed", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Caption Reconciler API",
    description=(
        "REST API for reconciling live meeting captions into a clean transcript. "
        "Create a session, push observed caption rows, chat messages and comments, "
        "and export the merged, de-duplicated transcript."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_live(handle: str) -> LiveSession:
    live = registry.get(handle)
    if live is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(handle))
    return live


def _session_to_response(live: LiveSession) -> SessionResponse:
    engine = live.engine
    return SessionResponse(
        id=live.id,
        session_id=engine.session_id or "",
        meeting_title=live.meeting.title,
        meeting_id=live.meeting.meeting_id,
        resumed=engine.resumed,
        transcript_lines=len(engine.history),
        chat_messages=len(engine.chat_history),
        comments=len(engine.comments),
        created_at=live.created_at,
    )


def _result_to_out(result: ReconcileResult) -> ReconcileResultOut:
    return ReconcileResultOut(
        action=result.action.value,
        index=result.index,
        line=result.line.render() if result.line is not None else None,
        previous_text=result.previous_text,
    )


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=201,
    tags=["sessions"],
    summary="Start a live session",
    description=(
        "Create a live reconciliation session for a meeting. With resume=true, "
        "the most recent stored session for the same meeting id is restored first."
    ),
    responses={
        429: {"model": ErrorResponse, "description": "Too many live sessions"},
    },
)
async def create_session(request: CreateSessionRequest) -> SessionResponse:
    meeting = MeetingInfo(
        title=request.title or DEFAULT_MEETING_TITLE,
        meeting_id=request.meeting_id,
        organizer=request.organizer,
    )
    try:
        live = registry.create(meeting)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    if request.resume and meeting.meeting_id:
        try:
            stored = await asyncio.to_thread(
                session_store.load_most_recent_matching, meeting.meeting_id
            )
        except StorageError:
            logger.warning("Session store unavailable during resume", exc_info=True)
            stored = None
        if stored is not None:
            live.engine.restore(stored)

    live.engine.start_meeting(meeting)
    return _session_to_response(live)


@app.get(
    "/sessions",
    response_model=List[SessionResponse],
    tags=["sessions"],
    summary="List live sessions",
)
async def list_sessions() -> List[SessionResponse]:
    return [_session_to_response(live) for live in registry.list_sessions()]


@app.get(
    "/sessions/{handle}",
    response_model=SessionDetailResponse,
    tags=["sessions"],
    summary="Get a live session with its rendered buffers",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session(handle: str) -> SessionDetailResponse:
    live = _get_live(handle)
    engine = live.engine
    summary = _session_to_response(live)
    return SessionDetailResponse(
        **summary.model_dump(),
        attendees=engine.attendees,
        transcript=engine.get_transcript_content(),
        chat=engine.get_chat_content(),
        comments_text=engine.get_comments_content(),
    )


@app.delete(
    "/sessions/{handle}",
    status_code=204,
    tags=["sessions"],
    summary="Drop a live session",
    description="Removes the live session from memory. Stored snapshots are kept.",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def delete_session(handle: str) -> Response:
    if not registry.delete(handle):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(handle))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Ingest
# ---------------------------------------------------------------------------


@app.post(
    "/sessions/{handle}/captions",
    response_model=ReconcileBatchResponse,
    tags=["ingest"],
    summary="Submit observed caption rows",
    description=(
        "Each row is reconciled against the speaker's recent lines: duplicates are "
        "discarded, corrections and extensions are merged in place, new utterances "
        "are appended."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def submit_captions(handle: str, request: CaptionBatchRequest) -> ReconcileBatchResponse:
    engine = _get_live(handle).engine
    results = [
        engine.reconcile(row.speaker, row.text, row.observed_at)
        for row in request.captions
    ]
    return ReconcileBatchResponse(results=[_result_to_out(r) for r in results])


@app.post(
    "/sessions/{handle}/chat",
    response_model=ReconcileBatchResponse,
    tags=["ingest"],
    summary="Submit observed chat messages",
    responses={
        400: {"model": ErrorResponse, "description": "Unparseable message time"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def submit_chat(handle: str, request: ChatBatchRequest) -> ReconcileBatchResponse:
    engine = _get_live(handle).engine
    results = []
    for message in request.messages:
        sent_at = None
        if message.time:
            sent_at = TimestampTag.parse(message.time)
            if sent_at is None:
                raise HTTPException(
                    status_code=400,
                    detail="Invalid message time '{}', expected e.g. '10:05 AM'".format(message.time),
                )
        results.append(engine.add_chat_message(
            message.sender, message.message, sent_at, message.observed_at
        ))
    return ReconcileBatchResponse(results=[_result_to_out(r) for r in results])


@app.post(
    "/sessions/{handle}/comments",
    response_model=ReconcileResultOut,
    tags=["ingest"],
    summary="Inject a comment into the transcript",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def submit_comment(handle: str, request: CommentRequest) -> ReconcileResultOut:
    engine = _get_live(handle).engine
    return _result_to_out(engine.add_comment(request.text, request.observed_at))


@app.put(
    "/sessions/{handle}/attendees",
    response_model=AttendeesResponse,
    tags=["ingest"],
    summary="Replace the attendee roster",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def set_attendees(handle: str, request: AttendeesRequest) -> AttendeesResponse:
    engine = _get_live(handle).engine
    changed = engine.set_attendees(request.names)
    return AttendeesResponse(attendees=engine.attendees, changed=changed)


# ---------------------------------------------------------------------------
# Endpoints: Export and persistence
# ---------------------------------------------------------------------------


@app.get(
    "/sessions/{handle}/export",
    tags=["export"],
    summary="Download the transcript in one export format",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def export_session(
    handle: str,
    export_format: Annotated[
        ExportFormat,
        Query(alias="format", description="Export format key."),
    ] = ExportFormat.plain_text,
    dedup: Annotated[
        bool,
        Query(description="Scrub near-duplicate transcript lines from the combined export."),
    ] = True,
) -> Response:
    live = _get_live(handle)
    session = live.engine.snapshot(live.meeting, apply_dedup=dedup)
    output = FORMATTERS[export_format.value]().format(session)[0]
    filename = "{}{}".format(build_file_name_id(live.meeting.title, live.engine.started_at), output.suffix)
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


@app.post(
    "/sessions/{handle}/flush",
    response_model=FlushResponse,
    tags=["export"],
    summary="Persist the live session",
    description=(
        "Saves a snapshot to the session store. A stored buffer with more lines "
        "than the snapshot is kept (regression guard)."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        503: {"model": ErrorResponse, "description": "Session store unavailable"},
    },
)
async def flush_session(handle: str) -> FlushResponse:
    live = _get_live(handle)
    engine = live.engine
    engine.trim_fingerprints()
    if not engine.has_content():
        return FlushResponse(session_id=engine.session_id or "", stored=False)

    session = engine.snapshot(live.meeting)
    try:
        stored = await asyncio.to_thread(session_store.save, session)
    except StorageError as exc:
        logger.warning("Flush failed for %s: %s", handle, exc)
        raise HTTPException(status_code=503, detail="Session store unavailable: {}".format(exc))
    return FlushResponse(session_id=stored.session_id, stored=True, updated_at=stored.updated_at)


# ---------------------------------------------------------------------------
# Endpoints: Formats
# ---------------------------------------------------------------------------


@app.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["formats"],
    summary="List available export formats",
)
async def list_formats() -> List[FormatInfo]:
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        result.append(FormatInfo(key=key, name=formatter.name, suffix=formatter.suffix))
    return result


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__, live_sessions=len(registry))


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the caption-reconciler-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
