"""Command-line interface for the caption reconciler.

WHY: Most reconciliation problems are found after a meeting, by replaying
what the capture source showed. The CLI replays a recorded JSONL event
file through a fresh engine and writes the exports; it can also record a
live HTTP capture source or start the HTTP service.

HOW: Uses argparse with three modes chosen by flags:
  replay  — positional EVENTS file → ReconciliationEngine → formatters
  record  — --record URL → TranscriptRecorder + HttpCaptureAdapter via
            asyncio.run(), until --duration elapses or Ctrl+C
  serve   — --serve → uvicorn with the FastAPI app

Status messages go to stderr; export files are written to --output-dir
(default: the current directory). Snapshots are also saved to the session
store unless --no-store is given.

RULES:
- Exactly one of EVENTS, --record or --serve must be given
- --formats: comma-separated formatter keys (default: all registered)
- Output naming: {file name id}{suffix}, numeric suffix on conflict
  ("[03-05] - Weekly Sync - MoM-2.txt")
- --title/--meeting-id override meeting events in the replayed file
- Status output goes to stderr (not stdout)
- Python 3.9+ compatible: no match/case, no X | Y unions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from caption_reconciler.capture.events import CaptureEvent, apply_event, load_events
from caption_reconciler.capture.http_adapter import HttpCaptureAdapter
from caption_reconciler.capture.recorder import TranscriptRecorder
from caption_reconciler.config import DEFAULT_MEETING_TITLE, LOG_LEVEL, load_store_dir
from caption_reconciler.core.engine import ReconciliationEngine
from caption_reconciler.core.session import MeetingInfo, Session, build_file_name_id
from caption_reconciler.core.similarity import build_matcher
from caption_reconciler.formatters import FORMATTERS
from caption_reconciler.formatters.base import FormatterOutput
from caption_reconciler.storage.base import SessionStore, StorageError
from caption_reconciler.storage.cache import ContentCache
from caption_reconciler.storage.json_store import JsonFileSessionStore

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _resolve_output_path(stem: str, suffix: str, output_dir: Path) -> Path:
    """Resolve the output file path, adding a numeric suffix on conflict.

    WHY: Replaying the same event file twice must not overwrite the
    export of the first run.

    RULES:
    - First attempt: {stem}{suffix}
    - Conflict: split suffix at last dot, insert counter before extension
    - Counter starts at 2 and increments
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx >= 0:
        suffix_name = suffix[:dot_idx]
        suffix_ext = suffix[dot_idx:]
    else:
        suffix_name = suffix
        suffix_ext = ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    path = _resolve_output_path(stem, output.suffix, output_dir)
    path.write_text(output.content, encoding="utf-8")
    return path


def _parse_formats(raw: Optional[str]) -> List[str]:
    """Validate --formats; exits with an error on an unknown key."""
    if not raw:
        return list(FORMATTERS.keys())
    keys = [key.strip() for key in raw.split(",") if key.strip()]
    for key in keys:
        if key not in FORMATTERS:
            available = ", ".join(sorted(FORMATTERS.keys()))
            _fail("Unknown format '{}'. Available formats: {}".format(key, available))
    return keys


def _build_engine(args: argparse.Namespace) -> ReconciliationEngine:
    try:
        matcher = build_matcher(args.strictness)
    except ValueError:
        _fail("Unknown strictness '{}'. Use 'strict' or 'loose'.".format(args.strictness))
    return ReconciliationEngine(matcher=matcher)


def _open_store(args: argparse.Namespace) -> Optional[SessionStore]:
    if args.no_store:
        return None
    directory = Path(args.store_dir).expanduser() if args.store_dir else load_store_dir()
    return JsonFileSessionStore(directory)


def _meeting_override(args: argparse.Namespace) -> Optional[MeetingInfo]:
    if args.title is None and args.meeting_id is None and args.organizer is None:
        return None
    return MeetingInfo(
        title=args.title or DEFAULT_MEETING_TITLE,
        meeting_id=args.meeting_id or "",
        organizer=args.organizer or "",
    )


def _write_exports(
    session: Session,
    engine: ReconciliationEngine,
    format_keys: List[str],
    output_dir: Path,
) -> List[Path]:
    """Run the selected formatters and save their outputs."""
    stem = build_file_name_id(session.meeting_title, engine.started_at)
    saved: List[Path] = []
    for key in format_keys:
        formatter = FORMATTERS[key]()
        _status("  Running {} formatter...".format(formatter.name))
        for output in formatter.format(session):
            path = _save_output(output, stem, output_dir)
            saved.append(path)
            _status("  Saved: {}".format(path.name))
    return saved


def _store_session(store: Optional[SessionStore], session: Session) -> None:
    if store is None:
        return
    try:
        store.save(session)
    except StorageError as exc:
        _status("Warning: session not stored: {}".format(exc))
        return
    _status("Stored session {}".format(session.session_id))


def _first_meeting(events: List[CaptureEvent]) -> Optional[CaptureEvent]:
    return next((e for e in events if e.kind == "meeting" and e.meeting is not None), None)


def _run_replay(args: argparse.Namespace, output_dir: Path, format_keys: List[str]) -> None:
    """Replay a JSONL event file through a fresh engine and export it.

    RULES:
    - The meeting comes from --title/--meeting-id/--organizer if any is
      given, else from the first meeting event, else the defaults
    - The session starts at the first event carrying an "at" instant
    - Meeting events are not re-applied after the session has started
    """
    events_path = Path(args.events)
    if not events_path.is_file():
        _fail("File not found: {}".format(events_path))

    _status("Loading events from {}...".format(events_path.name))
    try:
        events = load_events(events_path)
    except ValueError as exc:
        _fail(str(exc))
    _status("  {} events".format(len(events)))

    engine = _build_engine(args)
    store = _open_store(args)

    meeting = _meeting_override(args)
    if meeting is None:
        first = _first_meeting(events)
        meeting = first.meeting if first is not None else MeetingInfo()

    if args.resume and store is not None and meeting.meeting_id:
        try:
            stored = store.load_most_recent_matching(meeting.meeting_id)
        except StorageError as exc:
            _status("Warning: session store unavailable: {}".format(exc))
            stored = None
        if stored is not None:
            engine.restore(stored)
            _status("Resumed session {}".format(stored.session_id))

    started_at = next((e.at for e in events if e.at is not None), None)
    engine.start_meeting(meeting, started_at)

    _status("Reconciling...")
    counts = {"appended": 0, "merged": 0, "discarded": 0}
    for event in events:
        if event.kind == "meeting":
            continue
        result = apply_event(engine, event)
        if result is not None:
            counts[result.action.value] += 1
    _status("  {appended} appended, {merged} merged, {discarded} discarded".format(**counts))
    _status("  {} transcript lines, {} chat messages, {} comments".format(
        len(engine.history), len(engine.chat_history), len(engine.comments),
    ))

    session = engine.snapshot(meeting, apply_dedup=not args.no_dedup)

    _status("Formatting output...")
    saved = _write_exports(session, engine, format_keys, output_dir)
    _store_session(store, session)

    _status("")
    _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))


async def _run_record(args: argparse.Namespace, output_dir: Path, format_keys: List[str]) -> None:
    """Record a live HTTP capture source until the duration elapses.

    RULES:
    - The recorder flushes to the store on its own timer; a final flush
      and export happen on stop, including after Ctrl+C
    - The content cache lives in a "cache" directory beside the store
    """
    engine = _build_engine(args)
    store = _open_store(args)
    cache_dir = (store.directory / "cache") if isinstance(store, JsonFileSessionStore) else None
    cache = ContentCache(cache_dir)

    async with HttpCaptureAdapter(args.record) as adapter:
        recorder = TranscriptRecorder(engine, adapter, store=store, cache=cache)
        recorder.meeting = _meeting_override(args)

        _status("Recording from {}...".format(args.record))
        await recorder.start()
        _status("  Session {}".format(engine.session_id))
        try:
            if args.duration:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            _status("Stopping...")
            session = await recorder.stop(flush=True)
            if session is None:
                _status("Nothing captured.")
            else:
                _status("Formatting output...")
                saved = _write_exports(session, engine, format_keys, output_dir)
                _status("")
                _status("Done! Saved {} file(s) to {}".format(len(saved), output_dir))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running anything.
    """
    parser = argparse.ArgumentParser(
        prog="caption_reconciler",
        description="Reconcile live meeting captions, chat and comments into a clean "
                    "transcript. Replays a recorded JSONL event file, records a live "
                    "capture source, or serves the HTTP API.",
    )

    parser.add_argument(
        "events",
        nargs="?",
        default=None,
        help="Path to a JSONL file of recorded capture events to replay.",
    )

    mode = parser.add_argument_group("modes")
    mode.add_argument(
        "--record",
        metavar="URL",
        default=None,
        help="Record a live HTTP capture source at URL.",
    )
    mode.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop recording after this many seconds (default: until Ctrl+C).",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Start the HTTP API instead of replaying or recording.",
    )
    mode.add_argument("--host", default="0.0.0.0", help="API bind address (default: %(default)s).")
    mode.add_argument("--port", type=int, default=8000, help="API port (default: %(default)s).")

    meeting = parser.add_argument_group("meeting")
    meeting.add_argument("--title", default=None, help="Meeting title.")
    meeting.add_argument("--meeting-id", default=None, help="Source meeting identifier.")
    meeting.add_argument("--organizer", default=None, help="Organizer display name.")

    parser.add_argument(
        "--strictness",
        default=None,
        help="Similarity strictness: 'strict' or 'loose' (default: MATCH_STRICTNESS).",
    )
    parser.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: current directory).",
    )
    parser.add_argument(
        "--no-dedup",
        action="store_true",
        help="Keep near-duplicate transcript lines in the combined export.",
    )
    parser.add_argument(
        "--store-dir",
        default=None,
        help="Session store directory (default: SESSION_STORE_DIR).",
    )
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Do not save the session to the session store.",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Replay on top of the most recent stored session for the meeting id.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log engine decisions (DEBUG level).",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    modes = sum(1 for selected in (args.events, args.record, args.serve) if selected)
    if modes != 1:
        parser.error("give exactly one of EVENTS, --record URL or --serve")

    if args.serve:
        from caption_reconciler.server.app import run_api
        run_api(host=args.host, port=args.port)
        return

    output_dir = Path(args.output_dir).resolve() if args.output_dir else Path.cwd()
    if not output_dir.is_dir():
        _fail("Output directory does not exist: {}".format(output_dir))
    format_keys = _parse_formats(args.formats)

    if args.events:
        _run_replay(args, output_dir, format_keys)
        return

    try:
        asyncio.run(_run_record(args, output_dir, format_keys))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
