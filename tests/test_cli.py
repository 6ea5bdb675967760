"""Tests for the command-line interface.

WHY: Replaying a recorded event file is the main offline workflow. The
CLI must pick the meeting, name export files from the session date and
title, avoid overwriting earlier exports, and store the session.

HOW: main() is called with an explicit argv; files go to tmp_path.
Invalid invocations are checked through SystemExit codes.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from caption_reconciler.cli import build_parser, main
from caption_reconciler.storage.json_store import JsonFileSessionStore

EVENTS = [
    {"type": "meeting", "title": "Weekly Sync", "meeting_id": "123 456 789"},
    {"type": "caption", "speaker": "Hetz, Doron", "text": "This is a test 12", "at": "2024-03-05T10:00:00-08:00"},
    {"type": "caption", "speaker": "Hetz, Doron", "text": "This is a test, 12,", "at": "2024-03-05T10:00:01-08:00"},
    {"type": "caption", "speaker": "Hetz, Doron", "text": "This is a test, 123.", "at": "2024-03-05T10:00:02-08:00"},
    {"type": "chat", "sender": "Lopez, Ana", "message": "deck?", "time": "10:00 AM", "at": "2024-03-05T10:00:03-08:00"},
]

STEM = "[03-05] - Weekly Sync - MoM"


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(json.dumps(e) for e in EVENTS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def out_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


def _run(events_file, out_dir, tmp_path, *extra):
    main([str(events_file), "--output-dir", str(out_dir), "--store-dir", str(tmp_path / "store"), *extra])


class TestReplay:

    def test_writes_all_formats(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path)
        names = sorted(p.name for p in out_dir.iterdir())
        assert names == sorted([STEM + ".txt", STEM + "-streams.txt", STEM + ".json"])

        text = (out_dir / (STEM + ".txt")).read_text(encoding="utf-8")
        assert "Doron Hetz [10:00:02 AM]: This is a test, 123." in text
        assert "This is a test 12\n" not in text
        assert "[10:00:03 AM] - Ana Lopez: deck?" in text

    def test_stores_session(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path)
        [session] = JsonFileSessionStore(tmp_path / "store").list_sessions()
        assert session.session_id == STEM + " - 123456789"
        assert session.meeting_id == "123 456 789"

    def test_no_store(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path, "--no-store")
        assert not (tmp_path / "store").exists()

    def test_selected_format_and_conflict_suffix(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path, "--formats", "plain_text", "--no-store")
        _run(events_file, out_dir, tmp_path, "--formats", "plain_text", "--no-store")
        assert sorted(p.name for p in out_dir.iterdir()) == [STEM + "-2.txt", STEM + ".txt"]

    def test_title_override(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path, "--title", "Retro", "--formats", "plain_text", "--no-store")
        assert [p.name for p in out_dir.iterdir()] == ["[03-05] - Retro - MoM.txt"]

    def test_resume_does_not_duplicate(self, events_file, out_dir, tmp_path):
        _run(events_file, out_dir, tmp_path, "--formats", "plain_text")
        _run(events_file, out_dir, tmp_path, "--formats", "plain_text", "--resume")
        text = (out_dir / (STEM + "-2.txt")).read_text(encoding="utf-8")
        assert text.count("Doron Hetz [") == 1
        assert text.count("deck?") == 1
        assert text.count("Meeting Title: ") == 1


class TestInvalidInvocations:

    def test_missing_events_file(self, tmp_path, out_dir):
        with pytest.raises(SystemExit) as exc_info:
            main([str(tmp_path / "missing.jsonl"), "--output-dir", str(out_dir)])
        assert exc_info.value.code == 1

    def test_unknown_format(self, events_file, out_dir, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            _run(events_file, out_dir, tmp_path, "--formats", "docx")
        assert exc_info.value.code == 1

    def test_malformed_events(self, tmp_path, out_dir):
        path = tmp_path / "bad.jsonl"
        path.write_text('{"type": "caption"}\n{"type": "nope"}\n', encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main([str(path), "--output-dir", str(out_dir), "--no-store"])
        assert exc_info.value.code == 1

    def test_no_mode(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2

    def test_two_modes(self, events_file):
        with pytest.raises(SystemExit) as exc_info:
            main([str(events_file), "--serve"])
        assert exc_info.value.code == 2


class TestParser:

    def test_defaults(self):
        args = build_parser().parse_args(["events.jsonl"])
        assert args.events == "events.jsonl"
        assert args.formats is None
        assert args.record is None
        assert args.serve is False
        assert args.port == 8000

    def test_serve_runs_api(self):
        with patch("caption_reconciler.server.app.run_api") as run_api:
            main(["--serve", "--port", "9001"])
        run_api.assert_called_once_with(host="0.0.0.0", port=9001)
