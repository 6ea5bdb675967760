"""Unit tests for text normalization and name/filename helpers.

WHY: normalize() decides which caption revisions count as "the same
text", and sanitize_filename() is part of the persisted session id. A
change in either silently breaks merging or resume.

HOW: Plain assertions on known inputs, one class per helper.
"""

from __future__ import annotations

from caption_reconciler.core.text import (
    MAX_FILENAME_LENGTH,
    format_attendees,
    format_speaker_name,
    normalize,
    sanitize_filename,
    tokenize,
    word_count,
)


class TestNormalize:
    """normalize() lowercases, strips punctuation, collapses whitespace."""

    def test_punctuation_variants_normalize_equal(self):
        assert normalize("This is a test 12") == normalize("This is a test, 12,")

    def test_lowercases_and_trims(self):
        assert normalize("  Hello   WORLD  ") == "hello world"

    def test_strips_full_punctuation_class(self):
        assert normalize("a.b,c/d#e!f$g%h^i&j*k;l:m{n}o=p-q_r`s~t(u)v") == "abcdefghijklmnopqrstuv"

    def test_keeps_question_marks_and_apostrophes(self):
        assert normalize("Isn't it?") == "isn't it?"

    def test_empty_input(self):
        assert normalize("") == ""
        assert normalize("...") == ""


class TestTokenize:

    def test_splits_on_whitespace(self):
        assert tokenize("one  two\tthree") == ["one", "two", "three"]

    def test_empty(self):
        assert tokenize("") == []
        assert word_count("   ") == 0

    def test_word_count(self):
        assert word_count("Yes.") == 1
        assert word_count("This is a test 12") == 5


class TestFormatSpeakerName:
    """'Last, First' becomes 'First Last'; anything else is kept."""

    def test_swaps_two_part_name(self):
        assert format_speaker_name("Hetz, Doron") == "Doron Hetz"

    def test_single_name_unchanged(self):
        assert format_speaker_name("Doron") == "Doron"

    def test_three_parts_unchanged(self):
        assert format_speaker_name("A, B, C") == "A, B, C"

    def test_empty_is_unknown_speaker(self):
        assert format_speaker_name("") == "Unknown Speaker"
        assert format_speaker_name("   ") == "Unknown Speaker"


class TestFormatAttendees:

    def test_sorted_deduplicated_and_formatted(self):
        names = ["Hetz, Doron", "Ana Lopez", "Hetz, Doron", ""]
        assert format_attendees(names) == "Ana Lopez, Doron Hetz"

    def test_skips_conference_rooms(self):
        assert format_attendees(["‹Room 4.1›", "Ana Lopez"]) == "Ana Lopez"

    def test_empty(self):
        assert format_attendees([]) == ""


class TestSanitizeFilename:
    """Forbidden characters become '-', runs collapse, edges are trimmed."""

    def test_replaces_forbidden_characters(self):
        assert sanitize_filename("Q1: Plan/Review?") == "Q1- Plan-Review"

    def test_collapses_dash_runs(self):
        assert sanitize_filename("a::b") == "a-b"

    def test_pipe_becomes_dash(self):
        assert sanitize_filename("Team | Sync") == "Team - Sync"

    def test_trims_edge_dashes(self):
        assert sanitize_filename("<Sync>") == "Sync"

    def test_collapses_whitespace(self):
        assert sanitize_filename("Weekly    Sync") == "Weekly Sync"

    def test_truncates(self):
        assert len(sanitize_filename("x" * 500)) == MAX_FILENAME_LENGTH
