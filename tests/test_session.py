"""Unit tests for session identifiers, the meeting header and Session.

WHY: A restarted capture finds its stored session by id, so the id must
be reproduced bit for bit from the meeting metadata and date.

HOW: Aware datetimes pin the date; the UTC cases check that the date is
taken in the session timezone, not in the caller's.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from caption_reconciler.core.session import (
    MeetingInfo,
    Session,
    build_file_name_id,
    build_session_id,
    format_meeting_header,
    session_date,
)

UTC = ZoneInfo("UTC")


class TestSessionId:

    def test_bit_exact_format(self, meeting, start):
        assert build_session_id(meeting, start) == "[03-05] - Weekly Sync - MoM - 123456789"

    def test_title_is_sanitized(self, start):
        meeting = MeetingInfo(title="Q1: Plan/Review?", meeting_id="42")
        assert build_session_id(meeting, start) == "[03-05] - Q1- Plan-Review - MoM - 42"

    def test_empty_meeting_id(self, start):
        assert build_session_id(MeetingInfo("Sync"), start) == "[03-05] - Sync - MoM - "

    def test_date_in_session_timezone(self, meeting):
        # 02:00 UTC on 6 March is still 5 March in Los Angeles
        late = datetime(2024, 3, 6, 2, 0, tzinfo=UTC)
        assert build_session_id(meeting, late).startswith("[03-05]")
        assert session_date(late, "UTC").day == 6

    def test_file_name_id_omits_meeting_id(self, start):
        assert build_file_name_id("Weekly Sync", start) == "[03-05] - Weekly Sync - MoM"


class TestMeetingHeader:

    def test_title_and_date_lines(self, start):
        title_line, date_line = format_meeting_header("Weekly Sync", start)
        assert title_line == "Meeting Title: [03-05] - Weekly Sync"
        assert date_line == "Meeting Date: 03/05"


class TestSession:

    def test_has_content(self):
        assert not Session("s").has_content()
        assert not Session("s", chat="  \n ").has_content()
        assert Session("s", comments="x").has_content()

    def test_dict_round_trip(self):
        session = Session("s", meeting_id="1", transcript="a\nb", created_at=1.0, updated_at=2.0)
        assert Session.from_dict(session.to_dict()) == session

    def test_from_dict_tolerates_missing_keys(self):
        session = Session.from_dict({"session_id": "old", "transcript": "x"})
        assert session.meeting_title == "Subject"
        assert session.chat == ""
        assert session.created_at == 0.0
