"""Shared test fixtures for the caption_reconciler test suite.

WHY: Engine, merger and session tests all depend on "now": timestamps
on lines, the reference date for chronological merge, and the date in
session ids. A controllable clock makes every one of those deterministic.

HOW: FakeClock is a callable returning a fixed timezone-aware datetime
that tests can advance. The engine fixture wires it into a fresh
ReconciliationEngine with an explicit strict matcher, so results do not
depend on environment variables.

RULES:
- All datetimes are aware, in America/Los_Angeles (the default session
  timezone), so ids and header dates do not depend on the host timezone
- Each test gets its own clock and engine (no shared mutable state)
"""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from caption_reconciler.core.engine import ReconciliationEngine
from caption_reconciler.core.session import MeetingInfo
from caption_reconciler.core.similarity import SimilarityMatcher, Strictness

TZ = ZoneInfo("America/Los_Angeles")

# Tuesday 5 March 2024, 10:00:00 AM Pacific
START = datetime(2024, 3, 5, 10, 0, 0, tzinfo=TZ)

DORON = "Hetz, Doron"


class FakeClock:
    """Callable clock returning a settable aware datetime."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock) -> ReconciliationEngine:
    """A strict-matching engine driven by the fake clock."""
    return ReconciliationEngine(matcher=SimilarityMatcher(Strictness.STRICT), clock=clock)


@pytest.fixture
def meeting() -> MeetingInfo:
    return MeetingInfo(title="Weekly Sync", meeting_id="123 456 789", organizer="Ana Lopez")


@pytest.fixture
def start() -> datetime:
    """The fixed session start instant."""
    return START
