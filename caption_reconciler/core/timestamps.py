"""Clock-time tags carried on every transcript line.

WHY: Combined export orders captions, chat and comments by the clock time
shown in each line. Re-parsing that time out of display strings on every
export is fragile, so each line carries an explicit TimestampTag created
once when the line is made. The bracket parser survives only at the text
boundary: restoring persisted sessions and scrubbing exported text.

HOW: TimestampTag stores a 24-hour clock time with optional seconds.
render() produces the 12-hour "h:mm:ss AM" display form; parse() and
find_timestamp() accept both the current with-seconds form and the legacy
minute-only form.

RULES:
- Display form: "h:mm:ss AM/PM" (no leading zero on the hour)
- Legacy form without seconds is still accepted and rendered as "h:mm AM/PM"
- 12 AM is hour 0; 12 PM is hour 12
- Parsing never raises; invalid or missing times yield None
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

# Bracketed tag anywhere in a line: [10:30 AM] or [10:30:45 AM]
TIMESTAMP_RE = re.compile(r"\[(\d{1,2}):(\d{2})(?::(\d{2}))?\s([AP]M)\]")

# Bare time value, as found inside the brackets or in a chat header
_BARE_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])\s*$")


@dataclass(frozen=True)
class TimestampTag:
    """A wall-clock time attached to a transcript line.

    Attributes:
        hour: Hour of day, 0–23.
        minute: Minute, 0–59.
        second: Second, 0–59, or None for minute-only (legacy) tags.
    """

    hour: int
    minute: int
    second: Optional[int] = None

    @classmethod
    def from_datetime(cls, moment: datetime, with_seconds: bool = True) -> TimestampTag:
        return cls(
            hour=moment.hour,
            minute=moment.minute,
            second=moment.second if with_seconds else None,
        )

    @classmethod
    def parse(cls, text: str) -> Optional[TimestampTag]:
        """Parse a bare "h:mm(:ss) AM/PM" value.

        Returns None when the text is not a valid 12-hour clock time.
        """
        match = _BARE_TIME_RE.match(text or "")
        if not match:
            return None
        return _from_parts(match.group(1), match.group(2), match.group(3), match.group(4))

    def with_seconds(self, second: int) -> TimestampTag:
        """Return a copy carrying *second*; tags that already have seconds are unchanged."""
        if self.second is not None:
            return self
        return TimestampTag(self.hour, self.minute, second)

    def render(self) -> str:
        display_hour = self.hour % 12 or 12
        period = "AM" if self.hour < 12 else "PM"
        if self.second is None:
            return "{}:{:02d} {}".format(display_hour, self.minute, period)
        return "{}:{:02d}:{:02d} {}".format(display_hour, self.minute, self.second, period)

    def bracketed(self) -> str:
        return "[{}]".format(self.render())

    def on_date(self, day: date, tzinfo=None) -> datetime:
        """Project this clock time onto a calendar day."""
        return datetime(
            day.year, day.month, day.day,
            self.hour, self.minute, self.second or 0,
            tzinfo=tzinfo,
        )

    def __str__(self) -> str:
        return self.render()


def find_timestamp(line: str) -> Optional[TimestampTag]:
    """Find the first bracketed timestamp tag in a rendered line."""
    match = TIMESTAMP_RE.search(line or "")
    if not match:
        return None
    return _from_parts(match.group(1), match.group(2), match.group(3), match.group(4))


def _from_parts(
    hours: str,
    minutes: str,
    seconds: Optional[str],
    period: str,
) -> Optional[TimestampTag]:
    hour = int(hours)
    minute = int(minutes)
    second = int(seconds) if seconds is not None else None
    if not 1 <= hour <= 12 or minute > 59 or (second is not None and second > 59):
        return None

    period = period.upper()
    if period == "PM" and hour < 12:
        hour += 12
    if period == "AM" and hour == 12:
        hour = 0
    return TimestampTag(hour, minute, second)
