"""Configuration constants, rendering prefixes, and .env loading.

WHY: Centralizes every tunable value so thresholds, poll intervals, and
storage locations are easy to find and override. The similarity thresholds
in particular evolved empirically and must stay adjustable without code
changes.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values read from the environment with defaults. Rendering
prefixes for header, system, and comment lines are plain constants because
persisted transcripts depend on them byte for byte.

RULES:
- All numeric defaults can be overridden via environment variables
- Header prefixes and the comment marker are part of the persisted format
  and are NOT configurable
- SESSION_STORE_DIR defaults to ~/.caption_reconciler/sessions
- LOG_LEVEL only affects entry points (CLI); library modules never
  configure logging themselves
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

CAPTION_WINDOW_SIZE = _env_int("CAPTION_WINDOW_SIZE", 5)
"""Number of recent same-speaker lines considered as merge candidates."""

SHORT_MESSAGE_WORDS = _env_int("SHORT_MESSAGE_WORDS", 3)
"""Utterances with this many words or fewer are treated as short interjections."""

FINGERPRINT_CAPACITY = _env_int("FINGERPRINT_CAPACITY", 100)
FINGERPRINT_RETAIN = _env_int("FINGERPRINT_RETAIN", 50)

MATCH_STRICTNESS = os.getenv("MATCH_STRICTNESS", "strict").lower()
"""Default SimilarityMatcher strictness: "strict" or "loose"."""

# ---------------------------------------------------------------------------
# Capture timers (seconds)
# ---------------------------------------------------------------------------

CAPTION_POLL_INTERVAL = _env_float("CAPTION_POLL_INTERVAL", 1.0)
CHAT_POLL_INTERVAL = _env_float("CHAT_POLL_INTERVAL", 2.0)
STORE_FLUSH_INTERVAL = _env_float("STORE_FLUSH_INTERVAL", 10.0)
CAPTURE_MAX_RETRIES = _env_int("CAPTURE_MAX_RETRIES", 10)
CAPTURE_SOURCE_URL = os.getenv("CAPTURE_SOURCE_URL", "http://localhost:8765")

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

CACHE_UPDATE_INTERVAL = _env_float("CACHE_UPDATE_INTERVAL", 60.0)
CACHE_MAX_AGE = _env_float("CACHE_MAX_AGE", 24 * 60 * 60)
RESUME_WINDOW = _env_float("RESUME_WINDOW", 24 * 60 * 60)
SESSION_TIMEZONE = os.getenv("SESSION_TIMEZONE", "America/Los_Angeles")
SESSION_FILE_SUFFIX = os.getenv("SESSION_FILE_SUFFIX", "MoM")
SESSION_IDLE_TTL = _env_float("SESSION_IDLE_TTL", 6 * 60 * 60)
MAX_LIVE_SESSIONS = _env_int("MAX_LIVE_SESSIONS", 50)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Capture source conventions
# ---------------------------------------------------------------------------

SYSTEM_SENDER = os.getenv("SYSTEM_SENDER", "Amazon Chime")
SYSTEM_CAPTION_MARKER = os.getenv("SYSTEM_CAPTION_MARKER", "Machine generated captions")
SYSTEM_MESSAGE = os.getenv(
    "SYSTEM_MESSAGE",
    "Amazon Chime: Machine generated captions are generated by Amazon Transcribe.",
)
UNKNOWN_SPEAKER = "Unknown Speaker"
DEFAULT_MEETING_TITLE = "Subject"

# ---------------------------------------------------------------------------
# Persisted line format
# ---------------------------------------------------------------------------

TITLE_PREFIX = "Meeting Title: "
MEETING_DATE_PREFIX = "Meeting Date: "
ATTENDEES_PREFIX = "Attendees: "
ATTENDEES_SEPARATOR = ", "
COMMENT_MARKER = "[Injected Comment]"

HEADER_PREFIXES = (TITLE_PREFIX, MEETING_DATE_PREFIX, ATTENDEES_PREFIX)


def load_store_dir() -> Path:
    """Resolve the session store directory from the environment.

    WHY: The CLI and the HTTP service both persist sessions; they must
    agree on one location unless the user overrides it.

    HOW: Reads SESSION_STORE_DIR, expanding ``~``. Falls back to
    ``~/.caption_reconciler/sessions``.

    RULES:
    - The directory is NOT created here; the store creates it lazily
    """
    raw = os.getenv("SESSION_STORE_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".caption_reconciler" / "sessions"
