"""JSON snapshot export of a session.

WHY: Downstream tools (summarizers, search indexers) want structured
lines rather than rendered text, and a snapshot that can be re-imported
as a Session. One JSON document serves both.

HOW: Emits the Session fields plus a "lines" array parsed from the
combined buffer (kind, speaker, time, text). The output is validated
with jsonschema against session_schema.json before returning.

RULES:
- Schema version is "1.0.0"
- "time" is the rendered clock time ("10:00:05 AM") or null
- Output suffix: ".json"
- Validate output against the schema before returning; raise on failure
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from caption_reconciler.core.ir import TranscriptLine
from caption_reconciler.core.session import Session
from caption_reconciler.formatters.base import BaseFormatter, FormatterOutput

SCHEMA_VERSION = "1.0.0"

_SCHEMA_PATH = Path(__file__).resolve().parent / "session_schema.json"

_CACHED_SCHEMA: Optional[Dict[str, Any]] = None


def get_schema() -> Dict[str, Any]:
    """Load and cache the session snapshot JSON schema."""
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


def _line_to_dict(line: TranscriptLine) -> Dict[str, Any]:
    return {
        "kind": line.kind.value,
        "speaker": line.speaker,
        "time": line.timestamp.render() if line.timestamp is not None else None,
        "text": line.text,
    }


class SessionJsonFormatter(BaseFormatter):
    """Session snapshot with structured lines as JSON."""

    @property
    def name(self) -> str:
        return "Session JSON"

    @property
    def suffix(self) -> str:
        return ".json"

    def format(self, session: Session) -> List[FormatterOutput]:
        """Serialize the session.

        Raises:
            jsonschema.ValidationError: If the generated JSON does not
                conform to the session schema.
        """
        output: Dict[str, Any] = {"version": SCHEMA_VERSION}
        output.update(session.to_dict())
        output["lines"] = [
            _line_to_dict(TranscriptLine.from_text(raw))
            for raw in session.combined.split("\n")
            if raw.strip()
        ]

        jsonschema.validate(instance=output, schema=get_schema())

        content = json.dumps(output, indent=2, ensure_ascii=False)
        return [FormatterOutput(suffix=self.suffix, content=content, media_type="application/json")]
