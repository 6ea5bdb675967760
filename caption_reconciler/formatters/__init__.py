"""Export formatter registry, a pluggable format hub.

WHY: The CLI and the HTTP service need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new formats:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["plain_text"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and query params)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Type

from caption_reconciler.formatters.plain_text import PlainTextFormatter
from caption_reconciler.formatters.separate_text import SeparateTextFormatter
from caption_reconciler.formatters.session_json import SessionJsonFormatter

if TYPE_CHECKING:
    from caption_reconciler.formatters.base import BaseFormatter

FORMATTERS: Dict[str, Type[BaseFormatter]] = {
    "plain_text": PlainTextFormatter,
    "separate_text": SeparateTextFormatter,
    "session_json": SessionJsonFormatter,
}
