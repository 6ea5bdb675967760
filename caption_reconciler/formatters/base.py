"""Abstract base formatter and output container.

WHY: Every export consumes the same Session snapshot but produces
different file content. This base class enforces a consistent interface
so the CLI and the HTTP service can work with any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles a file suffix with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; single-file formatters return one item
- The caller prepends the session's file name id to ``suffix``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from caption_reconciler.core.session import Session


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: Appended to the file name id, e.g. ``".txt"`` →
                ``"[03-05] - Weekly Sync - MoM.txt"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"text/plain"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all export formatters.

    To add a new export format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Plain text transcript'."""

    @property
    @abstractmethod
    def suffix(self) -> str:
        """File suffix of the (first) output file."""

    @abstractmethod
    def format(self, session: Session) -> List[FormatterOutput]:
        """Convert a session snapshot into one or more output files."""
