"""Bounded set of processed caption fingerprints.

WHY: The capture source re-reports the same caption rows on every poll.
Remembering "speaker:text" pairs already processed lets the engine drop
them in O(1) before any similarity work, but a long meeting must not grow
that memory without bound.

HOW: An insertion-ordered dict used as an ordered set. Once the size
exceeds ``capacity`` the oldest entries are evicted until only the most
recent ``retain`` remain.

RULES:
- retain must be positive and no larger than capacity
- Re-adding an existing fingerprint does not refresh its position
- Evicted fingerprints can be admitted again; the engine's similarity
  checks still catch most of those repeats
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator

from caption_reconciler.config import FINGERPRINT_CAPACITY, FINGERPRINT_RETAIN

logger = logging.getLogger(__name__)


def make_fingerprint(speaker: str, text: str) -> str:
    return "{}:{}".format(speaker, text)


class FingerprintSet:
    """Insertion-ordered, bounded set of fingerprint strings."""

    def __init__(
        self,
        capacity: int = FINGERPRINT_CAPACITY,
        retain: int = FINGERPRINT_RETAIN,
    ) -> None:
        if retain <= 0:
            raise ValueError("retain must be positive, got {}".format(retain))
        if retain > capacity:
            raise ValueError(
                "retain ({}) must not exceed capacity ({})".format(retain, capacity)
            )
        self.capacity = capacity
        self.retain = retain
        self._entries: Dict[str, None] = {}

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def add(self, fingerprint: str) -> bool:
        """Record a fingerprint. Returns False if it was already present."""
        if fingerprint in self._entries:
            return False
        self._entries[fingerprint] = None
        if len(self._entries) > self.capacity:
            self.trim()
        return True

    def trim(self) -> int:
        """Evict the oldest entries down to ``retain`` when over capacity.

        Returns the number of evicted fingerprints.
        """
        if len(self._entries) <= self.capacity:
            return 0
        evicted = len(self._entries) - self.retain
        keep = list(self._entries)[evicted:]
        self._entries = dict.fromkeys(keep)
        logger.debug("Trimmed fingerprint set: evicted %d, kept %d", evicted, len(keep))
        return evicted

    def clear(self) -> None:
        self._entries.clear()
