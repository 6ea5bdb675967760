"""Fuzzy "same utterance?" decisions for live caption text.

WHY: Live captions are revised in place (ASR correcting earlier words) or
extended (more words appended) far more often than replaced outright. The
engine must recognise "This is a test 12" and "This is a test, 123." as
one utterance while keeping genuinely new sentences apart.

HOW: Two recognisers behind one class with a tagged strictness:
  LOOSE  — is_match(): layered tests from cheap to expensive (normalized
           equality, prefix growth, core-prefix overlap, meaningful-word
           overlap). Thresholds rise with string length because short
           strings carry too little signal for word statistics.
  STRICT — is_auto_correction(): word-level correction patterns
           (reordered words, dropped leading filler, inserted/removed
           article, shared leading words) behind a word-count-gap guard.

RULES:
- Inputs are raw strings; both recognisers normalize internally
- Every threshold lives in MatchThresholds and is tunable
- Identical raw strings are NOT an auto-correction (nothing was corrected)
- Empty normalized input only matches empty normalized input
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from caption_reconciler.core.text import normalize, tokenize

STOP_WORDS: FrozenSet[str] = frozenset({
    "i", "will", "would", "like", "to", "the", "this", "that", "is",
    "a", "an", "and", "or", "but", "in", "on", "at", "it", "for",
    "yes", "no", "so", "uh", "um", "we", "you", "they", "of", "from",
    "he", "she", "me", "my", "us", "our", "them", "their", "be", "are",
})

ARTICLES = ("a", "an", "the")


class Strictness(str, enum.Enum):
    """Tagged matcher variants."""

    LOOSE = "loose"
    STRICT = "strict"


@dataclass(frozen=True)
class MatchThresholds:
    """Tunable thresholds for both recognisers.

    Attributes:
        core_min_length: Both normalized strings must be longer than this
                         for the core-overlap test.
        core_slack: Characters trimmed from the shorter length to tolerate
                    trailing drift.
        core_floor: Minimum core length, preventing degenerate comparisons.
        word_min_length: Both normalized strings must be longer than this
                         for the word-similarity test.
        word_ratio: Minimum shared fraction of the shorter word set.
        word_min_shared: Minimum absolute count of shared meaningful words.
        correction_ratio: Minimum position-free matching-word ratio for
                          an auto-correction.
        correction_max_word_gap: Larger word-count differences are never
                                 auto-corrections.
    """

    core_min_length: int = 10
    core_slack: int = 5
    core_floor: int = 10
    word_min_length: int = 15
    word_ratio: float = 0.7
    word_min_shared: int = 3
    correction_ratio: float = 0.7
    correction_max_word_gap: int = 2


@dataclass
class SimilarityMatcher:
    """Decide whether two caption texts are the same utterance.

    Attributes:
        strictness: Which recogniser matches() dispatches to.
        thresholds: Tunable thresholds shared by both recognisers.
        stop_words: Words ignored by the word-similarity test.
    """

    strictness: Strictness = Strictness.STRICT
    thresholds: MatchThresholds = field(default_factory=MatchThresholds)
    stop_words: FrozenSet[str] = STOP_WORDS

    def matches(self, current: str, previous: str) -> bool:
        """Dispatch to the recogniser selected by ``strictness``."""
        if self.strictness == Strictness.LOOSE:
            return self.is_match(previous, current)
        return self.is_auto_correction(current, previous)

    def is_match(self, previous: str, current: str) -> bool:
        """Layered loose match; short-circuits on the first positive test."""
        norm1 = normalize(previous)
        norm2 = normalize(current)

        if norm1 == norm2:
            return True
        if not norm1 or not norm2:
            return False

        # Live-growing caption
        if norm1.startswith(norm2) or norm2.startswith(norm1):
            return True

        t = self.thresholds
        if len(norm1) > t.core_min_length and len(norm2) > t.core_min_length:
            comparison_length = max(min(len(norm1), len(norm2)) - t.core_slack, t.core_floor)
            core1 = norm1[:comparison_length]
            core2 = norm2[:comparison_length]
            if core1 == core2 or core2 in norm1 or core1 in norm2:
                return True

        if len(norm1) > t.word_min_length and len(norm2) > t.word_min_length:
            return self._word_similarity(norm1, norm2)

        return False

    def is_auto_correction(self, current: str, previous: str) -> bool:
        """Recognise small grammatical edits between two caption versions."""
        if current == previous:
            return False

        norm_a = normalize(current)
        norm_b = normalize(previous)
        if norm_a == norm_b:
            return True

        words_a = tokenize(norm_a)
        words_b = tokenize(norm_b)
        if not words_a or not words_b:
            return False

        t = self.thresholds
        if abs(len(words_a) - len(words_b)) > t.correction_max_word_gap:
            return False

        # Same words regardless of position
        matching = sum(1 for word in words_a if word in words_b)
        if matching / min(len(words_a), len(words_b)) >= t.correction_ratio:
            return True

        # Leading filler dropped or added
        if len(words_a) > 1 and len(words_b) > 1:
            if words_a[1:] == words_b or words_b[1:] == words_a:
                return True

        if abs(len(words_a) - len(words_b)) == 1:
            longer, shorter = (words_a, words_b) if len(words_a) > len(words_b) else (words_b, words_a)
            if _differs_by_article(longer, shorter):
                return True

        matching_prefix = _common_prefix_length(words_a, words_b)

        if len(words_a) <= 3 and len(words_b) <= 4 and matching_prefix >= 1:
            return True

        required = max(1, min(3, min(len(words_a), len(words_b)) - 1))
        return matching_prefix >= required

    def _word_similarity(self, norm1: str, norm2: str) -> bool:
        words1 = self._meaningful_words(norm1)
        words2 = self._meaningful_words(norm2)
        if not words1 or not words2:
            return False

        shared = len(words1 & words2)
        ratio = shared / min(len(words1), len(words2))
        return ratio >= self.thresholds.word_ratio and shared >= self.thresholds.word_min_shared

    def _meaningful_words(self, normalized: str) -> set:
        return {
            word for word in tokenize(normalized)
            if len(word) > 1 and word not in self.stop_words
        }


def build_matcher(strictness: Optional[str] = None) -> SimilarityMatcher:
    """Create a matcher from a strictness name ("loose"/"strict").

    Raises:
        ValueError: If the name is not a known strictness.
    """
    if strictness is None:
        from caption_reconciler.config import MATCH_STRICTNESS
        strictness = MATCH_STRICTNESS
    return SimilarityMatcher(strictness=Strictness(strictness.lower()))


def _differs_by_article(longer: List[str], shorter: List[str]) -> bool:
    for article in ARTICLES:
        if article in longer and article not in shorter:
            without_article = list(longer)
            without_article.remove(article)
            if without_article == shorter:
                return True
    return False


def _common_prefix_length(words_a: List[str], words_b: List[str]) -> int:
    count = 0
    for word_a, word_b in zip(words_a, words_b):
        if word_a != word_b:
            break
        count += 1
    return count
