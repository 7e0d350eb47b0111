"""
Spelling-suggestion provider backed by pyspellchecker.

TextModerator only needs two questions answered per token: is it a real
word, and if not, what are the best replacements (best first).

Suggestions use edit distance 1 by default; distance 2 makes every unknown
token cost tens of thousands of dictionary lookups. Results are cached per
token so repeated gibberish is only searched once.
"""

from __future__ import annotations
from functools import lru_cache
from typing import List, Optional, Tuple

from spellchecker import SpellChecker

DEFAULT_DISTANCE = 1
SUGGESTION_CACHE_SIZE = 4096


class SpellingProvider:
    """Adapter over a pyspellchecker dictionary for one locale."""

    def __init__(self, locale: Optional[str] = "en", checker: Optional[SpellChecker] = None,
                 distance: int = DEFAULT_DISTANCE):
        self.locale = locale
        self.distance = distance
        self._checker = checker
        self._ranked = lru_cache(maxsize=SUGGESTION_CACHE_SIZE)(self._rank_candidates)

    @property
    def checker(self) -> SpellChecker:
        # Loading a word-frequency dictionary is slow; defer it to first use
        if self._checker is None:
            self._checker = SpellChecker(language=self.locale, distance=self.distance)
        return self._checker

    def is_valid(self, token: str) -> bool:
        return bool(self.checker.known([token]))

    def suggestions(self, token: str) -> List[str]:
        """Ordered suggestions; the most frequent candidate comes first."""
        return list(self._ranked(token.lower()))

    def _rank_candidates(self, token: str) -> Tuple[str, ...]:
        # One candidates() search; correction() would repeat it
        candidates = self.checker.candidates(token) or set()
        return tuple(sorted(candidates, key=lambda c: (-self.checker.word_usage_frequency(c), c)))
