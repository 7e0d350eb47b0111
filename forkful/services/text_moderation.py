"""
Text moderation for review content.

Pipeline: normalize (undo digit-for-letter obfuscation, then spell-correct
each token) -> segment into byte-bounded chunks -> one batched Comprehend
DetectToxicContent call -> keep every label at or above the threshold as a
warning.

Provider failures fail CLOSED: the verdict is unsafe with an error marker and
no warnings. (Avatar moderation fails open; see avatar_moderation.py.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from forkful.services.segments import MAX_TOTAL_BYTES, TextSegment, segment
from forkful.utils.errors import TextProviderError, log_error, log_info

TOXICITY_THRESHOLD = 0.55
TEXT_ANALYSIS_FAILED = "Text analysis failed"

# Digits commonly used in place of letters to slip past filters
_LEET_TABLE = str.maketrans({"0": "o", "1": "i", "5": "s"})


@dataclass(frozen=True)
class ContentWarning:
    category: str
    score: float
    excerpt: str


@dataclass
class ModerationVerdict:
    safe: bool
    warnings: List[ContentWarning] = field(default_factory=list)
    error: Optional[str] = None

    def messages(self) -> List[str]:
        """
        User-facing warning lines. Excerpts are left out on purpose so the
        rejected text is never echoed back to the page.
        """
        if self.error:
            return [self.error]
        seen = []
        for w in self.warnings:
            line = f"Content flagged for {w.category.replace('_', ' ').lower()}"
            if line not in seen:
                seen.append(line)
        return seen


class TextModerator:
    """
    Args:
        comprehend: boto3 Comprehend client (or any object with detect_toxic_content)
        speller: SpellingProvider-like object with is_valid() and suggestions()
        language: Comprehend language code
        threshold: Minimum label score that produces a warning
    """

    def __init__(self, comprehend, speller, language: str = "en", threshold: float = TOXICITY_THRESHOLD):
        self.comprehend = comprehend
        self.speller = speller
        self.language = language
        self.threshold = threshold

    def normalize(self, raw: str) -> str:
        """
        Only the first MAX_TOTAL_BYTES characters are normalized; segmentation
        drops everything past that many bytes anyway.
        """
        words = []
        for token in raw[:MAX_TOTAL_BYTES].split():
            candidate = token.translate(_LEET_TABLE)
            if self.speller.is_valid(candidate):
                words.append(candidate)
                continue
            suggestions = self.speller.suggestions(candidate)
            words.append(suggestions[0] if suggestions else candidate)
        return " ".join(words)

    def analyze_text(self, raw: Optional[str]) -> Optional[ModerationVerdict]:
        """
        Returns None for empty/blank input (nothing to check), otherwise a verdict.
        """
        if not raw or not raw.strip():
            return None

        segments = [s for s in segment(self.normalize(raw)) if s.text]
        if not segments:
            return ModerationVerdict(safe=True)

        try:
            results = self.classify(segments)
        except TextProviderError as e:
            log_error(str(e))
            return ModerationVerdict(safe=False, error=TEXT_ANALYSIS_FAILED)

        warnings = self._extract_warnings(segments, results)
        if warnings:
            log_info(
                "Text flagged: " + ", ".join(sorted({w.category for w in warnings}))
            )
        return ModerationVerdict(safe=not warnings, warnings=warnings)

    def classify(self, segments: List[TextSegment]) -> list:
        """One batched DetectToxicContent call. Raises TextProviderError on failure or timeout."""
        try:
            response = self.comprehend.detect_toxic_content(
                TextSegments=[{"Text": s.text} for s in segments],
                LanguageCode=self.language,
            )
        except (BotoCoreError, ClientError) as e:
            raise TextProviderError(f"Comprehend toxicity analysis failed: {e}", cause=e) from e
        return response.get("ResultList", [])

    def _extract_warnings(self, segments: List[TextSegment], results: list) -> List[ContentWarning]:
        warnings = []
        for idx, result in enumerate(results):
            if idx >= len(segments):
                break
            for label in result.get("Labels", []):
                score = float(label.get("Score", 0.0))
                if score >= self.threshold:
                    warnings.append(ContentWarning(
                        category=label.get("Name", "UNKNOWN"),
                        score=score,
                        excerpt=segments[idx].text,
                    ))
        return warnings
