"""
Byte-bounded text segmentation for the toxicity classifier.

Comprehend's DetectToxicContent accepts at most 10 segments per call, each at
most 1 KB of UTF-8, with a 10 KB aggregate. Text beyond those limits is
dropped, not analyzed.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List

MAX_SEGMENT_BYTES = 1024
MAX_SEGMENTS = 10
MAX_TOTAL_BYTES = 10_240


@dataclass(frozen=True)
class TextSegment:
    """One chunk of encoded text. `data` is the exact byte slice of the input."""

    data: bytes

    @property
    def text(self) -> str:
        # A cut may land inside a multi-byte character; the partial bytes are
        # dropped when decoding so the decoded text never grows past the slice.
        return self.data.decode("utf-8", errors="ignore")

    @property
    def size(self) -> int:
        return len(self.data)


def segment(text: str) -> List[TextSegment]:
    """
    Split text into at most MAX_SEGMENTS slices of at most MAX_SEGMENT_BYTES.

    Args:
        text: Arbitrary text, may be empty

    Returns:
        Ordered segments whose concatenated bytes are a prefix of the encoded
        input. Empty input yields an empty list.
    """
    raw = (text or "").encode("utf-8")
    segments = []
    offset = 0
    while offset < len(raw) and len(segments) < MAX_SEGMENTS:
        segments.append(TextSegment(raw[offset:offset + MAX_SEGMENT_BYTES]))
        offset += MAX_SEGMENT_BYTES

    total = 0
    kept = []
    for seg in segments:
        total += seg.size
        if total > MAX_TOTAL_BYTES:
            break
        kept.append(seg)
    return kept
