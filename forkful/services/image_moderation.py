"""
Image moderation for review attachments via Rekognition moderation labels.

Images are checked one at a time, in order, and checking stops at the first
unsafe image so later images never reach the provider.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List

from botocore.exceptions import BotoCoreError, ClientError

from forkful.utils.errors import ImageProviderError, log_warning

MIN_CONFIDENCE = 60

UNSAFE_CATEGORIES = frozenset({
    "Explicit",
    "Non-Explicit Nudity of Intimate parts and Kissing",
    "Violence",
    "Swimwear or Underwear",
    "Visually Disturbing",
    "Drugs & Tobacco",
    "Alcohol",
    "Hate Symbols",
    "Suggestive",
})


@dataclass(frozen=True)
class StoredImageRef:
    """Location of an already-uploaded image that Rekognition can read."""

    bucket: str
    key: str


@dataclass(frozen=True)
class ModerationLabel:
    name: str
    confidence: float


@dataclass
class ImageVerdict:
    image: StoredImageRef
    safe: bool
    labels: List[ModerationLabel] = field(default_factory=list)


class ImageModerator:
    def __init__(self, rekognition, min_confidence: float = MIN_CONFIDENCE,
                 unsafe_categories: Iterable[str] = UNSAFE_CATEGORIES):
        self.rekognition = rekognition
        self.min_confidence = min_confidence
        self.unsafe_categories = frozenset(unsafe_categories)

    def detect_labels(self, image: StoredImageRef) -> List[ModerationLabel]:
        """Raises ImageProviderError if Rekognition fails or times out."""
        try:
            response = self.rekognition.detect_moderation_labels(
                Image={"S3Object": {"Bucket": image.bucket, "Name": image.key}},
                MinConfidence=self.min_confidence,
            )
        except (BotoCoreError, ClientError) as e:
            raise ImageProviderError(f"Rekognition failed for {image.key}: {e}", cause=e) from e

        return [
            ModerationLabel(name=label.get("Name", ""), confidence=float(label.get("Confidence", 0.0)))
            for label in response.get("ModerationLabels", [])
        ]

    def iter_verdicts(self, images: Iterable[StoredImageRef]) -> Iterator[ImageVerdict]:
        """
        Lazily yield one verdict per image, stopping after the first unsafe one.
        """
        for image in images:
            labels = self.detect_labels(image)
            safe = not any(label.name in self.unsafe_categories for label in labels)
            yield ImageVerdict(image=image, safe=safe, labels=labels)
            if not safe:
                return

    def analyze_images(self, images: Iterable[StoredImageRef]) -> bool:
        """
        True when every image is free of blocklisted labels.

        Provider errors propagate as ImageProviderError, distinct from False.
        """
        for verdict in self.iter_verdicts(images):
            if not verdict.safe:
                flagged = sorted(l.name for l in verdict.labels if l.name in self.unsafe_categories)
                log_warning(f"Unsafe image {verdict.image.key}: {', '.join(flagged)}")
                return False
        return True
