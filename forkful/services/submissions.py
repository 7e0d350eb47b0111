"""
Review submission orchestrator.

Sequences one create or update of a review through moderation:

    Received -> TextChecked -> Persisted -> ImageChecked -> Committed
                     |              |              |
               RejectedText     Rejected     RejectedImage

Text is checked before anything is written. Images are staged in quarantine
after the review row exists (staging keys are scoped by review id), checked
one by one, and only promoted to public storage when all pass. When a check
fails after the row was written, the staged images are discarded and the row
is rolled back: a new review is deleted, an edited review gets its previous
content and rating back.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from forkful.services.attachments import AttachmentStore, ImageUpload, StagedImage
from forkful.services.image_moderation import ImageModerator
from forkful.services.reviews import ReviewStore
from forkful.services.text_moderation import TextModerator
from forkful.utils.errors import (
    BASE_ERRORS,
    ImageProviderError,
    StorageError,
    StorageInconsistencyError,
    ValidationError,
    log_error,
    log_info,
    log_warning,
)
from forkful.utils.validation import clean_review_text

IMAGE_REJECTED = "Image contains inappropriate content"
UPLOAD_FAILED = "Failed to upload images. Please try again."
TEXT_FIELD_ERROR = "contains inappropriate content"
SAVE_FAILED = "Could not save review. Please try again."

MODE_CREATE = "create"
MODE_UPDATE = "update"


class SubmissionState(str, Enum):
    RECEIVED = "received"
    TEXT_CHECKED = "text_checked"
    PERSISTED = "persisted"
    IMAGE_CHECKED = "image_checked"
    COMMITTED = "committed"
    REJECTED_TEXT = "rejected_text"
    REJECTED_IMAGE = "rejected_image"
    REJECTED = "rejected"


@dataclass
class SubmissionResult:
    state: SubmissionState
    item: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)
    field_errors: Dict[str, List[str]] = field(default_factory=dict)
    history: List[SubmissionState] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.state is SubmissionState.COMMITTED

    @property
    def status(self) -> str:
        return "committed" if self.committed else "rejected"

    def to_dict(self) -> Dict[str, Any]:
        if self.committed:
            return {"status": self.status, "item": self.item}
        return {"status": self.status, "warnings": list(self.warnings)}


class SubmissionOrchestrator:
    """
    All collaborators are injected so tests can swap in fakes.

    Args:
        text_moderator: TextModerator
        image_moderator: ImageModerator
        reviews: ReviewStore (persistence collaborator)
        attachments: AttachmentStore (quarantine / public image storage)
    """

    def __init__(self, text_moderator: TextModerator, image_moderator: ImageModerator,
                 reviews: ReviewStore, attachments: AttachmentStore):
        self.text_moderator = text_moderator
        self.image_moderator = image_moderator
        self.reviews = reviews
        self.attachments = attachments

    def create(self, content: str, rating: Any, parent_id: Optional[str], images: Sequence[ImageUpload],
               *, restaurant_id: str, user_id: str) -> SubmissionResult:
        return self.submit(content, rating, parent_id, images, MODE_CREATE,
                           restaurant_id=restaurant_id, user_id=user_id)

    def update(self, existing: Dict[str, Any], content: str, rating: Any,
               images: Sequence[ImageUpload]) -> SubmissionResult:
        return self.submit(content, rating, existing.get("parent_id"), images, MODE_UPDATE,
                           restaurant_id=existing.get("restaurant_id"), user_id=existing.get("user_id"),
                           existing=existing)

    def submit(self, content: str, rating: Any, parent_id: Optional[str], images: Sequence[ImageUpload],
               mode: str = MODE_CREATE, *, restaurant_id: Optional[str] = None,
               user_id: Optional[str] = None, existing: Optional[Dict[str, Any]] = None) -> SubmissionResult:
        """
        Run one submission to completion.

        Returns:
            SubmissionResult in COMMITTED or one of the rejected states.

        Raises:
            StorageInconsistencyError: a rollback step failed after a rejection
            ValueError: mode is unknown, or update was called without `existing`
        """
        if mode not in (MODE_CREATE, MODE_UPDATE):
            raise ValueError(f"Unknown submission mode: {mode}")
        if mode == MODE_UPDATE and not existing:
            raise ValueError("Updating a review requires the existing review")

        history = [SubmissionState.RECEIVED]

        # The classifier must see exactly the text that will be stored
        content = clean_review_text(content)

        # Received -> TextChecked (no writes before this passes)
        verdict = self.text_moderator.analyze_text(content)
        if verdict is not None and not verdict.safe:
            if verdict.error:
                log_error(f"Review {mode} rejected: text provider unavailable")
            else:
                log_info(f"Review {mode} rejected: {len(verdict.warnings)} text warning(s)")
            history.append(SubmissionState.REJECTED_TEXT)
            return SubmissionResult(
                state=SubmissionState.REJECTED_TEXT,
                warnings=verdict.messages(),
                field_errors={"content": [TEXT_FIELD_ERROR]},
                history=history,
            )
        history.append(SubmissionState.TEXT_CHECKED)

        # TextChecked -> Persisted
        fields = {"content": content, "rating": rating}
        if mode == MODE_CREATE:
            fields.update({"restaurant_id": restaurant_id, "user_id": user_id, "parent_id": parent_id})
            review, errors = self.reviews.create(fields)
        else:
            review, errors = self.reviews.update(existing["id"], fields)
        if errors or not review:
            field_errors = {k: list(v) for k, v in (errors or {}).items()} or {BASE_ERRORS: [SAVE_FAILED]}
            history.append(SubmissionState.REJECTED)
            return SubmissionResult(
                state=SubmissionState.REJECTED,
                warnings=ValidationError(field_errors).messages(),
                field_errors=field_errors,
                history=history,
            )

        staged: List[StagedImage] = []
        if images:
            try:
                staged = self.attachments.stage(review["id"], images)
            except StorageError as e:
                log_error(f"Staging images for review {review['id']} failed: {e}")
                self._roll_back(review, [], mode, existing)
                history.append(SubmissionState.REJECTED)
                return SubmissionResult(state=SubmissionState.REJECTED, warnings=[UPLOAD_FAILED], history=history)
        history.append(SubmissionState.PERSISTED)

        if not staged:
            history.append(SubmissionState.COMMITTED)
            return SubmissionResult(state=SubmissionState.COMMITTED, item=review, history=history)

        # Persisted -> ImageChecked
        try:
            safe = self.image_moderator.analyze_images([s.ref for s in staged])
        except ImageProviderError as e:
            log_error(f"Image moderation unavailable for review {review['id']}; rejecting: {e}")
            safe = False
        else:
            if not safe:
                log_warning(f"Review {review['id']} rejected: unsafe image")
        history.append(SubmissionState.IMAGE_CHECKED)

        if not safe:
            self._roll_back(review, staged, mode, existing)
            history.append(SubmissionState.REJECTED_IMAGE)
            return SubmissionResult(state=SubmissionState.REJECTED_IMAGE, warnings=[IMAGE_REJECTED], history=history)

        # ImageChecked -> Committed
        try:
            promoted = self.attachments.promote(staged)
        except StorageError as e:
            log_error(f"Promoting images for review {review['id']} failed: {e}")
            self._roll_back(review, staged, mode, existing)
            history.append(SubmissionState.REJECTED)
            return SubmissionResult(state=SubmissionState.REJECTED, warnings=[UPLOAD_FAILED], history=history)

        rows = self.reviews.add_images(review["id"], promoted)
        if rows is None:
            self._remove_promoted(review["id"], promoted)
            self._roll_back(review, [], mode, existing)
            history.append(SubmissionState.REJECTED)
            return SubmissionResult(state=SubmissionState.REJECTED, warnings=[UPLOAD_FAILED], history=history)

        history.append(SubmissionState.COMMITTED)
        return SubmissionResult(
            state=SubmissionState.COMMITTED,
            item={**review, "images": rows},
            history=history,
        )

    def _roll_back(self, review: Dict[str, Any], staged: Sequence[StagedImage], mode: str,
                   existing: Optional[Dict[str, Any]]) -> None:
        """
        Compensating transaction for a review written before a rejection.

        Raises:
            StorageInconsistencyError: if any step could not complete
        """
        review_id = review["id"]
        log_info(f"Rolling back review {review_id} ({mode})")

        try:
            self.attachments.discard(staged)
        except StorageError as e:
            log_error(f"Could not purge staged images for review {review_id}: {e}")
            raise StorageInconsistencyError(review_id, "purge", e) from e

        if mode == MODE_UPDATE:
            if not self.reviews.restore(review_id, existing):
                log_error(f"Could not restore review {review_id} after rejected edit")
                raise StorageInconsistencyError(review_id, "restore")
        else:
            if not self.reviews.mark_rejected(review_id):
                log_warning(f"Could not mark review {review_id} as rejected before delete")
            if not self.reviews.destroy(review_id):
                log_error(f"Could not delete rejected review {review_id}")
                raise StorageInconsistencyError(review_id, "destroy")

        log_info(f"Rolled back review {review_id}")

    def _remove_promoted(self, review_id: str, promoted: List[Dict[str, str]]) -> None:
        try:
            self.attachments.delete_public([p["storage_key"] for p in promoted])
        except StorageError as e:
            raise StorageInconsistencyError(review_id, "purge", e) from e
