"""
Tests for the review submission orchestrator.

Covers the state sequence for create and update, the text short-circuit
(no persistence), image rejection with compensating rollback, provider
errors, and rollback steps that fail (StorageInconsistencyError).
"""

import pytest
from unittest.mock import MagicMock

from forkful.services.attachments import ImageUpload
from forkful.services.submissions import (
    IMAGE_REJECTED,
    UPLOAD_FAILED,
    SubmissionState as S,
)
from forkful.utils.errors import StorageInconsistencyError
from forkful.utils.validation import MAX_REVIEW_LEN
from tests.conftest import FakeComprehend, FakeRekognition, client_error


CLEAN = "The pasta was tasty"
TOXIC = "The food was shit"


def upload(name="food.jpg"):
    return ImageUpload(name, b"fake-bytes", "image/jpeg")


def create(orchestrator, content=CLEAN, images=(), rating=5, parent_id=None):
    return orchestrator.create(content, rating, parent_id, list(images),
                               restaurant_id="rest-1", user_id="test-user-id")


class TestCreateFlow:
    def test_clean_text_without_images_commits_directly(self, orchestrator, review_store, fake_s3):
        result = create(orchestrator)

        assert result.committed
        assert result.history == [S.RECEIVED, S.TEXT_CHECKED, S.PERSISTED, S.COMMITTED]
        assert result.item["content"] == CLEAN
        assert result.to_dict()["status"] == "committed"
        assert review_store.call_names() == ["create"]
        fake_s3.put_object.assert_not_called()

    def test_toxic_text_never_reaches_persistence(self, orchestrator, review_store, fake_s3):
        result = create(orchestrator, content=TOXIC, images=[upload()])

        assert result.state is S.REJECTED_TEXT
        assert result.history == [S.RECEIVED, S.REJECTED_TEXT]
        assert result.warnings == ["Content flagged for profanity"]
        assert result.field_errors == {"content": ["contains inappropriate content"]}
        assert review_store.calls == []
        fake_s3.put_object.assert_not_called()

    def test_text_provider_error_rejects_without_persisting(self, speller, review_store, orchestrator):
        orchestrator.text_moderator.comprehend = FakeComprehend(error=client_error("DetectToxicContent"))

        result = create(orchestrator)

        assert result.state is S.REJECTED_TEXT
        assert result.warnings == ["Text analysis failed"]
        assert review_store.calls == []

    def test_clean_text_and_safe_image_commits_with_promoted_images(self, orchestrator, review_store, fake_s3, rekognition):
        result = create(orchestrator, images=[upload("food.jpg"), upload("pasta.jpg")])

        assert result.committed
        assert result.history == [S.RECEIVED, S.TEXT_CHECKED, S.PERSISTED, S.IMAGE_CHECKED, S.COMMITTED]
        assert len(rekognition.calls) == 2
        assert fake_s3.put_object.call_count == 2
        assert fake_s3.copy_object.call_count == 2
        assert [img["position"] for img in result.item["images"]] == [0, 1]
        assert all(img["storage_key"].startswith("reviews/") for img in result.item["images"])
        assert review_store.call_names() == ["create", "add_images"]

    def test_images_are_moderated_in_quarantine(self, orchestrator, rekognition):
        create(orchestrator, images=[upload()])

        key = rekognition.calls[0]["Image"]["S3Object"]["Name"]
        assert key.startswith("quarantine/")

    def test_unsafe_image_creates_then_deletes_review(self, orchestrator, review_store, fake_s3):
        result = create(orchestrator, images=[upload("unsafe.jpg")])

        assert result.state is S.REJECTED_IMAGE
        assert result.warnings == [IMAGE_REJECTED]
        assert result.to_dict() == {"status": "rejected", "warnings": ["Image contains inappropriate content"]}
        assert review_store.call_names() == ["create", "mark_rejected", "destroy"]
        assert review_store.rows == {}

        # staged attachment purged, never promoted
        fake_s3.delete_objects.assert_called_once()
        deleted = fake_s3.delete_objects.call_args.kwargs["Delete"]["Objects"]
        assert len(deleted) == 1 and deleted[0]["Key"].startswith("quarantine/")
        fake_s3.copy_object.assert_not_called()

    def test_unsafe_second_image_skips_remaining_checks(self, orchestrator, rekognition):
        result = create(orchestrator, images=[upload("a.jpg"), upload("unsafe.jpg"), upload("c.jpg")])

        assert result.state is S.REJECTED_IMAGE
        assert len(rekognition.calls) == 2

    def test_image_provider_error_is_treated_as_rejection(self, orchestrator, review_store):
        orchestrator.image_moderator.rekognition = FakeRekognition(error=client_error("DetectModerationLabels"))

        result = create(orchestrator, images=[upload()])

        assert result.state is S.REJECTED_IMAGE
        assert result.warnings == [IMAGE_REJECTED]
        assert "destroy" in review_store.call_names()

    def test_validation_errors_are_returned_verbatim(self, orchestrator, review_store):
        review_store.create_errors = {"rating": ["must be between 1 and 5"]}

        result = create(orchestrator, rating=9)

        assert result.state is S.REJECTED
        assert result.warnings == ["Rating must be between 1 and 5"]
        assert result.field_errors == {"rating": ["must be between 1 and 5"]}

    def test_record_level_errors_are_not_prefixed(self, orchestrator, review_store):
        review_store.create_errors = {"base": ["Database not configured"]}

        result = create(orchestrator)

        assert result.warnings == ["Database not configured"]
        assert result.field_errors == {"base": ["Database not configured"]}

    def test_blank_content_skips_text_check_and_fails_validation(self, orchestrator, comprehend):
        result = create(orchestrator, content="   ")

        assert result.state is S.REJECTED
        assert result.warnings == ["Content can't be blank"]
        assert result.field_errors == {"content": ["can't be blank"]}
        assert comprehend.calls == []

    def test_parent_id_is_passed_to_persistence(self, orchestrator, review_store):
        create(orchestrator, parent_id="review-parent")

        assert review_store.calls[0][1]["parent_id"] == "review-parent"

    def test_staging_failure_rolls_back_review(self, orchestrator, review_store, fake_s3):
        fake_s3.put_object.side_effect = client_error("PutObject")

        result = create(orchestrator, images=[upload()])

        assert result.state is S.REJECTED
        assert result.warnings == [UPLOAD_FAILED]
        assert "destroy" in review_store.call_names()

    def test_promote_failure_rolls_back_review(self, orchestrator, review_store, fake_s3):
        fake_s3.copy_object.side_effect = client_error("CopyObject")

        result = create(orchestrator, images=[upload()])

        assert result.state is S.REJECTED
        assert result.warnings == [UPLOAD_FAILED]
        assert "destroy" in review_store.call_names()

    def test_recording_images_failure_removes_public_copies(self, orchestrator, review_store, fake_s3):
        review_store.fail_add_images = True

        result = create(orchestrator, images=[upload()])

        assert result.state is S.REJECTED
        public_deletes = [
            c.kwargs["Delete"]["Objects"][0]["Key"] for c in fake_s3.delete_objects.call_args_list
        ]
        assert any(k.startswith("reviews/") for k in public_deletes)
        assert "destroy" in review_store.call_names()


class TestCheckedTextIsStoredText:
    def test_control_characters_cannot_split_a_toxic_word(self, orchestrator, review_store, comprehend):
        result = create(orchestrator, content="The food was s\x01h\x01i\x01t")

        assert result.state is S.REJECTED_TEXT
        assert comprehend.calls[0]["TextSegments"] == [{"Text": "The food was shit"}]
        assert review_store.calls == []

    def test_classifier_sees_the_stored_string(self, orchestrator, review_store, comprehend):
        result = create(orchestrator, content="  The pasta\x07 was tasty \x0b ")

        assert result.committed
        sent = comprehend.calls[0]["TextSegments"][0]["Text"]
        stored = review_store.calls[0][1]["content"]
        assert sent == stored == "The pasta was tasty"

    def test_overlong_content_is_cut_before_the_check(self, orchestrator, review_store):
        create(orchestrator, content="great " * 2000)

        assert len(review_store.calls[0][1]["content"]) == MAX_REVIEW_LEN


class TestCompensationFailures:
    def test_destroy_failure_raises_inconsistency(self, orchestrator, review_store):
        review_store.fail_destroy = True

        with pytest.raises(StorageInconsistencyError) as exc_info:
            create(orchestrator, images=[upload("unsafe.jpg")])

        assert exc_info.value.step == "destroy"
        assert exc_info.value.review_id.startswith("review-")

    def test_purge_failure_raises_inconsistency(self, orchestrator, fake_s3):
        fake_s3.delete_objects.side_effect = client_error("DeleteObjects")

        with pytest.raises(StorageInconsistencyError) as exc_info:
            create(orchestrator, images=[upload("unsafe.jpg")])

        assert exc_info.value.step == "purge"

    def test_partial_delete_errors_raise_inconsistency(self, orchestrator, fake_s3):
        fake_s3.delete_objects.return_value = {"Errors": [{"Key": "k", "Code": "AccessDenied"}]}

        with pytest.raises(StorageInconsistencyError):
            create(orchestrator, images=[upload("unsafe.jpg")])


class TestUpdateFlow:
    @pytest.fixture
    def existing(self, review_store, sample_review):
        review_store.rows[sample_review["id"]] = dict(sample_review)
        return dict(sample_review)

    def test_toxic_edit_leaves_live_review_untouched(self, orchestrator, review_store, existing):
        result = orchestrator.update(existing, TOXIC, 1, [])

        assert result.state is S.REJECTED_TEXT
        assert review_store.calls == []
        assert review_store.rows[existing["id"]]["content"] == existing["content"]

    def test_clean_edit_commits(self, orchestrator, review_store, existing):
        result = orchestrator.update(existing, "The food was great", 5, [])

        assert result.committed
        assert review_store.rows[existing["id"]]["content"] == "The food was great"
        assert review_store.rows[existing["id"]]["rating"] == 5

    def test_unsafe_image_on_edit_restores_previous_review(self, orchestrator, review_store, existing, fake_s3):
        result = orchestrator.update(existing, "The food was great", 2, [upload("unsafe.jpg")])

        assert result.state is S.REJECTED_IMAGE
        assert result.warnings == [IMAGE_REJECTED]
        assert review_store.call_names() == ["update", "restore"]
        row = review_store.rows[existing["id"]]
        assert row["content"] == existing["content"]
        assert row["rating"] == existing["rating"]
        fake_s3.delete_objects.assert_called_once()

    def test_restore_failure_raises_inconsistency(self, orchestrator, review_store, existing):
        review_store.fail_restore = True

        with pytest.raises(StorageInconsistencyError) as exc_info:
            orchestrator.update(existing, "The food was great", 2, [upload("unsafe.jpg")])

        assert exc_info.value.step == "restore"

    def test_update_requires_existing_review(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.submit(CLEAN, 4, None, [], "update")

    def test_unknown_mode_is_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.submit(CLEAN, 4, None, [], "upsert")
