# tests/conftest.py
"""
Test configuration and shared fixtures.

Provides the Flask app and client, plus in-memory fakes for the moderation
providers and the review store so the pipeline runs without AWS or Supabase.
"""

import os
import sys
import uuid
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError

# Add the project root to sys.path
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def client_error(operation="Operation", code="InternalFailure", message="boom"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeSpeller:
    """Words in `valid` pass through; others map via `corrections` or stay as-is."""

    def __init__(self, valid=None, corrections=None):
        self.valid = set(valid or [])
        self.corrections = dict(corrections or {})

    def is_valid(self, token):
        return token.lower() in self.valid

    def suggestions(self, token):
        fix = self.corrections.get(token.lower())
        return [fix] if fix else []


class FakeComprehend:
    """
    `scorer(text) -> [{"Name": ..., "Score": ...}]` decides labels per segment.
    Set `error` to make every call raise.
    """

    def __init__(self, scorer=None, error=None):
        self.scorer = scorer or (lambda text: [])
        self.error = error
        self.calls = []

    def detect_toxic_content(self, TextSegments, LanguageCode):
        self.calls.append({"TextSegments": TextSegments, "LanguageCode": LanguageCode})
        if self.error:
            raise self.error
        return {"ResultList": [{"Labels": self.scorer(seg["Text"]), "Toxicity": 0.0} for seg in TextSegments]}


def toxic_words(*words, score=0.91, name="PROFANITY"):
    """Scorer flagging any segment containing one of `words`."""
    def scorer(text):
        lowered = text.lower()
        if any(w in lowered for w in words):
            return [{"Name": name, "Score": score}, {"Name": "INSULT", "Score": 0.12}]
        return [{"Name": "INSULT", "Score": 0.05}]
    return scorer


class FakeRekognition:
    """`labels_by_key` maps a substring of the S3 key to returned label names."""

    def __init__(self, labels_by_key=None, error=None):
        self.labels_by_key = dict(labels_by_key or {})
        self.error = error
        self.calls = []

    def detect_moderation_labels(self, Image, MinConfidence):
        key = Image["S3Object"]["Name"]
        self.calls.append({"Image": Image, "MinConfidence": MinConfidence})
        if self.error:
            raise self.error
        for fragment, names in self.labels_by_key.items():
            if fragment in key:
                return {"ModerationLabels": [{"Name": n, "Confidence": 97.5} for n in names]}
        return {"ModerationLabels": []}


class FakeReviewStore:
    """In-memory stand-in for ReviewStore that records every call."""

    def __init__(self):
        self.rows = {}
        self.images = {}
        self.calls = []
        self.fail_destroy = False
        self.fail_restore = False
        self.fail_add_images = False
        self.create_errors = {}

    def _log(self, name, *args):
        self.calls.append((name,) + args)

    def call_names(self):
        return [c[0] for c in self.calls]

    def get(self, review_id, restaurant_id=None):
        row = self.rows.get(review_id)
        if row and restaurant_id and row["restaurant_id"] != restaurant_id:
            return None
        return dict(row) if row else None

    def list_for_restaurant(self, restaurant_id, sort=None):
        return [dict(r) for r in self.rows.values() if r["restaurant_id"] == restaurant_id]

    def create(self, fields):
        self._log("create", dict(fields))
        if self.create_errors:
            return None, dict(self.create_errors)
        if not (fields.get("content") or "").strip():
            return None, {"content": ["can't be blank"]}
        review = {"id": f"review-{uuid.uuid4().hex[:8]}", **fields}
        self.rows[review["id"]] = review
        return dict(review), {}

    def update(self, review_id, fields):
        self._log("update", review_id, dict(fields))
        if not (fields.get("content") or "").strip():
            return None, {"content": ["can't be blank"]}
        self.rows[review_id].update({"content": fields["content"], "rating": fields["rating"]})
        return dict(self.rows[review_id]), {}

    def restore(self, review_id, snapshot):
        self._log("restore", review_id)
        if self.fail_restore:
            return False
        self.rows[review_id].update({"content": snapshot["content"], "rating": snapshot["rating"]})
        return True

    def mark_rejected(self, review_id):
        self._log("mark_rejected", review_id)
        self.rows[review_id]["content"] = "rejected_for_unsafe_images"
        return True

    def destroy(self, review_id):
        self._log("destroy", review_id)
        if self.fail_destroy:
            return False
        self.rows.pop(review_id, None)
        self.images.pop(review_id, None)
        return True

    def add_images(self, review_id, images):
        self._log("add_images", review_id, list(images))
        if self.fail_add_images:
            return None
        rows = [{"review_id": review_id, "position": i, **img} for i, img in enumerate(images)]
        self.images.setdefault(review_id, []).extend(rows)
        return rows

    def list_images(self, review_id):
        return list(self.images.get(review_id, []))


@pytest.fixture
def fake_s3():
    s3 = MagicMock()
    s3.delete_objects.return_value = {}
    return s3


@pytest.fixture
def speller():
    return FakeSpeller(
        valid={"the", "food", "was", "great", "and", "service", "friendly", "shit", "awful", "tasty", "pasta"},
        corrections={"gr8": "great"},
    )


@pytest.fixture
def comprehend():
    return FakeComprehend(scorer=toxic_words("shit"))


@pytest.fixture
def rekognition():
    return FakeRekognition(labels_by_key={"unsafe": ["Explicit"], "beer": ["Alcohol"]})


@pytest.fixture
def review_store():
    return FakeReviewStore()


@pytest.fixture
def orchestrator(comprehend, speller, rekognition, review_store, fake_s3):
    from forkful.services.attachments import AttachmentStore
    from forkful.services.image_moderation import ImageModerator
    from forkful.services.submissions import SubmissionOrchestrator
    from forkful.services.text_moderation import TextModerator

    return SubmissionOrchestrator(
        text_moderator=TextModerator(comprehend, speller),
        image_moderator=ImageModerator(rekognition),
        reviews=review_store,
        attachments=AttachmentStore(fake_s3, "test-review-images"),
    )


@pytest.fixture
def app(orchestrator):
    """Create and configure a Flask app instance for testing."""
    os.environ["FLASK_ENV"] = "testing"
    os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_KEY"] = "test-key"
    os.environ["APP_CONFIG"] = "forkful.config.TestConfig"

    from forkful import create_app
    from forkful.services.moderation import EXTENSION_KEY

    app = create_app()
    app.config.update({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key-for-testing-only",
        "WTF_CSRF_ENABLED": False,
        "RATELIMIT_ENABLED": False,
    })
    app.secret_key = "test-secret-key-for-testing-only"
    app.extensions[EXTENSION_KEY] = orchestrator

    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def sample_user():
    return {"id": "test-user-id", "email": "test@example.com"}


@pytest.fixture
def sample_review():
    return {
        "id": "review-123",
        "restaurant_id": "rest-1",
        "user_id": "test-user-id",
        "parent_id": None,
        "content": "The pasta was tasty",
        "rating": 4,
        "created_at": "2025-01-01T00:00:00Z",
    }


@pytest.fixture
def jpeg_bytes():
    """A real, tiny JPEG so Pillow validation passes."""
    from io import BytesIO
    from PIL import Image

    buf = BytesIO()
    Image.new("RGB", (4, 4), (200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()
