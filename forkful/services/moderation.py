"""
Builds the moderation object graph for an app.

One SubmissionOrchestrator per app, assembled from injected provider clients
and stored in app.extensions. Routes fetch it with get_orchestrator(); tests
replace it with one built from fakes.
"""

from __future__ import annotations
from typing import Optional

from flask import current_app

from forkful.services import aws_clients, supabase_client
from forkful.services.attachments import AttachmentStore
from forkful.services.image_moderation import ImageModerator
from forkful.services.reviews import ReviewStore
from forkful.services.spelling import SpellingProvider
from forkful.services.submissions import SubmissionOrchestrator
from forkful.services.text_moderation import TextModerator

EXTENSION_KEY = "forkful.submissions"


def build_text_moderator(config, comprehend=None, speller=None) -> TextModerator:
    return TextModerator(
        comprehend=comprehend or aws_clients.create_comprehend_client(config),
        speller=speller or SpellingProvider(
            config.get("MODERATION_SPELL_LOCALE", "en"),
            distance=config.get("MODERATION_SPELL_DISTANCE", 1),
        ),
        language=config.get("MODERATION_LANGUAGE", "en"),
        threshold=config.get("MODERATION_TOXICITY_THRESHOLD", 0.55),
    )


def build_orchestrator(config, supabase=None, s3=None, rekognition=None,
                       comprehend=None, speller=None) -> SubmissionOrchestrator:
    """Any client left as None is created from config."""
    image_moderator = ImageModerator(
        rekognition=rekognition or aws_clients.create_rekognition_client(config),
        min_confidence=config.get("MODERATION_IMAGE_MIN_CONFIDENCE", 60),
    )
    attachments = AttachmentStore(
        s3=s3 or aws_clients.create_s3_client(config),
        bucket=config.get("REVIEW_IMAGES_BUCKET", ""),
        quarantine_prefix=config.get("REVIEW_IMAGES_QUARANTINE_PREFIX", "quarantine/"),
        public_prefix=config.get("REVIEW_IMAGES_PUBLIC_PREFIX", "reviews/"),
        region=config.get("AWS_REGION", "us-east-2"),
    )
    return SubmissionOrchestrator(
        text_moderator=build_text_moderator(config, comprehend=comprehend, speller=speller),
        image_moderator=image_moderator,
        reviews=ReviewStore(supabase if supabase is not None else supabase_client.get_admin_client()),
        attachments=attachments,
    )


def init_moderation(app) -> None:
    """Call from the app factory after init_supabase()."""
    if not app.config.get("REVIEW_IMAGES_BUCKET"):
        app.logger.warning("REVIEW_IMAGES_BUCKET not configured. Review image uploads will fail.")
    app.extensions[EXTENSION_KEY] = build_orchestrator(app.config)


def get_orchestrator(app=None) -> Optional[SubmissionOrchestrator]:
    return (app or current_app).extensions.get(EXTENSION_KEY)
