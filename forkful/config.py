"""
Centralized configuration for all environments.

Select a config by setting:
  APP_CONFIG=forkful.config.DevConfig      # local dev
  APP_CONFIG=forkful.config.ProdConfig     # production (default if unset)
  APP_CONFIG=forkful.config.TestConfig     # pytest

Notes:
- SECRET_KEY is read from FLASK_SECRET_KEY
- AWS credentials come from the standard boto3 chain unless AWS_ACCESS_KEY_ID/
  AWS_SECRET_ACCESS_KEY are set explicitly
- Rate limiting uses Flask-Limiter v3 keys (RATELIMIT_*).
"""

from __future__ import annotations
import os
from datetime import timedelta

class BaseConfig:
    # Secrets & basics
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "")
    DEBUG = False
    TESTING = False

    # Session configuration
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)
    SESSION_COOKIE_SECURE = True  # Only send cookies over HTTPS (overridden in dev)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Supabase (Database + Auth)
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # AWS (S3 review images, Rekognition, Comprehend)
    AWS_REGION = os.getenv("AWS_REGION", "us-east-2")
    COMPREHEND_REGION = os.getenv("COMPREHEND_REGION", "us-east-1")  # toxicity detection is us-east-1 only
    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
    AWS_SESSION_TOKEN = os.getenv("AWS_SESSION_TOKEN", "")
    REVIEW_IMAGES_BUCKET = os.getenv("REVIEW_IMAGES_BUCKET", "")
    REVIEW_IMAGES_QUARANTINE_PREFIX = os.getenv("REVIEW_IMAGES_QUARANTINE_PREFIX", "quarantine/")
    REVIEW_IMAGES_PUBLIC_PREFIX = os.getenv("REVIEW_IMAGES_PUBLIC_PREFIX", "reviews/")

    # Moderation
    MODERATION_PROVIDER_TIMEOUT = int(os.getenv("MODERATION_PROVIDER_TIMEOUT", "10"))  # seconds per call
    MODERATION_TOXICITY_THRESHOLD = float(os.getenv("MODERATION_TOXICITY_THRESHOLD", "0.55"))
    MODERATION_IMAGE_MIN_CONFIDENCE = float(os.getenv("MODERATION_IMAGE_MIN_CONFIDENCE", "60"))
    MODERATION_LANGUAGE = os.getenv("MODERATION_LANGUAGE", "en")
    MODERATION_SPELL_LOCALE = os.getenv("MODERATION_SPELL_LOCALE", "en")
    MODERATION_SPELL_DISTANCE = int(os.getenv("MODERATION_SPELL_DISTANCE", "1"))  # 2 is far slower per unknown word
    CONTENT_WARNING_VIEWS = int(os.getenv("CONTENT_WARNING_VIEWS", "3"))

    # Avatar moderation (separate, fail-open policy)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    AVATAR_MODERATION_MODEL = os.getenv("AVATAR_MODERATION_MODEL", "gpt-4o-mini")

    # Flask-Limiter v3
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "true").lower() == "true"
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "40 per minute; 2000 per day")

    # File uploads
    MAX_CONTENT_LENGTH = 30 * 1024 * 1024  # whole request; per-file limit is in utils.validation
    MAX_REVIEW_IMAGES = 5

    # Rate limiting
    REVIEW_RATE_LIMIT = "20 per hour"
    AVATAR_RATE_LIMIT = "30 per hour"

    # Misc
    PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")

class ProdConfig(BaseConfig):
    """Production settings (selected by default if APP_CONFIG is unset)."""
    pass

class DevConfig(BaseConfig):
    """Developer-friendly settings."""
    ENV = "development"
    DEBUG = True
    TEMPLATES_AUTO_RELOAD = True
    PREFERRED_URL_SCHEME = "http"
    SESSION_COOKIE_SECURE = False
    REVIEW_RATE_LIMIT = "200 per hour"

class TestConfig(BaseConfig):
    """CI/pytest settings."""
    TESTING = True
    DEBUG = True
    RATELIMIT_ENABLED = False
    WTF_CSRF_ENABLED = False
    TEMPLATES_AUTO_RELOAD = True
    REVIEW_IMAGES_BUCKET = "test-review-images"
