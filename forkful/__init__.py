"""
Application factory and global configuration.

Creates the Flask app, applies security headers (CSP), configures rate limiting,
wires Supabase and the moderation pipeline, and registers blueprints. This file
keeps startup/config concerns together and avoids domain logic here.
"""

from __future__ import annotations
import os
from flask import Flask, Response
from flask_wtf.csrf import CSRFProtect
from dotenv import load_dotenv
from .extensions import limiter
from .routes.api import api_bp
from .routes.reviews import reviews_bp
from .services import supabase_client
from .services.moderation import init_moderation
from .utils import auth, notices
from .cli import moderate_text_command


def _validate_production_security(app: Flask, cfg_path: str) -> None:
    """
    Validate critical security settings in production environments.

    Raises RuntimeError if production security requirements are not met.

    Checks:
    - SESSION_COOKIE_SECURE must be True (cookies only over HTTPS)
    - SECRET_KEY must be set and strong (>= 32 characters)
    - DEBUG must be False (no debug mode in production)
    - PREFERRED_URL_SCHEME should be "https"
    - REVIEW_IMAGES_BUCKET must be configured
    """
    is_production = "ProdConfig" in cfg_path
    is_test = app.config.get("TESTING", False)

    if not is_production or is_test:
        return

    errors = []

    if not app.config.get("SESSION_COOKIE_SECURE", False):
        errors.append(
            "SESSION_COOKIE_SECURE must be True in production. "
            "Cookies must only be sent over HTTPS to prevent session hijacking."
        )

    secret_key = app.config.get("SECRET_KEY", "")
    if not secret_key:
        errors.append(
            "SECRET_KEY is not set. Set FLASK_SECRET_KEY environment variable. "
            "Generate with: python -c 'import secrets; print(secrets.token_hex(32))'"
        )
    elif len(secret_key) < 32:
        errors.append(
            f"SECRET_KEY is too weak ({len(secret_key)} chars). "
            "Must be at least 32 characters for production security."
        )

    if app.config.get("DEBUG", False):
        errors.append("DEBUG must be False in production.")

    if not app.config.get("REVIEW_IMAGES_BUCKET"):
        errors.append(
            "REVIEW_IMAGES_BUCKET is not set. Review images are quarantined and "
            "served from this bucket, so uploads cannot be moderated without it."
        )

    if app.config.get("PREFERRED_URL_SCHEME", "http") != "https":
        errors.append(
            "PREFERRED_URL_SCHEME should be 'https' in production. "
            "Set PREFERRED_URL_SCHEME=https environment variable."
        )

    if errors:
        error_msg = "\n\n[ERROR] PRODUCTION SECURITY VALIDATION FAILED:\n\n" + "\n\n".join(f"  * {err}" for err in errors)
        error_msg += "\n\n[WARNING] The application will not start until these security issues are resolved.\n"
        raise RuntimeError(error_msg)

    app.logger.info("[OK] Production security validation passed")


def create_app() -> Flask:
    # Load .env early (for local dev)
    load_dotenv(override=True)

    app = Flask(
        __name__,
        template_folder="templates",
    )

    # Allow APP_CONFIG to override (e.g., forkful.config.DevConfig)
    cfg_path = os.getenv("APP_CONFIG", "forkful.config.ProdConfig")
    try:
        app.config.from_object(cfg_path)
    except (ImportError, AttributeError) as e:
        app.logger.warning(f"Could not load config object {cfg_path}: {e}")

    _validate_production_security(app, cfg_path)

    limiter.init_app(app)

    if not app.config.get("RATELIMIT_ENABLED", True):
        limiter.enabled = False

    if not app.secret_key:
        app.secret_key = app.config.get("SECRET_KEY", "")

    CSRFProtect(app)

    # Supabase first: the review store is built on its admin client
    supabase_client.init_supabase(app)
    init_moderation(app)

    app.context_processor(auth.inject_auth_context)
    app.context_processor(notices.inject_content_warnings)

    bucket = app.config.get("REVIEW_IMAGES_BUCKET", "")
    region = app.config.get("AWS_REGION", "us-east-2")
    img_src = f"https://{bucket}.s3.{region}.amazonaws.com" if bucket else ""
    csp = (
        "default-src 'self'; "
        "script-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        f"img-src 'self' data: {img_src}; "
        "object-src 'none'; "
        "base-uri 'self'; "
        "frame-ancestors 'none'; "
        "form-action 'self'"
    )

    @app.after_request
    def apply_security_headers(resp: Response) -> Response:
        resp.headers["Content-Security-Policy"] = csp
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        resp.headers["X-Frame-Options"] = "DENY"
        return resp

    # Blueprints
    app.register_blueprint(reviews_bp)
    app.register_blueprint(api_bp, url_prefix="/api/v1")

    app.cli.add_command(moderate_text_command)

    return app
