"""
JSON API routes.

Currently hosts avatar moderation, which follows its own fail-open policy
(see services/avatar_moderation.py).

Security: CSRF token required via X-CSRFToken header
(automatically validated by Flask-WTF CSRFProtect)
"""

from __future__ import annotations
from flask import Blueprint, current_app, jsonify, request

from forkful.extensions import limiter
from forkful.services.avatar_moderation import moderate_avatar
from forkful.utils.errors import sanitize_error

api_bp = Blueprint("api", __name__)


def _error(reason: str, status: int):
    return jsonify({"success": False, "error": {"reason": reason}}), status


@api_bp.route("/moderate-avatar", methods=["POST"])
@limiter.limit(lambda: current_app.config["AVATAR_RATE_LIMIT"])
def moderate_avatar_route():
    """
    Request body:
        {"imageBase64": "data:image/png;base64,..."}

    Response:
        {"success": true, "data": {"safe": bool, "reason": "string"}}
    """
    api_key = current_app.config.get("OPENAI_API_KEY", "")
    if not api_key:
        current_app.logger.error("OPENAI_API_KEY is not configured")
        return _error("Server configuration error", 500)

    try:
        data = request.get_json(silent=True) or {}
        verdict = moderate_avatar(
            data.get("imageBase64"),
            api_key=api_key,
            model=current_app.config.get("AVATAR_MODERATION_MODEL", "gpt-4o-mini"),
            timeout=current_app.config.get("MODERATION_PROVIDER_TIMEOUT", 10),
        )
        return jsonify({"success": True, "data": verdict})
    except Exception as e:
        return _error(sanitize_error(e, "avatar-moderation", "Unable to verify content."), 500)
