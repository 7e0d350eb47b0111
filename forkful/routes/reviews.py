"""
Review routes nested under a restaurant.

Create and update go through the moderation orchestrator; on rejection the
warnings are kept in the session for the next few page views and the user
is redirected (HTML) or gets a 422 (JSON). The rejected text is never
rendered back.
"""

from __future__ import annotations
from typing import List, Optional, Tuple

from flask import Blueprint, abort, current_app, flash, jsonify, redirect, render_template, request, url_for

from forkful.extensions import limiter
from forkful.services.attachments import ImageUpload
from forkful.services.moderation import get_orchestrator
from forkful.services.reviews import SORT_OPTIONS
from forkful.utils.auth import get_current_user_id, require_auth, wants_json
from forkful.utils.errors import StorageError, StorageInconsistencyError, log_error, sanitize_error
from forkful.utils.notices import set_content_warnings
from forkful.utils.validation import validate_upload_file

reviews_bp = Blueprint("reviews", __name__, url_prefix="/restaurants/<restaurant_id>/reviews")


def _orchestrator():
    orchestrator = get_orchestrator()
    if orchestrator is None:
        abort(503)
    return orchestrator


def _review_payload() -> dict:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form


def _collect_uploads() -> Tuple[List[ImageUpload], List[str]]:
    """Validate every uploaded image; returns (uploads, errors)."""
    files = [f for f in request.files.getlist("images") if f and f.filename]
    limit = current_app.config.get("MAX_REVIEW_IMAGES", 5)
    if len(files) > limit:
        return [], [f"You can attach at most {limit} images."]

    uploads, errors = [], []
    for file in files:
        is_valid, error, file_bytes = validate_upload_file(file)
        if error:
            errors.append(error)
        elif is_valid and file_bytes:
            uploads.append(ImageUpload(file.filename, file_bytes, file.mimetype or "application/octet-stream"))
    return uploads, errors


def _respond_with_errors(restaurant_id: str, warnings: List[str]):
    set_content_warnings(warnings)
    if wants_json():
        return jsonify({"error": "Validation failed", "warnings": warnings}), 422
    return redirect(url_for("reviews.index", restaurant_id=restaurant_id))


def _respond_success(restaurant_id: str, review: dict, status: int, message: str):
    if wants_json():
        return jsonify({"success": True, "review": review}), status
    flash(message, "success")
    return redirect(url_for("reviews.index", restaurant_id=restaurant_id))


def _respond_server_error(exc: Exception):
    msg = sanitize_error(exc, "reviews", "We couldn't finish processing your review. Please try again later.")
    if wants_json():
        return jsonify({"success": False, "error": msg}), 500
    abort(500)


def _owned_review(restaurant_id: str, review_id: str) -> Optional[dict]:
    review = _orchestrator().reviews.get(review_id, restaurant_id)
    if not review or review.get("user_id") != get_current_user_id():
        return None
    return review


@reviews_bp.route("", methods=["GET"])
def index(restaurant_id):
    """List a restaurant's reviews (sort: newest, oldest, highest_rating, lowest_rating)."""
    sort = request.args.get("sort", "newest")
    if sort not in SORT_OPTIONS:
        sort = "newest"
    reviews = _orchestrator().reviews.list_for_restaurant(restaurant_id, sort)

    if wants_json():
        return jsonify({"success": True, "reviews": reviews, "sort": sort})
    return render_template(
        "reviews/index.html",
        restaurant_id=restaurant_id,
        reviews=reviews,
        sort=sort,
        sort_options=list(SORT_OPTIONS),
    )


@reviews_bp.route("", methods=["POST"])
@require_auth
@limiter.limit(lambda: current_app.config["REVIEW_RATE_LIMIT"])
def create(restaurant_id):
    """Post a new review (content, rating, optional parent_id, images[])."""
    payload = _review_payload()
    uploads, upload_errors = _collect_uploads()
    if upload_errors:
        return _respond_with_errors(restaurant_id, upload_errors)

    try:
        result = _orchestrator().create(
            payload.get("content", ""),
            payload.get("rating"),
            payload.get("parent_id") or None,
            uploads,
            restaurant_id=restaurant_id,
            user_id=get_current_user_id(),
        )
    except StorageInconsistencyError as e:
        return _respond_server_error(e)

    if not result.committed:
        return _respond_with_errors(restaurant_id, result.warnings)
    return _respond_success(restaurant_id, result.item, 201, "Thanks! Your review is live.")


@reviews_bp.route("/<review_id>", methods=["POST", "PATCH", "PUT"])
@require_auth
@limiter.limit(lambda: current_app.config["REVIEW_RATE_LIMIT"])
def update(restaurant_id, review_id):
    """Edit an existing review; new images are moderated before they are shown."""
    existing = _owned_review(restaurant_id, review_id)
    if not existing:
        if wants_json():
            return jsonify({"success": False, "error": "Review not found"}), 404
        flash("Review not found.", "error")
        return redirect(url_for("reviews.index", restaurant_id=restaurant_id))

    payload = _review_payload()
    uploads, upload_errors = _collect_uploads()
    if upload_errors:
        return _respond_with_errors(restaurant_id, upload_errors)

    try:
        result = _orchestrator().update(
            existing,
            payload.get("content", ""),
            payload.get("rating", existing.get("rating")),
            uploads,
        )
    except StorageInconsistencyError as e:
        return _respond_server_error(e)

    if not result.committed:
        return _respond_with_errors(restaurant_id, result.warnings)
    return _respond_success(restaurant_id, result.item, 200, "Your review was updated.")


@reviews_bp.route("/<review_id>/delete", methods=["POST"])
@require_auth
def delete(restaurant_id, review_id):
    """Delete a review and its images."""
    review = _owned_review(restaurant_id, review_id)
    if not review:
        if wants_json():
            return jsonify({"success": False, "error": "Review not found"}), 404
        flash("Review not found.", "error")
        return redirect(url_for("reviews.index", restaurant_id=restaurant_id))

    orchestrator = _orchestrator()
    keys = [img["storage_key"] for img in orchestrator.reviews.list_images(review_id) if img.get("storage_key")]
    try:
        orchestrator.attachments.delete_public(keys)
    except StorageError as e:
        # Still delete the rows; orphaned objects are swept separately
        log_error(f"Error deleting images for review {review_id}: {e}")

    if not orchestrator.reviews.destroy(review_id):
        if wants_json():
            return jsonify({"success": False, "error": "Error deleting review"}), 500
        flash("Error deleting review. Please try again.", "error")
        return redirect(url_for("reviews.index", restaurant_id=restaurant_id))

    if wants_json():
        return "", 204
    flash("Review deleted.", "success")
    return redirect(url_for("reviews.index", restaurant_id=restaurant_id))
