"""
Review persistence on Supabase (reviews + review_images tables).

This is the persistence collaborator the submission orchestrator drives:
create/update return (review, field_errors) tuples; destroy and the other
compensating helpers return bool so the caller decides how to escalate.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from forkful.utils.errors import BASE_ERRORS, ValidationError, log_error
from forkful.utils.validation import validate_review_fields

REJECTED_CONTENT_SENTINEL = "rejected_for_unsafe_images"

# sort param -> (column, descending)
SORT_OPTIONS = {
    "newest": ("created_at", True),
    "oldest": ("created_at", False),
    "highest_rating": ("rating", True),
    "lowest_rating": ("rating", False),
}

_SAVE_FAILED = "Could not save review. Please try again."


class ReviewStore:
    def __init__(self, client):
        self.client = client

    def get(self, review_id: str, restaurant_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not self.client:
            return None
        try:
            query = self.client.table("reviews").select("*").eq("id", review_id)
            if restaurant_id:
                query = query.eq("restaurant_id", restaurant_id)
            response = query.maybe_single().execute()
            return response.data if response else None
        except Exception as e:
            log_error(f"Error fetching review {review_id}: {e}")
            return None

    def list_for_restaurant(self, restaurant_id: str, sort: Optional[str] = None) -> List[Dict[str, Any]]:
        """Reviews for a restaurant with their images; unknown sort falls back to newest."""
        if not self.client:
            return []
        column, desc = SORT_OPTIONS.get(sort or "", SORT_OPTIONS["newest"])
        try:
            response = (self.client
                        .table("reviews")
                        .select("*, review_images(url, position)")
                        .eq("restaurant_id", restaurant_id)
                        .order(column, desc=desc)
                        .execute())
            return response.data or []
        except Exception as e:
            log_error(f"Error listing reviews for restaurant {restaurant_id}: {e}")
            return []

    def create(self, fields: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Dict[str, List[str]]]:
        """
        Validate and insert a review.

        Returns:
            (review, {}) on success, (None, field_errors) otherwise; errors not
            tied to a field are listed under BASE_ERRORS
        """
        if not self.client:
            return None, {BASE_ERRORS: ["Database not configured"]}
        try:
            data = validate_review_fields(fields, require_author=True)
        except ValidationError as e:
            return None, e.field_errors

        try:
            response = self.client.table("reviews").insert(data).execute()
        except Exception as e:
            log_error(f"Error creating review: {e}")
            return None, {BASE_ERRORS: [_SAVE_FAILED]}
        if response.data:
            return response.data[0], {}
        return None, {BASE_ERRORS: [_SAVE_FAILED]}

    def update(self, review_id: str, fields: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Dict[str, List[str]]]:
        """Validate and apply editable fields (content, rating) to an existing review."""
        if not self.client:
            return None, {BASE_ERRORS: ["Database not configured"]}
        try:
            data = validate_review_fields(fields, require_author=False)
        except ValidationError as e:
            return None, e.field_errors

        changes = {k: data[k] for k in ("content", "rating") if k in data}
        try:
            response = self.client.table("reviews").update(changes).eq("id", review_id).execute()
        except Exception as e:
            log_error(f"Error updating review {review_id}: {e}")
            return None, {BASE_ERRORS: [_SAVE_FAILED]}
        if response.data:
            return response.data[0], {}
        return None, {BASE_ERRORS: [_SAVE_FAILED]}

    def restore(self, review_id: str, snapshot: Dict[str, Any]) -> bool:
        """Put back content/rating captured before an update."""
        return self._update_columns(review_id, {
            "content": snapshot.get("content"),
            "rating": snapshot.get("rating"),
        })

    def mark_rejected(self, review_id: str) -> bool:
        """Overwrite content with the rejection sentinel so a leftover row is never shown."""
        return self._update_columns(review_id, {"content": REJECTED_CONTENT_SENTINEL})

    def destroy(self, review_id: str) -> bool:
        if not self.client:
            return False
        try:
            self.client.table("review_images").delete().eq("review_id", review_id).execute()
            self.client.table("reviews").delete().eq("id", review_id).execute()
            return True
        except Exception as e:
            log_error(f"Error deleting review {review_id}: {e}")
            return False

    def add_images(self, review_id: str, images: List[Dict[str, str]]) -> Optional[List[Dict[str, Any]]]:
        """Record promoted images; positions continue after any existing images."""
        if not self.client:
            return None
        if not images:
            return []
        start = len(self.list_images(review_id))
        rows = [
            {"review_id": review_id, "storage_key": img["storage_key"], "url": img["url"], "position": start + i}
            for i, img in enumerate(images)
        ]
        try:
            response = self.client.table("review_images").insert(rows).execute()
            return response.data or []
        except Exception as e:
            log_error(f"Error recording images for review {review_id}: {e}")
            return None

    def list_images(self, review_id: str) -> List[Dict[str, Any]]:
        if not self.client:
            return []
        try:
            response = (self.client
                        .table("review_images")
                        .select("*")
                        .eq("review_id", review_id)
                        .order("position")
                        .execute())
            return response.data or []
        except Exception as e:
            log_error(f"Error listing images for review {review_id}: {e}")
            return []

    def _update_columns(self, review_id: str, data: Dict[str, Any]) -> bool:
        if not self.client:
            return False
        try:
            self.client.table("reviews").update(data).eq("id", review_id).execute()
            return True
        except Exception as e:
            log_error(f"Error updating review {review_id}: {e}")
            return False
