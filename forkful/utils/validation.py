"""
Input validation and normalization for reviews and review images.

Trims and bounds review text, coerces ratings, and checks uploads (extension
allow-list, size cap, must decode as an image) before anything is stored.
"""

from __future__ import annotations
import re
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from forkful.utils.errors import ValidationError

MAX_REVIEW_LEN = 5000
MIN_RATING = 1
MAX_RATING = 5

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def clean_review_text(text: Optional[str]) -> str:
    """
    Review body is permissive:
    - strip & bound length
    - remove control chars only; keep punctuation and newlines
    """
    t = (text or "").strip()
    if not t:
        return ""
    t = t[:MAX_REVIEW_LEN]
    return _CONTROL_CHARS.sub("", t)


def validate_review_fields(fields: Dict[str, Any], require_author: bool = True) -> Dict[str, Any]:
    """
    Validate a review payload and return the cleaned data.

    Raises:
        ValidationError: with per-field messages, e.g. {"rating": ["must be between 1 and 5"]}
    """
    errors: Dict[str, List[str]] = {}
    data: Dict[str, Any] = {}

    content = clean_review_text(fields.get("content"))
    if not content:
        errors.setdefault("content", []).append("can't be blank")
    data["content"] = content

    raw_rating = fields.get("rating")
    if raw_rating in (None, ""):
        errors.setdefault("rating", []).append("can't be blank")
    else:
        try:
            rating = int(raw_rating)
        except (TypeError, ValueError):
            errors.setdefault("rating", []).append("is not a number")
        else:
            if not MIN_RATING <= rating <= MAX_RATING:
                errors.setdefault("rating", []).append(f"must be between {MIN_RATING} and {MAX_RATING}")
            data["rating"] = rating

    if require_author:
        for key in ("restaurant_id", "user_id"):
            if not fields.get(key):
                errors.setdefault(key, []).append("can't be blank")
            data[key] = fields.get(key)
        data["parent_id"] = fields.get("parent_id") or None

    if errors:
        raise ValidationError(errors)
    return data


def allowed_file(filename: Optional[str]) -> bool:
    if not filename or "." not in filename:
        return False
    return filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def validate_upload_file(file) -> Tuple[bool, Optional[str], Optional[bytes]]:
    """
    Validate one uploaded image.

    Returns:
        (is_valid, error, file_bytes)
        - (False, None, None) when no file was provided
        - (False, message, None) when the file is rejected
        - (True, None, bytes) when the file is usable
    """
    if file is None or not getattr(file, "filename", ""):
        return False, None, None

    if not allowed_file(file.filename):
        return False, "Images must be JPG, PNG, WebP or GIF.", None

    file_bytes = file.read()
    if len(file_bytes) > MAX_FILE_SIZE:
        return False, "Each image must be less than 5MB.", None

    try:
        with Image.open(BytesIO(file_bytes)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False, f"{file.filename} is not a valid image.", None

    return True, None, file_bytes
