"""
Application-wide extensions, created here and initialized in create_app().
"""

from flask import g
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address


def reviewer_key() -> str:
    """Rate-limit signed-in reviewers per account, everyone else per IP."""
    # g.user is filled by require_auth, which wraps the limited views
    user = getattr(g, "user", None) or {}
    user_id = user.get("id")
    return f"user:{user_id}" if user_id else get_remote_address()


limiter = Limiter(key_func=reviewer_key)
