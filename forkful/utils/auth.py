"""
Authentication helpers and decorators for route protection.

Session mechanics live in Supabase Auth; this module only reads the tokens
stored in the Flask session, verifies them, and guards review routes.
"""

from __future__ import annotations
from functools import wraps
from typing import Optional, Dict, Any
from flask import session, redirect, url_for, request, flash, g, jsonify
from forkful.services import supabase_client

SESSION_USER_KEY = "user"
SESSION_ACCESS_TOKEN_KEY = "access_token"
SESSION_REFRESH_TOKEN_KEY = "refresh_token"


def get_current_user() -> Optional[Dict[str, Any]]:
    """
    Get currently logged-in user from session.

    Returns:
        User dict with id, email, etc. or None if not logged in
    """
    if hasattr(g, "user"):
        return g.user

    access_token = session.get(SESSION_ACCESS_TOKEN_KEY)
    refresh_token = session.get(SESSION_REFRESH_TOKEN_KEY)

    if not access_token:
        g.user = None
        return None

    user = supabase_client.verify_session(access_token, refresh_token)
    if not user:
        clear_session()
        g.user = None
        return None

    g.user = user
    return user


def get_current_user_id() -> Optional[str]:
    user = get_current_user()
    return user.get("id") if user else None


def clear_session() -> None:
    session.pop(SESSION_USER_KEY, None)
    session.pop(SESSION_ACCESS_TOKEN_KEY, None)
    session.pop(SESSION_REFRESH_TOKEN_KEY, None)


def is_authenticated() -> bool:
    return get_current_user() is not None


def wants_json() -> bool:
    """True for API-style requests (JSON body or JSON preferred in Accept)."""
    if request.is_json or request.args.get("format") == "json":
        return True
    accept = request.headers.get("Accept", "")
    return "application/json" in accept and "text/html" not in accept


def require_auth(f):
    """
    Decorator to require authentication for a route.

    JSON requests get a 401; browser requests are sent back to the
    restaurant's review page with a notice.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            if wants_json():
                return jsonify({"success": False, "error": "Unauthorized"}), 401
            flash("Please sign in to post or edit reviews.", "info")
            restaurant_id = (request.view_args or {}).get("restaurant_id")
            if restaurant_id:
                return redirect(url_for("reviews.index", restaurant_id=restaurant_id))
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        return f(*args, **kwargs)

    return decorated_function


def inject_auth_context():
    """
    Context processor exposing current_user and is_authenticated to templates.

    Register from the app factory:
        app.context_processor(inject_auth_context)
    """
    user = get_current_user()
    return {
        "current_user": user,
        "is_authenticated": user is not None,
    }
