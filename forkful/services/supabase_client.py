"""
Supabase clients for reviewer sessions and review storage.

Two clients are kept per process:
- the anon client verifies reviewer sessions (Supabase Auth)
- the admin client (service role) writes reviews and runs compensating
  deletes, which must not be blocked by row-level security
"""

from __future__ import annotations
from typing import Optional, Dict, Any
from supabase import create_client, Client

from forkful.utils.errors import log_error

_auth_client: Optional[Client] = None
_admin_client: Optional[Client] = None


def init_supabase(app) -> None:
    """Create both clients from app config. Call from the app factory."""
    global _auth_client, _admin_client
    _auth_client = _admin_client = None

    url = app.config.get("SUPABASE_URL", "")
    anon_key = app.config.get("SUPABASE_ANON_KEY", "")
    service_key = app.config.get("SUPABASE_SERVICE_ROLE_KEY", "")

    if not url or not anon_key:
        app.logger.warning("Supabase URL or ANON_KEY not configured. Reviews and sign-in are disabled.")
        return

    try:
        _auth_client = create_client(url, anon_key)
        if service_key:
            _admin_client = create_client(url, service_key)
        else:
            app.logger.warning("SUPABASE_SERVICE_ROLE_KEY not configured. Reviews cannot be saved.")
    except Exception as e:
        app.logger.error(f"Failed to initialize Supabase client: {e}")
        _auth_client = _admin_client = None
        return

    app.logger.info("Supabase clients initialized")


def get_admin_client() -> Optional[Client]:
    return _admin_client


def verify_session(access_token: str, refresh_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Resolve a reviewer's session tokens to their user record.

    Returns:
        User dict (id, email, ...) or None if the session is invalid
    """
    if not _auth_client:
        return None

    try:
        response = _auth_client.auth.set_session(
            access_token=access_token,
            refresh_token=refresh_token or "",
        )
    except Exception as e:
        log_error(f"Error verifying session: {e}")
        return None

    if response and response.user:
        return response.user.model_dump()
    return None
