"""
Session-scoped content-warning notices.

When a submission is rejected the warnings are kept in the session and shown
on the next few rendered pages, then dropped. The rejected text itself is
never stored here.
"""

from __future__ import annotations
from typing import List, Optional

from flask import current_app, session

SESSION_WARNINGS_KEY = "content_warnings"
SESSION_VIEWS_KEY = "content_warnings_views"
DEFAULT_VIEWS = 3


def set_content_warnings(warnings: List[str], views: Optional[int] = None) -> None:
    if views is None:
        views = current_app.config.get("CONTENT_WARNING_VIEWS", DEFAULT_VIEWS)
    session[SESSION_WARNINGS_KEY] = list(warnings)
    session[SESSION_VIEWS_KEY] = views


def clear_content_warnings() -> None:
    session.pop(SESSION_WARNINGS_KEY, None)
    session.pop(SESSION_VIEWS_KEY, None)


def consume_content_warnings() -> List[str]:
    """Return the pending warnings and count one view against them."""
    warnings = session.get(SESSION_WARNINGS_KEY)
    views = session.get(SESSION_VIEWS_KEY, 0)
    if not warnings or views <= 0:
        clear_content_warnings()
        return []

    if views - 1 <= 0:
        clear_content_warnings()
    else:
        session[SESSION_VIEWS_KEY] = views - 1
    return list(warnings)


def inject_content_warnings():
    """Context processor: every rendered page consumes one view."""
    return {"content_warnings": consume_content_warnings()}
