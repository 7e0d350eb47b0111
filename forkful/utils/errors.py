"""
Error types for review submission and moderation.

Moderation rejections are not exceptions: they come back as warning lists
from the submission orchestrator. The classes here cover the failures that
sit outside a normal verdict (provider outages, storage failures, and a
compensating cleanup that could not finish).
"""

from __future__ import annotations
import logging
from typing import Dict, List, Optional

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)


class ForkfulError(Exception):
    """Base class for application errors."""


# Field key for errors that belong to the record rather than one field
BASE_ERRORS = "base"


class ValidationError(ForkfulError):
    """Persistence-layer field errors, surfaced verbatim to the caller."""

    def __init__(self, field_errors: Dict[str, List[str]]):
        self.field_errors = field_errors
        super().__init__("; ".join(self.messages()))

    def messages(self) -> List[str]:
        """Flatten to 'Field message' strings, e.g. 'Rating must be between 1 and 5'."""
        out = []
        for field, errs in self.field_errors.items():
            if field == BASE_ERRORS:
                out.extend(errs)
                continue
            label = field.replace("_", " ").capitalize()
            out.extend(f"{label} {err}" for err in errs)
        return out


class ProviderError(ForkfulError):
    """A classification or storage service call failed (including timeouts)."""

    provider = "unknown"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class TextProviderError(ProviderError):
    provider = "comprehend"


class ImageProviderError(ProviderError):
    provider = "rekognition"


class StorageError(ProviderError):
    provider = "storage"


class StorageInconsistencyError(ForkfulError):
    """
    A compensating step failed after a rejection decision.

    The review (or its staged attachments) may be left orphaned; a
    reconciliation job has to pick it up.
    """

    def __init__(self, review_id: Optional[str], step: str, cause: Optional[BaseException] = None):
        self.review_id = review_id
        self.step = step
        self.cause = cause
        super().__init__(f"Compensating {step} failed for review {review_id}")


def log_error(message: str) -> None:
    """Log through the Flask app logger when there is an app context."""
    if has_app_context():
        current_app.logger.error(message)
    else:
        logger.error(message)


def log_warning(message: str) -> None:
    if has_app_context():
        current_app.logger.warning(message)
    else:
        logger.warning(message)


def log_info(message: str) -> None:
    if has_app_context():
        current_app.logger.info(message)
    else:
        logger.info(message)


def sanitize_error(exc: BaseException, context: str, fallback: str = "Something went wrong. Please try again.") -> str:
    """
    Log the real exception and return a message that is safe to show users.

    Args:
        exc: The exception that was raised
        context: Short label for the log line (e.g. "reviews", "storage")
        fallback: Generic message returned to the caller

    Returns:
        The fallback message; exception details never leave the server.
    """
    log_error(f"[{context}] {type(exc).__name__}: {exc}")
    return fallback
