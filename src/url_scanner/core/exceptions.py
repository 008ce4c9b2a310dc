"""Application-wide exception hierarchy for URL Scanner.

All custom exceptions subclass ``UrlScannerError``, enabling consistent
error handling and structured logging across the application.

Hierarchy::

    UrlScannerError
    ├── ScanNotFoundError          (request_id)
    ├── ScanAccessDeniedError      (request_id)
    ├── InvalidChunkMessageError   (payload)
    └── ContentHydrationError      (content_ref)

Infrastructure errors raised by SQLAlchemy, Celery/kombu, Redis and MinIO are
deliberately *not* wrapped: admission and progress reconciliation let them
propagate to the HTTP layer or the queue consumer.
"""

from __future__ import annotations

import uuid
from typing import Any


class UrlScannerError(Exception):
    """Base class for all URL Scanner exceptions."""


# ---------------------------------------------------------------------------
# Read-path exceptions
# ---------------------------------------------------------------------------


class ScanNotFoundError(UrlScannerError):
    """Raised when a scan request ID does not exist.

    Args:
        request_id: The unknown scan request ID.
    """

    def __init__(self, request_id: uuid.UUID | str) -> None:
        super().__init__(f"Scan request '{request_id}' not found")
        self.request_id = request_id


class ScanAccessDeniedError(UrlScannerError):
    """Raised when the caller neither owns the scan nor is an administrator.

    Args:
        request_id: The scan request the caller tried to read.
    """

    def __init__(self, request_id: uuid.UUID | str) -> None:
        super().__init__("You do not have permission to access this scan request")
        self.request_id = request_id


# ---------------------------------------------------------------------------
# Worker exceptions
# ---------------------------------------------------------------------------


class InvalidChunkMessageError(UrlScannerError):
    """Raised when a queue message does not match the chunk message schema.

    Args:
        message: Description of what is wrong with the payload.
        payload: The raw decoded payload (kept for the dead-letter log line).
    """

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class ContentHydrationError(UrlScannerError):
    """Raised when a stored page body cannot be read back from the blob store.

    Args:
        content_ref: Blob key that failed to load.
        cause: Underlying exception, if any.
    """

    def __init__(self, content_ref: str, cause: BaseException | None = None) -> None:
        msg = f"Failed to load content '{content_ref}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
        self.content_ref = content_ref
        self.cause = cause
