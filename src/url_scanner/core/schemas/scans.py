"""Pydantic request/response schemas for scans.

Used by the scan API routes for validation, serialisation, and OpenAPI
documentation generation, and by the result reader for the cached page
format.  All schemas serialise with camelCase field names.
"""

from __future__ import annotations

import urllib.parse
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from url_scanner.core.models.scans import ResultStatus, ScanStatus

#: Message returned in the body of an accepted submission.
SUBMISSION_ACCEPTED_MESSAGE = "Fetching started"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


class ScanCreate(_CamelModel):
    """Payload for submitting a new scan.

    Attributes:
        urls: Absolute ``http``/``https`` URLs, in the order results should
            be reported.  Duplicates are kept.  The upper bound on the list
            length is enforced by the route from
            ``Settings.max_urls_per_request``.
    """

    urls: List[str] = Field(min_length=1)

    @field_validator("urls")
    @classmethod
    def _check_urls(cls, urls: List[str]) -> List[str]:
        for url in urls:
            parsed = urllib.parse.urlsplit(url)
            if parsed.scheme not in ("http", "https") or not parsed.hostname:
                raise ValueError(
                    f"'{url}' is not an absolute http or https URL"
                )
        return urls


class ScanSubmitted(_CamelModel):
    """Response body of ``POST /scans``."""

    message: str = SUBMISSION_ACCEPTED_MESSAGE
    request_id: uuid.UUID
    result_count: int


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class ScanStatusRead(_CamelModel):
    """Progress of a scan.  ``percentage`` is rounded to two decimals."""

    status: ScanStatus
    total: int
    processed: int
    percentage: float


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ResultMetadata(_CamelModel):
    """Everything the database knows about one result row.

    This is the shape stored in the results cache.  It carries the blob key
    but never the page body.
    """

    original_index: int
    url: str
    status: ResultStatus
    status_code: Optional[int] = None
    title: Optional[str] = None
    content_ref: Optional[str] = None
    error: Optional[str] = None
    fetched_at: Optional[datetime] = None


class ScanResultRead(_CamelModel):
    """One result row as returned to API callers.

    ``content`` holds the hydrated page body for ``success`` rows whose blob
    could be read.  When the blob read fails, ``content`` is ``None`` and
    ``error`` is ``"Failed to retrieve content"``.
    """

    url: str
    status: ResultStatus
    status_code: Optional[int] = None
    title: Optional[str] = None
    content: Optional[str] = None
    error: Optional[str] = None
    fetched_at: Optional[datetime] = None


class ResultsMeta(_CamelModel):
    """Pagination metadata.  ``next_cursor`` is ``None`` on the last page."""

    next_cursor: Optional[int] = None


class CachedResultsPage(_CamelModel):
    """Metadata-only results page as written to the cache."""

    status: ScanStatus
    data: List[ResultMetadata]
    meta: ResultsMeta


class ScanResultsPage(_CamelModel):
    """Response body of ``GET /scans/{id}/results``."""

    status: ScanStatus
    data: List[ScanResultRead]
    meta: ResultsMeta
